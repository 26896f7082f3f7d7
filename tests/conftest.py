import io

import numpy as np
import pytest
import soundfile as sf

from wavpreviewlib.analyzer import FigureRenderer
from wavpreviewlib.models import SampleBuffer


def sine(freq, sr=8000, seconds=1.0, amp=0.5):
    t = np.arange(int(sr * seconds)) / sr
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def wav_bytes(frames, sr, subtype="PCM_16"):
    buf = io.BytesIO()
    sf.write(buf, frames, sr, format="WAV", subtype=subtype)
    return buf.getvalue()


class FakeStream:
    """Stands in for sounddevice.OutputStream."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True


class StreamRecorder:
    def __init__(self):
        self.streams = []

    def __call__(self, **kwargs):
        stream = FakeStream(**kwargs)
        self.streams.append(stream)
        return stream


@pytest.fixture
def mono_buffer():
    return SampleBuffer((sine(1000),), 8000)


@pytest.fixture
def stereo_buffer():
    return SampleBuffer((sine(500), sine(2000, amp=0.25)), 8000)


@pytest.fixture
def stereo_wav():
    frames = np.column_stack([sine(440, sr=16000), sine(880, sr=16000)])
    return wav_bytes(frames, 16000)


@pytest.fixture
def stream_factory():
    return StreamRecorder()


class RecordingRenderer(FigureRenderer):
    """Logs every drawing call the analyzer makes."""

    def __init__(self):
        self.calls = []

    def begin(self, settings, num_channels):
        self.calls.append(("begin", settings.analyze_id, num_channels))

    def draw_waveform(self, ch, x, y, settings):
        self.calls.append(("waveform", ch, len(x)))

    def draw_spectrogram(self, ch, frame_offset, n_frames, db, settings):
        self.calls.append(("spectrogram", ch, frame_offset, n_frames, len(db)))

    def finish(self, settings):
        self.calls.append(("finish", settings.analyze_id))


@pytest.fixture
def renderer():
    return RecordingRenderer()
