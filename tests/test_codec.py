import io
from datetime import datetime

import numpy as np
import pytest
import soundfile as sf

from wavpreviewlib.decoder import DecodeError, decode, read_audio_info
from wavpreviewlib.encoder import cut_to_wav, default_cut_filename, sanitize_filename
from wavpreviewlib.models import SampleBuffer


def test_decode_stereo_wav(stereo_wav):
    result = decode(stereo_wav)
    assert result.status.ok
    assert result.sample_rate == 16000
    assert result.num_channels == 2
    buf = result.to_sample_buffer()
    assert buf.length == 16000
    assert buf.duration == pytest.approx(1.0)
    assert buf.max_amplitude == pytest.approx(0.5, abs=1e-3)


def test_decode_garbage_reports_status():
    result = decode(b"definitely not audio")
    assert not result.status.ok
    assert result.status.error
    with pytest.raises(DecodeError):
        result.to_sample_buffer()


def test_audio_info(stereo_wav):
    info = read_audio_info(stereo_wav)
    assert info.format == "WAV"
    assert info.encoding == "16-bit"
    assert info.channels == 2
    assert info.file_size == len(stereo_wav)
    rows = dict(info.rows())
    assert rows["Sample rate"] == "16000 Hz"
    assert rows["Duration"] == "00:01.000"


def test_audio_info_rejects_garbage():
    with pytest.raises(DecodeError):
        read_audio_info(b"nope")


def test_sample_buffer_is_read_only():
    buf = SampleBuffer((np.zeros(10),), 100)
    with pytest.raises(ValueError):
        buf.channels[0][0] = 1.0
    with pytest.raises(ValueError):
        SampleBuffer((np.zeros(10), np.zeros(5)), 100)


def test_cut_writes_selected_range(stereo_buffer):
    data = cut_to_wav(stereo_buffer, 0.25, 0.5)
    frames, sr = sf.read(io.BytesIO(data), always_2d=True)
    assert sr == 8000
    assert frames.shape == (2000, 2)
    assert sf.info(io.BytesIO(data)).subtype == "PCM_16"


def test_cut_rejects_empty_range(stereo_buffer):
    with pytest.raises(ValueError):
        cut_to_wav(stereo_buffer, 0.5, 0.5)


def test_filenames():
    now = datetime(2024, 3, 1, 12, 30, 5)
    assert default_cut_filename(now) == "cut_20240301_123005.wav"
    assert sanitize_filename("a/b:c", now) == "a_b_c.wav"
    assert sanitize_filename("take.WAV", now) == "take.WAV"
    assert sanitize_filename("   ", now) == "cut_20240301_123005.wav"
