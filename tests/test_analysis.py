import math

import numpy as np
import pytest

from wavpreviewlib.analysis import (
    AnalyzeService,
    axis_ticks,
    color_lut,
    db_to_lut_index,
    hann_window,
    hz_to_mel,
    mel_filter_bank,
    mel_to_hz,
    power_to_db,
    round_to_nice_number,
    spectrogram_color,
)
from wavpreviewlib.events import EventType
from wavpreviewlib.models import FrequencyScale, SampleBuffer, WindowSizeIndex
from wavpreviewlib.settings import AnalyzeSettingsService


def settings_for(buffer, **overrides):
    s = AnalyzeSettingsService(buffer.sample_rate, buffer.duration,
                               buffer.min_amplitude, buffer.max_amplitude)
    for key, value in overrides.items():
        setattr(s, key, value)
    return s


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def test_hann_window_is_periodic():
    w = hann_window(8)
    assert w[0] == pytest.approx(0.0)
    assert w[4] == pytest.approx(1.0)
    assert w[2] == pytest.approx(0.5)
    assert len(w) == 8


def test_mel_round_trip():
    freqs = np.array([0.0, 100.0, 1000.0, 8000.0])
    assert mel_to_hz(hz_to_mel(freqs)) == pytest.approx(freqs)
    assert float(hz_to_mel(700.0)) == pytest.approx(2595.0 * math.log10(2.0))


def test_mel_filter_bank_shape_and_peaks():
    fb = mel_filter_bank(20, 1024, 16000, 0.0, 8000.0)
    assert fb.shape == (20, 513)
    assert fb.max() == pytest.approx(1.0)
    assert np.all(fb >= 0.0)
    peaks = fb.argmax(axis=1)
    assert np.all(np.diff(peaks) >= 0)


@pytest.mark.parametrize("x, expected", [
    (0.0, (0, 0)),
    (-3.0, (0, 0)),
    (0.12, (0.1, 1)),
    (3.0, (2.0, 0)),
    (0.75, (1.0, 0)),
    (4.0, (5.0, 0)),
    (0.025, (0.02, 2)),
    (0.061, (0.05, 2)),
    (265.0, (200.0, 0)),
    (6890.0, (5000.0, 0)),
])
def test_round_to_nice_number(x, expected):
    nice, digits = round_to_nice_number(x)
    assert nice == pytest.approx(expected[0])
    assert digits == expected[1]


def test_axis_ticks_land_on_nice_values():
    ticks = axis_ticks(0.0, 10.0, 10, True)
    assert [v for v, _ in ticks] == pytest.approx(list(range(11)))
    assert ticks[3][1] == "3"


def test_axis_ticks_unrounded_and_empty():
    ticks = axis_ticks(0.0, 1.0, 4, False)
    assert len(ticks) == 5
    assert ticks[-1][1] == "1.00"
    assert axis_ticks(1.0, 1.0) == []


def test_power_to_db_handles_all_zero_input():
    db = power_to_db(np.zeros((3, 4)))
    assert db.shape == (3, 4)
    assert np.all(np.isneginf(db))


def test_power_to_db_relative_to_peak():
    db = power_to_db(np.array([[1.0, 0.1, 0.01]]))
    assert db[0] == pytest.approx([0.0, -10.0, -20.0])


def test_spectrogram_color_bands():
    assert spectrogram_color(0.0, -90.0) == (255, 255, 255)
    assert spectrogram_color(-89.9, -90.0) == (0, 0, 0)
    assert spectrogram_color(-100.0, -90.0) == (0, 0, 0)
    assert spectrogram_color(float("-inf"), -90.0) == (0, 0, 0)
    assert spectrogram_color(None, -90.0) == (0, 0, 0)
    r, g, b = spectrogram_color(-20.0, -90.0)
    assert (r, b) == (255, 125)


def test_color_lut_ends():
    lut = color_lut(-90.0, 256)
    assert lut.shape == (256, 4)
    assert tuple(lut[-1, :3]) == (255, 255, 255)
    assert tuple(lut[0, :3]) == (0, 0, 0)
    assert np.all(lut[:, 3] == 255)


def test_db_to_lut_index_clips():
    idx = db_to_lut_index(np.array([0.0, -45.0, -200.0, -np.inf]), -90.0, 256)
    assert list(idx) == [255, 128, 0, 0]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def test_auto_hop_size_matches_canvas_heuristic():
    s = AnalyzeSettingsService(44100, 10.0)
    assert s.window_size == 1024
    assert s.hop_size == 490
    s.window_size_index = WindowSizeIndex.W256
    assert s.hop_size == max(8, int(0.5 * 441000 / 1800))


def test_hop_size_never_below_window_fraction():
    s = AnalyzeSettingsService(8000, 0.01)
    assert s.hop_size == 1024 // 32


def test_spectrogram_peak_bin_follows_sine(mono_buffer):
    s = settings_for(mono_buffer).to_snapshot()
    db = AnalyzeService(mono_buffer).get_spectrogram(0, s)
    df = mono_buffer.sample_rate / s.window_size
    n_frames = len(range(0, mono_buffer.length, s.hop_size))
    assert db.shape == (n_frames, int(math.floor(4000 / df + 0.5)))
    middle = db[len(db) // 2]
    assert middle.argmax() == round(1000 / df)
    assert db.max() == pytest.approx(0.0)


def test_spectrogram_bin_slice_respects_frequency_range(mono_buffer):
    svc = settings_for(mono_buffer)
    svc.set_frequency_range(500.0, 1500.0)
    s = svc.to_snapshot()
    db = AnalyzeService(mono_buffer).get_spectrogram(0, s)
    df = mono_buffer.sample_rate / s.window_size
    lo = math.floor(500 / df + 0.5)
    hi = math.floor(1500 / df + 0.5)
    assert db.shape[1] == hi - lo
    assert db[len(db) // 2].argmax() + lo == round(1000 / df)


def test_spectrogram_of_silence_stays_finite_shape():
    buf = SampleBuffer((np.zeros(4000, dtype=np.float32),), 8000)
    s = settings_for(buf).to_snapshot()
    db = AnalyzeService(buf).get_spectrogram(0, s)
    assert db.shape[0] > 0
    assert not np.any(np.isnan(db))


def test_mel_spectrogram_shape(mono_buffer):
    s = settings_for(mono_buffer, frequency_scale=FrequencyScale.MEL,
                     mel_filter_num=30).to_snapshot()
    svc = AnalyzeService(mono_buffer)
    db = svc.compute(0, s)
    assert db.shape[1] == 30
    assert db.max() == pytest.approx(0.0)


def test_time_range_limits_frames(mono_buffer):
    svc = settings_for(mono_buffer, hop_size=100)
    svc.set_time_range(0.25, 0.5)
    s = svc.to_snapshot()
    db = AnalyzeService(mono_buffer).get_spectrogram(0, s)
    assert len(db) == len(range(2000, 4000, 100))


def test_injected_fft_is_used(mono_buffer):
    calls = []

    def fake_fft(frames):
        calls.append(frames.shape)
        zeros = np.zeros(frames.shape[:-1] + (frames.shape[-1] // 2 + 1,))
        return zeros + 1.0, zeros

    s = settings_for(mono_buffer).to_snapshot()
    db = AnalyzeService(mono_buffer, fft=fake_fft).get_spectrogram(0, s)
    assert calls and calls[0][1] == s.window_size
    assert np.all(db == 0.0)


def test_waveform_normalised_to_amplitude_range(mono_buffer):
    s = settings_for(mono_buffer).to_snapshot()
    x, y = AnalyzeService(mono_buffer).get_waveform(0, s)
    assert len(x) == mono_buffer.length
    assert x[0] == 0.0 and x[-1] < 1.0
    assert y.min() == pytest.approx(0.0, abs=1e-6)
    assert y.max() == pytest.approx(1.0, abs=1e-6)


def test_waveform_is_decimated(mono_buffer):
    s = settings_for(mono_buffer).to_snapshot()
    x, y = AnalyzeService(mono_buffer).get_waveform(0, s, max_points=1000)
    assert len(x) <= 1000


def test_analyze_broadcasts(mono_buffer):
    svc = AnalyzeService(mono_buffer)
    seen = []
    svc.subscribe(EventType.ANALYZE, lambda: seen.append(True))
    svc.analyze()
    assert seen == [True]


def test_spectrogram_db_is_relative_to_whole_window():
    sr = 8000
    t = np.arange(4 * sr) / sr
    quiet = 0.001 * np.sin(2 * np.pi * 500 * t[:3 * sr])
    loud = 0.5 * np.sin(2 * np.pi * 500 * t[3 * sr:])
    buf = SampleBuffer((np.concatenate([quiet, loud]).astype(np.float32),), sr)
    s = settings_for(buf, hop_size=64).to_snapshot()

    db = AnalyzeService(buf).get_spectrogram(0, s)
    assert len(db) == 500
    # the first block of frames holds only the quiet part
    assert db[:200].max() < -40.0
    assert db.max() == 0.0
    assert db[-100:].max() > -1.0
