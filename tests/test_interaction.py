import pytest

from wavpreviewlib.interaction import (
    apply_selection,
    cursor_fraction,
    fraction_to_frequency,
    frequency_to_fraction,
    reset_ranges,
    seek_percent_at,
)
from wavpreviewlib.models import FrequencyScale
from wavpreviewlib.settings import AnalyzeSettingsService


@pytest.fixture
def service():
    return AnalyzeSettingsService(8000, 2.0, -1.0, 1.0)


@pytest.mark.parametrize("scale", list(FrequencyScale))
def test_frequency_fraction_round_trip(service, scale):
    service.frequency_scale = scale
    service.set_frequency_range(100, 4000)
    snap = service.to_snapshot()
    assert frequency_to_fraction(100, snap) == pytest.approx(0.0)
    assert frequency_to_fraction(4000, snap) == pytest.approx(1.0)
    for freq in (150.0, 1000.0, 3500.0):
        frac = frequency_to_fraction(freq, snap)
        assert 0.0 < frac < 1.0
        assert fraction_to_frequency(frac, snap) == pytest.approx(freq)


def test_log_axis_spreads_low_frequencies(service):
    service.frequency_scale = FrequencyScale.LOG
    service.set_frequency_range(100, 4000)
    log_snap = service.to_snapshot()
    service.frequency_scale = FrequencyScale.LINEAR
    lin_snap = service.to_snapshot()
    assert frequency_to_fraction(400, log_snap) > frequency_to_fraction(400, lin_snap)


def test_selection_on_waveform(service):
    snap = service.to_snapshot()
    apply_selection(service, snap, 0.75, 0.75, 0.25, 0.25, on_waveform=True)
    assert (service.min_time, service.max_time) == pytest.approx((0.5, 1.5))
    assert (service.min_amplitude, service.max_amplitude) == pytest.approx((-0.5, 0.5))
    assert (service.min_frequency, service.max_frequency) == (0.0, 4000.0)


def test_selection_on_spectrogram(service):
    snap = service.to_snapshot()
    apply_selection(service, snap, 0.0, 0.25, 0.5, 0.75, on_waveform=False)
    assert (service.min_time, service.max_time) == pytest.approx((0.0, 1.0))
    assert (service.min_frequency, service.max_frequency) == pytest.approx((1000.0, 3000.0))
    assert (service.min_amplitude, service.max_amplitude) == (-1.0, 1.0)


def test_seek_and_cursor(service):
    service.set_time_range(0.5, 1.5)
    snap = service.to_snapshot()
    assert seek_percent_at(0.5, snap) == pytest.approx(50.0)
    assert seek_percent_at(0.0, snap) == pytest.approx(25.0)
    assert cursor_fraction(50.0, snap) == pytest.approx(0.5)
    assert cursor_fraction(100.0, snap) == 1.0
    assert cursor_fraction(0.0, snap) == 0.0


def test_reset_ranges(service):
    service.set_time_range(0.2, 0.4)
    service.set_amplitude_range(-0.1, 0.1)
    service.set_frequency_range(50, 60)
    reset_ranges(service)
    assert (service.min_time, service.max_time) == (0.0, 2.0)
    assert (service.min_amplitude, service.max_amplitude) == (-1.0, 1.0)
    assert (service.min_frequency, service.max_frequency) == (0.0, 4000.0)
