import pytest

from wavpreviewlib.events import EventType
from wavpreviewlib.models import FrequencyScale, SampleBuffer, WindowSizeIndex
from wavpreviewlib.settings import AnalyzeSettingsService, PlayerSettingsService


def record(service, *events):
    seen = []
    for event in events:
        service.subscribe(event, lambda value, e=event: seen.append((e, value)))
    return seen


@pytest.fixture
def analyze_settings():
    return AnalyzeSettingsService(44100, 10.0, -0.8, 0.9)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

def test_documented_defaults(analyze_settings):
    s = analyze_settings
    assert s.window_size_index == WindowSizeIndex.W1024
    assert s.frequency_scale == FrequencyScale.LINEAR
    assert s.mel_filter_num == 40
    assert (s.min_frequency, s.max_frequency) == (0.0, 22050.0)
    assert (s.min_time, s.max_time) == (0.0, 10.0)
    assert (s.min_amplitude, s.max_amplitude) == (-0.8, 0.9)
    assert s.spectrogram_amplitude_range == -90.0
    assert s.auto_hop_size


def test_silent_buffer_gets_full_scale_amplitude():
    s = AnalyzeSettingsService(8000, 1.0, 0.0, 0.0)
    assert s.default_amplitude_range == (-1.0, 1.0)


def test_from_default_setting_corrects_invalid_entries(mono_buffer):
    s = AnalyzeSettingsService.from_default_setting({
        "window_size_index": 99,
        "mel_filter_num": 5,
        "frequency_scale": 2,
        "min_frequency": 100,
        "max_frequency": None,
        "waveform_vertical_scale": 1.5,
    }, mono_buffer)
    assert s.window_size_index == WindowSizeIndex.W1024
    assert s.mel_filter_num == 40
    assert s.frequency_scale == FrequencyScale.MEL
    assert (s.min_frequency, s.max_frequency) == (100.0, 4000.0)
    assert s.waveform_vertical_scale == 1.5


# ---------------------------------------------------------------------------
# Broadcast rules
# ---------------------------------------------------------------------------

def test_every_write_broadcasts_once(analyze_settings):
    seen = record(analyze_settings, EventType.MEL_FILTER_NUM)
    analyze_settings.mel_filter_num = 64
    analyze_settings.mel_filter_num = 64
    assert seen == [(EventType.MEL_FILTER_NUM, 64), (EventType.MEL_FILTER_NUM, 64)]


def test_corrected_write_broadcasts_corrected_value(analyze_settings):
    seen = record(analyze_settings, EventType.WAVEFORM_VERTICAL_SCALE)
    analyze_settings.waveform_vertical_scale = 10
    assert seen == [(EventType.WAVEFORM_VERTICAL_SCALE, 2.0)]


def test_valid_bound_write_only_broadcasts_written_bound(analyze_settings):
    seen = record(analyze_settings, EventType.MIN_FREQUENCY, EventType.MAX_FREQUENCY)
    analyze_settings.min_frequency = 100
    assert seen == [(EventType.MIN_FREQUENCY, 100.0)]


def test_crossing_pair_resets_both_and_broadcasts_both(analyze_settings):
    analyze_settings.max_frequency = 20000
    seen = record(analyze_settings, EventType.MIN_FREQUENCY, EventType.MAX_FREQUENCY)
    analyze_settings.min_frequency = 30000
    assert (analyze_settings.min_frequency, analyze_settings.max_frequency) == (0.0, 22050.0)
    assert seen == [(EventType.MIN_FREQUENCY, 0.0), (EventType.MAX_FREQUENCY, 22050.0)]


def test_set_range_broadcasts_both_bounds(analyze_settings):
    seen = record(analyze_settings, EventType.MIN_TIME, EventType.MAX_TIME)
    analyze_settings.set_time_range(1.0, 2.0)
    assert seen == [(EventType.MIN_TIME, 1.0), (EventType.MAX_TIME, 2.0)]


def test_reset_restores_defaults(analyze_settings):
    analyze_settings.set_amplitude_range(-0.1, 0.1)
    analyze_settings.set_time_range(2.0, 3.0)
    seen = record(analyze_settings, EventType.MIN_AMPLITUDE, EventType.MAX_AMPLITUDE)
    analyze_settings.reset_to_default_amplitude_range()
    analyze_settings.reset_to_default_time_range()
    assert (analyze_settings.min_amplitude, analyze_settings.max_amplitude) == (-0.8, 0.9)
    assert (analyze_settings.min_time, analyze_settings.max_time) == (0.0, 10.0)
    assert seen == [(EventType.MIN_AMPLITUDE, -0.8), (EventType.MAX_AMPLITUDE, 0.9)]


def test_write_from_own_handler_is_refused(analyze_settings):
    def handler(value):
        analyze_settings.mel_filter_num = value + 1

    analyze_settings.subscribe(EventType.MEL_FILTER_NUM, handler)
    analyze_settings.mel_filter_num = 50
    assert analyze_settings.mel_filter_num == 50


def test_write_to_other_field_from_handler_is_allowed(analyze_settings):
    analyze_settings.subscribe(
        EventType.FREQUENCY_SCALE,
        lambda value: setattr(analyze_settings, "mel_filter_num", 80),
    )
    analyze_settings.frequency_scale = FrequencyScale.MEL
    assert analyze_settings.mel_filter_num == 80


# ---------------------------------------------------------------------------
# Hop size and generations
# ---------------------------------------------------------------------------

def test_explicit_hop_size_and_back_to_auto(analyze_settings):
    analyze_settings.hop_size = 256
    assert analyze_settings.hop_size == 256
    assert not analyze_settings.auto_hop_size
    analyze_settings.hop_size = 5000
    assert analyze_settings.auto_hop_size
    assert analyze_settings.hop_size == 490


ANALYZE_FIELDS = [
    "waveform_visible", "waveform_vertical_scale", "waveform_show_channel_label",
    "spectrogram_visible", "spectrogram_vertical_scale", "spectrogram_show_channel_label",
    "round_waveform_axis", "round_time_axis", "window_size_index", "hop_size",
    "frequency_scale", "mel_filter_num", "min_frequency", "max_frequency",
    "min_time", "max_time", "min_amplitude", "max_amplitude",
    "spectrogram_amplitude_range",
]


@pytest.mark.parametrize("explicit_hop", [None, 256])
@pytest.mark.parametrize("field", ANALYZE_FIELDS)
def test_writing_back_current_value_changes_nothing(analyze_settings, field, explicit_hop):
    s = analyze_settings
    if explicit_hop is not None:
        s.hop_size = explicit_hop
    before = s.to_snapshot().to_dict()
    seen = record(s, field)
    current = getattr(s, field)

    setattr(s, field, current)

    assert s.to_snapshot().to_dict() == before
    assert seen == [(field, current)]


def test_written_back_auto_hop_follows_later_zoom(analyze_settings):
    analyze_settings.hop_size = analyze_settings.hop_size
    analyze_settings.set_time_range(0.0, 1.0)
    assert analyze_settings.auto_hop_size
    assert analyze_settings.hop_size == 49


def test_shrinking_window_drops_wider_explicit_hop(analyze_settings):
    s = analyze_settings
    s.hop_size = 1024
    seen = record(s, EventType.HOP_SIZE)
    s.window_size_index = WindowSizeIndex.W256
    assert s.auto_hop_size
    assert s.hop_size <= s.window_size
    assert seen == [(EventType.HOP_SIZE, s.hop_size)]


def test_explicit_hop_within_new_window_is_kept(analyze_settings):
    s = analyze_settings
    s.hop_size = 200
    s.window_size_index = WindowSizeIndex.W256
    assert s.hop_size == 200


def test_generation_stamps(analyze_settings):
    first = analyze_settings.update_analyze_id()
    assert analyze_settings.is_current(first)
    second = analyze_settings.update_analyze_id()
    assert second > first
    assert not analyze_settings.is_current(first)
    assert analyze_settings.to_snapshot().analyze_id == second


def test_snapshot_is_frozen(analyze_settings):
    snap = analyze_settings.to_snapshot()
    analyze_settings.set_time_range(1.0, 2.0)
    assert (snap.min_time, snap.max_time) == (0.0, 10.0)
    assert snap.to_dict()["window_size_index"] == 2


# ---------------------------------------------------------------------------
# Player settings
# ---------------------------------------------------------------------------

def test_player_filter_frequencies_clamp_to_nyquist():
    s = PlayerSettingsService(16000)
    assert s.lpf_frequency == 8000.0
    s.hpf_frequency = 5
    assert s.hpf_frequency == 10.0
    s.hpf_frequency = 9000
    assert s.hpf_frequency == 8000.0


def test_player_volume_validation():
    s = PlayerSettingsService(44100)
    s.initial_volume = 150
    assert s.initial_volume == 100.0
    s.initial_volume_db = -20
    assert s.initial_volume_db == -20.0
    s.initial_volume_db = 6
    assert s.initial_volume_db == 0.0


def test_player_from_default_setting():
    s = PlayerSettingsService.from_default_setting(
        {"enable_hpf": True, "hpf_frequency": 200, "enable_seek_to_play": None}, 44100,
    )
    assert s.enable_hpf and s.hpf_frequency == 200.0
    assert s.enable_seek_to_play
    assert s.to_dict()["hpf_frequency"] == 200.0


def test_buffer_backed_defaults(stereo_buffer):
    s = AnalyzeSettingsService.from_default_setting(None, stereo_buffer)
    assert s.default_amplitude_range == (stereo_buffer.min_amplitude,
                                         stereo_buffer.max_amplitude)
    assert s.max_time == pytest.approx(stereo_buffer.duration)
    assert isinstance(stereo_buffer, SampleBuffer)
