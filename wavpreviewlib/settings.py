"""Reactive, self-validating settings for analysis and playback.

Every field is a property: writing it validates the value (correcting it
instead of raising), commits the corrected value and broadcasts exactly one
change notification carrying it on the service's :class:`EventBus`.  Pair
fields (min/max) revert *both* bounds to their defaults when the requested
combination is invalid; the partner bound is then broadcast as well.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping

from .events import EventBus, EventType, Subscription
from .models import (
    SPECTROGRAM_CANVAS_WIDTH,
    AnalyzeSettingsSnapshot,
    FrequencyScale,
    SampleBuffer,
    WindowSizeIndex,
)
from .utils import clamp_bool, clamp_enum, clamp_limited, clamp_paired, clamp_single

log = logging.getLogger(__name__)


class _SettingsService:
    """Shared commit / broadcast plumbing."""

    def __init__(self) -> None:
        self.event_bus = EventBus()

    def subscribe(self, event_type: str, handler: Callable[..., Any]) -> Subscription:
        return self.event_bus.subscribe(event_type, handler)

    def _commit(self, event_type: str, attr: str, value: Any) -> None:
        # A handler writing back to the field that is notifying it would
        # loop forever; such writes are refused.
        if self.event_bus.is_dispatching(event_type):
            log.warning("Ignored write to '%s' from its own change handler", event_type)
            return
        setattr(self, attr, value)
        self.event_bus.emit(event_type, value=getattr(self, attr.lstrip("_")))

    def _commit_pair(
        self,
        written: str,
        lo: float,
        hi: float,
        lo_name: str,
        hi_name: str,
        lo_event: str,
        hi_event: str,
        force_both: bool = False,
    ) -> None:
        """Store a validated pair and broadcast the bounds.

        The *written* bound is always broadcast; its partner only if its
        value changed (or *force_both*).
        """
        if self.event_bus.is_dispatching(lo_event) or self.event_bus.is_dispatching(hi_event):
            log.warning("Ignored write to '%s' from a range change handler", written)
            return
        old_lo = getattr(self, "_" + lo_name)
        old_hi = getattr(self, "_" + hi_name)
        setattr(self, "_" + lo_name, lo)
        setattr(self, "_" + hi_name, hi)
        if force_both or written == lo_name or old_lo != lo:
            self.event_bus.emit(lo_event, value=lo)
        if force_both or written == hi_name or old_hi != hi:
            self.event_bus.emit(hi_event, value=hi)


# ---------------------------------------------------------------------------
# Analysis settings
# ---------------------------------------------------------------------------

class AnalyzeSettingsService(_SettingsService):
    VERTICAL_SCALE_MIN = 0.2
    VERTICAL_SCALE_MAX = 2.0
    MEL_FILTER_NUM_MIN = 20
    MEL_FILTER_NUM_MAX = 200
    MEL_FILTER_NUM_DEFAULT = 40
    AMPLITUDE_MIN = -100.0
    AMPLITUDE_MAX = 100.0
    SPECTROGRAM_AMPLITUDE_RANGE_MIN = -1000.0
    SPECTROGRAM_AMPLITUDE_RANGE_DEFAULT = -90.0

    def __init__(
        self,
        sample_rate: int,
        duration: float,
        default_min_amplitude: float = -1.0,
        default_max_amplitude: float = 1.0,
    ):
        super().__init__()
        self.sample_rate = int(sample_rate)
        self.duration = float(duration)
        if not default_max_amplitude > default_min_amplitude:
            # silent or constant signal: fall back to full scale
            default_min_amplitude, default_max_amplitude = -1.0, 1.0
        self.default_min_amplitude = float(default_min_amplitude)
        self.default_max_amplitude = float(default_max_amplitude)

        self._analyze_id = 0
        self._waveform_visible = True
        self._waveform_vertical_scale = 1.0
        self._waveform_show_channel_label = False
        self._spectrogram_visible = True
        self._spectrogram_vertical_scale = 1.0
        self._spectrogram_show_channel_label = False
        self._round_waveform_axis = True
        self._round_time_axis = True
        self._window_size_index = WindowSizeIndex.W1024
        self._hop_size: int | None = None
        self._frequency_scale = FrequencyScale.LINEAR
        self._mel_filter_num = self.MEL_FILTER_NUM_DEFAULT
        self._min_frequency, self._max_frequency = self.default_frequency_range
        self._min_time, self._max_time = self.default_time_range
        self._min_amplitude = self.default_min_amplitude
        self._max_amplitude = self.default_max_amplitude
        self._spectrogram_amplitude_range = self.SPECTROGRAM_AMPLITUDE_RANGE_DEFAULT

    @classmethod
    def from_default_setting(
        cls,
        default_setting: Mapping[str, Any] | None,
        sample_buffer: SampleBuffer,
    ) -> AnalyzeSettingsService:
        """Build a service for *sample_buffer*, seeded from a defaults record.

        Missing or ``None`` entries fall back to the documented defaults;
        invalid entries are corrected the same way a runtime write is.
        """
        d = dict(default_setting or {})
        s = cls(
            sample_buffer.sample_rate, sample_buffer.duration,
            sample_buffer.min_amplitude, sample_buffer.max_amplitude,
        )
        for key in (
            "waveform_visible", "waveform_vertical_scale",
            "waveform_show_channel_label", "spectrogram_visible",
            "spectrogram_vertical_scale", "spectrogram_show_channel_label",
            "round_waveform_axis", "round_time_axis", "window_size_index",
            "frequency_scale", "mel_filter_num", "spectrogram_amplitude_range",
        ):
            if d.get(key) is not None:
                setattr(s, key, d[key])
        s.set_frequency_range(d.get("min_frequency"), d.get("max_frequency"))
        s.set_time_range(d.get("min_time"), d.get("max_time"))
        s.set_amplitude_range(d.get("min_amplitude"), d.get("max_amplitude"))
        return s

    # -- defaults -----------------------------------------------------------

    @property
    def default_frequency_range(self) -> tuple[float, float]:
        return 0.0, self.sample_rate / 2

    @property
    def default_time_range(self) -> tuple[float, float]:
        return 0.0, self.duration

    @property
    def default_amplitude_range(self) -> tuple[float, float]:
        return self.default_min_amplitude, self.default_max_amplitude

    # -- generation ---------------------------------------------------------

    @property
    def analyze_id(self) -> int:
        return self._analyze_id

    def update_analyze_id(self) -> int:
        """Start a new analysis generation and return its stamp."""
        self._analyze_id += 1
        return self._analyze_id

    def is_current(self, analyze_id: int) -> bool:
        return analyze_id == self._analyze_id

    # -- display toggles ----------------------------------------------------

    @property
    def waveform_visible(self) -> bool:
        return self._waveform_visible

    @waveform_visible.setter
    def waveform_visible(self, value: Any) -> None:
        v, _ = clamp_bool(value, True)
        self._commit(EventType.WAVEFORM_VISIBLE, "_waveform_visible", v)

    @property
    def waveform_vertical_scale(self) -> float:
        return self._waveform_vertical_scale

    @waveform_vertical_scale.setter
    def waveform_vertical_scale(self, value: Any) -> None:
        v, _ = clamp_limited(value, self.VERTICAL_SCALE_MIN, self.VERTICAL_SCALE_MAX, 1.0)
        self._commit(EventType.WAVEFORM_VERTICAL_SCALE, "_waveform_vertical_scale", float(v))

    @property
    def waveform_show_channel_label(self) -> bool:
        return self._waveform_show_channel_label

    @waveform_show_channel_label.setter
    def waveform_show_channel_label(self, value: Any) -> None:
        v, _ = clamp_bool(value, False)
        self._commit(EventType.WAVEFORM_SHOW_CHANNEL_LABEL, "_waveform_show_channel_label", v)

    @property
    def spectrogram_visible(self) -> bool:
        return self._spectrogram_visible

    @spectrogram_visible.setter
    def spectrogram_visible(self, value: Any) -> None:
        v, _ = clamp_bool(value, True)
        self._commit(EventType.SPECTROGRAM_VISIBLE, "_spectrogram_visible", v)

    @property
    def spectrogram_vertical_scale(self) -> float:
        return self._spectrogram_vertical_scale

    @spectrogram_vertical_scale.setter
    def spectrogram_vertical_scale(self, value: Any) -> None:
        v, _ = clamp_limited(value, self.VERTICAL_SCALE_MIN, self.VERTICAL_SCALE_MAX, 1.0)
        self._commit(EventType.SPECTROGRAM_VERTICAL_SCALE, "_spectrogram_vertical_scale", float(v))

    @property
    def spectrogram_show_channel_label(self) -> bool:
        return self._spectrogram_show_channel_label

    @spectrogram_show_channel_label.setter
    def spectrogram_show_channel_label(self, value: Any) -> None:
        v, _ = clamp_bool(value, False)
        self._commit(EventType.SPECTROGRAM_SHOW_CHANNEL_LABEL,
                     "_spectrogram_show_channel_label", v)

    @property
    def round_waveform_axis(self) -> bool:
        return self._round_waveform_axis

    @round_waveform_axis.setter
    def round_waveform_axis(self, value: Any) -> None:
        v, _ = clamp_bool(value, True)
        self._commit(EventType.ROUND_WAVEFORM_AXIS, "_round_waveform_axis", v)

    @property
    def round_time_axis(self) -> bool:
        return self._round_time_axis

    @round_time_axis.setter
    def round_time_axis(self, value: Any) -> None:
        v, _ = clamp_bool(value, True)
        self._commit(EventType.ROUND_TIME_AXIS, "_round_time_axis", v)

    # -- STFT parameters ----------------------------------------------------

    @property
    def window_size_index(self) -> WindowSizeIndex:
        return self._window_size_index

    @window_size_index.setter
    def window_size_index(self, value: Any) -> None:
        v, _ = clamp_enum(value, WindowSizeIndex, WindowSizeIndex.W1024)
        self._commit(EventType.WINDOW_SIZE_INDEX, "_window_size_index", v)
        # an explicit hop wider than the new window would skip samples
        if (self._window_size_index == v and self._hop_size is not None
                and self._hop_size > self.window_size):
            self._commit(EventType.HOP_SIZE, "_hop_size", None)

    @property
    def window_size(self) -> int:
        return self._window_size_index.window_size

    @property
    def auto_hop_size(self) -> bool:
        return self._hop_size is None

    def calc_hop_size(self) -> int:
        """Hop that yields roughly one frame per two canvas pixels.

        Never smaller than ``window_size / 32``.
        """
        min_rect_width = 2 * self.window_size / 1024
        full_sample_num = (self._max_time - self._min_time) * self.sample_rate
        enough_hop = math.trunc(min_rect_width * full_sample_num / SPECTROGRAM_CANVAS_WIDTH)
        return max(enough_hop, self.window_size // 32)

    @property
    def hop_size(self) -> int:
        if self._hop_size is None:
            return self.calc_hop_size()
        return self._hop_size

    @hop_size.setter
    def hop_size(self, value: Any) -> None:
        """Explicit hop in samples; ``None`` (or anything invalid) means auto."""
        v = None
        if value is not None:
            checked, corrected = clamp_single(value, 1, self.window_size, None)
            if not corrected:
                v = int(checked)
        if v is not None and self._hop_size is None and v == self.calc_hop_size():
            # writing back the auto value keeps auto mode
            v = None
        self._commit(EventType.HOP_SIZE, "_hop_size", v)

    @property
    def frequency_scale(self) -> FrequencyScale:
        return self._frequency_scale

    @frequency_scale.setter
    def frequency_scale(self, value: Any) -> None:
        v, _ = clamp_enum(value, FrequencyScale, FrequencyScale.LINEAR)
        self._commit(EventType.FREQUENCY_SCALE, "_frequency_scale", v)

    @property
    def mel_filter_num(self) -> int:
        return self._mel_filter_num

    @mel_filter_num.setter
    def mel_filter_num(self, value: Any) -> None:
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            value = math.trunc(value)
        v, _ = clamp_single(value, self.MEL_FILTER_NUM_MIN, self.MEL_FILTER_NUM_MAX,
                            self.MEL_FILTER_NUM_DEFAULT)
        self._commit(EventType.MEL_FILTER_NUM, "_mel_filter_num", int(v))

    @property
    def spectrogram_amplitude_range(self) -> float:
        return self._spectrogram_amplitude_range

    @spectrogram_amplitude_range.setter
    def spectrogram_amplitude_range(self, value: Any) -> None:
        v, _, _ = clamp_paired(
            value, 0.0,
            self.SPECTROGRAM_AMPLITUDE_RANGE_MIN, 0.0,
            self.SPECTROGRAM_AMPLITUDE_RANGE_DEFAULT, 0.0,
        )
        self._commit(EventType.SPECTROGRAM_AMPLITUDE_RANGE,
                     "_spectrogram_amplitude_range", float(v))

    # -- ranges -------------------------------------------------------------

    def _validated_frequency(self, lo: Any, hi: Any) -> tuple[float, float, bool]:
        d_lo, d_hi = self.default_frequency_range
        v_lo, v_hi, corrected = clamp_paired(lo, hi, d_lo, d_hi, d_lo, d_hi)
        return float(v_lo), float(v_hi), corrected

    def _validated_time(self, lo: Any, hi: Any) -> tuple[float, float, bool]:
        d_lo, d_hi = self.default_time_range
        v_lo, v_hi, corrected = clamp_paired(lo, hi, d_lo, d_hi, d_lo, d_hi)
        return float(v_lo), float(v_hi), corrected

    def _validated_amplitude(self, lo: Any, hi: Any) -> tuple[float, float, bool]:
        v_lo, v_hi, corrected = clamp_paired(
            lo, hi, self.AMPLITUDE_MIN, self.AMPLITUDE_MAX,
            self.default_min_amplitude, self.default_max_amplitude,
        )
        return float(v_lo), float(v_hi), corrected

    @property
    def min_frequency(self) -> float:
        return self._min_frequency

    @min_frequency.setter
    def min_frequency(self, value: Any) -> None:
        lo, hi, corrected = self._validated_frequency(value, self._max_frequency)
        self._commit_pair("min_frequency", lo, hi, "min_frequency", "max_frequency",
                          EventType.MIN_FREQUENCY, EventType.MAX_FREQUENCY,
                          force_both=corrected)

    @property
    def max_frequency(self) -> float:
        return self._max_frequency

    @max_frequency.setter
    def max_frequency(self, value: Any) -> None:
        lo, hi, corrected = self._validated_frequency(self._min_frequency, value)
        self._commit_pair("max_frequency", lo, hi, "min_frequency", "max_frequency",
                          EventType.MIN_FREQUENCY, EventType.MAX_FREQUENCY,
                          force_both=corrected)

    def set_frequency_range(self, lo: Any, hi: Any) -> None:
        lo, hi, _ = self._validated_frequency(lo, hi)
        self._commit_pair("", lo, hi, "min_frequency", "max_frequency",
                          EventType.MIN_FREQUENCY, EventType.MAX_FREQUENCY,
                          force_both=True)

    @property
    def min_time(self) -> float:
        return self._min_time

    @min_time.setter
    def min_time(self, value: Any) -> None:
        lo, hi, corrected = self._validated_time(value, self._max_time)
        self._commit_pair("min_time", lo, hi, "min_time", "max_time",
                          EventType.MIN_TIME, EventType.MAX_TIME,
                          force_both=corrected)

    @property
    def max_time(self) -> float:
        return self._max_time

    @max_time.setter
    def max_time(self, value: Any) -> None:
        lo, hi, corrected = self._validated_time(self._min_time, value)
        self._commit_pair("max_time", lo, hi, "min_time", "max_time",
                          EventType.MIN_TIME, EventType.MAX_TIME,
                          force_both=corrected)

    def set_time_range(self, lo: Any, hi: Any) -> None:
        lo, hi, _ = self._validated_time(lo, hi)
        self._commit_pair("", lo, hi, "min_time", "max_time",
                          EventType.MIN_TIME, EventType.MAX_TIME,
                          force_both=True)

    @property
    def min_amplitude(self) -> float:
        return self._min_amplitude

    @min_amplitude.setter
    def min_amplitude(self, value: Any) -> None:
        lo, hi, corrected = self._validated_amplitude(value, self._max_amplitude)
        self._commit_pair("min_amplitude", lo, hi, "min_amplitude", "max_amplitude",
                          EventType.MIN_AMPLITUDE, EventType.MAX_AMPLITUDE,
                          force_both=corrected)

    @property
    def max_amplitude(self) -> float:
        return self._max_amplitude

    @max_amplitude.setter
    def max_amplitude(self, value: Any) -> None:
        lo, hi, corrected = self._validated_amplitude(self._min_amplitude, value)
        self._commit_pair("max_amplitude", lo, hi, "min_amplitude", "max_amplitude",
                          EventType.MIN_AMPLITUDE, EventType.MAX_AMPLITUDE,
                          force_both=corrected)

    def set_amplitude_range(self, lo: Any, hi: Any) -> None:
        lo, hi, _ = self._validated_amplitude(lo, hi)
        self._commit_pair("", lo, hi, "min_amplitude", "max_amplitude",
                          EventType.MIN_AMPLITUDE, EventType.MAX_AMPLITUDE,
                          force_both=True)

    def reset_to_default_time_range(self) -> None:
        self.set_time_range(*self.default_time_range)

    def reset_to_default_amplitude_range(self) -> None:
        self.set_amplitude_range(*self.default_amplitude_range)

    def reset_to_default_frequency_range(self) -> None:
        self.set_frequency_range(*self.default_frequency_range)

    # -- snapshot -----------------------------------------------------------

    def to_snapshot(self) -> AnalyzeSettingsSnapshot:
        return AnalyzeSettingsSnapshot(
            analyze_id=self._analyze_id,
            sample_rate=self.sample_rate,
            duration=self.duration,
            waveform_visible=self._waveform_visible,
            waveform_vertical_scale=self._waveform_vertical_scale,
            waveform_show_channel_label=self._waveform_show_channel_label,
            spectrogram_visible=self._spectrogram_visible,
            spectrogram_vertical_scale=self._spectrogram_vertical_scale,
            spectrogram_show_channel_label=self._spectrogram_show_channel_label,
            round_waveform_axis=self._round_waveform_axis,
            round_time_axis=self._round_time_axis,
            window_size_index=self._window_size_index,
            window_size=self.window_size,
            hop_size=self.hop_size,
            auto_hop_size=self.auto_hop_size,
            frequency_scale=self._frequency_scale,
            mel_filter_num=self._mel_filter_num,
            min_frequency=self._min_frequency,
            max_frequency=self._max_frequency,
            min_time=self._min_time,
            max_time=self._max_time,
            min_amplitude=self._min_amplitude,
            max_amplitude=self._max_amplitude,
            spectrogram_amplitude_range=self._spectrogram_amplitude_range,
        )


# ---------------------------------------------------------------------------
# Player settings
# ---------------------------------------------------------------------------

class PlayerSettingsService(_SettingsService):
    VOLUME_DB_MIN = -80.0
    VOLUME_DB_MAX = 0.0
    VOLUME_MIN = 0.0
    VOLUME_MAX = 100.0
    FILTER_FREQUENCY_MIN = 10.0
    HPF_FREQUENCY_DEFAULT = 100.0
    LPF_FREQUENCY_DEFAULT = 10000.0

    def __init__(self, sample_rate: int):
        super().__init__()
        self.sample_rate = int(sample_rate)
        self._volume_unit_db = False
        self._initial_volume_db = 0.0
        self._initial_volume = 100.0
        self._enable_spacekey_play = True
        self._enable_seek_to_play = True
        self._enable_hpf = False
        self._hpf_frequency = min(self.HPF_FREQUENCY_DEFAULT, self.filter_frequency_max)
        self._enable_lpf = False
        self._lpf_frequency = min(self.LPF_FREQUENCY_DEFAULT, self.filter_frequency_max)
        self._match_filter_frequency_to_spectrogram = False

    @classmethod
    def from_default_setting(
        cls,
        default_setting: Mapping[str, Any] | None,
        sample_rate: int,
    ) -> PlayerSettingsService:
        d = dict(default_setting or {})
        s = cls(sample_rate)
        for key in (
            "volume_unit_db", "initial_volume_db", "initial_volume",
            "enable_spacekey_play", "enable_seek_to_play",
            "enable_hpf", "hpf_frequency", "enable_lpf", "lpf_frequency",
            "match_filter_frequency_to_spectrogram",
        ):
            if d.get(key) is not None:
                setattr(s, key, d[key])
        return s

    @property
    def filter_frequency_max(self) -> float:
        return self.sample_rate / 2

    @property
    def volume_unit_db(self) -> bool:
        return self._volume_unit_db

    @volume_unit_db.setter
    def volume_unit_db(self, value: Any) -> None:
        v, _ = clamp_bool(value, False)
        self._commit(EventType.VOLUME_UNIT_DB, "_volume_unit_db", v)

    @property
    def initial_volume_db(self) -> float:
        return self._initial_volume_db

    @initial_volume_db.setter
    def initial_volume_db(self, value: Any) -> None:
        v, _ = clamp_single(value, self.VOLUME_DB_MIN, self.VOLUME_DB_MAX, 0.0)
        self._commit(EventType.INITIAL_VOLUME_DB, "_initial_volume_db", float(v))

    @property
    def initial_volume(self) -> float:
        return self._initial_volume

    @initial_volume.setter
    def initial_volume(self, value: Any) -> None:
        v, _ = clamp_single(value, self.VOLUME_MIN, self.VOLUME_MAX, 100.0)
        self._commit(EventType.INITIAL_VOLUME, "_initial_volume", float(v))

    @property
    def enable_spacekey_play(self) -> bool:
        return self._enable_spacekey_play

    @enable_spacekey_play.setter
    def enable_spacekey_play(self, value: Any) -> None:
        v, _ = clamp_bool(value, True)
        self._commit(EventType.ENABLE_SPACEKEY_PLAY, "_enable_spacekey_play", v)

    @property
    def enable_seek_to_play(self) -> bool:
        return self._enable_seek_to_play

    @enable_seek_to_play.setter
    def enable_seek_to_play(self, value: Any) -> None:
        v, _ = clamp_bool(value, True)
        self._commit(EventType.ENABLE_SEEK_TO_PLAY, "_enable_seek_to_play", v)

    @property
    def enable_hpf(self) -> bool:
        return self._enable_hpf

    @enable_hpf.setter
    def enable_hpf(self, value: Any) -> None:
        v, _ = clamp_bool(value, False)
        self._commit(EventType.ENABLE_HPF, "_enable_hpf", v)

    @property
    def hpf_frequency(self) -> float:
        return self._hpf_frequency

    @hpf_frequency.setter
    def hpf_frequency(self, value: Any) -> None:
        v, _ = clamp_limited(value, self.FILTER_FREQUENCY_MIN, self.filter_frequency_max,
                             min(self.HPF_FREQUENCY_DEFAULT, self.filter_frequency_max))
        self._commit(EventType.HPF_FREQUENCY, "_hpf_frequency", float(v))

    @property
    def enable_lpf(self) -> bool:
        return self._enable_lpf

    @enable_lpf.setter
    def enable_lpf(self, value: Any) -> None:
        v, _ = clamp_bool(value, False)
        self._commit(EventType.ENABLE_LPF, "_enable_lpf", v)

    @property
    def lpf_frequency(self) -> float:
        return self._lpf_frequency

    @lpf_frequency.setter
    def lpf_frequency(self, value: Any) -> None:
        v, _ = clamp_limited(value, self.FILTER_FREQUENCY_MIN, self.filter_frequency_max,
                             min(self.LPF_FREQUENCY_DEFAULT, self.filter_frequency_max))
        self._commit(EventType.LPF_FREQUENCY, "_lpf_frequency", float(v))

    @property
    def match_filter_frequency_to_spectrogram(self) -> bool:
        return self._match_filter_frequency_to_spectrogram

    @match_filter_frequency_to_spectrogram.setter
    def match_filter_frequency_to_spectrogram(self, value: Any) -> None:
        v, _ = clamp_bool(value, False)
        self._commit(EventType.MATCH_FILTER_FREQUENCY_TO_SPECTROGRAM,
                     "_match_filter_frequency_to_spectrogram", v)

    def to_dict(self) -> dict[str, Any]:
        return {
            "volume_unit_db": self._volume_unit_db,
            "initial_volume_db": self._initial_volume_db,
            "initial_volume": self._initial_volume,
            "enable_spacekey_play": self._enable_spacekey_play,
            "enable_seek_to_play": self._enable_seek_to_play,
            "enable_hpf": self._enable_hpf,
            "hpf_frequency": self._hpf_frequency,
            "enable_lpf": self._enable_lpf,
            "lpf_frequency": self._lpf_frequency,
            "match_filter_frequency_to_spectrogram": self._match_filter_frequency_to_spectrogram,
        }
