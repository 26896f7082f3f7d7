from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import numpy as np

from .audio import format_duration, format_file_size


class FrequencyScale(IntEnum):
    LINEAR = 0
    LOG = 1
    MEL = 2


class WindowSizeIndex(IntEnum):
    """FFT window size selector.  ``window_size = 2 ** (index + 8)``."""
    W256 = 0
    W512 = 1
    W1024 = 2
    W2048 = 3
    W4096 = 4
    W8192 = 5
    W16384 = 6
    W32768 = 7

    @property
    def window_size(self) -> int:
        return 2 ** (int(self) + 8)


# Drawing surface sizes the hop-size heuristic and renderers are tuned for.
WAVEFORM_CANVAS_WIDTH = 1000
WAVEFORM_CANVAS_HEIGHT = 200
SPECTROGRAM_CANVAS_WIDTH = 1800
SPECTROGRAM_CANVAS_HEIGHT = 600


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """Decoded PCM audio, one float32 array per channel.

    Immutable once built: every channel array is flagged read-only and the
    whole buffer is replaced on reload, never edited in place.

    Attributes:
        channels:    Per-channel sample arrays, all of equal length.
        sample_rate: Samples per second (> 0).
    """
    channels: tuple[np.ndarray, ...]
    sample_rate: int
    min_amplitude: float = field(init=False)
    max_amplitude: float = field(init=False)

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.channels:
            raise ValueError("SampleBuffer needs at least one channel")

        frozen = []
        length = len(self.channels[0])
        for ch in self.channels:
            arr = np.array(ch, dtype=np.float32, copy=True)
            if arr.ndim != 1 or len(arr) != length:
                raise ValueError("all channels must be 1-D and of equal length")
            arr.flags.writeable = False
            frozen.append(arr)
        object.__setattr__(self, "channels", tuple(frozen))

        if length:
            lo = min(float(np.min(c)) for c in frozen)
            hi = max(float(np.max(c)) for c in frozen)
        else:
            lo = hi = 0.0
        object.__setattr__(self, "min_amplitude", lo)
        object.__setattr__(self, "max_amplitude", hi)

    @classmethod
    def from_interleaved(cls, frames: np.ndarray, sample_rate: int) -> SampleBuffer:
        """Build from a ``(n_samples, n_channels)`` array as soundfile returns it."""
        data = np.asarray(frames, dtype=np.float32)
        if data.ndim == 1:
            data = data[:, np.newaxis]
        return cls(tuple(data[:, i] for i in range(data.shape[1])), int(sample_rate))

    @property
    def num_channels(self) -> int:
        return len(self.channels)

    @property
    def length(self) -> int:
        return len(self.channels[0])

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    def channel_data(self, ch: int) -> np.ndarray:
        return self.channels[ch]


@dataclass(frozen=True)
class AnalyzeSettingsSnapshot:
    """Frozen view of every analysis field, stamped with its generation."""
    analyze_id: int
    sample_rate: int
    duration: float
    waveform_visible: bool
    waveform_vertical_scale: float
    waveform_show_channel_label: bool
    spectrogram_visible: bool
    spectrogram_vertical_scale: float
    spectrogram_show_channel_label: bool
    round_waveform_axis: bool
    round_time_axis: bool
    window_size_index: WindowSizeIndex
    window_size: int
    hop_size: int
    auto_hop_size: bool
    frequency_scale: FrequencyScale
    mel_filter_num: int
    min_frequency: float
    max_frequency: float
    min_time: float
    max_time: float
    min_amplitude: float
    max_amplitude: float
    spectrogram_amplitude_range: float

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            out[name] = int(value) if isinstance(value, IntEnum) else value
        return out


@dataclass(frozen=True)
class AudioInfo:
    """Container-level facts shown in the info table."""
    format: str
    encoding: str
    channels: int
    sample_rate: int
    frames: int
    file_size: int

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate > 0 else 0.0

    def rows(self) -> list[tuple[str, str]]:
        return [
            ("Format", self.format),
            ("Encoding", self.encoding),
            ("Number of channels", str(self.channels)),
            ("Sample rate", f"{self.sample_rate} Hz"),
            ("File size", format_file_size(self.file_size)),
            ("Duration", format_duration(self.frames, self.sample_rate)),
        ]
