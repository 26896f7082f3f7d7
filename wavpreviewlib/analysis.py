"""Spectral analysis: STFT spectrogram, mel spectrogram and display helpers.

All results are recomputed on request from the immutable
:class:`~wavpreviewlib.models.SampleBuffer`; nothing is cached between
calls, so a settings change can never be answered with stale data.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np
import scipy.fft

from .events import EventBus, EventType, Subscription
from .models import AnalyzeSettingsSnapshot, FrequencyScale, SampleBuffer

log = logging.getLogger(__name__)

EPSILON = float(np.finfo(np.float64).eps)

# Waveform drawing never needs more points than this per channel.
WAVEFORM_MAX_POINTS = 200_000

# Frames transformed per FFT call; bounds peak memory for long windows.
_FRAME_BLOCK = 256

FFTFunc = Callable[[np.ndarray], "tuple[np.ndarray, np.ndarray]"]


def scipy_rfft(frames: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Default FFT backend.

    Transforms along the last axis: real input of power-of-two length N in,
    ``(re, im)`` of N/2+1 bins each out.
    """
    spectrum = scipy.fft.rfft(frames, axis=-1)
    return spectrum.real, spectrum.imag


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def hann_window(n: int) -> np.ndarray:
    """``w[i] = 0.5 - 0.5 * cos(2πi / n)`` (periodic Hann)."""
    i = np.arange(n, dtype=np.float64)
    return 0.5 - 0.5 * np.cos(2.0 * np.pi * i / n)


def hz_to_mel(f):
    return 2595.0 * np.log10(1.0 + np.asarray(f, dtype=np.float64) / 700.0)


def mel_to_hz(m):
    return 700.0 * (10.0 ** (np.asarray(m, dtype=np.float64) / 2595.0) - 1.0)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def mel_filter_bank(
    num_filters: int,
    window_size: int,
    sample_rate: int,
    min_frequency: float,
    max_frequency: float,
) -> np.ndarray:
    """Build a triangular mel filter bank, shape ``(num_filters, N/2+1)``.

    Filter edges are evenly spaced in mel between *min_frequency* and
    *max_frequency*; each filter rises linearly from its left edge to 1 at
    its centre and falls back to 0 at its right edge.
    """
    n_bins = window_size // 2 + 1
    mel_points = np.linspace(
        float(hz_to_mel(min_frequency)), float(hz_to_mel(max_frequency)),
        num_filters + 2,
    )
    hz_points = mel_to_hz(mel_points)
    bin_points = np.clip(
        np.floor(hz_points * window_size / sample_rate + 0.5).astype(np.intp),
        0, n_bins - 1,
    )

    fb = np.zeros((num_filters, n_bins), dtype=np.float64)
    for m in range(num_filters):
        left, center, right = (int(b) for b in bin_points[m:m + 3])
        if center > left:
            j = np.arange(left, center)
            fb[m, j] = (j - left) / (center - left)
        if right > center:
            j = np.arange(center, right + 1)
            fb[m, j] = (right - j) / (right - center)
        else:
            fb[m, center] = 1.0
    return fb


def power_to_db(power: np.ndarray) -> np.ndarray:
    """Two-pass dB conversion relative to the global maximum.

    The maximum starts at machine epsilon so all-zero input stays finite
    in the division; zero power maps to ``-inf``.
    """
    global_max = EPSILON
    if power.size:
        global_max = max(global_max, float(np.max(power)))
    with np.errstate(divide="ignore"):
        return 10.0 * np.log10(power / global_max)


def round_to_nice_number(x: float) -> tuple[float, int]:
    """Round *x* to the nearest of 1, 2, 5 or 10 times a power of ten.

    Returns ``(nice, digits)`` where *digits* is the number of decimals
    needed to print *nice*.  ``x <= 0`` yields ``(0, 0)``.
    """
    if not x > 0:
        return 0, 0
    exp = math.floor(math.log10(x))
    base = 10.0 ** exp
    mantissa = x / base
    nearest = min((1.0, 2.0, 5.0, 10.0),
                  key=lambda n: abs(math.log10(mantissa) - math.log10(n)))
    nice = nearest * base
    digits = -exp - 1 if nearest == 10.0 else -exp
    return nice, max(0, digits)


def axis_ticks(
    lo: float,
    hi: float,
    divisions: int = 10,
    round_axis: bool = True,
) -> list[tuple[float, str]]:
    """Tick positions and labels for an axis spanning ``[lo, hi]``."""
    span = hi - lo
    if not span > 0:
        return []
    if not round_axis:
        step = span / divisions
        return [(lo + i * step, f"{lo + i * step:.2f}") for i in range(divisions + 1)]

    step, digits = round_to_nice_number(span / divisions)
    first = math.ceil(lo / step)
    ticks = []
    k = first
    while k * step <= hi + step * 1e-9:
        value = k * step
        ticks.append((value, f"{value:.{digits}f}"))
        k += 1
    return ticks


# ---------------------------------------------------------------------------
# Colour ramp
# ---------------------------------------------------------------------------

def spectrogram_color(amp: float | None, db_floor: float) -> tuple[int, int, int]:
    """Map a dB value in ``[db_floor, 0]`` to RGB through six linear bands.

    Bands run white → yellow → red → magenta → blue → black as the level
    drops; anything non-finite or outside the range is black.
    """
    if amp is None or not math.isfinite(amp) or not db_floor < 0:
        return 0, 0, 0
    class_width = db_floor / 6.0
    amp_class = math.floor(amp / class_width)
    class_min_amp = (amp_class + 1) * class_width
    value = (amp - class_min_amp) / -class_width

    if amp_class == 0:
        return 255, 255, 125 + math.floor(value * 130)
    if amp_class == 1:
        return 255, 125 + math.floor(value * 130), 125
    if amp_class == 2:
        return 255, math.floor(value * 125), 125
    if amp_class == 3:
        return 125 + math.floor(value * 130), 0, 125
    if amp_class == 4:
        return math.floor(value * 125), 0, 125
    if amp_class == 5:
        return 0, 0, math.floor(value * 125)
    return 0, 0, 0


def color_lut(db_floor: float, size: int = 256) -> np.ndarray:
    """``(size, 4)`` uint8 RGBA table sampling :func:`spectrogram_color`.

    Entry ``i`` holds the colour of ``db_floor * (1 - i / (size - 1))``,
    so index 0 is the floor and the last entry is 0 dB.
    """
    lut = np.zeros((size, 4), dtype=np.uint8)
    lut[:, 3] = 255
    for i in range(size):
        amp = db_floor * (1.0 - i / (size - 1))
        lut[i, :3] = spectrogram_color(amp, db_floor)
    return lut


def db_to_lut_index(db: np.ndarray, db_floor: float, size: int = 256) -> np.ndarray:
    """Quantise dB values onto :func:`color_lut` indices (below floor → 0)."""
    if not db_floor < 0:
        return np.zeros(db.shape, dtype=np.intp)
    with np.errstate(invalid="ignore"):
        scaled = (np.nan_to_num(db, nan=db_floor, neginf=db_floor) - db_floor) / -db_floor
    idx = np.floor(np.clip(scaled, 0.0, 1.0) * (size - 1) + 0.5)
    return idx.astype(np.intp)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AnalyzeService:
    """Computes analysis figures for one :class:`SampleBuffer`.

    The FFT backend is injectable: any callable honouring the
    :func:`scipy_rfft` contract works.
    """

    def __init__(
        self,
        sample_buffer: SampleBuffer,
        fft: FFTFunc = scipy_rfft,
        event_bus: EventBus | None = None,
    ):
        self.sample_buffer = sample_buffer
        self.fft = fft
        self.event_bus = event_bus or EventBus()

    def subscribe(self, event_type: str, handler) -> Subscription:
        return self.event_bus.subscribe(event_type, handler)

    def analyze(self) -> None:
        """Ask every listener to redraw with the current settings."""
        log.debug("analyze requested")
        self.event_bus.emit(EventType.ANALYZE)

    # -- frames -------------------------------------------------------------

    def _frame_positions(self, settings: AnalyzeSettingsSnapshot) -> np.ndarray:
        sr = self.sample_buffer.sample_rate
        start = int(math.floor(settings.min_time * sr))
        end = min(int(math.floor(settings.max_time * sr)), self.sample_buffer.length)
        return np.arange(start, max(start, end), max(1, settings.hop_size), dtype=np.intp)

    def _power_frames(self, ch: int, settings: AnalyzeSettingsSnapshot):
        """Yield blocks of ``(frames, N/2+1)`` power spectra.

        Frame *i* covers samples ``[i - N/2, i + N/2)``; samples outside the
        signal read as zero.
        """
        n = settings.window_size
        half = n // 2
        positions = self._frame_positions(settings)
        if positions.size == 0:
            return

        data = self.sample_buffer.channel_data(ch)
        window = hann_window(n)
        offsets = np.arange(n, dtype=np.intp)
        for b in range(0, len(positions), _FRAME_BLOCK):
            block = positions[b:b + _FRAME_BLOCK]
            seg_start = int(block[0]) - half
            seg_end = int(block[-1]) + half
            lo = max(0, seg_start)
            hi = min(len(data), seg_end)
            segment = np.zeros(seg_end - seg_start, dtype=np.float64)
            if hi > lo:
                segment[lo - seg_start:hi - seg_start] = data[lo:hi]

            idx = (block - block[0])[:, np.newaxis] + offsets
            re, im = self.fft(segment[idx] * window)
            yield np.asarray(re) ** 2 + np.asarray(im) ** 2

    # -- figures ------------------------------------------------------------

    def get_spectrogram(self, ch: int, settings: AnalyzeSettingsSnapshot) -> np.ndarray:
        """Linear-bin spectrogram in dB, shape ``(n_frames, n_bins)``."""
        n = settings.window_size
        df = self.sample_buffer.sample_rate / n
        n_bins = n // 2 + 1
        hi = min(n_bins, _round_half_up(settings.max_frequency / df))
        lo = max(0, min(hi, _round_half_up(settings.min_frequency / df)))

        blocks = [p[:, lo:hi] for p in self._power_frames(ch, settings)]
        power = np.vstack(blocks) if blocks else np.zeros((0, hi - lo))
        return power_to_db(power)

    def get_mel_spectrogram(self, ch: int, settings: AnalyzeSettingsSnapshot) -> np.ndarray:
        """Mel spectrogram in dB, shape ``(n_frames, mel_filter_num)``."""
        fb = mel_filter_bank(
            settings.mel_filter_num, settings.window_size,
            self.sample_buffer.sample_rate,
            settings.min_frequency, settings.max_frequency,
        )
        blocks = [p @ fb.T for p in self._power_frames(ch, settings)]
        power = np.vstack(blocks) if blocks else np.zeros((0, settings.mel_filter_num))
        return power_to_db(power)

    def compute(self, ch: int, settings: AnalyzeSettingsSnapshot) -> np.ndarray:
        if settings.frequency_scale == FrequencyScale.MEL:
            return self.get_mel_spectrogram(ch, settings)
        return self.get_spectrogram(ch, settings)

    def get_waveform(
        self,
        ch: int,
        settings: AnalyzeSettingsSnapshot,
        max_points: int = WAVEFORM_MAX_POINTS,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Decimated samples of the time window as ``(x, y)`` in ``[0, 1]``.

        *x* is the position inside the window, *y* the amplitude mapped
        through ``[min_amplitude, max_amplitude]`` (values outside land
        outside ``[0, 1]``).
        """
        sr = self.sample_buffer.sample_rate
        data = self.sample_buffer.channel_data(ch)
        start = int(math.floor(settings.min_time * sr))
        end = min(len(data), int(math.floor(settings.max_time * sr)))
        n = max(0, end - start)
        if n == 0:
            return np.zeros(0), np.zeros(0)

        step = max(1, math.ceil(n / max_points))
        samples = data[start:end:step].astype(np.float64)
        x = np.arange(len(samples), dtype=np.float64) * step / n
        span = settings.max_amplitude - settings.min_amplitude
        y = (samples - settings.min_amplitude) / span if span > 0 else np.zeros_like(samples)
        return x, y
