"""Mapping between figure coordinates and analysis ranges.

Figure coordinates are fractions of the drawing area: ``x`` runs left to
right over ``[min_time, max_time]``; ``y`` runs top to bottom, so ``y = 0``
is the *maximum* of the vertical axis.
"""

from __future__ import annotations

import math

from .analysis import hz_to_mel, mel_to_hz
from .models import AnalyzeSettingsSnapshot, FrequencyScale
from .settings import AnalyzeSettingsService

# Clicks that move less than this (in pixels) seek instead of selecting.
CLICK_THRESHOLD_PX = 3

# Lowest frequency a log axis can show.
LOG_FREQUENCY_FLOOR = 1.0


# ---------------------------------------------------------------------------
# Frequency axis
# ---------------------------------------------------------------------------

def _log_bounds(settings: AnalyzeSettingsSnapshot) -> tuple[float, float]:
    lo = math.log10(max(settings.min_frequency, LOG_FREQUENCY_FLOOR))
    hi = math.log10(max(settings.max_frequency, LOG_FREQUENCY_FLOOR * 10))
    return lo, hi


def frequency_to_fraction(freq: float, settings: AnalyzeSettingsSnapshot) -> float:
    """Height fraction (0 = bottom, 1 = top) of *freq* on the frequency axis."""
    scale = settings.frequency_scale
    if scale == FrequencyScale.LOG:
        lo, hi = _log_bounds(settings)
        return (math.log10(max(freq, LOG_FREQUENCY_FLOOR)) - lo) / (hi - lo)
    if scale == FrequencyScale.MEL:
        lo = float(hz_to_mel(settings.min_frequency))
        hi = float(hz_to_mel(settings.max_frequency))
        return (float(hz_to_mel(freq)) - lo) / (hi - lo)
    return (freq - settings.min_frequency) / (settings.max_frequency - settings.min_frequency)


def fraction_to_frequency(frac: float, settings: AnalyzeSettingsSnapshot) -> float:
    """Inverse of :func:`frequency_to_fraction`."""
    scale = settings.frequency_scale
    if scale == FrequencyScale.LOG:
        lo, hi = _log_bounds(settings)
        return 10 ** (lo + frac * (hi - lo))
    if scale == FrequencyScale.MEL:
        lo = float(hz_to_mel(settings.min_frequency))
        hi = float(hz_to_mel(settings.max_frequency))
        return float(mel_to_hz(lo + frac * (hi - lo)))
    return settings.min_frequency + frac * (settings.max_frequency - settings.min_frequency)


# ---------------------------------------------------------------------------
# Time axis / seeking
# ---------------------------------------------------------------------------

def fraction_to_time(x: float, settings: AnalyzeSettingsSnapshot) -> float:
    return settings.min_time + x * (settings.max_time - settings.min_time)


def seek_percent_at(x: float, settings: AnalyzeSettingsSnapshot) -> float:
    """Percent of the full duration under figure position *x*."""
    if settings.duration <= 0:
        return 0.0
    return 100.0 * fraction_to_time(x, settings) / settings.duration


def cursor_fraction(percent: float, settings: AnalyzeSettingsSnapshot) -> float:
    """Where a playback position (percent of duration) sits in the figure, clamped."""
    span = settings.max_time - settings.min_time
    if span <= 0:
        return 0.0
    sec = percent * settings.duration / 100.0
    return min(1.0, max(0.0, (sec - settings.min_time) / span))


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def apply_selection(
    service: AnalyzeSettingsService,
    settings: AnalyzeSettingsSnapshot,
    x0: float, y0: float, x1: float, y1: float,
    on_waveform: bool,
) -> None:
    """Zoom the ranges to a dragged rectangle given in figure fractions.

    The time range always follows the rectangle; the vertical range is the
    amplitude range on a waveform and the frequency range on a
    spectrogram.
    """
    min_x, max_x = sorted((x0, x1))
    min_y, max_y = sorted((y0, y1))

    service.set_time_range(fraction_to_time(min_x, settings),
                           fraction_to_time(max_x, settings))

    if on_waveform:
        span = settings.max_amplitude - settings.min_amplitude
        service.set_amplitude_range(
            settings.min_amplitude + (1.0 - max_y) * span,
            settings.min_amplitude + (1.0 - min_y) * span,
        )
    else:
        service.set_frequency_range(
            fraction_to_frequency(1.0 - max_y, settings),
            fraction_to_frequency(1.0 - min_y, settings),
        )


def reset_ranges(service: AnalyzeSettingsService) -> None:
    service.reset_to_default_time_range()
    service.reset_to_default_amplitude_range()
    service.reset_to_default_frequency_range()
