"""Pure drawing of analysis figures onto QImages, plus the Qt renderer.

Figures are painted incrementally: :class:`QtFigureRenderer` receives one
chunk at a time from :class:`wavpreviewlib.analyzer.Analyzer` and paints it
straight into the owning :class:`FigureWidget`'s canvas.
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QFont, QImage, QPainter, QPen, QPolygonF

from wavpreviewlib.analysis import axis_ticks, color_lut, db_to_lut_index
from wavpreviewlib.analyzer import FigureRenderer
from wavpreviewlib.interaction import fraction_to_frequency, frequency_to_fraction
from wavpreviewlib.models import (
    SPECTROGRAM_CANVAS_HEIGHT,
    SPECTROGRAM_CANVAS_WIDTH,
    WAVEFORM_CANVAS_HEIGHT,
    WAVEFORM_CANVAS_WIDTH,
    AnalyzeSettingsSnapshot,
    FrequencyScale,
)

from ..log import dbg
from ..theme import AXIS_COLOR, FIGURE_BG, GRID_COLOR, WAVEFORM_COLOR

LUT_SIZE = 256


# ---------------------------------------------------------------------------
# Canvas helpers
# ---------------------------------------------------------------------------

def new_canvas(width: int, height: int) -> QImage:
    img = QImage(max(1, width), max(1, height), QImage.Format.Format_RGB32)
    img.fill(FIGURE_BG)
    return img


def waveform_canvas(settings: AnalyzeSettingsSnapshot) -> QImage:
    return new_canvas(WAVEFORM_CANVAS_WIDTH,
                      int(WAVEFORM_CANVAS_HEIGHT * settings.waveform_vertical_scale))


def spectrogram_canvas(settings: AnalyzeSettingsSnapshot) -> QImage:
    return new_canvas(SPECTROGRAM_CANVAS_WIDTH,
                      int(SPECTROGRAM_CANVAS_HEIGHT * settings.spectrogram_vertical_scale))


def paint_waveform_chunk(
    canvas: QImage,
    x: np.ndarray,
    y: np.ndarray,
    prev: QPointF | None = None,
) -> QPointF | None:
    """Draw one run of normalised waveform points; returns the last point.

    Passing the previous chunk's last point keeps the line continuous.
    """
    if len(x) == 0:
        return prev
    w, h = canvas.width(), canvas.height()
    px = x * w
    py = (1.0 - y) * h
    poly = QPolygonF()
    if prev is not None:
        poly.append(prev)
    for a, b in zip(px.tolist(), py.tolist()):
        poly.append(QPointF(a, b))

    p = QPainter(canvas)
    p.setRenderHint(QPainter.Antialiasing, False)
    p.setPen(QPen(WAVEFORM_COLOR, 1))
    p.drawPolyline(poly)
    p.end()
    return poly[poly.size() - 1]


def spectrogram_row_bins(settings: AnalyzeSettingsSnapshot, n_bins: int, height: int) -> np.ndarray:
    """Column index into a spectrogram frame for every pixel row (top first)."""
    frac = (height - 1 - np.arange(height) + 0.5) / height
    if settings.frequency_scale == FrequencyScale.MEL:
        idx = np.floor(frac * n_bins)
    else:
        df = settings.sample_rate / settings.window_size
        first_bin = math.floor(settings.min_frequency / df + 0.5)
        freqs = np.array([fraction_to_frequency(f, settings) for f in frac])
        idx = np.floor(freqs / df + 0.5) - first_bin
    return np.clip(idx, 0, max(0, n_bins - 1)).astype(np.intp)


def spectrogram_chunk_image(
    db: np.ndarray,
    settings: AnalyzeSettingsSnapshot,
    height: int,
    lut: np.ndarray,
) -> tuple[QImage, np.ndarray]:
    """Colour a ``(frames, bins)`` dB block into an image one pixel per frame.

    Returns the image and the RGBA buffer backing it (keep it alive while
    the image is in use).
    """
    rows = spectrogram_row_bins(settings, db.shape[1], height)
    idx = db_to_lut_index(db[:, rows].T, settings.spectrogram_amplitude_range, len(lut))
    rgba = np.ascontiguousarray(lut[idx])
    h, w = rgba.shape[:2]
    img = QImage(rgba.data, w, h, w * 4, QImage.Format.Format_RGBA8888)
    return img, rgba


def paint_spectrogram_chunk(
    canvas: QImage,
    frame_offset: int,
    n_frames: int,
    db: np.ndarray,
    settings: AnalyzeSettingsSnapshot,
    lut: np.ndarray,
) -> None:
    if n_frames <= 0 or len(db) == 0 or db.shape[1] == 0:
        return
    w, h = canvas.width(), canvas.height()
    img, _buf = spectrogram_chunk_image(db, settings, h, lut)
    x0 = frame_offset * w / n_frames
    x1 = (frame_offset + len(db)) * w / n_frames
    p = QPainter(canvas)
    p.drawImage(QRectF(x0, 0, max(1.0, x1 - x0), h), img)
    p.end()


# ---------------------------------------------------------------------------
# Axes
# ---------------------------------------------------------------------------

_AXIS_FONT = QFont("Consolas", 7)


def _axis_pens():
    grid = QColor(GRID_COLOR)
    grid.setAlpha(120)
    return QPen(AXIS_COLOR, 1), QPen(grid, 1, Qt.DotLine)


def paint_time_axis(p: QPainter, rect: QRectF, settings: AnalyzeSettingsSnapshot) -> None:
    """Ticks and labels below *rect* (the figure area)."""
    span = settings.max_time - settings.min_time
    if span <= 0:
        return
    tick_pen, grid_pen = _axis_pens()
    p.setFont(_AXIS_FONT)
    fm = p.fontMetrics()
    for value, label in axis_ticks(settings.min_time, settings.max_time, 10,
                                   settings.round_time_axis):
        x = rect.left() + (value - settings.min_time) / span * rect.width()
        p.setPen(grid_pen)
        p.drawLine(QPointF(x, rect.top()), QPointF(x, rect.bottom()))
        p.setPen(tick_pen)
        p.drawLine(QPointF(x, rect.bottom()), QPointF(x, rect.bottom() + 3))
        tw = fm.horizontalAdvance(label)
        p.drawText(QPointF(x - tw / 2, rect.bottom() + 4 + fm.ascent()), label)


def _paint_vertical_ticks(p: QPainter, rect: QRectF, ticks: list[tuple[float, str]]) -> None:
    """*ticks* hold (height fraction from bottom, label)."""
    tick_pen, grid_pen = _axis_pens()
    p.setFont(_AXIS_FONT)
    fm = p.fontMetrics()
    for frac, label in ticks:
        if frac < 0.0 or frac > 1.0:
            continue
        y = rect.bottom() - frac * rect.height()
        p.setPen(grid_pen)
        p.drawLine(QPointF(rect.left(), y), QPointF(rect.right(), y))
        p.setPen(tick_pen)
        p.drawLine(QPointF(rect.left() - 3, y), QPointF(rect.left(), y))
        tw = fm.horizontalAdvance(label)
        p.drawText(QPointF(rect.left() - 5 - tw, y + fm.ascent() / 2), label)


def paint_amplitude_axis(p: QPainter, rect: QRectF, settings: AnalyzeSettingsSnapshot) -> None:
    lo, hi = settings.min_amplitude, settings.max_amplitude
    if hi <= lo:
        return
    ticks = axis_ticks(lo, hi, 10, settings.round_waveform_axis)
    _paint_vertical_ticks(p, rect, [((v - lo) / (hi - lo), label) for v, label in ticks])


def frequency_ticks(settings: AnalyzeSettingsSnapshot) -> list[tuple[float, str]]:
    if settings.frequency_scale == FrequencyScale.LINEAR:
        ticks = axis_ticks(settings.min_frequency, settings.max_frequency, 10, True)
        freqs = [v for v, _ in ticks]
    else:
        # readable fixed ladder for the non-linear scales
        freqs = [f for f in (20, 50, 100, 200, 500, 1000, 2000, 5000, 10000, 20000, 50000)
                 if settings.min_frequency <= f <= settings.max_frequency]
    out = []
    for f in freqs:
        label = f"{f / 1000:g}k" if f >= 1000 else f"{f:g}"
        out.append((frequency_to_fraction(f, settings), label))
    return out


def paint_frequency_axis(p: QPainter, rect: QRectF, settings: AnalyzeSettingsSnapshot) -> None:
    if settings.max_frequency <= settings.min_frequency:
        return
    _paint_vertical_ticks(p, rect, frequency_ticks(settings))


def paint_color_bar(p: QPainter, rect: QRectF, settings: AnalyzeSettingsSnapshot,
                    lut: np.ndarray) -> None:
    """Vertical dB colour bar with labels to its right."""
    db_floor = settings.spectrogram_amplitude_range
    n = len(lut)
    column = np.ascontiguousarray(lut[::-1].reshape(n, 1, 4))
    img = QImage(column.data, 1, n, 4, QImage.Format.Format_RGBA8888)
    p.drawImage(rect, img)
    ticks = axis_ticks(db_floor, 0.0, 6, True)
    p.setFont(_AXIS_FONT)
    p.setPen(QPen(AXIS_COLOR, 1))
    fm = p.fontMetrics()
    for value, label in ticks:
        y = rect.bottom() - (value - db_floor) / -db_floor * rect.height()
        p.drawText(QPointF(rect.right() + 4, y + fm.ascent() / 2), f"{label} dB")


# ---------------------------------------------------------------------------
# Qt renderer
# ---------------------------------------------------------------------------

class QtFigureRenderer(FigureRenderer):
    """Paints analyzer output into per-channel figure widgets.

    *figures* is called on ``begin`` with the snapshot and channel count
    and must return ``(waveform_widgets, spectrogram_widgets)`` as lists
    indexed by channel (``None`` entries for hidden figures).
    """

    def __init__(self, figures: Callable[[AnalyzeSettingsSnapshot, int], tuple[list, list]]):
        self._figures = figures
        self._waveforms: list = []
        self._spectrograms: list = []
        self._last_points: dict[int, QPointF | None] = {}
        self._lut = color_lut(-90.0, LUT_SIZE)
        self._lut_floor = -90.0

    @property
    def lut(self) -> np.ndarray:
        return self._lut

    def begin(self, settings: AnalyzeSettingsSnapshot, num_channels: int) -> None:
        dbg(f"begin generation {settings.analyze_id}")
        if settings.spectrogram_amplitude_range != self._lut_floor:
            self._lut_floor = settings.spectrogram_amplitude_range
            self._lut = color_lut(self._lut_floor, LUT_SIZE)
        self._waveforms, self._spectrograms = self._figures(settings, num_channels)
        self._last_points = {}
        for fig in self._waveforms:
            if fig is not None:
                fig.reset_canvas(waveform_canvas(settings), settings)
        for fig in self._spectrograms:
            if fig is not None:
                fig.reset_canvas(spectrogram_canvas(settings), settings, self._lut)

    def draw_waveform(self, ch: int, x: np.ndarray, y: np.ndarray,
                      settings: AnalyzeSettingsSnapshot) -> None:
        fig = self._waveforms[ch] if ch < len(self._waveforms) else None
        if fig is None:
            return
        self._last_points[ch] = paint_waveform_chunk(fig.canvas, x, y, self._last_points.get(ch))
        fig.update()

    def draw_spectrogram(self, ch: int, frame_offset: int, n_frames: int,
                         db: np.ndarray, settings: AnalyzeSettingsSnapshot) -> None:
        fig = self._spectrograms[ch] if ch < len(self._spectrograms) else None
        if fig is None:
            return
        paint_spectrogram_chunk(fig.canvas, frame_offset, n_frames, db, settings, self._lut)
        fig.update()

    def finish(self, settings: AnalyzeSettingsSnapshot) -> None:
        dbg(f"finished generation {settings.analyze_id}")
