"""One figure (waveform or spectrogram of one channel) with mouse interaction."""

from __future__ import annotations

import numpy as np

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QFont, QImage, QPainter, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from wavpreviewlib.interaction import CLICK_THRESHOLD_PX
from wavpreviewlib.models import AnalyzeSettingsSnapshot

from ..theme import COLORS, CURSOR_COLOR, SELECTION_COLOR
from .renderer import (
    paint_amplitude_axis,
    paint_color_bar,
    paint_frequency_axis,
    paint_time_axis,
)

WAVEFORM = "waveform"
SPECTROGRAM = "spectrogram"

# On-screen heights before the vertical scale is applied.
_BASE_HEIGHT = {WAVEFORM: 140, SPECTROGRAM: 260}


class FigureWidget(QWidget):
    """Shows a canvas painted by :class:`QtFigureRenderer` plus its axes.

    Signals:
        selection_made(float, float, float, float): dragged rectangle as
            figure fractions ``(x0, y0, x1, y1)``, ``y`` measured from the top.
        reset_requested(): right click.
        seek_requested(float): click without drag, figure ``x`` fraction.
    """

    selection_made = Signal(float, float, float, float)
    reset_requested = Signal()
    seek_requested = Signal(float)

    _MARGIN_LEFT = 48
    _MARGIN_TOP = 4
    _MARGIN_BOTTOM = 18
    _COLOR_BAR_WIDTH = 12

    def __init__(self, kind: str, channel: int, parent=None):
        super().__init__(parent)
        self.kind = kind
        self.channel = channel
        self.canvas: QImage | None = None
        self._settings: AnalyzeSettingsSnapshot | None = None
        self._lut: np.ndarray | None = None
        self._cursor: float | None = None
        self._drag_start: QPointF | None = None
        self._drag_end: QPointF | None = None
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        self.setFixedHeight(_BASE_HEIGHT[kind] + self._MARGIN_TOP + self._MARGIN_BOTTOM)

    @property
    def settings(self) -> AnalyzeSettingsSnapshot | None:
        return self._settings

    def reset_canvas(self, canvas: QImage, settings: AnalyzeSettingsSnapshot,
                     lut: np.ndarray | None = None):
        self.canvas = canvas
        self._settings = settings
        if lut is not None:
            self._lut = lut
        scale = (settings.waveform_vertical_scale if self.kind == WAVEFORM
                 else settings.spectrogram_vertical_scale)
        self.setFixedHeight(int(_BASE_HEIGHT[self.kind] * scale)
                            + self._MARGIN_TOP + self._MARGIN_BOTTOM)
        self.update()

    def set_cursor(self, fraction: float | None):
        if fraction != self._cursor:
            self._cursor = fraction
            self.update()

    # ── Geometry ──────────────────────────────────────────────────────────

    def _margin_right(self) -> int:
        return 64 if self.kind == SPECTROGRAM else 12

    def figure_rect(self) -> QRectF:
        return QRectF(
            self._MARGIN_LEFT,
            self._MARGIN_TOP,
            max(1, self.width() - self._MARGIN_LEFT - self._margin_right()),
            max(1, self.height() - self._MARGIN_TOP - self._MARGIN_BOTTOM),
        )

    def _fraction(self, pos: QPointF) -> tuple[float, float]:
        r = self.figure_rect()
        fx = (pos.x() - r.left()) / r.width()
        fy = (pos.y() - r.top()) / r.height()
        return min(1.0, max(0.0, fx)), min(1.0, max(0.0, fy))

    # ── Painting ──────────────────────────────────────────────────────────

    def paintEvent(self, event):
        p = QPainter(self)
        p.fillRect(self.rect(), QColor(COLORS["bg"]))
        rect = self.figure_rect()

        if self.canvas is None or self._settings is None:
            p.setPen(QPen(QColor(COLORS["dim"])))
            p.drawText(rect, Qt.AlignCenter, "Not analyzed")
            p.end()
            return

        p.setRenderHint(QPainter.SmoothPixmapTransform, True)
        p.drawImage(rect, self.canvas)
        p.setRenderHint(QPainter.SmoothPixmapTransform, False)

        s = self._settings
        paint_time_axis(p, rect, s)
        if self.kind == WAVEFORM:
            paint_amplitude_axis(p, rect, s)
        else:
            paint_frequency_axis(p, rect, s)
            if self._lut is not None:
                bar = QRectF(rect.right() + 6, rect.top(), self._COLOR_BAR_WIDTH, rect.height())
                paint_color_bar(p, bar, s, self._lut)

        show_label = (s.waveform_show_channel_label if self.kind == WAVEFORM
                      else s.spectrogram_show_channel_label)
        if show_label:
            p.setFont(QFont("Consolas", 8))
            p.setPen(QPen(QColor(COLORS["heading"])))
            p.drawText(QPointF(rect.left() + 4, rect.top() + 12), f"Ch {self.channel + 1}")

        if self._cursor is not None:
            x = rect.left() + self._cursor * rect.width()
            p.setPen(QPen(CURSOR_COLOR, 1))
            p.drawLine(QPointF(x, rect.top()), QPointF(x, rect.bottom()))

        if self._drag_start is not None and self._drag_end is not None:
            sel = QRectF(self._drag_start, self._drag_end).normalized()
            fill = QColor(SELECTION_COLOR)
            fill.setAlpha(40)
            p.fillRect(sel, fill)
            p.setPen(QPen(SELECTION_COLOR, 1))
            p.drawRect(sel)
        p.end()

    # ── Mouse ─────────────────────────────────────────────────────────────

    def _clamped(self, pos: QPointF) -> QPointF:
        r = self.figure_rect()
        return QPointF(min(r.right(), max(r.left(), pos.x())),
                       min(r.bottom(), max(r.top(), pos.y())))

    def mousePressEvent(self, event):
        if self._settings is None:
            return
        if event.button() == Qt.RightButton:
            self.reset_requested.emit()
            return
        if event.button() == Qt.LeftButton:
            self._drag_start = self._clamped(event.position())
            self._drag_end = self._drag_start

    def mouseMoveEvent(self, event):
        if self._drag_start is None:
            return
        self._drag_end = self._clamped(event.position())
        self.update()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton or self._drag_start is None:
            return
        start, end = self._drag_start, self._clamped(event.position())
        self._drag_start = self._drag_end = None
        self.update()

        if (abs(end.x() - start.x()) < CLICK_THRESHOLD_PX
                and abs(end.y() - start.y()) < CLICK_THRESHOLD_PX):
            self.seek_requested.emit(self._fraction(end)[0])
            return
        x0, y0 = self._fraction(start)
        x1, y1 = self._fraction(end)
        if x0 == x1 or y0 == y1:
            return
        self.selection_made.emit(x0, y0, x1, y1)
