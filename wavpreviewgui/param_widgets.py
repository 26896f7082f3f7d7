"""Settings forms bound to the live settings services, plus the easy-cut bar.

Widgets are generated from the :class:`ParamSpec` lists in
:mod:`wavpreviewlib.config`.  Edits are written to the service, which
validates them; the service's broadcasts flow back into the widgets, so a
corrected value is always what the form shows.
"""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from wavpreviewlib.config import ANALYZE_DEFAULT_PARAMS, PLAYER_DEFAULT_PARAMS, ParamSpec
from wavpreviewlib.encoder import default_cut_filename
from wavpreviewlib.events import EventType, SubscriptionGroup
from wavpreviewlib.models import FrequencyScale, WindowSizeIndex
from wavpreviewlib.settings import AnalyzeSettingsService, PlayerSettingsService

from .theme import COLORS

_CHOICE_LABELS: dict[str, list[str]] = {
    "window_size_index": [str(w.window_size) for w in WindowSizeIndex],
    "frequency_scale": [s.name.capitalize() for s in FrequencyScale],
}


# ---------------------------------------------------------------------------
# Widget builders for ParamSpec
# ---------------------------------------------------------------------------

def _build_widget(spec: ParamSpec, value: Any,
                  limits: tuple[float, float] | None = None) -> QWidget:
    """Create an input widget for *spec* showing *value*."""
    if spec.choices is not None:
        w = QComboBox()
        labels = _CHOICE_LABELS.get(spec.key)
        for i, c in enumerate(spec.choices):
            w.addItem(labels[i] if labels else str(c), int(c))
        _set_widget_value(w, value)
        return w

    if spec.type is bool:
        w = QCheckBox()
        w.setChecked(bool(value))
        return w

    lo, hi = limits if limits is not None else (
        spec.min if spec.min is not None else -1e9,
        spec.max if spec.max is not None else 1e9,
    )
    if spec.type is int:
        w = QSpinBox()
        w.setRange(int(lo), int(hi))
        w.setKeyboardTracking(False)
        w.setValue(int(value))
        return w

    w = QDoubleSpinBox()
    w.setDecimals(3 if hi - lo <= 10 else 1)
    w.setRange(float(lo), float(hi))
    w.setSingleStep(0.1 if hi - lo <= 10 else 1.0)
    w.setKeyboardTracking(False)
    w.setValue(float(value))
    return w


def _set_widget_value(widget: QWidget, value: Any):
    widget.blockSignals(True)
    try:
        if isinstance(widget, QComboBox):
            idx = widget.findData(int(value))
            if idx >= 0:
                widget.setCurrentIndex(idx)
        elif isinstance(widget, QCheckBox):
            widget.setChecked(bool(value))
        elif isinstance(widget, QSpinBox):
            widget.setValue(int(value))
        elif isinstance(widget, QDoubleSpinBox):
            widget.setValue(float(value))
    finally:
        widget.blockSignals(False)


def _connect_edit(widget: QWidget, callback):
    if isinstance(widget, QComboBox):
        widget.currentIndexChanged.connect(lambda _i: callback(widget.currentData()))
    elif isinstance(widget, QCheckBox):
        widget.toggled.connect(callback)
    elif isinstance(widget, (QSpinBox, QDoubleSpinBox)):
        widget.valueChanged.connect(callback)


def _build_tooltip(spec: ParamSpec) -> str:
    parts = [f"<b>{spec.label}</b>"]
    if spec.description:
        parts.append(f"<br/>{spec.description}")
    parts.append(f"<br/><br/>Config key: <code>{spec.key}</code>")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Bound forms
# ---------------------------------------------------------------------------

class SettingsForm(QWidget):
    """A form whose rows mirror properties of a settings service."""

    def __init__(self, service, params: list[ParamSpec],
                 limits: dict[str, tuple[float, float]] | None = None, parent=None):
        super().__init__(parent)
        self.service = service
        self._widgets: dict[str, QWidget] = {}
        self._subs = SubscriptionGroup()
        self._layout = QFormLayout(self)
        self._layout.setContentsMargins(4, 4, 4, 4)
        limits = limits or {}

        for spec in params:
            w = _build_widget(spec, getattr(service, spec.key), limits.get(spec.key))
            w.setToolTip(_build_tooltip(spec))
            _connect_edit(w, lambda v, key=spec.key: self._on_edit(key, v))
            self._subs.add(service.subscribe(
                spec.key, lambda value, w=w: _set_widget_value(w, value)))
            self._widgets[spec.key] = w
            self._layout.addRow(spec.label, w)

    def widget(self, key: str) -> QWidget:
        return self._widgets[key]

    def add_row(self, label: str, widget: QWidget):
        self._layout.addRow(label, widget)

    def _on_edit(self, key: str, value: Any):
        setattr(self.service, key, value)

    def dispose(self):
        self._subs.dispose()


class AnalyzeSettingsPanel(QWidget):
    """Analysis settings of the current session with Analyze / Reset buttons.

    Signals:
        analyze_requested(): the user asked for a new analysis.
    """

    analyze_requested = Signal()

    def __init__(self, service: AnalyzeSettingsService, parent=None):
        super().__init__(parent)
        self.service = service
        nyquist = service.sample_rate / 2
        limits = {
            "min_frequency": (0.0, nyquist),
            "max_frequency": (0.0, nyquist),
            "min_time": (0.0, service.duration),
            "max_time": (0.0, service.duration),
            "min_amplitude": (service.AMPLITUDE_MIN, service.AMPLITUDE_MAX),
            "max_amplitude": (service.AMPLITUDE_MIN, service.AMPLITUDE_MAX),
        }
        self.form = SettingsForm(service, ANALYZE_DEFAULT_PARAMS, limits, self)

        # 0 shows as "Auto"
        self._hop = QSpinBox()
        self._hop.setRange(0, 32768)
        self._hop.setSpecialValueText("Auto")
        self._hop.setKeyboardTracking(False)
        self._hop.setToolTip("Hop size in samples; Auto derives it from the time range.")
        self._sync_hop()
        self._hop.valueChanged.connect(self._on_hop_edit)
        self.form.add_row("Hop size", self._hop)
        for event in (EventType.HOP_SIZE, EventType.WINDOW_SIZE_INDEX,
                      EventType.MIN_TIME, EventType.MAX_TIME):
            self.form._subs.add(service.subscribe(event, lambda value: self._sync_hop()))

        analyze_btn = QPushButton("Analyze")
        analyze_btn.clicked.connect(self.analyze_requested.emit)
        reset_btn = QPushButton("Reset ranges")
        reset_btn.clicked.connect(self._on_reset)
        buttons = QHBoxLayout()
        buttons.addWidget(analyze_btn)
        buttons.addWidget(reset_btn)
        buttons.addStretch(1)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.form)
        layout.addLayout(buttons)
        layout.addStretch(1)

    def _sync_hop(self):
        self._hop.blockSignals(True)
        self._hop.setValue(0 if self.service.auto_hop_size else self.service.hop_size)
        self._hop.setSuffix("" if self.service.auto_hop_size else " samples")
        self._hop.blockSignals(False)

    def _on_hop_edit(self, value: int):
        self.service.hop_size = value if value > 0 else None

    def _on_reset(self):
        self.service.reset_to_default_time_range()
        self.service.reset_to_default_amplitude_range()
        self.service.reset_to_default_frequency_range()
        self.analyze_requested.emit()

    def dispose(self):
        self.form.dispose()


class PlayerSettingsPanel(QWidget):
    """Player settings of the current session."""

    def __init__(self, service: PlayerSettingsService, parent=None):
        super().__init__(parent)
        nyquist = service.filter_frequency_max
        limits = {
            "hpf_frequency": (service.FILTER_FREQUENCY_MIN, nyquist),
            "lpf_frequency": (service.FILTER_FREQUENCY_MIN, nyquist),
        }
        self.form = SettingsForm(service, PLAYER_DEFAULT_PARAMS, limits, self)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.form)
        layout.addStretch(1)

    def dispose(self):
        self.form.dispose()


# ---------------------------------------------------------------------------
# Easy cut
# ---------------------------------------------------------------------------

class EasyCutBar(QWidget):
    """Save the current time range next to the source file.

    Signals:
        cut_requested(str): the (unsanitised) file name typed by the user.
    """

    cut_requested = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._name = QLineEdit()
        self._name.setPlaceholderText(default_cut_filename())
        self._button = QPushButton("Cut && save")
        self._button.clicked.connect(self._on_cut)
        self._status = QLabel()
        self._status.setStyleSheet(f"color: {COLORS['dim']};")

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(QLabel("Cut to:"))
        layout.addWidget(self._name, 1)
        layout.addWidget(self._button)
        layout.addWidget(self._status)

    def _on_cut(self):
        self.cut_requested.emit(self._name.text())
        self._name.setPlaceholderText(default_cut_filename())

    def show_result(self, message: str, error: bool = False):
        color = COLORS["error"] if error else COLORS["dim"]
        self._status.setStyleSheet(f"color: {color};")
        self._status.setText(message)
