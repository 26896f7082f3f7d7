"""Dark palette, figure colors and the window stylesheet."""

from __future__ import annotations

from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QApplication


COLORS = {
    "error": "#ff5555",
    "dim": "#8a8a8a",
    "text": "#d8d8d8",
    "heading": "#ffffff",
    "bg": "#181818",
    "bg_alt": "#222222",
    "panel": "#2a2a2a",
    "accent": "#383838",
    "border": "#4a4a4a",
    "highlight": "#3d7fc4",
    "disabled": "#5e5e5e",
}

# Figures are drawn on black so the spectrogram floor blends in.
FIGURE_BG = QColor("#000000")
WAVEFORM_COLOR = QColor("#59a5e8")
AXIS_COLOR = QColor("#b0b0b0")
GRID_COLOR = QColor("#333333")
CURSOR_COLOR = QColor("#ffaa22")
SELECTION_COLOR = QColor("#ff5555")


STYLESHEET = """
    QMainWindow {{ background-color: {bg}; }}
    QToolBar {{ background-color: {panel}; border-bottom: 1px solid {border}; spacing: 4px; }}
    QToolBar QToolButton {{ color: {text}; padding: 4px 10px; }}
    QToolBar QToolButton:hover {{ background-color: {accent}; }}
    QToolBar QToolButton:disabled {{ color: {disabled}; }}
    QTableWidget {{ background-color: {bg_alt}; border: none; gridline-color: {accent}; }}
    QHeaderView::section {{
        background-color: {panel}; color: {text};
        border: none; border-bottom: 1px solid {border}; padding: 3px 6px;
    }}
    QScrollArea {{ background-color: {bg}; border: none; }}
    QPushButton {{
        background-color: {accent}; color: {text};
        border: 1px solid {border}; padding: 4px 12px;
    }}
    QPushButton:hover {{ background-color: {border}; }}
    QPushButton:disabled {{ color: {disabled}; background-color: {panel}; }}
    QSpinBox, QDoubleSpinBox, QComboBox, QLineEdit {{
        background-color: {bg_alt}; color: {text};
        border: 1px solid {border}; padding: 2px 4px;
    }}
    QStatusBar {{ background-color: {panel}; color: {dim}; }}
    QTabWidget::pane {{ border-top: 1px solid {border}; }}
    QTabBar::tab {{
        background-color: {panel}; color: {dim};
        border-bottom: 2px solid transparent; padding: 5px 14px;
    }}
    QTabBar::tab:selected {{ color: {text}; border-bottom: 2px solid {highlight}; }}
    QSlider::groove:horizontal {{ height: 4px; background: {accent}; }}
    QSlider::handle:horizontal {{
        width: 10px; margin: -4px 0; background: {highlight}; border-radius: 5px;
    }}
    QProgressBar {{
        background-color: {panel}; border: 1px solid {border};
        text-align: center; color: {text};
    }}
    QProgressBar::chunk {{ background-color: {highlight}; }}
""".format(**COLORS)

_PALETTE_ROLES = {
    QPalette.Window: "bg",
    QPalette.WindowText: "text",
    QPalette.Base: "bg_alt",
    QPalette.AlternateBase: "panel",
    QPalette.ToolTipBase: "bg_alt",
    QPalette.ToolTipText: "text",
    QPalette.Text: "text",
    QPalette.Button: "accent",
    QPalette.ButtonText: "text",
    QPalette.Highlight: "highlight",
    QPalette.HighlightedText: "heading",
}


def apply_dark_theme(window) -> None:
    """Install the dark palette on the application and style *window*."""
    palette = QPalette()
    for role, key in _PALETTE_ROLES.items():
        palette.setColor(role, QColor(COLORS[key]))
    disabled = QColor(COLORS["disabled"])
    palette.setColor(QPalette.Disabled, QPalette.Text, disabled)
    palette.setColor(QPalette.Disabled, QPalette.ButtonText, disabled)

    QApplication.instance().setPalette(palette)
    window.setStyleSheet(STYLESHEET)
