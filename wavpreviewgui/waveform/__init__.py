"""Figure rendering and display widgets."""

from .renderer import QtFigureRenderer
from .widget import SPECTROGRAM, WAVEFORM, FigureWidget

__all__ = ["FigureWidget", "QtFigureRenderer", "SPECTROGRAM", "WAVEFORM"]
