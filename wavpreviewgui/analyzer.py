"""Figure panel: runs analysis in a worker and draws results in small steps."""

from __future__ import annotations

from PySide6.QtCore import Qt, QTimer, Signal, Slot
from PySide6.QtWidgets import QLabel, QScrollArea, QVBoxLayout, QWidget

from wavpreviewlib.analyzer import AnalysisJob, AnalysisResult, Analyzer
from wavpreviewlib.interaction import apply_selection, cursor_fraction, reset_ranges, seek_percent_at
from wavpreviewlib.models import AnalyzeSettingsSnapshot
from wavpreviewlib.pipeline import PreviewSession

from .log import dbg
from .theme import COLORS
from .waveform import SPECTROGRAM, WAVEFORM, FigureWidget, QtFigureRenderer
from .worker import AnalyzeWorker


class AnalyzerPanel(QWidget):
    """All waveform and spectrogram figures of the current session.

    Signals:
        seek_requested(float): percent of the duration clicked in a figure.
        error(str): analysis failed.
    """

    seek_requested = Signal(float)
    error = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._session: PreviewSession | None = None
        self._analyzer: Analyzer | None = None
        self._workers: list[AnalyzeWorker] = []
        self._waveforms: list[FigureWidget] = []
        self._spectrograms: list[FigureWidget] = []
        self._renderer = QtFigureRenderer(self._figures_for)

        # One drawing unit per event loop pass
        self._drain = QTimer(self)
        self._drain.setInterval(0)
        self._drain.timeout.connect(self._run_queue)

        self._container = QWidget()
        self._figures_layout = QVBoxLayout(self._container)
        self._figures_layout.setContentsMargins(0, 0, 0, 0)
        self._figures_layout.setSpacing(2)
        self._placeholder = QLabel("Analysis results appear here")
        self._placeholder.setAlignment(Qt.AlignCenter)
        self._placeholder.setStyleSheet(f"color: {COLORS['dim']};")
        self._figures_layout.addWidget(self._placeholder)
        self._figures_layout.addStretch(1)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self._container)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(scroll)

    # ── Session binding ───────────────────────────────────────────────────

    def attach(self, session: PreviewSession) -> Analyzer:
        self.detach()
        self._session = session
        self._analyzer = session.attach_analyzer(self._renderer, submit=self._submit)
        self._build_figures(session.sample_buffer.num_channels)
        return self._analyzer

    def detach(self):
        self._drain.stop()
        for worker in self._workers:
            worker.cancel()
        self._session = None
        self._analyzer = None
        for fig in self._waveforms + self._spectrograms:
            self._figures_layout.removeWidget(fig)
            fig.deleteLater()
        self._waveforms = []
        self._spectrograms = []
        self._placeholder.show()

    def shutdown(self):
        self.detach()
        for worker in self._workers:
            worker.wait()
        self._workers = []

    def _build_figures(self, num_channels: int):
        self._placeholder.hide()
        index = 0
        for kind, figures in ((WAVEFORM, self._waveforms), (SPECTROGRAM, self._spectrograms)):
            for ch in range(num_channels):
                fig = FigureWidget(kind, ch, self._container)
                fig.selection_made.connect(
                    lambda x0, y0, x1, y1, f=fig: self._on_selection(f, x0, y0, x1, y1))
                fig.reset_requested.connect(self._on_reset)
                fig.seek_requested.connect(lambda x, f=fig: self._on_seek(f, x))
                fig.hide()
                self._figures_layout.insertWidget(index, fig)
                figures.append(fig)
                index += 1

    def _figures_for(self, settings: AnalyzeSettingsSnapshot, num_channels: int):
        for fig in self._waveforms:
            fig.setVisible(settings.waveform_visible)
        for fig in self._spectrograms:
            fig.setVisible(settings.spectrogram_visible)
        waveforms = [f if settings.waveform_visible else None for f in self._waveforms]
        spectrograms = [f if settings.spectrogram_visible else None for f in self._spectrograms]
        return waveforms[:num_channels], spectrograms[:num_channels]

    # ── Analysis ──────────────────────────────────────────────────────────

    def _submit(self, job: AnalysisJob):
        if self._session is None:
            return
        for worker in self._workers:
            worker.cancel()
        self._workers = [w for w in self._workers if w.isRunning()]

        dbg(f"analysis job {job.analyze_id} submitted")
        worker = AnalyzeWorker(self._session.analyze_service, job, self)
        worker.finished.connect(self._on_result)
        worker.error.connect(self.error.emit)
        self._workers.append(worker)
        worker.start()

    @Slot(object)
    def _on_result(self, result: AnalysisResult):
        if self._analyzer is None:
            return
        if self._analyzer.commit(result):
            self._drain.start()

    @Slot()
    def _run_queue(self):
        if self._analyzer is None or not self._analyzer.queue.run_next():
            self._drain.stop()

    # ── Interaction ───────────────────────────────────────────────────────

    def _on_selection(self, fig: FigureWidget, x0: float, y0: float, x1: float, y1: float):
        if self._session is None or fig.settings is None:
            return
        apply_selection(self._session.analyze_settings, fig.settings,
                        x0, y0, x1, y1, on_waveform=fig.kind == WAVEFORM)
        self._session.analyze()

    @Slot()
    def _on_reset(self):
        if self._session is None:
            return
        reset_ranges(self._session.analyze_settings)
        self._session.analyze()

    def _on_seek(self, fig: FigureWidget, x: float):
        if fig.settings is not None:
            self.seek_requested.emit(seek_percent_at(x, fig.settings))

    def set_playback_position(self, percent: float):
        for fig in self._waveforms + self._spectrograms:
            if fig.settings is not None:
                fig.set_cursor(cursor_fraction(percent, fig.settings))
