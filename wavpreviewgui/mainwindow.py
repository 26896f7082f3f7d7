"""Main application window for WavPreview."""

from __future__ import annotations

import os
import sys
import time
from typing import Any

from PySide6.QtCore import Qt, QTimer, Slot
from PySide6.QtGui import QAction, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHeaderView,
    QLabel,
    QMainWindow,
    QProgressBar,
    QSplitter,
    QStatusBar,
    QTableWidget,
    QTableWidgetItem,
    QTabWidget,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from wavpreviewlib.encoder import cut_to_wav, sanitize_filename
from wavpreviewlib.events import EventType, SubscriptionGroup
from wavpreviewlib.pipeline import PreviewPipeline, PreviewSession
from wavpreviewlib.transfer import TransferError

from .analyzer import AnalyzerPanel
from .host import HostBridge
from .log import dbg
from .param_widgets import AnalyzeSettingsPanel, EasyCutBar, PlayerSettingsPanel
from .playback import PlaybackController, PlayerBar
from .settings import load_config, save_config
from .theme import COLORS, apply_dark_theme
from .worker import DecodeWorker

# How often the outstanding transfer request is checked for a timeout.
_TIMEOUT_POLL_MS = 1000

_AUDIO_FILTER = "Audio files (*.wav *.flac *.ogg *.aif *.aiff *.mp3);;All files (*)"


class PreviewWindow(QMainWindow):
    def __init__(self, path: str | None = None):
        super().__init__()
        self.setWindowTitle("WavPreview")
        self._config: dict[str, Any] = load_config()
        gui = self._config.get("gui", {})
        self.resize(gui.get("window_width", 1280), gui.get("window_height", 860))

        self._host: HostBridge | None = None
        self._pipeline: PreviewPipeline | None = None
        self._session: PreviewSession | None = None
        self._pipeline_subs = SubscriptionGroup()
        self._decode_workers: list[DecodeWorker] = []
        self._analyze_panel: AnalyzeSettingsPanel | None = None
        self._player_panel: PlayerSettingsPanel | None = None

        self._playback = PlaybackController(self)
        self._playback.error.connect(self._show_error)

        self._init_toolbar()
        self._init_ui()
        self._init_status_bar()
        apply_dark_theme(self)

        self._timeout_timer = QTimer(self)
        self._timeout_timer.setInterval(_TIMEOUT_POLL_MS)
        self._timeout_timer.timeout.connect(self._check_timeout)

        space = QShortcut(QKeySequence(Qt.Key_Space), self)
        space.activated.connect(self._on_space)

        if path:
            QTimer.singleShot(0, lambda: self.open_file(path))

    # ── UI construction ───────────────────────────────────────────────────

    def _init_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        open_action = QAction("Open...", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self._on_open)
        toolbar.addAction(open_action)

        self._reload_action = QAction("Reload", self)
        self._reload_action.setShortcut(QKeySequence("F5"))
        self._reload_action.triggered.connect(self._on_reload)
        self._reload_action.setEnabled(False)
        toolbar.addAction(self._reload_action)

        self._analyze_action = QAction("Analyze", self)
        self._analyze_action.setShortcut(QKeySequence("Ctrl+R"))
        self._analyze_action.triggered.connect(self._on_analyze)
        self._analyze_action.setEnabled(False)
        toolbar.addAction(self._analyze_action)

    def _init_ui(self):
        self._info_table = QTableWidget(0, 2)
        self._info_table.setHorizontalHeaderLabels(["Property", "Value"])
        self._info_table.verticalHeader().setVisible(False)
        self._info_table.horizontalHeader().setSectionResizeMode(0, QHeaderView.ResizeToContents)
        self._info_table.horizontalHeader().setStretchLastSection(True)
        self._info_table.setEditTriggers(QTableWidget.NoEditTriggers)
        self._info_table.setMinimumWidth(260)

        self._settings_tabs = QTabWidget()
        self._settings_tabs.setMinimumWidth(320)

        side = QSplitter(Qt.Vertical)
        side.addWidget(self._info_table)
        side.addWidget(self._settings_tabs)
        side.setStretchFactor(1, 1)

        self._analyzer_panel = AnalyzerPanel()
        self._analyzer_panel.seek_requested.connect(self._playback.seek)
        self._analyzer_panel.error.connect(self._show_error)
        self._playback.position_changed.connect(self._analyzer_panel.set_playback_position)

        main_split = QSplitter(Qt.Horizontal)
        main_split.addWidget(self._analyzer_panel)
        main_split.addWidget(side)
        main_split.setStretchFactor(0, 1)

        self._player_bar = PlayerBar(self._playback)
        self._cut_bar = EasyCutBar()
        self._cut_bar.cut_requested.connect(self._on_cut)
        self._cut_bar.setEnabled(False)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.addWidget(main_split, 1)
        layout.addWidget(self._player_bar)
        layout.addWidget(self._cut_bar)
        self.setCentralWidget(central)

    def _init_status_bar(self):
        status = QStatusBar()
        self._status_label = QLabel("Open a file to preview it")
        self._progress = QProgressBar()
        self._progress.setFixedWidth(220)
        self._progress.setVisible(False)
        status.addWidget(self._status_label, 1)
        status.addPermanentWidget(self._progress)
        self.setStatusBar(status)

    # ── File loading ──────────────────────────────────────────────────────

    @Slot()
    def _on_open(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open audio file", "", _AUDIO_FILTER)
        if path:
            self.open_file(path)

    def open_file(self, path: str):
        if not os.path.isfile(path):
            self._show_error(f"File not found: {path}")
            return
        self._close_file()
        dbg(f"opening {path}")
        self.setWindowTitle(f"WavPreview - {os.path.basename(path)}")

        self._host = HostBridge(path, self)
        self._pipeline = PreviewPipeline(
            self._host.request, self._config, submit_decode=self._submit_decode,
        )
        self._host.message.connect(self._on_host_message)
        self._host.error.connect(self._show_error)

        bus = self._pipeline.event_bus
        self._pipeline_subs.add(bus.subscribe(EventType.TRANSFER_PROGRESS, self._on_progress))
        self._pipeline_subs.add(bus.subscribe(EventType.TRANSFER_FAILED, self._on_transfer_failed))
        self._pipeline_subs.add(bus.subscribe(EventType.DECODE_FAILED, self._on_decode_failed))
        self._pipeline_subs.add(bus.subscribe(EventType.SESSION_READY, self._on_session_ready))
        self._pipeline_subs.add(bus.subscribe(EventType.SESSION_DISPOSED, self._on_session_disposed))

        self._reload_action.setEnabled(True)
        self._start_transfer()

    def _start_transfer(self):
        self._progress.setValue(0)
        self._progress.setVisible(True)
        self._status_label.setText("Loading...")
        self._pipeline.start()
        self._timeout_timer.start()

    @Slot()
    def _on_reload(self):
        if self._pipeline is None:
            return
        self._pipeline.dispose_session()
        self._start_transfer()

    def _close_file(self):
        self._timeout_timer.stop()
        if self._pipeline is not None:
            self._pipeline.dispose()
            self._pipeline_subs.dispose()
            self._pipeline = None
        if self._host is not None:
            self._host.shutdown()
            self._host.deleteLater()
            self._host = None

    @Slot(object)
    def _on_host_message(self, message):
        if self._pipeline is None:
            return
        try:
            self._pipeline.handle_message(message)
        except TransferError as e:
            self._show_error(f"Transfer failed: {e}")
        if self._pipeline is not None and self._pipeline.client.active:
            self._timeout_timer.start()

    @Slot()
    def _check_timeout(self):
        if self._pipeline is None:
            return
        try:
            self._pipeline.check_timeout()
        except TransferError as e:
            self._timeout_timer.stop()
            self._show_error(f"{e}. Use Reload to try again.")

    def _on_progress(self, received: int, total: int):
        self._progress.setMaximum(max(1, total))
        self._progress.setValue(received)

    def _on_transfer_failed(self, error: Exception):
        self._progress.setVisible(False)
        dbg(f"transfer failed: {error}")

    def _submit_decode(self, data: bytes, generation: int):
        self._timeout_timer.stop()
        self._status_label.setText("Decoding...")
        worker = DecodeWorker(data, generation, self)
        worker.finished.connect(self._on_decoded)
        self._decode_workers = [w for w in self._decode_workers if w.isRunning()]
        self._decode_workers.append(worker)
        worker.start()

    @Slot(object, object, int)
    def _on_decoded(self, data: bytes, result, generation: int):
        if self._pipeline is not None:
            self._pipeline.finish_decode(data, result, generation)

    def _on_decode_failed(self, error: Exception):
        self._progress.setVisible(False)
        self._show_error(str(error))

    # ── Session lifecycle ─────────────────────────────────────────────────

    def _on_session_ready(self, session: PreviewSession):
        t0 = time.perf_counter()
        self._session = session
        self._progress.setVisible(False)
        self._fill_info_table(session)

        self._analyzer_panel.attach(session)
        player = self._playback.attach(session)
        self._player_bar.bind(player)

        self._analyze_panel = AnalyzeSettingsPanel(session.analyze_settings)
        self._analyze_panel.analyze_requested.connect(self._on_analyze)
        self._player_panel = PlayerSettingsPanel(session.player_settings)
        self._settings_tabs.addTab(self._analyze_panel, "Analyze")
        self._settings_tabs.addTab(self._player_panel, "Player")

        self._analyze_action.setEnabled(True)
        self._cut_bar.setEnabled(True)
        self._status_label.setText(f"Loaded {session.info.duration:.2f}s")
        dbg(f"session ready in {(time.perf_counter() - t0) * 1000:.1f} ms")

    def _on_session_disposed(self, session: PreviewSession):
        self._session = None
        self._analyzer_panel.detach()
        self._playback.detach()
        self._player_bar.unbind()
        for panel in (self._analyze_panel, self._player_panel):
            if panel is not None:
                panel.dispose()
                panel.deleteLater()
        self._analyze_panel = self._player_panel = None
        self._settings_tabs.clear()
        self._info_table.setRowCount(0)
        self._analyze_action.setEnabled(False)
        self._cut_bar.setEnabled(False)

    def _fill_info_table(self, session: PreviewSession):
        rows = session.info.rows()
        self._info_table.setRowCount(len(rows))
        for i, (name, value) in enumerate(rows):
            self._info_table.setItem(i, 0, QTableWidgetItem(name))
            self._info_table.setItem(i, 1, QTableWidgetItem(value))

    # ── Actions ───────────────────────────────────────────────────────────

    @Slot()
    def _on_analyze(self):
        if self._session is not None:
            self._session.analyze()

    @Slot()
    def _on_space(self):
        if self._session is not None and self._session.player_settings.enable_spacekey_play:
            self._playback.toggle()

    def _on_cut(self, name: str):
        if self._session is None or self._host is None:
            return
        s = self._session.analyze_settings
        filename = sanitize_filename(name)
        try:
            data = cut_to_wav(self._session.sample_buffer, s.min_time, s.max_time)
            out = self._host.write_sibling(filename, data)
        except (OSError, ValueError) as e:
            self._cut_bar.show_result(f"Cut failed: {e}", error=True)
            return
        self._cut_bar.show_result(f"Saved {os.path.basename(out)}")

    def _show_error(self, message: str):
        self._status_label.setText(
            f"<span style='color:{COLORS['error']}'>{message}</span>")

    # ── Shutdown ──────────────────────────────────────────────────────────

    def closeEvent(self, event):
        self._close_file()
        self._analyzer_panel.shutdown()
        for worker in self._decode_workers:
            worker.wait()
        self._config.setdefault("gui", {}).update(
            window_width=self.width(), window_height=self.height())
        try:
            save_config(self._config)
        except OSError as e:
            dbg(f"could not save config: {e}")
        super().closeEvent(event)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    t_main = time.perf_counter()
    app = QApplication(sys.argv)
    app.setStyle("Fusion")
    app.setApplicationName("WavPreview")

    path = sys.argv[1] if len(sys.argv) > 1 else None
    window = PreviewWindow(path)
    window.show()
    dbg(f"main() total: {(time.perf_counter() - t_main) * 1000:.1f} ms")
    sys.exit(app.exec())
