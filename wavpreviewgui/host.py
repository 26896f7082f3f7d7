"""Qt bridge standing in for the privileged host side of the transfer."""

from __future__ import annotations

import os

from PySide6.QtCore import QFileSystemWatcher, QObject, QTimer, Signal, Slot

from wavpreviewlib.host import AudioDocument
from wavpreviewlib.transfer import FileChanged, RequestBytes

from .log import dbg
from .worker import FileReadWorker

# Editors often write a file in several steps; coalesce them.
_CHANGE_DEBOUNCE_MS = 250


class HostBridge(QObject):
    """Serves byte ranges of one file and reports when it changes.

    Signals:
        message(object): BytesReply or FileChanged for the preview side.
        error(str): a request could not be served.
    """

    message = Signal(object)
    error = Signal(str)

    def __init__(self, path: str, parent=None):
        super().__init__(parent)
        self.document = AudioDocument(path)
        self._workers: list[FileReadWorker] = []

        self._watcher = QFileSystemWatcher([self.document.path], self)
        self._watcher.fileChanged.connect(self._on_file_changed)

        self._debounce = QTimer(self)
        self._debounce.setSingleShot(True)
        self._debounce.setInterval(_CHANGE_DEBOUNCE_MS)
        self._debounce.timeout.connect(self._emit_changed)

    @Slot(object)
    def request(self, request: RequestBytes):
        dbg(f"request {request.start}-{request.end} (session {request.session})")
        worker = FileReadWorker(self.document, request, self)
        worker.result.connect(self.message.emit)
        worker.error.connect(self.error.emit)
        worker.finished.connect(lambda w=worker: self._release(w))
        self._workers.append(worker)
        worker.start()

    def _release(self, worker: FileReadWorker):
        if worker in self._workers:
            self._workers.remove(worker)
        worker.deleteLater()

    @Slot(str)
    def _on_file_changed(self, path: str):
        # replaced-on-save files drop out of the watch list
        if os.path.exists(path) and path not in self._watcher.files():
            self._watcher.addPath(path)
        self._debounce.start()

    @Slot()
    def _emit_changed(self):
        if not os.path.exists(self.document.path):
            return
        dbg("host file changed")
        self.message.emit(FileChanged())

    def write_sibling(self, filename: str, data: bytes) -> str:
        return self.document.write_sibling(filename, data)

    def shutdown(self):
        self._debounce.stop()
        for worker in list(self._workers):
            worker.wait()
