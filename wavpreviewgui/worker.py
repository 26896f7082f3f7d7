"""Background worker threads: host file reads, decoding, analysis."""

from __future__ import annotations

import threading

from PySide6.QtCore import QThread, Signal

from wavpreviewlib.analysis import AnalyzeService
from wavpreviewlib.analyzer import AnalysisJob, compute_job
from wavpreviewlib.decoder import decode
from wavpreviewlib.host import AudioDocument
from wavpreviewlib.transfer import RequestBytes

from .log import dbg


class FileReadWorker(QThread):
    """Answers one byte-range request from disk."""

    result = Signal(object)   # BytesReply
    error = Signal(str)

    def __init__(self, document: AudioDocument, request: RequestBytes, parent=None):
        super().__init__(parent)
        self._document = document
        self._request = request

    def run(self):
        try:
            self.result.emit(self._document.reply(self._request))
        except OSError as e:
            self.error.emit(f"Cannot read {self._document.path}: {e}")


class DecodeWorker(QThread):
    """Decodes the transferred file off the main thread."""

    finished = Signal(object, object, int)   # (data, DecodeResult, load generation)

    def __init__(self, data: bytes, generation: int, parent=None):
        super().__init__(parent)
        self._data = data
        self._generation = generation

    def run(self):
        dbg(f"decoding {len(self._data)} bytes (generation {self._generation})")
        self.finished.emit(self._data, decode(self._data), self._generation)


class AnalyzeWorker(QThread):
    """Computes one analysis generation; the result carries its stamp."""

    finished = Signal(object)   # AnalysisResult
    error = Signal(str)

    def __init__(self, service: AnalyzeService, job: AnalysisJob, parent=None):
        super().__init__(parent)
        self._service = service
        self._job = job
        self._cancelled = threading.Event()

    @property
    def analyze_id(self) -> int:
        return self._job.analyze_id

    def cancel(self):
        """Request that the result is not emitted."""
        self._cancelled.set()

    def run(self):
        try:
            result = compute_job(self._service, self._job)
        except Exception as e:
            self.error.emit(f"Analysis failed: {e}")
            return
        if self._cancelled.is_set():
            return
        self.finished.emit(result)
