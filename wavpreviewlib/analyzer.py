from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from typing import Callable

import numpy as np

from .analysis import AnalyzeService
from .events import EventType, SubscriptionGroup
from .models import AnalyzeSettingsSnapshot
from .scheduler import TaskQueue
from .settings import AnalyzeSettingsService

log = logging.getLogger(__name__)

# Drawing work handed out per scheduler tick.
WAVEFORM_POINTS_PER_TICK = 10_000
SPECTROGRAM_FRAMES_PER_TICK = 64


class FigureRenderer(ABC):
    """Drawing collaborator fed by :class:`Analyzer`.

    Calls for one generation always arrive as ``begin``, any number of
    ``draw_*`` chunks, then ``finish``.  A newer generation may start
    before an older one finished; the older one then never receives
    ``finish``.
    """

    @abstractmethod
    def begin(self, settings: AnalyzeSettingsSnapshot, num_channels: int) -> None:
        ...

    @abstractmethod
    def draw_waveform(self, ch: int, x: np.ndarray, y: np.ndarray,
                      settings: AnalyzeSettingsSnapshot) -> None:
        ...

    @abstractmethod
    def draw_spectrogram(self, ch: int, frame_offset: int, n_frames: int,
                         db: np.ndarray, settings: AnalyzeSettingsSnapshot) -> None:
        """Draw frames ``[frame_offset, frame_offset + len(db))`` of *n_frames*."""
        ...

    def finish(self, settings: AnalyzeSettingsSnapshot) -> None:
        pass


@dataclass(frozen=True)
class AnalysisJob:
    analyze_id: int
    settings: AnalyzeSettingsSnapshot
    channels: tuple[int, ...]


@dataclass
class AnalysisResult:
    analyze_id: int
    settings: AnalyzeSettingsSnapshot
    waveforms: dict[int, tuple[np.ndarray, np.ndarray]] = field(default_factory=dict)
    spectrograms: dict[int, np.ndarray] = field(default_factory=dict)


def compute_job(service: AnalyzeService, job: AnalysisJob) -> AnalysisResult:
    """Compute every figure of *job*.  Safe to call from a worker thread."""
    result = AnalysisResult(job.analyze_id, job.settings)
    for ch in job.channels:
        if job.settings.waveform_visible:
            result.waveforms[ch] = service.get_waveform(ch, job.settings)
        if job.settings.spectrogram_visible:
            result.spectrograms[ch] = service.compute(ch, job.settings)
    return result


class Analyzer:
    """Turns ``ANALYZE`` broadcasts into drawn figures.

    Each broadcast opens a new generation.  Results are committed only if
    their generation is still current, and drawing is split into small
    units on a :class:`TaskQueue` so no single tick blocks for long.

    With *submit* set, computing happens elsewhere (a worker thread); the
    submitter must hand the result back through :meth:`commit`.
    """

    def __init__(
        self,
        analyze_service: AnalyzeService,
        settings: AnalyzeSettingsService,
        renderer: FigureRenderer,
        queue: TaskQueue | None = None,
        submit: Callable[[AnalysisJob], None] | None = None,
    ):
        self.analyze_service = analyze_service
        self.settings = settings
        self.renderer = renderer
        self.queue = queue or TaskQueue(settings.is_current)
        self._submit = submit
        self._subs = SubscriptionGroup()
        self._subs.add(analyze_service.subscribe(EventType.ANALYZE, self._on_analyze))

    def _on_analyze(self) -> None:
        job = self.new_job()
        if self._submit is not None:
            self._submit(job)
        else:
            self.queue.enqueue(
                job.analyze_id,
                lambda: self.commit(compute_job(self.analyze_service, job)),
                "compute",
            )

    def new_job(self) -> AnalysisJob:
        analyze_id = self.settings.update_analyze_id()
        snapshot = self.settings.to_snapshot()
        channels = tuple(range(self.analyze_service.sample_buffer.num_channels))
        log.debug("analysis generation %d: window %d hop %d",
                  analyze_id, snapshot.window_size, snapshot.hop_size)
        return AnalysisJob(analyze_id, snapshot, channels)

    def commit(self, result: AnalysisResult) -> bool:
        """Queue drawing for *result* unless a newer generation exists."""
        if not self.settings.is_current(result.analyze_id):
            log.debug("discarded stale analysis result %d (current %d)",
                      result.analyze_id, self.settings.analyze_id)
            return False

        gen = result.analyze_id
        s = result.settings
        n_channels = self.analyze_service.sample_buffer.num_channels
        self.queue.enqueue(gen, partial(self.renderer.begin, s, n_channels), "begin")

        for ch, (x, y) in sorted(result.waveforms.items()):
            for a in range(0, max(1, len(x)), WAVEFORM_POINTS_PER_TICK):
                b = a + WAVEFORM_POINTS_PER_TICK
                self.queue.enqueue(
                    gen, partial(self.renderer.draw_waveform, ch, x[a:b], y[a:b], s),
                    f"waveform[{ch}]",
                )

        for ch, db in sorted(result.spectrograms.items()):
            n_frames = len(db)
            for a in range(0, max(1, n_frames), SPECTROGRAM_FRAMES_PER_TICK):
                self.queue.enqueue(
                    gen,
                    partial(self.renderer.draw_spectrogram, ch, a, n_frames,
                            db[a:a + SPECTROGRAM_FRAMES_PER_TICK], s),
                    f"spectrogram[{ch}]",
                )

        self.queue.enqueue(gen, partial(self.renderer.finish, s), "finish")
        return True

    def dispose(self) -> None:
        self._subs.dispose()
        self.queue.clear()
