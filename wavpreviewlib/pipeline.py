from __future__ import annotations

import logging
from typing import Any, Callable

try:
    from wavpreviewgui.log import dbg
except ImportError:
    def dbg(msg: str) -> None:  # type: ignore[misc]
        pass

from .analysis import AnalyzeService, FFTFunc, scipy_rfft
from .analyzer import AnalysisJob, Analyzer, FigureRenderer
from .config import build_structured_defaults, merge_configs
from .decoder import DecodeError, DecodeResult, decode, read_audio_info
from .events import EventBus, EventType, SubscriptionGroup
from .models import AudioInfo, SampleBuffer
from .player import PlayerService, StreamFactory
from .settings import AnalyzeSettingsService, PlayerSettingsService
from .transfer import FileChanged, Message, RequestBytes, TransferClient

log = logging.getLogger(__name__)


class PreviewSession:
    """Everything built for one decoded file.

    Owns every subscription it makes; :meth:`dispose` detaches them all
    so a reload never leaves listeners on a dead session.
    """

    def __init__(
        self,
        sample_buffer: SampleBuffer,
        info: AudioInfo,
        config: dict[str, Any],
        fft: FFTFunc = scipy_rfft,
    ):
        self.sample_buffer = sample_buffer
        self.info = info
        self.config = config
        self.analyze_service = AnalyzeService(sample_buffer, fft=fft)
        self.analyze_settings = AnalyzeSettingsService.from_default_setting(
            config.get("analyze_default"), sample_buffer,
        )
        self.player_settings = PlayerSettingsService.from_default_setting(
            config.get("player_default"), sample_buffer.sample_rate,
        )
        self.analyzer: Analyzer | None = None
        self.player: PlayerService | None = None
        self._subs = SubscriptionGroup()
        self._subs.add(self.analyze_service.subscribe(
            EventType.ANALYZE, self._match_filters_to_spectrogram,
        ))

    def _match_filters_to_spectrogram(self) -> None:
        ps = self.player_settings
        if ps.match_filter_frequency_to_spectrogram:
            ps.hpf_frequency = self.analyze_settings.min_frequency
            ps.lpf_frequency = self.analyze_settings.max_frequency

    def attach_analyzer(
        self,
        renderer: FigureRenderer,
        submit: Callable[[AnalysisJob], None] | None = None,
    ) -> Analyzer:
        if self.analyzer is not None:
            self.analyzer.dispose()
        self.analyzer = Analyzer(
            self.analyze_service, self.analyze_settings, renderer, submit=submit,
        )
        return self.analyzer

    def attach_player(self, stream_factory: StreamFactory) -> PlayerService:
        if self.player is not None:
            self.player.dispose()
        self.player = PlayerService(self.sample_buffer, self.player_settings, stream_factory)
        ps = self.player_settings
        if ps.volume_unit_db:
            self.player.set_volume_db(ps.initial_volume_db)
        else:
            self.player.set_volume_percent(ps.initial_volume)
        return self.player

    def analyze(self) -> None:
        self.analyze_service.analyze()

    def dispose(self) -> None:
        self._subs.dispose()
        if self.analyzer is not None:
            self.analyzer.dispose()
            self.analyzer = None
        if self.player is not None:
            self.player.dispose()
            self.player = None
        self.analyze_service.event_bus.clear()
        self.analyze_settings.event_bus.clear()
        self.player_settings.event_bus.clear()


class PreviewPipeline:
    """Transfer → decode → session, restarted whenever the file changes.

    *send* carries requests to the host; host messages come back through
    :meth:`handle_message`.  Decoding runs inline unless *submit_decode*
    is given, in which case the caller decodes elsewhere and reports back
    through :meth:`finish_decode` with the load generation it was handed.
    """

    def __init__(
        self,
        send: Callable[[RequestBytes], None],
        config: dict[str, Any] | None = None,
        event_bus: EventBus | None = None,
        submit_decode: Callable[[bytes, int], None] | None = None,
        fft: FFTFunc = scipy_rfft,
    ):
        self.config = merge_configs(build_structured_defaults(), config or {})
        self.event_bus = event_bus or EventBus()
        self._submit_decode = submit_decode
        self._fft = fft
        self._load_generation = 0
        self.session: PreviewSession | None = None
        self.last_error: Exception | None = None

        transfer = self.config["transfer"]
        self.client = TransferClient(
            send, self._on_transfer_complete,
            first_chunk_bytes=transfer["first_chunk_bytes"],
            chunk_bytes=transfer["chunk_bytes"],
            request_timeout=transfer["request_timeout"],
            event_bus=self.event_bus,
        )

    @property
    def load_generation(self) -> int:
        return self._load_generation

    def start(self) -> None:
        self._load_generation += 1
        self.last_error = None
        dbg(f"PreviewPipeline.start: generation {self._load_generation}")
        self.client.start()

    def handle_message(self, message: Message) -> None:
        if isinstance(message, FileChanged):
            dbg("PreviewPipeline: file changed, reloading")
            self.dispose_session()
            self._load_generation += 1
        self.client.handle_message(message)

    def check_timeout(self, now: float | None = None) -> None:
        self.client.check_timeout(now)

    def _on_transfer_complete(self, data: bytes) -> None:
        if self._submit_decode is not None:
            self._submit_decode(data, self._load_generation)
        else:
            self.finish_decode(data, decode(data), self._load_generation)

    def finish_decode(self, data: bytes, result: DecodeResult, generation: int) -> PreviewSession | None:
        """Build the session for a decoded file, unless the file changed meanwhile."""
        if generation != self._load_generation:
            dbg(f"PreviewPipeline: dropped decode of generation {generation}")
            return None

        if not result.status.ok:
            error = DecodeError(f"failed to decode audio: {result.status.error}",
                                result.status.code)
            self.last_error = error
            log.error("%s", error)
            self.event_bus.emit(EventType.DECODE_FAILED, error=error)
            return None

        try:
            info = read_audio_info(data)
        except DecodeError:
            info = AudioInfo("unknown", "unknown", result.num_channels,
                             result.sample_rate, len(result.frames), len(data))

        self.dispose_session()
        session = PreviewSession(result.to_sample_buffer(), info, self.config, fft=self._fft)
        self.session = session
        log.info("loaded %d channel(s), %d Hz, %.2fs",
                 session.sample_buffer.num_channels,
                 session.sample_buffer.sample_rate,
                 session.sample_buffer.duration)
        self.event_bus.emit(EventType.SESSION_READY, session=session)

        general = self.config["general"]
        if general.get("auto_analyze"):
            session.analyze()
        if general.get("auto_play") and session.player is not None:
            session.player.play()
        return session

    def dispose_session(self) -> None:
        if self.session is None:
            return
        session, self.session = self.session, None
        session.dispose()
        self.event_bus.emit(EventType.SESSION_DISPOSED, session=session)

    def dispose(self) -> None:
        self.dispose_session()
        self.client.reset()
