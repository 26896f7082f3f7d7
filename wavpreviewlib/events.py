from __future__ import annotations

import logging
import threading
from typing import Any, Callable

log = logging.getLogger(__name__)


class EventType:
    """Event names broadcast on the buses of this package."""

    # Analysis / settings
    ANALYZE = "analyze"
    WAVEFORM_VISIBLE = "waveform_visible"
    WAVEFORM_VERTICAL_SCALE = "waveform_vertical_scale"
    WAVEFORM_SHOW_CHANNEL_LABEL = "waveform_show_channel_label"
    SPECTROGRAM_VISIBLE = "spectrogram_visible"
    SPECTROGRAM_VERTICAL_SCALE = "spectrogram_vertical_scale"
    SPECTROGRAM_SHOW_CHANNEL_LABEL = "spectrogram_show_channel_label"
    ROUND_WAVEFORM_AXIS = "round_waveform_axis"
    ROUND_TIME_AXIS = "round_time_axis"
    WINDOW_SIZE_INDEX = "window_size_index"
    HOP_SIZE = "hop_size"
    FREQUENCY_SCALE = "frequency_scale"
    MEL_FILTER_NUM = "mel_filter_num"
    MIN_FREQUENCY = "min_frequency"
    MAX_FREQUENCY = "max_frequency"
    MIN_TIME = "min_time"
    MAX_TIME = "max_time"
    MIN_AMPLITUDE = "min_amplitude"
    MAX_AMPLITUDE = "max_amplitude"
    SPECTROGRAM_AMPLITUDE_RANGE = "spectrogram_amplitude_range"

    # Player settings
    VOLUME_UNIT_DB = "volume_unit_db"
    INITIAL_VOLUME_DB = "initial_volume_db"
    INITIAL_VOLUME = "initial_volume"
    ENABLE_SPACEKEY_PLAY = "enable_spacekey_play"
    ENABLE_SEEK_TO_PLAY = "enable_seek_to_play"
    ENABLE_HPF = "enable_hpf"
    HPF_FREQUENCY = "hpf_frequency"
    ENABLE_LPF = "enable_lpf"
    LPF_FREQUENCY = "lpf_frequency"
    MATCH_FILTER_FREQUENCY_TO_SPECTROGRAM = "match_filter_frequency_to_spectrogram"

    # Player
    UPDATE_IS_PLAYING = "update_is_playing"
    UPDATE_SEEKBAR = "update_seekbar"
    UPDATE_VOLUME = "update_volume"

    # Transfer / pipeline
    TRANSFER_PROGRESS = "transfer_progress"
    TRANSFER_COMPLETE = "transfer_complete"
    TRANSFER_FAILED = "transfer_failed"
    DECODE_FAILED = "decode_failed"
    SESSION_READY = "session_ready"
    SESSION_DISPOSED = "session_disposed"


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`.

    Calling :meth:`dispose` (or leaving a ``with`` block) detaches the
    handler.  Disposing twice is harmless.
    """

    def __init__(self, bus: EventBus, event_type: str, handler: Callable[..., Any]):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if self._active:
            self._active = False
            self._bus.unsubscribe(self.event_type, self.handler)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()


class SubscriptionGroup:
    """Collects subscriptions so a whole session can be torn down at once."""

    def __init__(self) -> None:
        self._subs: list[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._subs.append(sub)
        return sub

    def dispose(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.dispose()

    def __len__(self) -> int:
        return sum(1 for s in self._subs if s.active)


class EventBus:
    """Lightweight publish/subscribe bus.

    Thread-safe: handler registration is protected by a lock so the bus can
    be shared with worker threads.  Handlers run synchronously on the
    emitting thread.  While an event type is being dispatched, the bus
    remembers it for that thread so callers can detect (and refuse)
    re-entrant broadcasts of the same event.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = {}
        self._local = threading.local()
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Callable[..., Any]) -> Subscription:
        """Register a handler for an event type."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        return Subscription(self, event_type, handler)

    def unsubscribe(self, event_type: str, handler: Callable[..., Any]) -> None:
        """Remove a handler."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def handler_count(self, event_type: str | None = None) -> int:
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            return sum(len(h) for h in self._handlers.values())

    def _dispatching(self) -> set[str]:
        # per thread: only the calling stack can re-enter its own emit
        active = getattr(self._local, "active", None)
        if active is None:
            active = self._local.active = set()
        return active

    def is_dispatching(self, event_type: str) -> bool:
        return event_type in self._dispatching()

    def emit(self, event_type: str, **data: Any) -> bool:
        """Fire all handlers for an event type.

        Returns ``False`` without calling anything if *event_type* is
        already being dispatched further up the stack.
        """
        active = self._dispatching()
        if event_type in active:
            log.warning("Dropped re-entrant '%s' event", event_type)
            return False
        with self._lock:
            handlers = list(self._handlers.get(event_type, []))
        active.add(event_type)
        try:
            for handler in handlers:
                handler(**data)
        finally:
            active.discard(event_type)
        return True

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
