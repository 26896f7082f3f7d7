"""Chunked request/reply transfer of a file's bytes into the preview.

The receiving side asks for one byte range at a time; the host answers
each request with the bytes and the file's current total length.  The
first chunk is small so the container header arrives quickly, later
chunks are large to keep the number of round trips down.

::

    client                         host
      RequestBytes(s, 0, 500000) ──▶
                                 ◀── BytesReply(s, 0, 500000, total, data)
      RequestBytes(s, 500000, 3500000) ──▶
                                 ◀── BytesReply(...)
      ...                        ◀── FileChanged()   (any time)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Union

from .events import EventBus, EventType

log = logging.getLogger(__name__)

FIRST_CHUNK_BYTES = 500_000
CHUNK_BYTES = 3_000_000
REQUEST_TIMEOUT = 30.0


class TransferError(Exception):
    """Base class for transport failures."""


class TransferTimeoutError(TransferError):
    """A chunk request did not get a reply in time.  Never retried."""

    def __init__(self, request: RequestBytes, waited: float):
        super().__init__(
            f"No reply for bytes {request.start}-{request.end} after {waited:.1f}s"
        )
        self.request = request
        self.waited = waited


class TransferProtocolError(TransferError):
    """A reply does not continue the session it claims to belong to."""


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestBytes:
    session: int
    start: int
    end: int


@dataclass(frozen=True)
class BytesReply:
    """Bytes ``[start, end)`` of the file; *end* is clipped to *total_length*."""
    session: int
    start: int
    end: int
    total_length: int
    data: bytes


@dataclass(frozen=True)
class FileChanged:
    pass


Message = Union[RequestBytes, BytesReply, FileChanged]


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class TransferSession:
    """Progress of one file transfer.

    Requested ranges are contiguous and strictly increasing;
    ``received_up_to`` only grows.  The buffer is allocated from
    ``total_length`` on the first reply.
    """

    def __init__(self, session_id: int,
                 first_chunk_bytes: int = FIRST_CHUNK_BYTES,
                 chunk_bytes: int = CHUNK_BYTES):
        if first_chunk_bytes <= 0 or chunk_bytes <= 0:
            raise ValueError("chunk sizes must be positive")
        self.session_id = session_id
        self.first_chunk_bytes = first_chunk_bytes
        self.chunk_bytes = chunk_bytes
        self.total_length: int | None = None
        self.received_up_to = 0
        self.buffer: bytearray | None = None

    @property
    def complete(self) -> bool:
        return self.total_length is not None and self.received_up_to >= self.total_length

    def first_request(self) -> RequestBytes:
        return RequestBytes(self.session_id, 0, self.first_chunk_bytes)

    def accept(self, reply: BytesReply) -> RequestBytes | None:
        """Store *reply* and return the next request, or ``None`` when done."""
        if reply.session != self.session_id:
            raise TransferProtocolError(
                f"reply for session {reply.session} given to session {self.session_id}"
            )
        if reply.start != self.received_up_to:
            raise TransferProtocolError(
                f"expected bytes from {self.received_up_to}, got {reply.start}"
            )
        if reply.total_length < 0 or reply.end > reply.total_length:
            raise TransferProtocolError(
                f"reply end {reply.end} beyond total length {reply.total_length}"
            )
        if len(reply.data) != reply.end - reply.start:
            raise TransferProtocolError(
                f"reply carries {len(reply.data)} bytes for range "
                f"{reply.start}-{reply.end}"
            )

        if self.buffer is None:
            self.total_length = reply.total_length
            self.buffer = bytearray(reply.total_length)
        elif reply.total_length != self.total_length:
            raise TransferProtocolError(
                f"total length changed from {self.total_length} to {reply.total_length}"
            )

        self.buffer[reply.start:reply.end] = reply.data
        self.received_up_to = reply.end

        if self.complete:
            return None
        if reply.end == reply.start:
            raise TransferProtocolError(f"empty reply at offset {reply.start}")
        return RequestBytes(self.session_id, reply.end, reply.end + self.chunk_bytes)


# ---------------------------------------------------------------------------
# Receiving side
# ---------------------------------------------------------------------------

class TransferClient:
    """Drives a :class:`TransferSession` over an asynchronous channel.

    *send* delivers a :class:`RequestBytes` to the host; the host's answers
    come back through :meth:`handle_message`.  At most one request is in
    flight.  When the last byte arrives, *on_complete* receives the whole
    file and the session is discarded.
    """

    def __init__(
        self,
        send: Callable[[RequestBytes], None],
        on_complete: Callable[[bytes], None],
        *,
        first_chunk_bytes: int = FIRST_CHUNK_BYTES,
        chunk_bytes: int = CHUNK_BYTES,
        request_timeout: float = REQUEST_TIMEOUT,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._send = send
        self._on_complete = on_complete
        self.first_chunk_bytes = first_chunk_bytes
        self.chunk_bytes = chunk_bytes
        self.request_timeout = request_timeout
        self.event_bus = event_bus or EventBus()
        self._clock = clock
        self._session_counter = 0
        self._session: TransferSession | None = None
        self._outstanding: RequestBytes | None = None
        self._sent_at = 0.0

    @property
    def session(self) -> TransferSession | None:
        return self._session

    @property
    def outstanding(self) -> RequestBytes | None:
        return self._outstanding

    @property
    def active(self) -> bool:
        return self._session is not None

    def start(self) -> None:
        """Open a new session and ask for the first chunk."""
        self._session_counter += 1
        self._session = TransferSession(
            self._session_counter, self.first_chunk_bytes, self.chunk_bytes,
        )
        log.debug("transfer session %d started", self._session_counter)
        self._request(self._session.first_request())

    def reset(self) -> None:
        """Drop the current session; late replies for it will be ignored."""
        self._session = None
        self._outstanding = None

    def restart(self) -> None:
        self.reset()
        self.start()

    def _request(self, request: RequestBytes) -> None:
        self._outstanding = request
        self._sent_at = self._clock()
        self._send(request)

    def handle_message(self, message: Message) -> None:
        if isinstance(message, FileChanged):
            log.info("source file changed, restarting transfer")
            self.restart()
            return
        if isinstance(message, BytesReply):
            self._handle_reply(message)
            return
        raise TransferProtocolError(f"unexpected message {type(message).__name__}")

    def _handle_reply(self, reply: BytesReply) -> None:
        session = self._session
        if session is None or reply.session != session.session_id:
            log.debug("ignored reply for stale session %d", reply.session)
            return
        outstanding = self._outstanding
        if outstanding is None or reply.start != outstanding.start:
            log.debug("ignored unexpected reply at offset %d", reply.start)
            return

        self._outstanding = None
        try:
            next_request = session.accept(reply)
        except TransferProtocolError as e:
            self.reset()
            self.event_bus.emit(EventType.TRANSFER_FAILED, error=e)
            raise

        self.event_bus.emit(
            EventType.TRANSFER_PROGRESS,
            received=session.received_up_to, total=session.total_length,
        )
        if next_request is not None:
            self._request(next_request)
            return

        data = bytes(session.buffer or b"")
        self._session = None
        log.debug("transfer session %d complete: %d bytes", session.session_id, len(data))
        self.event_bus.emit(EventType.TRANSFER_COMPLETE, total=len(data))
        self._on_complete(data)

    def check_timeout(self, now: float | None = None) -> None:
        """Raise :class:`TransferTimeoutError` if the pending request is overdue.

        The session is dropped first; recovering means starting over.
        """
        if self._outstanding is None:
            return
        now = self._clock() if now is None else now
        waited = now - self._sent_at
        if waited <= self.request_timeout:
            return
        request = self._outstanding
        self.reset()
        error = TransferTimeoutError(request, waited)
        self.event_bus.emit(EventType.TRANSFER_FAILED, error=error)
        raise error
