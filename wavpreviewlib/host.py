from __future__ import annotations

import logging
import os

from .transfer import (
    CHUNK_BYTES,
    FIRST_CHUNK_BYTES,
    BytesReply,
    RequestBytes,
    TransferClient,
    TransferError,
)

log = logging.getLogger(__name__)


class AudioDocument:
    """Host-side view of the previewed file.

    Answers byte-range requests straight from disk; the file is reopened for
    every request so a file that changes on disk is always read fresh.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)

    def size(self) -> int:
        return os.path.getsize(self.path)

    def reply(self, request: RequestBytes) -> BytesReply:
        total = self.size()
        start = min(max(0, request.start), total)
        end = min(max(start, request.end), total)
        with open(self.path, "rb") as f:
            f.seek(start)
            data = f.read(end - start)
        # the file may have shrunk between size() and read()
        end = start + len(data)
        return BytesReply(request.session, start, end, total, data)

    def write_sibling(self, filename: str, data: bytes) -> str:
        """Write *data* next to the document and return the new path."""
        out = os.path.join(self.directory, filename)
        with open(out, "wb") as f:
            f.write(data)
        log.info("wrote %s (%d bytes)", out, len(data))
        return out


def transfer_file(
    document: AudioDocument,
    *,
    first_chunk_bytes: int = FIRST_CHUNK_BYTES,
    chunk_bytes: int = CHUNK_BYTES,
    client_events=None,
) -> bytes:
    """Run the request/reply protocol in-process and return the file bytes.

    Requests are queued and answered one at a time, exactly as a remote
    host would see them.
    """
    pending: list[RequestBytes] = []
    result: list[bytes] = []

    client = TransferClient(
        pending.append, result.append,
        first_chunk_bytes=first_chunk_bytes,
        chunk_bytes=chunk_bytes,
        event_bus=client_events,
    )
    client.start()
    while pending:
        client.handle_message(document.reply(pending.pop(0)))

    if not result:
        raise TransferError(f"transfer of {document.path} ended without data")
    return result[0]
