import pytest

from wavpreviewlib.events import EventBus, EventType
from wavpreviewlib.host import AudioDocument, transfer_file
from wavpreviewlib.transfer import (
    BytesReply,
    FileChanged,
    RequestBytes,
    TransferClient,
    TransferProtocolError,
    TransferSession,
    TransferTimeoutError,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def serve(request, payload):
    end = min(request.end, len(payload))
    return BytesReply(request.session, request.start, end, len(payload),
                      payload[request.start:end])


@pytest.fixture
def harness():
    sent, done = [], []
    clock = FakeClock()
    client = TransferClient(sent.append, done.append, clock=clock)
    return client, sent, done, clock


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

def test_first_request_is_small():
    s = TransferSession(1)
    assert s.first_request() == RequestBytes(1, 0, 500_000)


def test_session_rejects_gap():
    s = TransferSession(1)
    with pytest.raises(TransferProtocolError):
        s.accept(BytesReply(1, 10, 20, 100, b"x" * 10))


def test_session_rejects_changed_total():
    s = TransferSession(1, first_chunk_bytes=10, chunk_bytes=10)
    s.accept(BytesReply(1, 0, 10, 100, b"x" * 10))
    with pytest.raises(TransferProtocolError):
        s.accept(BytesReply(1, 10, 20, 200, b"x" * 10))


def test_invalid_chunk_sizes():
    with pytest.raises(ValueError):
        TransferSession(1, first_chunk_bytes=0)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

def test_500001_bytes_take_two_round_trips(harness):
    client, sent, done, _ = harness
    payload = bytes(range(256)) * 1953 + b"\x01" * 33
    assert len(payload) == 500_001

    client.start()
    assert sent == [RequestBytes(1, 0, 500_000)]
    client.handle_message(serve(sent[-1], payload))
    assert sent[-1] == RequestBytes(1, 500_000, 3_500_000)
    client.handle_message(serve(sent[-1], payload))

    assert len(sent) == 2
    assert done == [payload]
    assert not client.active


def test_small_file_completes_in_one_reply(harness):
    client, sent, done, _ = harness
    client.start()
    client.handle_message(serve(sent[-1], b"abc"))
    assert done == [b"abc"]


def test_empty_file(harness):
    client, sent, done, _ = harness
    client.start()
    client.handle_message(serve(sent[-1], b""))
    assert done == [b""]


def test_one_request_outstanding(harness):
    client, sent, done, _ = harness
    payload = b"z" * 1_000_000
    client.start()
    client.handle_message(serve(sent[-1], payload))
    assert len(sent) == 2
    assert client.outstanding == sent[-1]


def test_stale_session_reply_is_ignored(harness):
    client, sent, done, _ = harness
    payload = b"q" * 600_000
    client.start()
    old = sent[-1]
    client.restart()
    client.handle_message(serve(old, payload))
    assert len(sent) == 2
    assert client.session.received_up_to == 0

    client.handle_message(serve(sent[-1], payload))
    client.handle_message(serve(sent[-1], payload))
    assert done == [payload]


def test_file_changed_restarts_from_zero(harness):
    client, sent, done, _ = harness
    payload = b"a" * 700_000
    client.start()
    client.handle_message(serve(sent[-1], payload))
    client.handle_message(FileChanged())
    assert sent[-1].start == 0
    assert sent[-1].session == 2

    changed = b"b" * 10
    client.handle_message(serve(sent[-1], changed))
    assert done == [changed]


def test_timeout_raises_and_drops_session(harness):
    client, sent, done, clock = harness
    events = []
    client.event_bus.subscribe(EventType.TRANSFER_FAILED, lambda error: events.append(error))
    client.start()
    clock.now = 10.0
    client.check_timeout()
    clock.now = 31.0
    with pytest.raises(TransferTimeoutError) as exc:
        client.check_timeout()
    assert exc.value.request == RequestBytes(1, 0, 500_000)
    assert not client.active
    assert len(events) == 1
    # no retry
    client.check_timeout(100.0)
    assert len(sent) == 1


def test_progress_events():
    bus = EventBus()
    sent, done, progress = [], [], []
    bus.subscribe(EventType.TRANSFER_PROGRESS,
                  lambda received, total: progress.append((received, total)))
    client = TransferClient(sent.append, done.append,
                            first_chunk_bytes=4, chunk_bytes=4, event_bus=bus)
    payload = b"0123456789"
    client.start()
    while not done:
        client.handle_message(serve(sent[-1], payload))
    assert progress == [(4, 10), (8, 10), (10, 10)]


def test_unknown_message_raises(harness):
    client, _, _, _ = harness
    with pytest.raises(TransferProtocolError):
        client.handle_message(object())


# ---------------------------------------------------------------------------
# Host side
# ---------------------------------------------------------------------------

def test_document_reply_clips_to_file(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"0123456789")
    doc = AudioDocument(str(path))
    reply = doc.reply(RequestBytes(7, 8, 100))
    assert (reply.session, reply.start, reply.end, reply.total_length) == (7, 8, 10, 10)
    assert reply.data == b"89"


def test_transfer_file_round_trip(tmp_path):
    payload = bytes(range(256)) * 50
    path = tmp_path / "b.bin"
    path.write_bytes(payload)
    assert transfer_file(AudioDocument(str(path)), first_chunk_bytes=1000,
                         chunk_bytes=3000) == payload


def test_write_sibling(tmp_path):
    path = tmp_path / "c.wav"
    path.write_bytes(b"")
    out = AudioDocument(str(path)).write_sibling("cut.wav", b"data")
    assert (tmp_path / "cut.wav").read_bytes() == b"data"
    assert out == str(tmp_path / "cut.wav")
