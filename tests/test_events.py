import threading

from wavpreviewlib.events import EventBus, SubscriptionGroup
from wavpreviewlib.scheduler import TaskQueue


def test_emit_passes_keyword_data():
    bus = EventBus()
    seen = []
    bus.subscribe("x", lambda value: seen.append(value))
    assert bus.emit("x", value=3)
    assert seen == [3]


def test_subscription_dispose_detaches():
    bus = EventBus()
    seen = []
    sub = bus.subscribe("x", lambda: seen.append(1))
    sub.dispose()
    sub.dispose()
    bus.emit("x")
    assert seen == []
    assert not sub.active


def test_subscription_context_manager():
    bus = EventBus()
    with bus.subscribe("x", lambda: None):
        assert bus.handler_count("x") == 1
    assert bus.handler_count("x") == 0


def test_group_disposes_everything():
    bus = EventBus()
    group = SubscriptionGroup()
    group.add(bus.subscribe("a", lambda: None))
    group.add(bus.subscribe("b", lambda: None))
    assert len(group) == 2
    group.dispose()
    assert bus.handler_count() == 0
    assert len(group) == 0


def test_reentrant_emit_is_dropped():
    bus = EventBus()
    calls = []

    def handler():
        calls.append(1)
        assert bus.is_dispatching("x")
        assert not bus.emit("x")

    bus.subscribe("x", handler)
    assert bus.emit("x")
    assert calls == [1]
    assert not bus.is_dispatching("x")


def test_other_events_may_be_emitted_from_handler():
    bus = EventBus()
    seen = []
    bus.subscribe("a", lambda: bus.emit("b"))
    bus.subscribe("b", lambda: seen.append("b"))
    bus.emit("a")
    assert seen == ["b"]


def test_same_event_from_another_thread_is_delivered():
    bus = EventBus()
    inside, release = threading.Event(), threading.Event()
    seen = []

    def handler(who):
        seen.append(who)
        if who == "worker":
            inside.set()
            release.wait(5)

    bus.subscribe("x", handler)
    worker = threading.Thread(target=bus.emit, args=("x",), kwargs={"who": "worker"})
    worker.start()
    assert inside.wait(5)
    assert not bus.is_dispatching("x")
    assert bus.emit("x", who="main")
    release.set()
    worker.join(5)
    assert sorted(seen) == ["main", "worker"]


# ---------------------------------------------------------------------------
# TaskQueue
# ---------------------------------------------------------------------------

def test_queue_runs_in_order_one_per_call():
    current = [1]
    q = TaskQueue(lambda g: g == current[0])
    ran = []
    q.enqueue(1, lambda: ran.append("a"))
    q.enqueue(1, lambda: ran.append("b"))
    assert q.run_next()
    assert ran == ["a"]
    assert len(q) == 1


def test_queue_drops_stale_units():
    current = [1]
    q = TaskQueue(lambda g: g == current[0])
    ran = []
    q.enqueue(1, lambda: ran.append("old"))
    current[0] = 2
    q.enqueue(2, lambda: ran.append("new"))
    assert q.run_pending() == 1
    assert ran == ["new"]
    assert not q.run_next()


def test_discard_stale_and_clear():
    current = [2]
    q = TaskQueue(lambda g: g == current[0])
    q.enqueue(1, lambda: None)
    q.enqueue(2, lambda: None)
    assert q.discard_stale() == 1
    q.clear()
    assert len(q) == 0


def test_run_pending_limit():
    q = TaskQueue(lambda g: True)
    for _ in range(5):
        q.enqueue(0, lambda: None)
    assert q.run_pending(max_units=2) == 2
    assert len(q) == 3
