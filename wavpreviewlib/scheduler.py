from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

log = logging.getLogger(__name__)


@dataclass
class Task:
    """One unit of deferred work stamped with the generation it belongs to."""
    generation: int
    fn: Callable[[], Any]
    label: str = ""


class TaskQueue:
    """FIFO of work units executed one per scheduler tick.

    Every unit carries the generation stamp current when it was enqueued.
    Before running a unit the queue asks *is_current*; stale units are
    dropped without running, so a superseded analysis never draws.

    The queue itself never spins a loop: the host calls :meth:`run_next`
    from its own timer (a ``QTimer`` in the GUI) or drains it with
    :meth:`run_pending`.
    """

    def __init__(self, is_current: Callable[[int], bool]):
        self._is_current = is_current
        self._tasks: deque[Task] = deque()

    def __len__(self) -> int:
        return len(self._tasks)

    def enqueue(self, generation: int, fn: Callable[[], Any], label: str = "") -> None:
        self._tasks.append(Task(generation, fn, label))

    def run_next(self) -> bool:
        """Run the next current unit.  Returns ``False`` when nothing ran."""
        while self._tasks:
            task = self._tasks.popleft()
            if not self._is_current(task.generation):
                log.debug("dropped stale task %s (generation %d)", task.label, task.generation)
                continue
            task.fn()
            return True
        return False

    def run_pending(self, max_units: int | None = None) -> int:
        """Run units until the queue is empty (or *max_units* ran)."""
        ran = 0
        while max_units is None or ran < max_units:
            if not self.run_next():
                break
            ran += 1
        return ran

    def discard_stale(self) -> int:
        before = len(self._tasks)
        self._tasks = deque(t for t in self._tasks if self._is_current(t.generation))
        return before - len(self._tasks)

    def clear(self) -> None:
        self._tasks.clear()
