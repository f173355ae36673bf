"""Cooperative scheduler for debounced work.

There is no background thread: tasks become due on the scheduler's clock and
run when the owner calls ``run_due`` (at the start of every session event) or
``flush`` (run everything pending regardless of time). Each task has a handle
that can be cancelled before it runs; keyed scheduling replaces the pending
task for the same key, which is what debouncing needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import itertools
import logging
import time

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class ScheduledTask:
    key: str
    due_at: float
    callback: Callable[[], Any]
    seq: int
    cancelled: bool = False
    done: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.done)


@dataclass
class CooperativeScheduler:
    clock: Clock = monotonic_ms
    _tasks: Dict[str, ScheduledTask] = field(default_factory=dict)
    _seq: Any = field(default_factory=itertools.count)

    def call_later(self, key: str, delay_ms: float, callback: Callable[[], Any]) -> ScheduledTask:
        """Schedule ``callback`` after ``delay_ms``; cancels any pending task for ``key``."""
        previous = self._tasks.get(key)
        if previous is not None and previous.pending:
            previous.cancel()
            logger.debug("scheduler_restart key=%s", key)
        task = ScheduledTask(
            key=key,
            due_at=self.clock() + max(0.0, float(delay_ms)),
            callback=callback,
            seq=next(self._seq),
        )
        self._tasks[key] = task
        return task

    def cancel(self, key: str) -> bool:
        task = self._tasks.pop(key, None)
        if task is None or not task.pending:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> int:
        count = 0
        for task in self._tasks.values():
            if task.pending:
                task.cancel()
                count += 1
        self._tasks.clear()
        return count

    def pending_keys(self) -> List[str]:
        return [key for key, task in self._tasks.items() if task.pending]

    def next_due_at(self) -> Optional[float]:
        due = [task.due_at for task in self._tasks.values() if task.pending]
        return min(due) if due else None

    def _run(self, tasks: List[ScheduledTask]) -> int:
        ran = 0
        for task in sorted(tasks, key=lambda t: (t.due_at, t.seq)):
            # a callback may cancel or replace later tasks
            if not task.pending:
                continue
            task.done = True
            if self._tasks.get(task.key) is task:
                del self._tasks[task.key]
            task.callback()
            ran += 1
        return ran

    def run_due(self) -> int:
        """Run every pending task whose due time has passed; returns the count run."""
        now = self.clock()
        return self._run([t for t in self._tasks.values() if t.pending and t.due_at <= now])

    def flush(self, max_rounds: int = 50) -> int:
        """Run every pending task now, including tasks scheduled while flushing.

        Stops after ``max_rounds`` passes so tasks that keep rescheduling each
        other cannot spin forever; whatever is left stays pending.
        """
        total = 0
        for _ in range(max_rounds):
            pending = [t for t in self._tasks.values() if t.pending]
            if not pending:
                return total
            total += self._run(pending)
        logger.warning("scheduler_flush_limit rounds=%s pending=%s", max_rounds, self.pending_keys())
        return total


__all__ = ["Clock", "monotonic_ms", "ScheduledTask", "CooperativeScheduler"]
