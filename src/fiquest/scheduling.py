"""One-shot and recurring callbacks behind a small scheduler interface.

Production code uses :class:`ThreadingScheduler` (daemon timers). Tests use
:class:`ManualScheduler`, whose clock only moves when ``advance`` is called.
A callback that raises is logged and never propagates into the scheduler.
"""
from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], Any]


class ScheduledTask:
    """Handle for a scheduled callback. ``cancel`` is safe to call at any time."""

    def __init__(self, callback: Callback, interval: Optional[float] = None, name: str = "") -> None:
        self.callback = callback
        self.interval = interval
        self.name = name or getattr(callback, "__name__", "task")
        self.cancelled = False
        self.fire_count = 0

    @property
    def recurring(self) -> bool:
        return self.interval is not None

    @property
    def done(self) -> bool:
        return self.cancelled or (not self.recurring and self.fire_count > 0)

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> None:
        if self.cancelled:
            return
        self.fire_count += 1
        try:
            self.callback()
        except Exception:  # noqa: BLE001 - timers have no caller to report to
            logger.exception("Scheduled task %s failed", self.name)


class Scheduler(ABC):
    @abstractmethod
    def call_later(self, delay: float, callback: Callback, name: str = "") -> ScheduledTask:
        """Run ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def call_every(self, interval: float, callback: Callback, name: str = "") -> ScheduledTask:
        """Run ``callback`` every ``interval`` seconds until cancelled."""

    def shutdown(self) -> None:
        """Release any resources; pending tasks are dropped."""


def _check_interval(interval: float) -> None:
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")


class _TimerTask(ScheduledTask):
    def __init__(self, callback: Callback, interval: Optional[float], name: str) -> None:
        super().__init__(callback, interval, name)
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def arm(self, delay: float) -> None:
        with self._lock:
            if self.cancelled:
                return
            timer = threading.Timer(delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self) -> None:
        self.run()
        if self.recurring:
            self.arm(self.interval)

    def cancel(self) -> None:
        super().cancel()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Each task gets its own daemon ``threading.Timer``; recurring tasks re-arm after firing."""

    def __init__(self) -> None:
        self._tasks: List[_TimerTask] = []
        self._lock = threading.Lock()

    def _track(self, task: _TimerTask) -> _TimerTask:
        with self._lock:
            self._tasks = [t for t in self._tasks if not t.done]
            self._tasks.append(task)
        return task

    def call_later(self, delay: float, callback: Callback, name: str = "") -> ScheduledTask:
        task = self._track(_TimerTask(callback, None, name))
        logger.debug("Scheduling %s in %.3fs", task.name, delay)
        task.arm(max(0.0, delay))
        return task

    def call_every(self, interval: float, callback: Callback, name: str = "") -> ScheduledTask:
        _check_interval(interval)
        task = self._track(_TimerTask(callback, interval, name))
        logger.debug("Scheduling %s every %.3fs", task.name, interval)
        task.arm(interval)
        return task

    def shutdown(self) -> None:
        with self._lock:
            tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()


class _ManualTask(ScheduledTask):
    def __init__(self, callback: Callback, due: float, interval: Optional[float], name: str, seq: int) -> None:
        super().__init__(callback, interval, name)
        self.due = due
        self.seq = seq


class ManualScheduler(Scheduler):
    """Virtual-time scheduler: nothing fires until ``advance`` moves the clock past it."""

    def __init__(self) -> None:
        self.time = 0.0
        self._tasks: List[_ManualTask] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callback, name: str = "") -> ScheduledTask:
        task = _ManualTask(callback, self.time + max(0.0, delay), None, name, next(self._seq))
        self._tasks.append(task)
        return task

    def call_every(self, interval: float, callback: Callback, name: str = "") -> ScheduledTask:
        _check_interval(interval)
        task = _ManualTask(callback, self.time + interval, interval, name, next(self._seq))
        self._tasks.append(task)
        return task

    @property
    def pending(self) -> List[ScheduledTask]:
        return [t for t in self._tasks if not t.cancelled]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due tasks in time order. Returns how many ran."""
        target = self.time + seconds
        ran = 0
        while True:
            due = [t for t in self._tasks if not t.cancelled and t.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t.due, t.seq))
            self.time = task.due
            if task.recurring:
                task.due += task.interval
            else:
                self._tasks.remove(task)
            task.run()
            ran += 1
        self.time = target
        self._tasks = [t for t in self._tasks if not t.cancelled]
        return ran

    def shutdown(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()


class TaskGroup:
    """One-shot tasks owned by a single operation, cancelled together."""

    def __init__(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler
        self._tasks: List[ScheduledTask] = []

    def call_later(self, delay: float, callback: Callback, name: str = "") -> ScheduledTask:
        self._tasks = [t for t in self._tasks if not t.done]
        task = self.scheduler.call_later(delay, callback, name)
        self._tasks.append(task)
        return task

    @property
    def pending(self) -> List[ScheduledTask]:
        return [t for t in self._tasks if not t.done]

    def cancel_all(self) -> int:
        pending = self.pending
        for task in pending:
            task.cancel()
        self._tasks.clear()
        if pending:
            logger.debug("Cancelled %s pending task(s)", len(pending))
        return len(pending)
