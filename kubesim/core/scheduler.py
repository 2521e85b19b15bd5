"""Timer services with explicit cancellation handles.

Every delayed side effect in the engine (reconciliation ticks, pod promotion,
deletion grace periods) is registered through a ``Scheduler`` and represented by
a ``ScheduledTask`` handle. Owners keep their handles and cancel them on
disposal, so no callback can fire against torn-down state.
"""

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Set, Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)

Callback = Callable[[], None]


class ScheduledTask:
    """Handle for a single delayed callback."""

    def __init__(self, scheduler: "Scheduler", due: float, callback: Callback, name: str = ""):
        self._scheduler = scheduler
        self.due = due
        self.callback = callback
        self.name = name
        self.cancelled = False
        self.done = False
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.done)

    def cancel(self) -> bool:
        """Cancel the task; returns False if it already ran or was cancelled."""
        if not self.pending:
            return False
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        self._scheduler._forget(self)
        return True

    def _run(self) -> None:
        if not self.pending:
            return
        self.done = True
        self._scheduler._forget(self)
        self.callback()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "done" if self.done else "pending"
        return f"<ScheduledTask {self.name or self.callback!r} due={self.due:.3f} {state}>"


class Scheduler(ABC):
    """Base class for timer services."""

    def __init__(self):
        self._tasks: Set[ScheduledTask] = set()

    @abstractmethod
    def now(self) -> float:
        """Current time on this scheduler's clock, in seconds."""

    @abstractmethod
    def _arm(self, task: ScheduledTask, delay: float) -> None:
        """Arrange for ``task._run`` to be called after ``delay`` seconds."""

    def call_later(self, delay: float, callback: Callback, name: str = "") -> ScheduledTask:
        """Run ``callback`` once after ``delay`` seconds."""
        delay = max(0.0, delay)
        task = ScheduledTask(self, self.now() + delay, callback, name)
        self._tasks.add(task)
        self._arm(task, delay)
        return task

    def cancel_all(self) -> int:
        """Cancel every pending task; returns how many were cancelled."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.debug(f"Cancelled {len(tasks)} pending task(s)")
        return len(tasks)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def _forget(self, task: ScheduledTask) -> None:
        self._tasks.discard(task)


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler; time only moves when ``advance`` is called."""

    def __init__(self, start: float = 0.0):
        super().__init__()
        self._now = start
        self._queue: List[Tuple[float, int, ScheduledTask]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def _arm(self, task: ScheduledTask, delay: float) -> None:
        heapq.heappush(self._queue, (task.due, next(self._counter), task))

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every task that falls due on the way.

        Tasks scheduled by callbacks during the advance run too if their due time
        is inside the window. Returns the number of callbacks run.
        """
        target = self._now + max(0.0, seconds)
        ran = 0

        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            if not task.pending:
                continue
            self._now = max(self._now, due)
            try:
                task._run()
            except Exception as e:
                logger.error(f"Scheduled task {task!r} failed: {e}")
            ran += 1

        self._now = target
        return ran

    def advance_to(self, timestamp: float) -> int:
        """Advance the clock to an absolute time."""
        return self.advance(timestamp - self._now)


class WallClockScheduler(ManualScheduler):
    """Manual scheduler whose clock can be caught up with real elapsed time.

    Used by blocking front ends (an interactive shell) that cannot run an event
    loop while waiting for input.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._origin = clock()
        super().__init__(start=0.0)

    def catch_up(self) -> int:
        """Run everything that became due since the last catch-up."""
        return self.advance_to(self._clock() - self._origin)


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__()
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def _arm(self, task: ScheduledTask, delay: float) -> None:
        task._timer = self._loop.call_later(delay, task._run)
