"""
Scheduler - delayed callbacks behind an injectable interface.

The connection manager never sleeps itself; it asks a scheduler to run a
coroutine later. Production uses the running asyncio loop, tests substitute
a manual scheduler and fire timers explicitly.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Set

from lodgebot.core.logger import get_logger

logger = get_logger(__name__)

DelayedCallback = Callable[[], Awaitable[None]]


class ScheduledHandle(ABC):
    """Handle for a pending delayed callback."""

    @abstractmethod
    def cancel(self) -> None:
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class IScheduler(ABC):

    @abstractmethod
    def call_later(self, delay_seconds: float, callback: DelayedCallback) -> ScheduledHandle:
        """Run ``callback()`` once after ``delay_seconds``."""
        pass


class _AsyncioHandle(ScheduledHandle):

    def __init__(self, scheduler: 'AsyncioScheduler'):
        self._scheduler = scheduler
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(IScheduler):
    """Schedules callbacks on the running event loop and keeps their tasks referenced."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def call_later(self, delay_seconds: float, callback: DelayedCallback) -> ScheduledHandle:
        loop = asyncio.get_running_loop()
        handle = _AsyncioHandle(self)

        def _fire():
            if handle.cancelled:
                return
            task = loop.create_task(callback())
            handle._task = task
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

        handle._timer = loop.call_later(max(0.0, delay_seconds), _fire)
        return handle

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("scheduler.callback_failed", {
                "error": str(exc),
                "error_type": type(exc).__name__
            })

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)
