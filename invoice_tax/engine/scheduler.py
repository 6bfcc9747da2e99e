"""Keyed debounce scheduler on the running asyncio loop"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Hashable, Optional, Set

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """
    schedule(key, delay_ms, fn) runs fn once the key has been quiet for delay_ms.

    Scheduling again under the same key cancels the pending call. Coroutine
    functions are started as tasks when the timer fires; those tasks are
    tracked so close() can cancel them too.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._timers: Dict[Hashable, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def accepting(self) -> bool:
        """False once closed, or when no event loop is available for timers"""
        if self._closed:
            return False
        if self._loop is not None:
            return not self._loop.is_closed()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def schedule(self, key: Hashable, delay_ms: float, fn: Callable[[], Any]) -> None:
        if self._closed:
            raise RuntimeError("scheduler is closed")
        self.cancel(key)
        self._timers[key] = self.loop.call_later(delay_ms / 1000.0, self._fire, key, fn)

    def cancel(self, key: Hashable) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, key: Hashable) -> bool:
        return key in self._timers

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    async def drain(self) -> None:
        """Wait for tasks started by fired timers"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self._closed = True
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()

    def _fire(self, key: Hashable, fn: Callable[[], Any]) -> None:
        self._timers.pop(key, None)
        result = fn()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Debounced task failed: {task.exception()!r}")
