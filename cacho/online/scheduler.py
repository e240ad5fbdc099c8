"""
scheduler.py
Timed transitions of a room: bot thinking pauses, reveal pacing and the round-over pause.
One TransitionScheduler per room; closing it guarantees nothing fires afterwards.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Set

logger = logging.getLogger(__name__)

TransitionFactory = Callable[[], Awaitable[None]]


class TransitionScheduler:
    """
    Keeps at most one pending timer per key on the running event loop.
    When a timer fires, the factory's coroutine runs as a task owned by the scheduler.
    """
    def __init__(self):
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self, key: str, delay: float, factory: TransitionFactory) -> None:
        """
        Run 'factory()' after 'delay' seconds, replacing any timer already pending under 'key'.
        """
        if self._closed:
            logger.debug("Scheduler closed, dropping transition %s", key)
            return
        self.cancel(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(max(0.0, delay), self._fire, key, factory)

    def cancel(self, key: str) -> None:
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def pending(self, key: str) -> bool:
        return key in self._handles

    def _fire(self, key: str, factory: TransitionFactory) -> None:
        self._handles.pop(key, None)
        if self._closed:
            return
        task = asyncio.ensure_future(factory())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled transition failed", exc_info=exc)

    async def close(self) -> None:
        """Cancel every pending timer and running transition."""
        self._closed = True
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
