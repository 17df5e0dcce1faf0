"""
Request throttle: serialises calls to one external service.

Every submission joins a FIFO queue drained by a single worker task.  The
worker starts a call only after ``min_delay_ms`` has elapsed since the start
of the previous one, and awaits it before moving on, so at most one call is
in flight per throttle regardless of how many coroutines submit.

Each caller gets back exactly what its own task produced: the return value,
or the exception it raised.  A failing task never blocks the queue.

When the queue empties the worker exits; the next ``submit`` starts a new
one.  Nothing polls.

One instance per external service per process, injected where needed:

    throttle = RequestThrottle(min_delay_ms=settings.throttle_min_delay_ms)
    text = await throttle.submit(lambda: client.complete(...))
"""
import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class RequestThrottle:
    def __init__(
        self,
        min_delay_ms: int = 2000,
        *,
        name: str = "completion",
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.name = name
        self._min_delay = min_delay_ms / 1000
        self._clock = clock
        self._sleep = sleep
        # Queue and last dispatch time are only touched under _lock
        self._queue: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._lock = asyncio.Lock()
        self._last_dispatch: float | None = None
        self._worker: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        """Submissions waiting to be dispatched (excludes the one in flight)."""
        return len(self._queue)

    @property
    def is_idle(self) -> bool:
        return self._worker is None or self._worker.done()

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        async with self._lock:
            self._queue.append((task, future))
            if self.is_idle:
                self._worker = asyncio.create_task(self._drain())
        return await future

    async def _next(self) -> tuple[Callable[[], Awaitable[Any]], asyncio.Future, float] | None:
        async with self._lock:
            if not self._queue:
                self._worker = None
                return None
            task, future = self._queue.popleft()
            wait = 0.0
            if self._last_dispatch is not None:
                wait = self._min_delay - (self._clock() - self._last_dispatch)
            return task, future, wait

    async def _drain(self) -> None:
        while True:
            item = await self._next()
            if item is None:
                return
            task, future, wait = item

            if wait > 0:
                logger.debug("Throttle %s: deferring call %.3fs", self.name, wait)
                await self._sleep(wait)

            async with self._lock:
                self._last_dispatch = self._clock()

            # The lock is never held across the call itself
            try:
                result = await task()
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
