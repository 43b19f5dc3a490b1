"""
Host capabilities consumed by the task queue.

The queue never touches timers or the event loop directly. It asks its host
to schedule a callback after a delay, to cancel such a callback, to report
whether the host is currently busy, and to start background coroutines.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class AsyncioHost:
    """
    Host backed by an asyncio event loop.

    Args:
        loop: Loop to schedule on. When omitted, the running loop is used
            at call time.
        contention_probe: Callable reporting whether the loop is busy with
            higher priority work. Defaults to never contended.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        contention_probe: Optional[Callable[[], bool]] = None
    ):
        self._loop = loop
        self._contention_probe = contention_probe
        self._tasks: Set[asyncio.Future] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()

    def is_contended(self) -> bool:
        if self._contention_probe is None:
            return False
        return bool(self._contention_probe())

    async def sleep(self, delay_ms: float) -> None:
        await asyncio.sleep(delay_ms / 1000)

    def spawn(self, awaitable: Awaitable) -> asyncio.Future:
        """
        Start an awaitable in the background.

        A strong reference is kept until it finishes, and failures are
        logged rather than left unretrieved.
        """
        future = asyncio.ensure_future(awaitable, loop=self.loop)
        self._tasks.add(future)
        future.add_done_callback(self._on_done)
        return future

    def start(self, coroutine_function: Callable[..., Awaitable], *args: Any) -> asyncio.Future:
        """
        Create a coroutine and spawn it.

        Raises:
            RuntimeError: If there is no loop to run on. The coroutine is
                not created in that case.
        """
        loop = self.loop
        future = loop.create_task(coroutine_function(*args))
        self._tasks.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: asyncio.Future) -> None:
        self._tasks.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Background task failed: {error}", exc_info=error)
