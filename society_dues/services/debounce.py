"""Debounced execution of an async action on the running event loop."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Run an async action once a quiet period has passed since the last schedule().

    At most one timer is outstanding: schedule() cancels a timer that has not fired
    yet and starts a new one. An action that has already started is never
    cancelled; runs are serialized so a later run starts after an earlier one ends.
    """

    def __init__(self, delay: float, action: Callable[[], Awaitable[None]]):
        """Initialize the debouncer.

        Args:
            delay: Quiet period in seconds
            action: Coroutine function run when the timer fires
        """
        self.delay = delay
        self._action = action
        self._lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a timer is waiting to fire."""
        return self._timer is not None and not self._timer.done()

    def schedule(self) -> None:
        """(Re)start the quiet period. Requires a running event loop."""
        self._cancel_timer()
        self._timer = asyncio.create_task(self._wait_then_run())

    async def flush(self) -> None:
        """Run a pending action now and wait for every started run to finish."""
        if self.pending:
            self._cancel_timer()
            await self._run()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def cancel(self) -> None:
        """Drop a pending action without running it."""
        timer = self._timer
        self._cancel_timer()
        if timer is not None:
            await asyncio.gather(timer, return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _wait_then_run(self) -> None:
        await asyncio.sleep(self.delay)
        task = asyncio.current_task()
        # From here on the run belongs to _running and can no longer be cancelled
        self._timer = None
        if task is not None:
            self._running.add(task)
        try:
            await self._run()
        finally:
            if task is not None:
                self._running.discard(task)

    async def _run(self) -> None:
        async with self._lock:
            try:
                await self._action()
            except Exception as e:
                logger.error("Debounced action failed: %s", e, exc_info=True)


__all__ = ["Debouncer"]
