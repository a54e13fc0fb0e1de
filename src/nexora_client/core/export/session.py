"""
Polling session.

Owns every timer and task of one export: the poll loop, the watchdog and
the requests they spawn. `cancel()` stops all of them at once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

PollTick = Callable[[int], Coroutine[Any, Any, None]]
WatchdogCallback = Callable[[], None]


class SessionCancelled(Exception):
    """Raised when work is started on a cancelled session."""


class PollingSession:
    """Cancellable scope for one export workflow.

    Poll ticks are numbered with a monotonically increasing generation.
    `accept(generation)` lets a tick apply its result only if no newer
    tick has applied one already.
    """

    def __init__(self, name: str):
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        # Tasks whose outcome is handled by an awaiting caller
        self._awaited: set[asyncio.Task[Any]] = set()
        self._poll_task: asyncio.Task[None] | None = None
        self._watchdog_task: asyncio.Task[None] | None = None
        self._cancelled = False
        self._finished = asyncio.Event()
        self._generation = 0
        self._applied_generation = 0

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"PollingSession({self.name!r}, {state}, tasks={len(self._tasks)})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not self._cancelled

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def watchdog_armed(self) -> bool:
        return self._watchdog_task is not None and not self._watchdog_task.done()

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    # -------------------------------------------------------------------------
    # Generations
    # -------------------------------------------------------------------------

    def next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def accept(self, generation: int) -> bool:
        """Claim the right to apply the result of tick `generation`.

        Returns:
            False if the session is cancelled or a newer tick already applied
        """
        if self._cancelled or generation <= self._applied_generation:
            return False
        self._applied_generation = generation
        return True

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        """Run `coro` as a task owned by this session."""
        if self._cancelled:
            coro.close()
            raise SessionCancelled(f"Session {self.name} is cancelled")

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run `coro` inside the session and wait for its result.

        Raises:
            asyncio.CancelledError: If the session is cancelled meanwhile
        """
        task = self.spawn(coro)
        self._awaited.add(task)
        return await task

    def start_polling(self, interval: float, tick: PollTick) -> None:
        """Call `tick(generation)` every `interval` seconds.

        Ticks do not wait for the previous one to finish.
        """
        if self._poll_task is not None:
            raise RuntimeError(f"Session {self.name} is already polling")

        async def loop() -> None:
            while True:
                await asyncio.sleep(interval)
                self.spawn(tick(self.next_generation()))

        self._poll_task = self.spawn(loop())

    def start_watchdog(self, timeout: float, on_expired: WatchdogCallback) -> None:
        """Call `on_expired()` once after `timeout` seconds unless cancelled first."""
        if self._watchdog_task is not None:
            raise RuntimeError(f"Session {self.name} already has a watchdog")

        async def watchdog() -> None:
            await asyncio.sleep(timeout)
            logger.debug("Watchdog expired for %s", self.name)
            on_expired()

        self._watchdog_task = self.spawn(watchdog())

    def cancel(self) -> None:
        """Stop the poll loop, the watchdog and every in-flight request.

        Idempotent. The task calling `cancel()` is left running so it can
        finish its own bookkeeping.
        """
        if self._cancelled:
            return
        self._cancelled = True

        try:
            current = asyncio.current_task()
        except RuntimeError:
            # Torn down outside the event loop
            current = None
        stopped = 0
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()
                stopped += 1

        self._finished.set()
        logger.debug("Session %s cancelled (%d tasks stopped)", self.name, stopped)

    async def wait(self) -> None:
        """Wait until the session is cancelled."""
        await self._finished.wait()

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task in self._awaited:
            self._awaited.discard(task)
            return
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Task in session %s failed", self.name,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
