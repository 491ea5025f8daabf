"""
Scheduling primitives for the orchestrator.

All orchestrator logic runs on one event loop. Collaborator threads and
timers never touch state directly: they hand a callback to the scheduler,
which runs it on the loop thread.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from typing import Any, Callable, Optional, Set

logger = logging.getLogger("timers")

# Called with (result, None) on success or (None, error) on failure/timeout
CompletionCallback = Callable[[Any, Optional[BaseException]], None]


class Scheduler(ABC):
    """Clock, timers and blocking-call offload for the orchestrator."""

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        """Run `callback` after `delay` seconds. Returns a handle with `cancel()`."""

    @abstractmethod
    def call_soon(self, callback: Callable[[], None]) -> None:
        """Run `callback` on the loop thread. Safe to call from any thread."""

    @abstractmethod
    def run_blocking(self, func: Callable[[], Any], timeout: Optional[float],
                     on_done: CompletionCallback) -> None:
        """Run a blocking `func` off the loop, then report back on the loop."""


class AsyncioScheduler(Scheduler):
    """Scheduler backed by a running asyncio event loop."""

    def __init__(self,
                 loop: Optional[asyncio.AbstractEventLoop] = None,
                 executor: Optional[Executor] = None):
        self.loop = loop or asyncio.get_running_loop()
        self.executor = executor
        self._tasks: Set[asyncio.Task] = set()

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)

    def call_soon(self, callback: Callable[[], None]) -> None:
        self.loop.call_soon_threadsafe(callback)

    def run_blocking(self, func: Callable[[], Any], timeout: Optional[float],
                     on_done: CompletionCallback) -> None:
        task = self.loop.create_task(self._run(func, timeout, on_done))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, func: Callable[[], Any], timeout: Optional[float],
                   on_done: CompletionCallback) -> None:
        result, error = None, None
        try:
            future = self.loop.run_in_executor(self.executor, func)
            result = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Blocking call timed out after {timeout}s")
            error = TimeoutError(f"timed out after {timeout}s")
        except Exception as e:
            error = e

        try:
            on_done(result, error)
        except Exception:
            logger.exception("Completion callback for blocking call failed")

    async def drain(self) -> None:
        """Wait for every in-flight blocking call to report back."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
