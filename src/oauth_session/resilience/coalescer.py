"""
Request coalescing for concurrent callers of a single async operation.

A RequestCoalescer guarantees that however many coroutines call run()
while an operation is in flight, the underlying producer executes once and
every caller receives the same outcome (value or exception).

Lifecycle of one busy period:
    1. First run() while idle becomes the leader and starts the producer
       as a task.
    2. Every run() arriving before the task finishes becomes a waiter and
       awaits the same task. Waiters never start a new execution.
    3. When the producer finishes, the coalescer is reset to idle before any
       caller resumes, then the outcome is delivered to all of them.
    4. The next run() starts a brand-new execution; outcomes are never reused.

Cancellation:
    Cancelling a caller only abandons that caller's wait. The shared task is
    shielded and keeps running so remaining waiters still get the outcome.

Example:
    >>> coalescer = RequestCoalescer("token_refresh")
    >>> results = await asyncio.gather(*(coalescer.run(fetch) for _ in range(5)))
    >>> coalescer.executions
    1
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestCoalescer(Generic[T]):
    """
    Lazy async queue: at most one producer execution in flight at a time.

    Not thread-safe; intended for callers sharing one event loop.
    """

    def __init__(self, name: str = "coalescer"):
        self.name = name
        self._task: asyncio.Task[T] | None = None
        self._waiter_count = 0
        self._executions = 0

    @property
    def busy(self) -> bool:
        """Whether an execution is currently in flight."""
        return self._task is not None

    @property
    def waiter_count(self) -> int:
        """Callers that joined the current busy period after the leader."""
        return self._waiter_count if self._task is not None else 0

    @property
    def executions(self) -> int:
        """Total number of producer executions started."""
        return self._executions

    async def run(self, producer: Callable[[], Awaitable[T]]) -> T:
        """
        Run producer, or join the execution already in flight.

        Args:
            producer: Zero-argument coroutine function. Ignored when joining
                an in-flight execution.

        Returns:
            The outcome of the single execution for this busy period.

        Raises:
            Whatever the producer raised, identically for every caller.
        """
        task = self._task
        if task is None:
            task = self._start(producer)
        else:
            self._waiter_count += 1
            logger.debug(
                "Joining in-flight %s as waiter",
                self.name,
                extra={"operation": self.name, "waiters": self._waiter_count},
            )

        return await asyncio.shield(task)

    def _start(self, producer: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        self._executions += 1
        self._waiter_count = 0
        task = asyncio.ensure_future(self._execute(producer))
        task.add_done_callback(self._retrieve_outcome)
        self._task = task
        logger.debug(
            "Started %s execution",
            self.name,
            extra={"operation": self.name, "executions": self._executions},
        )
        return task

    async def _execute(self, producer: Callable[[], Awaitable[T]]) -> T:
        try:
            return await producer()
        finally:
            # Back to idle before callers resume; a later run() starts fresh
            waiters = self._waiter_count
            self._task = None
            logger.debug(
                "Finished %s execution",
                self.name,
                extra={"operation": self.name, "waiters": waiters},
            )

    def _retrieve_outcome(self, task: "asyncio.Task[T]") -> None:
        # Every caller may have been cancelled; mark the exception retrieved
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(
                "%s execution failed: %s",
                self.name,
                type(exc).__name__,
                extra={"operation": self.name, "error_type": type(exc).__name__},
            )


__all__ = ["RequestCoalescer"]
