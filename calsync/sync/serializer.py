"""Single-lane execution of store mutations."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WriteSerializer:
    """Runs enqueued tasks one at a time, in enqueue order.

    Every mutation of the event file is a load-modify-save cycle. Running
    them through one lane means each task sees the result of all tasks
    enqueued before it. A failing task is logged and the lane moves on.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of tasks enqueued but not yet finished."""
        return self._pending

    async def _run(self, task: Callable[[], Awaitable[T]], name: str) -> T:
        try:
            async with self._lock:
                try:
                    return await task()
                except Exception:
                    logger.exception(f"Serialized task {name} failed")
                    raise
        finally:
            self._pending -= 1

    def enqueue(
        self, task: Callable[[], Awaitable[T]], name: str | None = None
    ) -> "asyncio.Task[T]":
        """Schedule ``task`` after every previously enqueued task.

        Must be called from within a running event loop.

        Args:
            task: Zero-argument callable returning an awaitable.
            name: Label used in log messages.

        Returns:
            An asyncio.Task resolving to the task's result, or raising
            its exception.
        """
        self._pending += 1
        label = name or getattr(task, "__name__", "task")
        return asyncio.ensure_future(self._run(task, label))

    async def run(self, task: Callable[[], Awaitable[T]], name: str | None = None) -> T:
        """Enqueue ``task`` and wait for its result.

        Cancelling the caller does not cancel the task: a half-finished
        save keeps the lane until it completes.
        """
        return await asyncio.shield(self.enqueue(task, name))
