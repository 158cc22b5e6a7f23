"""Admission-controlled FIFO work queue, one per provider."""

from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar
import asyncio
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class QueueSlot(Generic[T]):
    """A pending caller request waiting for admission."""

    word: str
    future: "asyncio.Future[T]"


class BoundedWorkQueue(Generic[T]):
    """
    Runs at most ``max_concurrent`` worker calls at once.

    Submissions beyond the cap wait in an unbounded FIFO backlog. Whenever an
    in-flight call finishes, successfully or not, free slots are refilled from
    the backlog in submission order.
    """

    def __init__(
        self,
        worker: Callable[[str], Awaitable[T]],
        max_concurrent: int,
        name: str = "queue",
    ) -> None:
        """
        Initialize the queue.

        Args:
            worker: Coroutine function executed for each admitted word
            max_concurrent: Maximum simultaneous worker calls
            name: Owner name used in logs
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self._worker = worker
        self._max_concurrent = max_concurrent
        self._name = name
        self._backlog: deque[QueueSlot[T]] = deque()
        self._active = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        """Worker calls currently running."""
        return self._active

    @property
    def backlog(self) -> int:
        """Requests waiting for admission."""
        return len(self._backlog)

    def submit(self, word: str) -> "asyncio.Future[T]":
        """
        Enqueue a request.

        Must be called from a running event loop. The returned future
        resolves to the worker result or raises the worker's error.
        """
        loop = asyncio.get_running_loop()
        slot = QueueSlot(word=word, future=loop.create_future())
        self._backlog.append(slot)
        if self._active >= self._max_concurrent:
            logger.debug(
                f"{self._name}: at capacity ({self._active}/{self._max_concurrent}), "
                f"queued '{word}' (backlog {len(self._backlog)})"
            )
        self._pump()
        return slot.future

    async def close(self) -> None:
        """Cancel queued and running calls and wait for them to unwind."""
        while self._backlog:
            self._backlog.popleft().future.cancel()
        running = list(self._tasks)
        for task in running:
            task.cancel()
        await asyncio.gather(*running, return_exceptions=True)

    def _pump(self) -> None:
        """Admit backlog entries until the cap is reached."""
        while self._backlog and self._active < self._max_concurrent:
            slot = self._backlog.popleft()
            if slot.future.cancelled():
                continue
            self._active += 1
            task = asyncio.ensure_future(self._run(slot))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, slot: QueueSlot[T]) -> None:
        try:
            result = await self._worker(slot.word)
        except asyncio.CancelledError:
            slot.future.cancel()
            raise
        except Exception as e:
            if not slot.future.done():
                slot.future.set_exception(e)
        else:
            if not slot.future.done():
                slot.future.set_result(result)
        finally:
            self._active -= 1
            self._pump()
