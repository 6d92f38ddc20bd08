"""Bounded-concurrency, order-preserving task runner.

A fixed number of worker coroutines pull ``(index, item)`` pairs from a
shared queue and record each outcome on the ``Task`` at that index, so
results always come back in input order regardless of completion order.

Failures are isolated per item: an exception raised by ``fn``, including
a ``CancelledError`` it raises itself, is stored on that item's ``Task``
and never affects its siblings.  Cancellation is cooperative: once the
``cancel`` event is set, workers stop taking new items; items already
running are allowed to finish.

Synchronous (blocking) callables are adapted with ``run_in_thread``,
which moves each call onto the default thread pool via
``asyncio.to_thread``.

Example::

    pool = WorkerPool(workers=4)
    tasks = await process(pool, page_ids, run_in_thread(client.get_page))
    summary = BatchSummary.from_tasks(tasks)
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class WorkerPool:
    """Concurrency limit for batch processing.

    Args:
        workers: Maximum simultaneous executions; values below 1 are
            coerced to 1.
    """

    def __init__(self, workers: int = 4) -> None:
        self.workers = max(1, workers)

    def __repr__(self) -> str:
        return f"WorkerPool(workers={self.workers})"


@dataclass
class Task(Generic[T, R]):
    """Outcome of processing one input.

    Attributes:
        input: The original input item.
        result: Value returned by ``fn`` (``None`` on failure or skip).
        error: Exception raised by ``fn``, if any.
        done: ``False`` if the item was never started (cancelled batch).
    """

    input: T
    result: R | None = None
    error: BaseException | None = None
    done: bool = False

    @property
    def ok(self) -> bool:
        return self.done and self.error is None


@dataclass(frozen=True)
class BatchSummary:
    """Succeeded / failed / skipped counts for a processed batch."""

    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.skipped

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task[Any, Any]]) -> BatchSummary:
        succeeded = failed = skipped = 0
        for task in tasks:
            if not task.done:
                skipped += 1
            elif task.error is not None:
                failed += 1
            else:
                succeeded += 1
        return cls(succeeded=succeeded, failed=failed, skipped=skipped)


def run_in_thread(fn: Callable[[T], R]) -> Callable[[T], Awaitable[R]]:
    """Adapt a blocking single-argument callable for the runner."""

    @functools.wraps(fn)
    async def wrapper(item: T) -> R:
        return await asyncio.to_thread(fn, item)

    return wrapper


async def process(
    pool: WorkerPool,
    inputs: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    cancel: asyncio.Event | None = None,
) -> list[Task[T, R]]:
    """Run *fn* over *inputs* with at most ``pool.workers`` in flight.

    Args:
        pool: Concurrency limit.
        inputs: Items to process.
        fn: Async callable invoked once per item.
        cancel: Once set, no new items are started.

    Returns:
        One ``Task`` per input, in input order.  Empty input returns an
        empty list.
    """
    return await process_with_progress(pool, inputs, fn, None, cancel)


async def process_with_progress(
    pool: WorkerPool,
    inputs: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    progress: ProgressCallback | None,
    cancel: asyncio.Event | None = None,
) -> list[Task[T, R]]:
    """Like ``process``, reporting ``progress(completed, total)``.

    The callback runs once per completed item, from a single collecting
    coroutine, so it is never invoked concurrently with itself.
    """
    items = list(inputs)
    if not items:
        return []

    tasks: list[Task[T, R]] = [Task(input=item) for item in items]
    pending: asyncio.Queue[tuple[int, T]] = asyncio.Queue()
    for index, item in enumerate(items):
        pending.put_nowait((index, item))
    finished: asyncio.Queue[int | None] = asyncio.Queue()

    async def worker() -> None:
        while cancel is None or not cancel.is_set():
            try:
                index, item = pending.get_nowait()
            except asyncio.QueueEmpty:
                return
            task = tasks[index]
            try:
                task.result = await fn(item)
            except asyncio.CancelledError as exc:
                # Only a cancellation aimed at this worker stops the batch;
                # one raised by fn itself is that item's failure.
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                logger.debug("Task %d cancelled itself", index)
                task.error = exc
            except Exception as exc:
                logger.debug("Task %d failed: %s", index, exc)
                task.error = exc
            task.done = True
            finished.put_nowait(index)

    async def run_workers() -> None:
        count = min(pool.workers, len(items))
        try:
            await asyncio.gather(*(worker() for _ in range(count)))
        finally:
            finished.put_nowait(None)

    runner = asyncio.ensure_future(run_workers())
    total = len(items)
    completed = 0
    try:
        while True:
            if await finished.get() is None:
                break
            completed += 1
            if progress is not None:
                progress(completed, total)
    finally:
        if not runner.done():
            runner.cancel()
    await runner

    if completed < total:
        logger.info(
            "Batch cancelled: %d of %d items not started",
            total - completed,
            total,
        )
    return tasks
