"""
Bounded-concurrency batch execution.

Items are split into chunks of ``batch_size``; within a chunk at most
``max_concurrent`` transforms are in flight at once. Chunks run one after
another with ``batch_delay_seconds`` between them.

Usage:
    >>> processor = BatchProcessor(BatchConfig(batch_size=50, max_concurrent=5))
    >>> result = await processor.run(symbols, fetch_overview)
    >>> result.success_count, result.failure_count
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from quant_loader.ingestion.config.value_objects import BatchConfig
from quant_loader.infrastructure.observability import get_ingestion_logger

T = TypeVar("T")
R = TypeVar("R")


def create_batches(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    if size < 1:
        raise ValueError("Batch size must be >= 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


@dataclass
class BatchFailure(Generic[T]):
    """An input that failed, with its position in the original sequence."""

    index: int
    item: T
    error: BaseException


@dataclass
class BatchResult(Generic[R]):
    successes: list[R] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def total_processed(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Fraction of processed items that succeeded (0.0 when nothing ran)."""
        if self.total_processed == 0:
            return 0.0
        return self.success_count / self.total_processed


class BatchProcessor:
    """Runs an async transform over many items with a concurrency bound.

    With ``continue_on_error`` every item is attempted and each input
    lands in exactly one of ``successes`` / ``failures``. Without it, the
    first failure (in completion order) stops dispatch: queued items never
    start, in-flight ones finish and are discarded, and the error is
    re-raised to the caller.
    """

    def __init__(self, config: BatchConfig | None = None):
        self.config = config or BatchConfig()
        self.log = get_ingestion_logger("batch-processor")

    async def run(
        self,
        items: Iterable[T],
        transform: Callable[[T], Awaitable[R]],
        *,
        is_fatal: Callable[[BaseException], bool] | None = None,
        prepare: Callable[[T], Awaitable[R | None]] | None = None,
    ) -> BatchResult[R]:
        """
        Args:
            items: Inputs, processed in chunks of ``batch_size``
            transform: Async callable applied to each input
            is_fatal: Errors for which this returns True abort the run even
                when ``continue_on_error`` is set
            prepare: Async callable run before a concurrency slot is taken;
                a non-None result stands in for ``transform`` (e.g. a cache hit)

        Raises:
            Exception: the aborting failure, unchanged
        """
        indexed = list(enumerate(items))
        batches = create_batches(indexed, self.config.batch_size)
        collected: list[tuple[int, R]] = []
        result: BatchResult[R] = BatchResult()

        self.log.debug(
            "batch_run_started",
            items=len(indexed),
            batches=len(batches),
            max_concurrent=self.config.max_concurrent,
        )

        semaphore = asyncio.Semaphore(self.config.max_concurrent)
        try:
            for number, batch in enumerate(batches, start=1):
                await self._run_batch(
                    batch, transform, semaphore, collected, result, is_fatal, prepare
                )
                self.log.debug(
                    "batch_complete",
                    batch=number,
                    of=len(batches),
                    successes=len(collected),
                    failures=len(result.failures),
                )
                if number < len(batches) and self.config.batch_delay_seconds > 0:
                    await asyncio.sleep(self.config.batch_delay_seconds)
        finally:
            collected.sort(key=lambda pair: pair[0])
            result.successes = [value for _, value in collected]
            result.failures.sort(key=lambda failure: failure.index)

        self.log.info(
            "batch_run_complete",
            successes=result.success_count,
            failures=result.failure_count,
            success_rate=round(result.success_rate, 4),
        )
        return result

    async def _run_batch(
        self,
        batch: list[tuple[int, T]],
        transform: Callable[[T], Awaitable[R]],
        semaphore: asyncio.Semaphore,
        collected: list[tuple[int, R]],
        result: BatchResult[R],
        is_fatal: Callable[[BaseException], bool] | None,
        prepare: Callable[[T], Awaitable[R | None]] | None = None,
    ) -> None:
        aborted: list[BaseException] = []

        async def gated(item: T) -> R | None:
            async with semaphore:
                # Slot acquired after an abort: never start the item.
                if aborted:
                    return None
                return await transform(item)

        async def worker(index: int, item: T) -> None:
            if aborted:
                return
            try:
                value = await prepare(item) if prepare is not None else None
                if value is None and not aborted:
                    value = await gated(item)
            except Exception as e:
                fatal = is_fatal is not None and is_fatal(e)
                if not self.config.continue_on_error or fatal:
                    if not aborted:
                        aborted.append(e)
                        self.log.warning(
                            "batch_aborted", index=index, error=str(e), fatal=fatal
                        )
                    return
                if not aborted:
                    result.failures.append(BatchFailure(index, item, e))
                return
            if not aborted:
                collected.append((index, value))

        await asyncio.gather(*(worker(index, item) for index, item in batch))

        if aborted:
            raise aborted[0]


__all__ = [
    "BatchFailure",
    "BatchProcessor",
    "BatchResult",
    "create_batches",
]
