"""Dedicated thread pool for blocking work called from async code.

Synchronous persist callables (ORM sessions, file writers...) must never run
on the event loop. They are handed to ``BlockingExecutor.run`` instead, which
owns its own pool so it cannot starve the loop's default executor.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from quant_loader.infrastructure.observability import get_infrastructure_logger

T = TypeVar("T")

log = get_infrastructure_logger("blocking-executor")


class BlockingExecutor:
    """Run blocking callables on a bounded thread pool."""

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "loader-blocking"):
        self.max_workers = max_workers
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._closed = False

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute ``fn(*args, **kwargs)`` on the pool and await its result.

        Exceptions raised by ``fn`` propagate to the awaiting caller.
        """
        if self._closed:
            raise RuntimeError("BlockingExecutor is shut down")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._pool, functools.partial(fn, *args, **kwargs)
        )

    def shutdown(self, wait: bool = True) -> None:
        if not self._closed:
            self._closed = True
            self._pool.shutdown(wait=wait)
            log.debug("executor_shutdown", max_workers=self.max_workers)

    def __enter__(self) -> "BlockingExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
