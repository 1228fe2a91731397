"""
Loader pipeline: the end-to-end path of one loader run.

    validate -> cache lookup -> (miss) batch slot -> fallback resolve with
    retry/backoff -> cache write -> persist -> process tracking

Per task, the outcome is one of SUCCEEDED (fetched or cached), FAILED or
SKIPPED. Authentication failures and configuration errors abort the whole
run; so does the first failure when ``continue_on_error`` is off.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Collection, Iterable
from typing import Any

from quant_loader.config.state import LoaderSettings
from quant_loader.infrastructure.executors import BlockingExecutor
from quant_loader.infrastructure.observability import get_pipeline_logger
from quant_loader.ingestion.batch.processor import BatchProcessor
from quant_loader.ingestion.cache.store import CacheStore
from quant_loader.ingestion.config.value_objects import BatchConfig, RetryConfig
from quant_loader.ingestion.errors import (
    ConfigurationError,
    ErrorKind,
    UnsupportedEntityError,
    classify,
)
from quant_loader.ingestion.fallback.coordinator import SourceFallbackCoordinator
from quant_loader.ingestion.pipeline.tracker import IProcessTracker
from quant_loader.ingestion.retry import RetryPolicy
from quant_loader.ingestion.tasks import BatchRunResult, FetchTask, TaskOutcome
from quant_loader.shared.models.enums import ProcessState, TaskState
from quant_loader.shared.models.identifiers import (
    DEFAULT_CODEC,
    EntityType,
    IdentifierCodec,
)

PersistFn = Callable[[FetchTask, Any], Any]
Validator = Callable[[FetchTask], None]


def _is_async_callable(fn: Any) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    )


def aborts_run(error: BaseException) -> bool:
    return isinstance(error, ConfigurationError) or classify(error).aborts_run


class LoaderPipeline:
    """Runs fetch tasks through cache, fallback and persistence.

    Args:
        name: Loader name, used for process tracking and cache keys
        coordinator: Vendor fallback
        cache_store: Response cache consulted before any vendor call
        settings: Concurrency, batching, retry and error policy
        tracker: Optional process tracker
        validator: Raises ``UnsupportedEntityError`` for tasks to skip
        supported_types: Entity types this loader accepts (None: all)
        executor: Pool for synchronous persist callables
    """

    def __init__(
        self,
        name: str,
        coordinator: SourceFallbackCoordinator,
        cache_store: CacheStore,
        settings: LoaderSettings | None = None,
        tracker: IProcessTracker | None = None,
        validator: Validator | None = None,
        supported_types: Collection[EntityType] | None = None,
        executor: BlockingExecutor | None = None,
        codec: IdentifierCodec = DEFAULT_CODEC,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.coordinator = coordinator
        self.cache_store = cache_store
        self.settings = settings or LoaderSettings()
        self.tracker = tracker
        self.validator = validator
        self.supported_types = frozenset(supported_types) if supported_types is not None else None
        self.codec = codec
        self.retry_policy = RetryPolicy(RetryConfig.from_settings(self.settings))
        self.batch_processor = BatchProcessor(BatchConfig.from_settings(self.settings))

        self._executor = executor
        self._owns_executor = executor is None
        self._sleep = sleep
        self.log = get_pipeline_logger(loader=name)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    async def run(
        self, tasks: Iterable[FetchTask], persist: PersistFn | None = None
    ) -> BatchRunResult:
        """Process every task and return per-task outcomes.

        Raises:
            AuthenticationFailedError: a vendor rejected our credentials
            ConfigurationError: a task names no source or an unknown one
            LoaderError: first failure, when ``continue_on_error`` is off
        """
        tasks = list(tasks)
        outcomes: dict[int, TaskOutcome] = {}

        run_id = await self.tracker.start(self.name) if self.tracker is not None else None
        self.log.info("run_started", tasks=len(tasks))

        def record(index: int, outcome: TaskOutcome) -> TaskOutcome:
            outcomes[index] = outcome
            if outcome.state is TaskState.FAILED and (
                aborts_run(outcome.error) or not self.settings.continue_on_error
            ):
                raise outcome.error
            return outcome

        async def check(item: tuple[int, FetchTask]) -> TaskOutcome | None:
            index, task = item
            outcome = await self._check(task, persist)
            return None if outcome is None else record(index, outcome)

        async def fetch(item: tuple[int, FetchTask]) -> TaskOutcome:
            index, task = item
            return record(index, await self._fetch(task, persist))

        result = BatchRunResult()
        try:
            await self.batch_processor.run(
                enumerate(tasks), fetch, is_fatal=aborts_run, prepare=check
            )
        except Exception as e:
            result.outcomes = [outcomes[i] for i in sorted(outcomes)]
            self.log.error(
                "run_aborted",
                error=str(e),
                kind=classify(e).value,
                completed=len(outcomes),
                total=len(tasks),
            )
            await self._complete_tracking(run_id, ProcessState.FAILED, result, str(e))
            raise
        finally:
            self._shutdown_executor()

        result.outcomes = [outcomes[i] for i in sorted(outcomes)]
        state = result.state
        message = None
        if result.failed:
            message = f"{result.failed} of {result.total} tasks failed"
        await self._complete_tracking(run_id, state, result, message)

        self.log.info("run_complete", **result.summary())
        return result

    # ILoader
    load = run

    async def _complete_tracking(
        self,
        run_id: int | None,
        state: ProcessState,
        result: BatchRunResult,
        message: str | None,
    ) -> None:
        if self.tracker is not None and run_id is not None:
            await self.tracker.complete(
                run_id, state, records_processed=result.succeeded, error_message=message
            )

    # ------------------------------------------------------------------
    # Per task
    # ------------------------------------------------------------------
    def cache_key(self, task: FetchTask) -> str:
        return CacheStore.request_key(
            self.name, task.entity_id, task.canonical_symbol, task.request
        )

    def _validate(self, task: FetchTask) -> str | None:
        """Reason to skip the task, or None."""
        if self.supported_types is not None:
            entity_type = self.codec.decode(task.entity_id).entity_type
            if entity_type not in self.supported_types:
                return f"{entity_type.value} is not supported by {self.name}"
        if self.validator is not None:
            try:
                self.validator(task)
            except UnsupportedEntityError as e:
                return str(e)
        return None

    async def _check(self, task: FetchTask, persist: PersistFn | None) -> TaskOutcome | None:
        """Outcome settled without a vendor call (skip or cache hit), else None.

        Runs before the task takes a concurrency slot.
        """
        try:
            reason = self._validate(task)
        except Exception as e:
            return self._fail(task, e, attempts=0)

        if reason is not None:
            task.transition(TaskState.SKIPPED)
            self.log.info("task_skipped", symbol=task.canonical_symbol, reason=reason)
            return TaskOutcome(
                task, TaskState.SKIPPED, error_kind=ErrorKind.UNSUPPORTED, reason=reason
            )

        # Loader-level entries are stored under the loader name, whichever vendor served them
        cached = await self.cache_store.get(self.cache_key(task), source=self.name)
        if cached.is_hit:
            if persist is not None and self.settings.persist_cache_hits:
                try:
                    await self._persist(persist, task, cached.payload)
                except Exception as e:
                    return self._fail(task, e, attempts=0)
            task.transition(TaskState.SUCCEEDED)
            self.log.debug("task_cache_hit", symbol=task.canonical_symbol)
            return TaskOutcome(task, TaskState.SUCCEEDED, payload=cached.payload, from_cache=True)
        return None

    async def _fetch(self, task: FetchTask, persist: PersistFn | None) -> TaskOutcome:
        task.transition(TaskState.IN_FLIGHT)
        attempt = 0
        while True:
            try:
                resolution = await self.coordinator.resolve(task)
                break
            except ConfigurationError:
                raise
            except Exception as e:
                kind = classify(e)
                if kind.skips_task:
                    task.transition(TaskState.SKIPPED)
                    self.log.info("task_skipped", symbol=task.canonical_symbol, reason=str(e))
                    return TaskOutcome(
                        task,
                        TaskState.SKIPPED,
                        attempts=attempt + 1,
                        error=e,
                        error_kind=kind,
                        reason=str(e),
                    )
                if not self.retry_policy.should_retry(e, attempt):
                    return self._fail(task, e, attempts=attempt + 1)

                delay = self.retry_policy.delay_for(e, attempt)
                self.log.warning(
                    "task_retry_scheduled",
                    symbol=task.canonical_symbol,
                    kind=kind.value,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                )
                await self._sleep(delay)
                attempt += 1

        await self.cache_store.set(
            self.cache_key(task),
            resolution.payload,
            source=self.name,
            endpoint=resolution.endpoint,
        )

        if persist is not None:
            try:
                await self._persist(persist, task, resolution.payload)
            except Exception as e:
                return self._fail(task, e, attempts=attempt + 1, source=resolution.source)

        task.transition(TaskState.SUCCEEDED)
        return TaskOutcome(
            task,
            TaskState.SUCCEEDED,
            payload=resolution.payload,
            source=resolution.source,
            from_cache=resolution.from_cache,
            attempts=attempt + 1,
        )

    def _fail(
        self,
        task: FetchTask,
        error: BaseException,
        attempts: int,
        source: str | None = None,
    ) -> TaskOutcome:
        kind = classify(error)
        task.transition(TaskState.FAILED)
        self.log.warning(
            "task_failed",
            symbol=task.canonical_symbol,
            kind=kind.value,
            attempts=attempts,
            error=str(error),
        )
        return TaskOutcome(
            task,
            TaskState.FAILED,
            source=source,
            attempts=attempts,
            error=error,
            error_kind=kind,
            reason=str(error),
        )

    async def _persist(self, persist: PersistFn, task: FetchTask, payload: Any) -> None:
        if _is_async_callable(persist):
            await persist(task, payload)
            return

        result = await self._get_executor().run(persist, task, payload)
        if inspect.isawaitable(result):
            await result

    def _get_executor(self) -> BlockingExecutor:
        if self._executor is None:
            self._executor = BlockingExecutor(max_workers=min(self.settings.max_concurrent, 8))
        return self._executor

    def _shutdown_executor(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
