"""Fetch tasks, per-task outcomes and run results."""

from dataclasses import dataclass, field
from typing import Any

from quant_loader.ingestion.errors import ErrorKind
from quant_loader.shared.models.enums import ProcessState, TaskState


@dataclass
class FetchTask:
    """One unit of work: fetch ``request`` for one entity.

    ``sources`` is the preferred vendor order; an empty list means the
    pipeline's configured default priority.
    """

    entity_id: int
    canonical_symbol: str
    sources: list[str] = field(default_factory=list)
    request: dict[str, Any] = field(default_factory=dict)
    state: TaskState = TaskState.PENDING

    def transition(self, state: TaskState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(
                f"Task {self.canonical_symbol} already {self.state.value}, cannot move to {state.value}"
            )
        self.state = state


@dataclass
class TaskOutcome:
    """Terminal result of one ``FetchTask``."""

    task: FetchTask
    state: TaskState
    payload: Any = None
    source: str | None = None
    from_cache: bool = False
    attempts: int = 0
    error: BaseException | None = None
    error_kind: ErrorKind | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is TaskState.SUCCEEDED


@dataclass
class BatchRunResult:
    """Per-task outcomes of one pipeline run, plus the run's terminal state."""

    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.state is TaskState.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.state is TaskState.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.state is TaskState.SKIPPED)

    @property
    def from_cache(self) -> int:
        return sum(1 for o in self.outcomes if o.from_cache)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def state(self) -> ProcessState:
        return ProcessState.from_counts(self.succeeded, self.failed)

    def by_state(self, state: TaskState) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.state is state]

    def summary(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "from_cache": self.from_cache,
            "state": self.state.value,
        }
