"""
Process tracking for loader runs.

``start`` returns a run id that the matching ``complete`` takes back, so one
tracker can follow several runs at once. The PostgreSQL tracker writes:

  proctypes:  id SERIAL, name TEXT UNIQUE
  states:     id SERIAL, name TEXT UNIQUE
  procstates: spid SERIAL, proc_id -> proctypes, start_time, end_state -> states,
              end_time, error_msg, records_processed
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from quant_loader.infrastructure.database import IDatabaseAdapter
from quant_loader.shared.clock import Clock, utcnow
from quant_loader.shared.models.enums import ProcessState

logger = logging.getLogger(__name__)


class IProcessTracker(Protocol):
    async def start(self, name: str) -> int:
        """Record a new run; return its id."""
        ...

    async def complete(
        self,
        run_id: int,
        state: ProcessState,
        records_processed: int | None = None,
        error_message: str | None = None,
    ) -> None:
        ...


@dataclass
class ProcessInfo:
    run_id: int
    name: str
    start_time: datetime
    state: ProcessState = ProcessState.RUNNING
    end_time: datetime | None = None
    error_message: str | None = None
    records_processed: int | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


class InMemoryProcessTracker:
    """Keeps every run in memory; useful for tests and dry runs."""

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._history: list[ProcessInfo] = []
        self._running: dict[int, ProcessInfo] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    def running(self) -> list[ProcessInfo]:
        return list(self._running.values())

    async def start(self, name: str) -> int:
        async with self._lock:
            info = ProcessInfo(run_id=next(self._ids), name=name, start_time=self.clock())
            self._running[info.run_id] = info
            self._history.append(info)
        return info.run_id

    async def complete(
        self,
        run_id: int,
        state: ProcessState,
        records_processed: int | None = None,
        error_message: str | None = None,
    ) -> None:
        async with self._lock:
            info = self._running.pop(run_id, None)
            if info is None:
                raise RuntimeError(f"complete() for run {run_id}, which is not running")
            info.state = state
            info.end_time = self.clock()
            info.records_processed = records_processed
            info.error_message = error_message

    def get_all(self) -> list[ProcessInfo]:
        return list(self._history)

    def last(self) -> ProcessInfo | None:
        return self._history[-1] if self._history else None


class PostgresProcessTracker:
    """Writes run rows to proctypes / states / procstates. Run ids are spids."""

    def __init__(self, db: IDatabaseAdapter, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self._open: set[int] = set()

    async def _lookup_id(self, table: str, name: str) -> int:
        return await self.db.fetchval(
            f"""
            INSERT INTO {table} (name) VALUES ($1)
            ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name
            RETURNING id
            """,
            name,
        )

    async def start(self, name: str) -> int:
        try:
            proc_id = await self._lookup_id("proctypes", name)
            spid = await self.db.fetchval(
                "INSERT INTO procstates (proc_id, start_time) VALUES ($1, $2) RETURNING spid",
                proc_id,
                self.clock(),
            )
            logger.info(f"✅ Process started: {name} (spid={spid})")
        except Exception as e:
            logger.error(f"❌ Failed to start process tracking for {name}: {e}")
            raise
        self._open.add(spid)
        return spid

    async def complete(
        self,
        run_id: int,
        state: ProcessState,
        records_processed: int | None = None,
        error_message: str | None = None,
    ) -> None:
        if run_id not in self._open:
            raise RuntimeError(f"complete() for process {run_id}, which is not running")
        self._open.discard(run_id)
        try:
            state_id = await self._lookup_id("states", state.value)
            await self.db.execute(
                """
                UPDATE procstates
                SET end_state = $2, end_time = $3, error_msg = $4, records_processed = $5
                WHERE spid = $1
                """,
                run_id,
                state_id,
                self.clock(),
                error_message,
                records_processed or 0,
            )
            logger.info(f"✅ Process {run_id} completed: {state.value}")
        except Exception as e:
            logger.error(f"❌ Failed to complete process {run_id}: {e}")
            raise
