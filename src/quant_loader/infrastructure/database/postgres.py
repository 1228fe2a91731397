"""
Database adapter interfaces and the asyncpg implementation.

Repositories depend on ``IDatabaseAdapter`` only, so they can be tested with
an ``AsyncMock`` in place of a live pool.
"""

from typing import Any, Protocol

import asyncpg

from quant_loader.config.state import DatabaseConfig
from quant_loader.infrastructure.observability import get_database_logger

log = get_database_logger()


class IDatabaseAdapter(Protocol):
    """
    Protocol defining the SQL operations repositories use.
    Parameters are positional (``$1``, ``$2``...), asyncpg style.
    """

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement, return the status tag (e.g. ``"DELETE 3"``)."""
        ...

    async def fetch(self, query: str, *args: Any) -> list[Any]:
        """Fetch all rows."""
        ...

    async def fetchrow(self, query: str, *args: Any) -> Any | None:
        """Fetch a single row or ``None``."""
        ...

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Fetch the first column of the first row."""
        ...


class DatabaseAdapter:
    """
    asyncpg pool wrapper implementing ``IDatabaseAdapter``.

    Usage:
        >>> db = DatabaseAdapter(config.database)
        >>> await db.connect()
        >>> sid = await db.fetchval("SELECT sid FROM symbols WHERE symbol = $1", "AAPL")
        >>> await db.disconnect()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self.pool is not None:
            return

        self.pool = await asyncpg.create_pool(
            self.config.url,
            min_size=self.config.min_pool_size,
            max_size=self.config.max_pool_size,
            command_timeout=self.config.command_timeout,
        )
        log.info(
            "pool_created",
            min_size=self.config.min_pool_size,
            max_size=self.config.max_pool_size,
        )

    async def disconnect(self) -> None:
        """Close the pool, waiting for acquired connections."""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            log.info("pool_closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError("Database not connected")
        return self.pool

    async def execute(self, query: str, *args: Any) -> str:
        async with self._require_pool().acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[Any]:
        async with self._require_pool().acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Any | None:
        async with self._require_pool().acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self._require_pool().acquire() as conn:
            return await conn.fetchval(query, *args)

    async def __aenter__(self) -> "DatabaseAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
