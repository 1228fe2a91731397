"""Identifier scans over the ``symbols`` table."""

import logging

from quant_loader.infrastructure.database import IDatabaseAdapter

logger = logging.getLogger(__name__)


class PostgresIdentifierScan:
    """Read-only range scans over issued identifiers."""

    def __init__(self, db: IDatabaseAdapter, table: str = "symbols"):
        self.db = db
        self.table = table

    async def scan_range(self, low: int, high: int) -> list[int]:
        query = f"SELECT sid FROM {self.table} WHERE sid BETWEEN $1 AND $2"
        try:
            rows = await self.db.fetch(query, low, high)
            return [row["sid"] for row in rows]
        except Exception as e:
            logger.error(f"❌ Failed to scan identifiers in [{low}, {high}]: {e}")
            raise


class InMemoryIdentifierScan:
    """Identifier scan over a fixed collection, for tests and dry runs."""

    def __init__(self, identifiers=()):
        self._identifiers = list(identifiers)

    async def scan_range(self, low: int, high: int) -> list[int]:
        return [sid for sid in self._identifiers if low <= sid <= high]
