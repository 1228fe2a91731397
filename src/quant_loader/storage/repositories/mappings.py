"""Source mapping repositories.

Table Schema:
  symbol_mappings:
    - sid: BIGINT NOT NULL
    - source_name: VARCHAR NOT NULL
    - source_identifier: VARCHAR NOT NULL
    - verified: BOOLEAN DEFAULT false
    - last_verified_at: TIMESTAMPTZ
    - created_at: TIMESTAMPTZ
    - updated_at: TIMESTAMPTZ
    - UNIQUE (sid, source_name)
"""

import asyncio
import logging
from datetime import datetime, timezone

from quant_loader.infrastructure.database import IDatabaseAdapter
from quant_loader.storage.schemas import SourceMapping

logger = logging.getLogger(__name__)


class PostgresMappingRepository:
    """Vendor identifiers per entity, backed by symbol_mappings."""

    def __init__(self, db: IDatabaseAdapter):
        self.db = db

    async def get(self, sid: int, source_name: str) -> SourceMapping | None:
        query = """
            SELECT sid, source_name, source_identifier, verified,
                   last_verified_at, created_at, updated_at
            FROM symbol_mappings
            WHERE sid = $1 AND source_name = $2
        """
        try:
            row = await self.db.fetchrow(query, sid, source_name)
            return SourceMapping(**dict(row)) if row else None
        except Exception as e:
            logger.error(f"❌ Failed to read mapping {sid}/{source_name}: {e}")
            raise

    async def upsert(self, mapping: SourceMapping) -> None:
        query = """
            INSERT INTO symbol_mappings
            (sid, source_name, source_identifier, verified, last_verified_at,
             created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $6)
            ON CONFLICT (sid, source_name) DO UPDATE SET
                source_identifier = EXCLUDED.source_identifier,
                verified = EXCLUDED.verified,
                last_verified_at = EXCLUDED.last_verified_at,
                updated_at = EXCLUDED.updated_at
        """
        try:
            now = datetime.now(timezone.utc)
            await self.db.execute(
                query,
                mapping.sid,
                mapping.source_name,
                mapping.source_identifier,
                mapping.verified,
                mapping.last_verified_at,
                now,
            )
            logger.debug(
                f"✅ Upserted mapping: {mapping.sid} -> "
                f"{mapping.source_name}:{mapping.source_identifier}"
            )
        except Exception as e:
            logger.error(f"❌ Failed to upsert mapping {mapping.sid}/{mapping.source_name}: {e}")
            raise

    async def mark_verified(self, sid: int, source_name: str, verified_at: datetime) -> None:
        query = """
            UPDATE symbol_mappings
            SET verified = true, last_verified_at = $3, updated_at = $3
            WHERE sid = $1 AND source_name = $2
        """
        try:
            await self.db.execute(query, sid, source_name, verified_at)
        except Exception as e:
            logger.error(f"❌ Failed to verify mapping {sid}/{source_name}: {e}")
            raise


class InMemoryMappingRepository:
    """Process-local mapping store, keyed by (sid, source_name)."""

    def __init__(self, mappings: list[SourceMapping] | None = None):
        self._rows: dict[tuple[int, str], SourceMapping] = {
            (m.sid, m.source_name): m for m in mappings or []
        }
        self._lock = asyncio.Lock()

    def all(self) -> list[SourceMapping]:
        return list(self._rows.values())

    async def get(self, sid: int, source_name: str) -> SourceMapping | None:
        async with self._lock:
            return self._rows.get((sid, source_name))

    async def upsert(self, mapping: SourceMapping) -> None:
        now = datetime.now(timezone.utc)
        async with self._lock:
            existing = self._rows.get((mapping.sid, mapping.source_name))
            created_at = existing.created_at if existing else now
            self._rows[(mapping.sid, mapping.source_name)] = mapping.model_copy(
                update={"created_at": created_at, "updated_at": now}
            )

    async def mark_verified(self, sid: int, source_name: str, verified_at: datetime) -> None:
        async with self._lock:
            existing = self._rows.get((sid, source_name))
            if existing is not None:
                self._rows[(sid, source_name)] = existing.model_copy(
                    update={
                        "verified": True,
                        "last_verified_at": verified_at,
                        "updated_at": verified_at,
                    }
                )
