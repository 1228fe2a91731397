"""Response cache repositories.

Table Schema:
  api_response_cache:
    - cache_key: VARCHAR PRIMARY KEY
    - api_source: VARCHAR NOT NULL
    - endpoint_url: TEXT
    - response_data: JSONB NOT NULL
    - status_code: INTEGER
    - cached_at: TIMESTAMPTZ NOT NULL
    - expires_at: TIMESTAMPTZ NOT NULL
"""

import asyncio
import json
import logging
from datetime import datetime

from quant_loader.infrastructure.database import IDatabaseAdapter
from quant_loader.storage.schemas import CacheEntry

logger = logging.getLogger(__name__)


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg status tag such as ``'DELETE 3'``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresCacheRepository:
    """Cache rows in PostgreSQL, one row per cache_key."""

    def __init__(self, db: IDatabaseAdapter, table: str = "api_response_cache"):
        self.db = db
        self.table = table

    async def get(
        self, cache_key: str, api_source: str, now: datetime
    ) -> CacheEntry | None:
        query = f"""
            SELECT cache_key, api_source, endpoint_url, response_data,
                   status_code, cached_at, expires_at
            FROM {self.table}
            WHERE cache_key = $1 AND api_source = $2 AND expires_at > $3
        """
        try:
            row = await self.db.fetchrow(query, cache_key, api_source, now)
        except Exception as e:
            logger.error(f"❌ Failed to read cache entry {cache_key}: {e}")
            raise

        if row is None:
            return None

        data = dict(row)
        if isinstance(data["response_data"], str):
            data["response_data"] = json.loads(data["response_data"])
        return CacheEntry(**data)

    async def upsert(self, entry: CacheEntry) -> None:
        query = f"""
            INSERT INTO {self.table}
            (cache_key, api_source, endpoint_url, response_data,
             status_code, cached_at, expires_at)
            VALUES ($1, $2, $3, $4::jsonb, $5, $6, $7)
            ON CONFLICT (cache_key) DO UPDATE SET
                api_source = EXCLUDED.api_source,
                endpoint_url = EXCLUDED.endpoint_url,
                response_data = EXCLUDED.response_data,
                status_code = EXCLUDED.status_code,
                cached_at = EXCLUDED.cached_at,
                expires_at = EXCLUDED.expires_at
        """
        try:
            await self.db.execute(
                query,
                entry.cache_key,
                entry.api_source,
                entry.endpoint_url,
                json.dumps(entry.response_data),
                entry.status_code,
                entry.cached_at,
                entry.expires_at,
            )
            logger.debug(f"✅ Cached response: {entry.cache_key}")
        except Exception as e:
            logger.error(f"❌ Failed to cache response {entry.cache_key}: {e}")
            raise

    async def delete(self, cache_key: str) -> bool:
        try:
            status = await self.db.execute(
                f"DELETE FROM {self.table} WHERE cache_key = $1", cache_key
            )
            return _affected_rows(status) > 0
        except Exception as e:
            logger.error(f"❌ Failed to delete cache entry {cache_key}: {e}")
            raise

    async def delete_expired(self, api_source: str, now: datetime) -> int:
        try:
            status = await self.db.execute(
                f"DELETE FROM {self.table} WHERE api_source = $1 AND expires_at < $2",
                api_source,
                now,
            )
            deleted = _affected_rows(status)
            logger.info(f"✅ Removed {deleted} expired cache entries for {api_source}")
            return deleted
        except Exception as e:
            logger.error(f"❌ Failed to clean cache for {api_source}: {e}")
            raise


class InMemoryCacheRepository:
    """Process-local cache repository.

    Payloads are stored as JSON text, so values that would not survive a
    JSONB column fail here as well.
    """

    def __init__(self):
        self._rows: dict[str, tuple[CacheEntry, str]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    async def get(
        self, cache_key: str, api_source: str, now: datetime
    ) -> CacheEntry | None:
        async with self._lock:
            stored = self._rows.get(cache_key)
        if stored is None:
            return None
        entry, payload = stored
        if entry.api_source != api_source or entry.expires_at <= now:
            return None
        return entry.model_copy(update={"response_data": json.loads(payload)})

    async def upsert(self, entry: CacheEntry) -> None:
        payload = json.dumps(entry.response_data)
        async with self._lock:
            self._rows[entry.cache_key] = (entry, payload)

    async def delete(self, cache_key: str) -> bool:
        async with self._lock:
            return self._rows.pop(cache_key, None) is not None

    async def delete_expired(self, api_source: str, now: datetime) -> int:
        async with self._lock:
            expired = [
                key
                for key, (entry, _) in self._rows.items()
                if entry.api_source == api_source and entry.expires_at < now
            ]
            for key in expired:
                del self._rows[key]
        return len(expired)
