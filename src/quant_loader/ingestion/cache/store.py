"""
TTL response cache in front of vendor APIs.

Cache problems never fail a load: lookups that error are reported as
``CacheStatus.ERROR`` and treated as misses, writes that fail return
``False``. Both are logged at warning level.
"""

import enum
import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from quant_loader.config.state import CacheSettings
from quant_loader.infrastructure.observability import get_ingestion_logger
from quant_loader.shared.clock import Clock, utcnow
from quant_loader.storage.ports import ICacheRepository
from quant_loader.storage.schemas import CacheEntry


class CacheStatus(str, enum.Enum):
    HIT = "hit"
    MISS = "miss"
    SKIPPED = "skipped"  # caching disabled or force refresh
    ERROR = "error"


@dataclass(frozen=True)
class CacheResult:
    status: CacheStatus
    payload: Any = None

    @property
    def is_hit(self) -> bool:
        return self.status is CacheStatus.HIT

    @property
    def was_checked(self) -> bool:
        """False when the repository was never consulted."""
        return self.status is not CacheStatus.SKIPPED


class CacheStore:
    """Keyed response cache with per-entry expiry.

    Args:
        repository: Backing ``ICacheRepository``
        config: Cache settings (enabled, TTL, force refresh, default source)
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        repository: ICacheRepository,
        config: CacheSettings | None = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.config = config or CacheSettings()
        self.clock = clock
        self.log = get_ingestion_logger("cache-store")

    @property
    def reads_enabled(self) -> bool:
        return self.config.enabled and not self.config.force_refresh

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    @staticmethod
    def make_key(prefix: str, identifier: str) -> str:
        """``make_key("OVERVIEW", "aapl")`` -> ``"OVERVIEW_AAPL"``."""
        return f"{prefix}_{identifier.upper()}"

    @staticmethod
    def make_key_parts(parts: Iterable[Any]) -> str:
        return "_".join(str(part).upper() for part in parts)

    @classmethod
    def request_key(
        cls,
        namespace: str,
        entity_id: int,
        symbol: str,
        request: dict[str, Any] | None = None,
    ) -> str:
        """Deterministic key for one request shape of one entity.

        Equal requests give equal keys regardless of dict ordering.
        """
        shape = json.dumps(request or {}, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(shape.encode("utf-8")).hexdigest()[:16]
        return cls.make_key_parts([namespace, entity_id, symbol, digest])

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def get(self, key: str, source: str | None = None) -> CacheResult:
        """Live entry stored under ``key`` by ``source`` (default: configured source)."""
        if not self.reads_enabled:
            return CacheResult(CacheStatus.SKIPPED)

        source = source or self.config.api_source
        try:
            entry = await self.repository.get(key, source, self.clock())
        except Exception as e:
            self.log.warning(
                "cache_lookup_failed", key=key, source=source, error=str(e)
            )
            return CacheResult(CacheStatus.ERROR)

        if entry is None:
            self.log.debug("cache_miss", key=key, source=source)
            return CacheResult(CacheStatus.MISS)

        self.log.debug("cache_hit", key=key, source=source)
        return CacheResult(CacheStatus.HIT, entry.response_data)

    async def set(
        self,
        key: str,
        payload: Any,
        source: str | None = None,
        endpoint: str = "",
        ttl: timedelta | float | None = None,
        status_code: int = 200,
    ) -> bool:
        """Store ``payload`` under ``key`` until now + ttl. Last writer wins.

        Writes still happen under force refresh, so a forced run refreshes
        the cache for the next one.

        Raises:
            ValueError: if ``ttl`` is zero or negative
        """
        ttl_seconds = self._ttl_seconds(ttl)
        if ttl_seconds <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl_seconds}s")

        if not self.config.enabled:
            return False

        now = self.clock()
        try:
            entry = CacheEntry(
                cache_key=key,
                api_source=source or self.config.api_source,
                endpoint_url=endpoint,
                response_data=payload,
                status_code=status_code,
                cached_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            await self.repository.upsert(entry)
        except Exception as e:
            self.log.warning("cache_write_failed", key=key, source=source, error=str(e))
            return False

        self.log.debug("cache_set", key=key, source=entry.api_source, ttl_seconds=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        try:
            return await self.repository.delete(key)
        except Exception as e:
            self.log.warning("cache_delete_failed", key=key, error=str(e))
            return False

    async def cleanup_expired(self, source: str | None = None) -> int:
        """Delete expired entries of ``source`` (default: configured source)."""
        source = source or self.config.api_source
        try:
            removed = await self.repository.delete_expired(source, self.clock())
        except Exception as e:
            self.log.warning("cache_cleanup_failed", source=source, error=str(e))
            return 0

        self.log.info("cache_cleanup_complete", source=source, removed=removed)
        return removed

    def _ttl_seconds(self, ttl: timedelta | float | None) -> float:
        if ttl is None:
            return self.config.ttl_seconds
        if isinstance(ttl, timedelta):
            return ttl.total_seconds()
        return float(ttl)
