"""Storage ports the ingestion layer depends on."""

from datetime import datetime
from typing import Protocol

from quant_loader.storage.schemas import CacheEntry, SourceMapping


class ICacheRepository(Protocol):
    """Persistence for cached API responses."""

    async def get(
        self, cache_key: str, api_source: str, now: datetime
    ) -> CacheEntry | None:
        """Return the entry of ``api_source`` if present and ``expires_at > now``."""
        ...

    async def upsert(self, entry: CacheEntry) -> None:
        """Insert or replace the entry with the same cache_key."""
        ...

    async def delete(self, cache_key: str) -> bool:
        ...

    async def delete_expired(self, api_source: str, now: datetime) -> int:
        """Delete entries of ``api_source`` with ``expires_at < now``; return count."""
        ...


class IMappingRepository(Protocol):
    """Per-vendor identifiers for entities."""

    async def get(self, sid: int, source_name: str) -> SourceMapping | None:
        ...

    async def upsert(self, mapping: SourceMapping) -> None:
        """Insert or update on (sid, source_name)."""
        ...

    async def mark_verified(self, sid: int, source_name: str, verified_at: datetime) -> None:
        ...


class IIdentifierScan(Protocol):
    """Read-only scan of issued identifiers."""

    async def scan_range(self, low: int, high: int) -> list[int]:
        """All identifiers with ``low <= sid <= high``."""
        ...
