"""
Ordered multi-source fallback with mapping auto-discovery.

For one task, vendors are tried strictly in priority order until one
returns data. The winner's identifier is recorded as a verified mapping so
later runs use the vendor's own name for the entity directly.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from quant_loader.ingestion.cache.store import CacheStore
from quant_loader.ingestion.errors import ConfigurationError, ErrorKind, classify
from quant_loader.ingestion.tasks import FetchTask
from quant_loader.ingestion.ports.sources import ISourceAdapter
from quant_loader.infrastructure.observability import get_ingestion_logger
from quant_loader.shared.clock import Clock, utcnow
from quant_loader.storage.ports import IMappingRepository
from quant_loader.storage.schemas import SourceMapping


@dataclass
class SourceStats:
    """Running counters for one vendor."""

    source: str
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    rate_limited: bool = False
    total_response_time: float = 0.0

    @property
    def average_response_time(self) -> float:
        return self.total_response_time / self.attempts if self.attempts else 0.0


@dataclass
class SourceResolution:
    """Winning vendor response for one task."""

    source: str
    identifier: str
    payload: Any
    endpoint: str = ""
    from_cache: bool = False
    mapping_created: bool = False
    errors: dict[str, BaseException] = field(default_factory=dict)


class SourceFallbackCoordinator:
    """Tries vendors in order; first success wins.

    Args:
        adapters: One ``ISourceAdapter`` per vendor, keyed by ``adapter.source``
        mapping_repository: Where verified vendor identifiers are kept
        cache_store: Optional per-source response cache
        clock: UTC clock for ``last_verified_at``
    """

    def __init__(
        self,
        adapters: Iterable[ISourceAdapter],
        mapping_repository: IMappingRepository,
        cache_store: CacheStore | None = None,
        clock: Clock = utcnow,
        default_priority: list[str] | None = None,
    ):
        self.adapters: dict[str, ISourceAdapter] = {}
        for adapter in adapters:
            name = adapter.source.lower()
            if name in self.adapters:
                raise ConfigurationError(f"Duplicate adapter for source '{name}'")
            self.adapters[name] = adapter

        self.mapping_repository = mapping_repository
        self.cache_store = cache_store
        self.clock = clock
        self.default_priority = [s.lower() for s in default_priority or []]
        self.stats: dict[str, SourceStats] = {
            name: SourceStats(name) for name in self.adapters
        }
        self.log = get_ingestion_logger("fallback")

    def priority_for(self, task: FetchTask, source_priority: list[str] | None = None) -> list[str]:
        """Effective vendor order for ``task``.

        Raises:
            ConfigurationError: empty order or a vendor with no adapter
        """
        priority = [s.lower() for s in source_priority or task.sources or self.default_priority]
        if not priority:
            raise ConfigurationError(f"No sources configured for {task.canonical_symbol}")
        unknown = [s for s in priority if s not in self.adapters]
        if unknown:
            raise ConfigurationError(f"No adapter registered for source(s): {', '.join(unknown)}")
        return priority

    async def resolve(
        self, task: FetchTask, source_priority: list[str] | None = None
    ) -> SourceResolution:
        """Fetch ``task`` from the first vendor that succeeds.

        Raises:
            ConfigurationError: see ``priority_for``
            LoaderError: the last vendor's error when every vendor failed
        """
        priority = self.priority_for(task, source_priority)
        errors: dict[str, BaseException] = {}
        last_error: BaseException | None = None

        for source in priority:
            mapping = await self._lookup_mapping(task, source)
            identifier = mapping.source_identifier if mapping else task.canonical_symbol

            cache_key = self._cache_key(source, identifier, task)
            if self.cache_store is not None:
                cached = await self.cache_store.get(cache_key, source=source)
                if cached.is_hit:
                    self.log.debug(
                        "source_cache_hit", source=source, symbol=task.canonical_symbol
                    )
                    return SourceResolution(
                        source=source,
                        identifier=identifier,
                        payload=cached.payload,
                        from_cache=True,
                        errors=errors,
                    )

            stats = self.stats[source]
            stats.attempts += 1
            started = time.perf_counter()
            try:
                response = await self.adapters[source].fetch(identifier, task)
            except Exception as e:
                stats.total_response_time += time.perf_counter() - started
                stats.failures += 1
                if classify(e) is ErrorKind.RATE_LIMITED:
                    stats.rate_limited = True
                errors[source] = e
                last_error = e
                self.log.warning(
                    "source_fetch_failed",
                    source=source,
                    symbol=task.canonical_symbol,
                    identifier=identifier,
                    kind=classify(e).value,
                    error=str(e),
                )
                continue

            stats.total_response_time += time.perf_counter() - started
            stats.successes += 1

            resolved = response.source_identifier or identifier
            created = await self._record_mapping(task, source, resolved, mapping)
            if self.cache_store is not None:
                await self.cache_store.set(
                    cache_key,
                    response.data,
                    source=source,
                    endpoint=response.endpoint,
                    status_code=response.status_code,
                )

            self.log.info(
                "source_fetch_succeeded",
                source=source,
                symbol=task.canonical_symbol,
                identifier=resolved,
                fallbacks=len(errors),
            )
            return SourceResolution(
                source=source,
                identifier=resolved,
                payload=response.data,
                endpoint=response.endpoint,
                mapping_created=created,
                errors=errors,
            )

        self.log.error(
            "all_sources_failed",
            symbol=task.canonical_symbol,
            sources=priority,
        )
        raise last_error

    async def _lookup_mapping(self, task: FetchTask, source: str) -> SourceMapping | None:
        try:
            return await self.mapping_repository.get(task.entity_id, source)
        except Exception as e:
            self.log.warning(
                "mapping_lookup_failed",
                source=source,
                symbol=task.canonical_symbol,
                error=str(e),
            )
            return None

    async def _record_mapping(
        self,
        task: FetchTask,
        source: str,
        identifier: str,
        existing: SourceMapping | None,
    ) -> bool:
        """Create or re-verify the mapping after a successful fetch.

        Returns True when a new mapping was created. Write failures are
        logged and do not affect the fetched data.
        """
        now = self.clock()
        try:
            if existing is None or existing.source_identifier != identifier:
                await self.mapping_repository.upsert(
                    SourceMapping(
                        sid=task.entity_id,
                        source_name=source,
                        source_identifier=identifier,
                        verified=True,
                        last_verified_at=now,
                    )
                )
                if existing is None:
                    self.log.info(
                        "mapping_discovered",
                        source=source,
                        symbol=task.canonical_symbol,
                        identifier=identifier,
                    )
                return existing is None

            await self.mapping_repository.mark_verified(task.entity_id, source, now)
            return False
        except Exception as e:
            self.log.warning(
                "mapping_write_failed",
                source=source,
                symbol=task.canonical_symbol,
                error=str(e),
            )
            return False

    @staticmethod
    def _cache_key(source: str, identifier: str, task: FetchTask) -> str:
        return CacheStore.request_key(source, task.entity_id, identifier, task.request)

    def get_stats(self) -> dict[str, SourceStats]:
        return dict(self.stats)


__all__ = ["SourceFallbackCoordinator", "SourceResolution", "SourceStats"]
