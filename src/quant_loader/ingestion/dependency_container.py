"""
Dependency injection container for the loader.

Wires together, from one ``ConfigState``:
- HTTP client (aiohttp wrapper)
- Vendor adapters (AlphaVantage, generic HTTP)
- Cache / mapping / identifier repositories (PostgreSQL, or in-memory without a database)
- Cache store
- Source fallback coordinator
- Process tracker
- Loader pipelines
"""

import logging
from collections.abc import Callable
from typing import Any

from quant_loader.config.state import ConfigState, VendorConfig
from quant_loader.infrastructure.database import IDatabaseAdapter
from quant_loader.ingestion.adapters import AlphaVantageSourceAdapter, HttpSourceAdapter
from quant_loader.ingestion.cache.store import CacheStore
from quant_loader.ingestion.config.value_objects import HttpClientConfig
from quant_loader.ingestion.connectors import AiohttpClient
from quant_loader.ingestion.fallback.coordinator import SourceFallbackCoordinator
from quant_loader.ingestion.identifiers.generator import IdRegistry
from quant_loader.ingestion.pipeline import (
    InMemoryProcessTracker,
    IProcessTracker,
    LoaderPipeline,
    PostgresProcessTracker,
)
from quant_loader.ingestion.ports.http import IHttpClient
from quant_loader.ingestion.ports.sources import ISourceAdapter
from quant_loader.shared.models.enums import DataSource
from quant_loader.storage.ports import (
    ICacheRepository,
    IIdentifierScan,
    IMappingRepository,
)
from quant_loader.storage.repositories import (
    InMemoryCacheRepository,
    InMemoryIdentifierScan,
    InMemoryMappingRepository,
    PostgresCacheRepository,
    PostgresIdentifierScan,
    PostgresMappingRepository,
)

logger = logging.getLogger(__name__)

AdapterBuilder = Callable[[str, IHttpClient, VendorConfig], ISourceAdapter]


def _build_alphavantage(source: str, http_client: IHttpClient, vendor: VendorConfig) -> ISourceAdapter:
    return AlphaVantageSourceAdapter.from_config(source, http_client, vendor)


def _build_http(source: str, http_client: IHttpClient, vendor: VendorConfig) -> ISourceAdapter:
    extra = vendor.model_extra or {}
    return HttpSourceAdapter.from_config(
        source,
        http_client,
        vendor,
        path=extra.get("path", ""),
        identifier_param=extra.get("identifier_param", "symbol"),
        api_key_param=extra.get("api_key_param"),
        api_key_header=extra.get("api_key_header"),
    )


class LoaderDependencyContainer:
    """
    Single place where concrete implementations are chosen.

    Without a database adapter every repository is in-memory, which is
    enough for dry runs and tests.

    Usage:
        container = LoaderDependencyContainer(get_config(), db=db)
        pipeline = container.create_pipeline("equity_overview")
        result = await pipeline.run(tasks, persist=save_overview)
        await container.close()
    """

    def __init__(
        self,
        config: ConfigState,
        db: IDatabaseAdapter | None = None,
        http_client: IHttpClient | None = None,
    ):
        self.config = config
        self.db = db
        self._http_client = http_client
        self._builders: dict[str, AdapterBuilder] = {
            DataSource.ALPHAVANTAGE.value: _build_alphavantage,
        }

        # Shared across pipelines so mappings and cache rows are seen by all
        self.cache_repository = self.create_cache_repository()
        self.mapping_repository = self.create_mapping_repository()

        logger.info(
            f"LoaderDependencyContainer initialized "
            f"(database={'on' if db is not None else 'off'})"
        )

    def register_adapter(self, source: str, builder: AdapterBuilder) -> None:
        """Use ``builder`` for vendor ``source`` instead of the generic HTTP adapter."""
        self._builders[source.lower()] = builder

    # ==================== HTTP Layer ====================

    def create_http_client(self) -> IHttpClient:
        if self._http_client is None:
            self._http_client = AiohttpClient(HttpClientConfig())
        return self._http_client

    def create_source_adapters(self) -> list[ISourceAdapter]:
        """One adapter per configured vendor that can be used.

        Vendors without a base URL, or whose adapter refuses its settings
        (e.g. a missing API key), are left out with a warning.
        """
        adapters = []
        for name, vendor in self.config.sources.vendors.items():
            if not vendor.base_url:
                logger.warning(f"Vendor {name} has no base_url, skipping")
                continue
            builder = self._builders.get(name, _build_http)
            try:
                adapters.append(builder(name, self.create_http_client(), vendor))
            except ValueError as e:
                logger.warning(f"Vendor {name} not available: {e}")
        return adapters

    # ==================== Storage ====================

    def create_cache_repository(self) -> ICacheRepository:
        if self.db is None:
            return InMemoryCacheRepository()
        return PostgresCacheRepository(self.db)

    def create_mapping_repository(self) -> IMappingRepository:
        if self.db is None:
            return InMemoryMappingRepository()
        return PostgresMappingRepository(self.db)

    def create_identifier_scan(self) -> IIdentifierScan:
        if self.db is None:
            return InMemoryIdentifierScan()
        return PostgresIdentifierScan(self.db)

    async def create_id_registry(self) -> IdRegistry:
        """Generators for every entity type, seeded from issued identifiers."""
        scan = self.create_identifier_scan()
        registry = IdRegistry()
        for tag in registry.codec.tags:
            await registry.seed(tag.entity_type, scan)
        return registry

    # ==================== Ingestion ====================

    def create_cache_store(self) -> CacheStore:
        return CacheStore(self.cache_repository, self.config.cache)

    def create_coordinator(self, source_cache: bool = False) -> SourceFallbackCoordinator:
        """
        Args:
            source_cache: Also cache each vendor's response separately
        """
        return SourceFallbackCoordinator(
            self.create_source_adapters(),
            self.mapping_repository,
            cache_store=self.create_cache_store() if source_cache else None,
            default_priority=self.config.sources.priority,
        )

    def create_tracker(self) -> IProcessTracker:
        if self.db is None:
            return InMemoryProcessTracker()
        return PostgresProcessTracker(self.db)

    def create_pipeline(self, name: str, **kwargs: Any) -> LoaderPipeline:
        """Fully wired pipeline; ``kwargs`` go to ``LoaderPipeline``."""
        return LoaderPipeline(
            name,
            self.create_coordinator(),
            self.create_cache_store(),
            settings=self.config.loader,
            tracker=kwargs.pop("tracker", None) or self.create_tracker(),
            **kwargs,
        )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.close()
