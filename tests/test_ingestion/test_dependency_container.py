"""
Tests for LoaderDependencyContainer wiring.
"""

from unittest.mock import AsyncMock

import pytest

from fakes import ScriptedAdapter
from quant_loader.config import ConfigState
from quant_loader.ingestion.adapters import AlphaVantageSourceAdapter, HttpSourceAdapter
from quant_loader.ingestion.dependency_container import LoaderDependencyContainer
from quant_loader.ingestion.pipeline import InMemoryProcessTracker, PostgresProcessTracker
from quant_loader.ingestion.ports.http import HttpResponse
from quant_loader.ingestion.tasks import FetchTask
from quant_loader.shared.models.identifiers import EntityType, encode_identifier
from quant_loader.storage.repositories import (
    InMemoryCacheRepository,
    PostgresCacheRepository,
    PostgresMappingRepository,
)


def make_config(**vendors):
    return ConfigState(
        sources={"priority": list(vendors), "vendors": vendors},
        loader={"batch_delay_seconds": 0, "max_retries": 0},
    )


@pytest.fixture
def http_client():
    client = AsyncMock()
    client.get.return_value = HttpResponse(200, {"id": "bitcoin", "price": 1})
    return client


class TestAdapters:
    def test_alphavantage_and_generic_vendors(self, http_client):
        config = make_config(
            alphavantage={"base_url": "https://av.test", "api_key": "k"},
            coingecko={"base_url": "https://cg.test", "path": "/coins/{identifier}"},
        )

        adapters = LoaderDependencyContainer(config, http_client=http_client).create_source_adapters()

        assert [type(a) for a in adapters] == [AlphaVantageSourceAdapter, HttpSourceAdapter]
        assert adapters[1].path == "/coins/{identifier}"

    def test_unusable_vendors_left_out(self, http_client):
        config = make_config(
            alphavantage={"base_url": "https://av.test"},  # no API key
            coincap={},  # no base_url
            coingecko={"base_url": "https://cg.test"},
        )

        adapters = LoaderDependencyContainer(config, http_client=http_client).create_source_adapters()

        assert [a.source for a in adapters] == ["coingecko"]

    def test_registered_builder_wins(self, http_client):
        config = make_config(coingecko={"base_url": "https://cg.test"})
        container = LoaderDependencyContainer(config, http_client=http_client)
        container.register_adapter("CoinGecko", lambda name, client, vendor: ScriptedAdapter(name))

        assert isinstance(container.create_source_adapters()[0], ScriptedAdapter)


class TestStorageSelection:
    def test_in_memory_without_database(self):
        container = LoaderDependencyContainer(ConfigState())

        assert isinstance(container.cache_repository, InMemoryCacheRepository)
        assert isinstance(container.create_tracker(), InMemoryProcessTracker)

    def test_postgres_with_database(self):
        container = LoaderDependencyContainer(ConfigState(), db=AsyncMock())

        assert isinstance(container.cache_repository, PostgresCacheRepository)
        assert isinstance(container.mapping_repository, PostgresMappingRepository)
        assert isinstance(container.create_tracker(), PostgresProcessTracker)

    @pytest.mark.asyncio
    async def test_id_registry_seeded_per_type(self):
        db = AsyncMock()
        existing = encode_identifier(EntityType.EQUITY, 41)

        async def fetch(query, low, high):
            return [{"sid": existing}] if low <= existing <= high else []

        db.fetch.side_effect = fetch
        registry = await LoaderDependencyContainer(ConfigState(), db=db).create_id_registry()

        assert registry.next_id(EntityType.EQUITY) == encode_identifier(EntityType.EQUITY, 42)
        assert registry.next_id(EntityType.ETF) == encode_identifier(EntityType.ETF, 1)


class TestPipeline:
    @pytest.mark.asyncio
    async def test_pipeline_runs_end_to_end(self, http_client):
        config = make_config(coingecko={"base_url": "https://cg.test", "path": "/coins/{identifier}"})
        container = LoaderDependencyContainer(config, http_client=http_client)
        pipeline = container.create_pipeline("crypto_prices")
        task = FetchTask(entity_id=encode_identifier(EntityType.CRYPTOCURRENCY, 1), canonical_symbol="bitcoin")

        result = await pipeline.run([task])

        assert result.succeeded == 1
        assert http_client.get.await_args.args[0] == "https://cg.test/coins/bitcoin"
        assert await container.mapping_repository.get(task.entity_id, "coingecko") is not None
        assert len(container.cache_repository) == 1

        await container.close()
        http_client.close.assert_awaited_once()
