"""
Tests for SourceFallbackCoordinator.
"""

from unittest.mock import AsyncMock

import pytest

from fakes import ScriptedAdapter
from quant_loader.ingestion.errors import (
    ConfigurationError,
    NotFoundError,
    RateLimitedError,
    TransientNetworkError,
)
from quant_loader.ingestion.fallback import SourceFallbackCoordinator
from quant_loader.ingestion.ports.sources import SourceResponse
from quant_loader.ingestion.tasks import FetchTask
from quant_loader.shared.models.identifiers import EntityType, encode_identifier
from quant_loader.storage.schemas import SourceMapping

BTC = encode_identifier(EntityType.CRYPTOCURRENCY, 1)


@pytest.fixture
def task():
    return FetchTask(entity_id=BTC, canonical_symbol="BTC", sources=["x", "y"])


class TestOrderedFallback:
    @pytest.mark.asyncio
    async def test_second_source_wins_and_only_it_gets_a_mapping(
        self, task, mapping_repository, clock
    ):
        x = ScriptedAdapter("x", NotFoundError("unknown symbol"))
        y = ScriptedAdapter("y", {"price": 42000})
        coordinator = SourceFallbackCoordinator([x, y], mapping_repository, clock=clock)

        resolution = await coordinator.resolve(task)

        assert resolution.source == "y"
        assert resolution.payload == {"price": 42000}
        assert resolution.mapping_created
        assert "x" in resolution.errors

        mappings = mapping_repository.all()
        assert len(mappings) == 1
        assert mappings[0].source_name == "y"
        assert mappings[0].source_identifier == "BTC"
        assert mappings[0].verified
        assert mappings[0].last_verified_at == clock.now
        assert await mapping_repository.get(BTC, "x") is None

    @pytest.mark.asyncio
    async def test_first_success_stops_iteration(self, task, mapping_repository):
        x = ScriptedAdapter("x", {"ok": True})
        y = ScriptedAdapter("y", {"never": True})
        coordinator = SourceFallbackCoordinator([x, y], mapping_repository)

        await coordinator.resolve(task)

        assert y.calls == []

    @pytest.mark.asyncio
    async def test_all_fail_reraises_last_error(self, task, mapping_repository):
        last = TransientNetworkError("timeout")
        coordinator = SourceFallbackCoordinator(
            [ScriptedAdapter("x", NotFoundError("nope")), ScriptedAdapter("y", last)],
            mapping_repository,
        )

        with pytest.raises(TransientNetworkError) as exc_info:
            await coordinator.resolve(task)

        assert exc_info.value is last
        assert mapping_repository.all() == []

    @pytest.mark.asyncio
    async def test_explicit_priority_overrides_task_sources(self, task, mapping_repository):
        x = ScriptedAdapter("x", {"from": "x"})
        y = ScriptedAdapter("y", {"from": "y"})
        coordinator = SourceFallbackCoordinator([x, y], mapping_repository)

        resolution = await coordinator.resolve(task, source_priority=["y", "x"])

        assert resolution.source == "y"
        assert x.calls == []


class TestMappings:
    @pytest.mark.asyncio
    async def test_existing_mapping_identifier_is_used_and_reverified(
        self, task, mapping_repository, clock
    ):
        await mapping_repository.upsert(
            SourceMapping(sid=BTC, source_name="x", source_identifier="bitcoin", verified=False)
        )
        x = ScriptedAdapter("x", {"ok": True})
        coordinator = SourceFallbackCoordinator([x], mapping_repository, clock=clock)

        resolution = await coordinator.resolve(task, source_priority=["x"])

        assert x.calls[0][0] == "bitcoin"
        assert not resolution.mapping_created
        mapping = await mapping_repository.get(BTC, "x")
        assert mapping.verified
        assert mapping.last_verified_at == clock.now

    @pytest.mark.asyncio
    async def test_adapter_reported_identifier_is_recorded(self, task, mapping_repository):
        x = ScriptedAdapter("x", SourceResponse(data={"id": "bitcoin"}, source_identifier="bitcoin"))
        coordinator = SourceFallbackCoordinator([x], mapping_repository)

        resolution = await coordinator.resolve(task, source_priority=["x"])

        assert resolution.identifier == "bitcoin"
        assert (await mapping_repository.get(BTC, "x")).source_identifier == "bitcoin"

    @pytest.mark.asyncio
    async def test_mapping_lookup_failure_falls_back_to_symbol(self, task):
        repository = AsyncMock()
        repository.get.side_effect = ConnectionError("db down")
        x = ScriptedAdapter("x", {"ok": True})
        coordinator = SourceFallbackCoordinator([x], repository)

        resolution = await coordinator.resolve(task, source_priority=["x"])

        assert x.calls[0][0] == "BTC"
        assert resolution.payload == {"ok": True}

    @pytest.mark.asyncio
    async def test_mapping_write_failure_does_not_fail_fetch(self, task):
        repository = AsyncMock()
        repository.get.return_value = None
        repository.upsert.side_effect = ConnectionError("db down")
        coordinator = SourceFallbackCoordinator([ScriptedAdapter("x", {"ok": 1})], repository)

        resolution = await coordinator.resolve(task, source_priority=["x"])

        assert resolution.payload == {"ok": 1}
        assert not resolution.mapping_created


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_empty_priority_is_configuration_error(self, mapping_repository):
        coordinator = SourceFallbackCoordinator([ScriptedAdapter("x")], mapping_repository)
        task = FetchTask(entity_id=BTC, canonical_symbol="BTC", sources=[])

        with pytest.raises(ConfigurationError):
            await coordinator.resolve(task)

    @pytest.mark.asyncio
    async def test_unknown_source_is_configuration_error(self, task, mapping_repository):
        coordinator = SourceFallbackCoordinator([ScriptedAdapter("x")], mapping_repository)

        with pytest.raises(ConfigurationError, match="y"):
            await coordinator.resolve(task)

    @pytest.mark.asyncio
    async def test_default_priority_used_when_task_has_none(self, mapping_repository):
        coordinator = SourceFallbackCoordinator(
            [ScriptedAdapter("x", {"v": 1})], mapping_repository, default_priority=["x"]
        )
        task = FetchTask(entity_id=BTC, canonical_symbol="BTC")

        assert (await coordinator.resolve(task)).source == "x"

    def test_duplicate_adapters_rejected(self, mapping_repository):
        with pytest.raises(ConfigurationError):
            SourceFallbackCoordinator([ScriptedAdapter("x"), ScriptedAdapter("X")], mapping_repository)


class TestStatsAndCache:
    @pytest.mark.asyncio
    async def test_stats_track_attempts_and_rate_limits(self, task, mapping_repository):
        coordinator = SourceFallbackCoordinator(
            [ScriptedAdapter("x", RateLimitedError("slow down")), ScriptedAdapter("y", {"v": 1})],
            mapping_repository,
        )

        await coordinator.resolve(task)

        stats = coordinator.get_stats()
        assert stats["x"].attempts == 1
        assert stats["x"].failures == 1
        assert stats["x"].rate_limited
        assert stats["y"].successes == 1

    @pytest.mark.asyncio
    async def test_per_source_cache_short_circuits_second_call(
        self, task, mapping_repository, cache_store
    ):
        x = ScriptedAdapter("x", {"v": 1})
        coordinator = SourceFallbackCoordinator([x], mapping_repository, cache_store=cache_store)

        first = await coordinator.resolve(task, source_priority=["x"])
        second = await coordinator.resolve(task, source_priority=["x"])

        assert not first.from_cache
        assert second.from_cache
        assert second.payload == {"v": 1}
        assert len(x.calls) == 1
