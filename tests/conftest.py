"""
Shared fixtures for the loader test suite: a controllable clock and
in-memory repositories.
"""

import pytest

from fakes import FakeClock
from quant_loader.config.state import CacheSettings, LoaderSettings
from quant_loader.ingestion.cache.store import CacheStore
from quant_loader.storage.repositories import (
    InMemoryCacheRepository,
    InMemoryMappingRepository,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_repository():
    return InMemoryCacheRepository()


@pytest.fixture
def mapping_repository():
    return InMemoryMappingRepository()


@pytest.fixture
def cache_store(cache_repository, clock):
    return CacheStore(cache_repository, CacheSettings(ttl_hours=1), clock=clock)


@pytest.fixture
def fast_settings():
    """Loader settings with no real waiting."""
    return LoaderSettings(
        max_concurrent=2,
        batch_size=10,
        batch_delay_seconds=0,
        max_retries=2,
        retry_base_delay=0,
        retry_max_delay=0,
        rate_limit_max_delay=0,
    )
