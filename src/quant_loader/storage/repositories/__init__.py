"""Repositories for the loader's tables (PostgreSQL and in-memory)."""

from .cache import InMemoryCacheRepository, PostgresCacheRepository
from .identifiers import InMemoryIdentifierScan, PostgresIdentifierScan
from .mappings import InMemoryMappingRepository, PostgresMappingRepository

__all__ = [
    "InMemoryCacheRepository",
    "InMemoryIdentifierScan",
    "InMemoryMappingRepository",
    "PostgresCacheRepository",
    "PostgresIdentifierScan",
    "PostgresMappingRepository",
]
