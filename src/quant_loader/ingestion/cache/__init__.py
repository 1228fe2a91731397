from .store import CacheResult, CacheStatus, CacheStore

__all__ = ["CacheResult", "CacheStatus", "CacheStore"]
