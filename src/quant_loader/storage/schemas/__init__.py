from .records import CacheEntry, SourceMapping

__all__ = ["CacheEntry", "SourceMapping"]
