"""Configuration package for quant_loader."""

from .state import (
    CacheSettings,
    ConfigLoader,
    ConfigState,
    LoaderSettings,
    SourcesConfig,
    VendorConfig,
    get_config,
)

__all__ = [
    "CacheSettings",
    "ConfigLoader",
    "ConfigState",
    "LoaderSettings",
    "SourcesConfig",
    "VendorConfig",
    "get_config",
]
