"""
Observability for the loader: structured logs with layer and component
context, so a single run can be followed from cache lookup to persist.
"""

from .logging import (
    APP_NAME,
    get_database_logger,
    get_infrastructure_logger,
    get_ingestion_logger,
    get_logger,
    get_pipeline_logger,
    setup_logging,
)

__all__ = [
    "APP_NAME",
    # Setup
    "setup_logging",
    # Base
    "get_logger",
    # Layer-specific
    "get_infrastructure_logger",
    "get_ingestion_logger",
    "get_pipeline_logger",
    # Aliases
    "get_database_logger",
]
