"""
Structured logging infrastructure for quant-loader.
Provides consistent, machine-readable logs across the acquisition engine.

Log Structure:
    {
        "app": "quant-loader",          # Application identifier
        "layer": "ingestion",            # Architectural layer
        "component": "fallback",         # Specific component
        "module": "...",                 # Python module (optional)
        "source": "alphavantage",        # Vendor context
        "event": "source_fetch_failed",  # What happened
        ...
    }

Architectural Layers:
    - infrastructure: Cross-cutting (database, executors, config)
    - ingestion: Data acquisition (cache, batching, fallback, vendor adapters)
    - pipeline: Loader runs and process tracking
    (Repositories log through stdlib logging.)
"""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict

APP_NAME = "quant-loader"

Layer = Literal["infrastructure", "ingestion", "pipeline"]

_SEVERITY = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every entry with the application identifier."""
    event_dict["app"] = APP_NAME
    return event_dict


def add_severity_level(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add a cloud-logging style ``severity`` next to structlog's ``level``."""
    level = event_dict.get("level")
    if level:
        event_dict["severity"] = _SEVERITY.get(level, "INFO")
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_logs: bool = True,
    include_timestamp: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON. If False, use human-readable format (dev mode).
        include_timestamp: Whether to include ISO timestamps in logs

    Usage:
        >>> from quant_loader.infrastructure.observability import setup_logging
        >>> setup_logging(level="DEBUG", json_logs=False)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        add_severity_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    name: str | None = None,
    layer: Layer | None = None,
    component: str | None = None,
    **initial_context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance with architectural context.

    Args:
        name: Logger name (typically __name__ of the calling module)
        layer: Architectural layer
        component: Specific component within the layer
        **initial_context: Additional context key-value pairs to bind

    Usage:
        >>> log = get_logger(__name__, layer="ingestion", component="cache-store")
        >>> log.info("cache_hit", key="QUOTE_AAPL")
    """
    logger = structlog.get_logger(name)

    context = {}
    if layer:
        context["layer"] = layer
    if component:
        context["component"] = component
    if name:
        context["module"] = name
    context.update(initial_context)

    if context:
        logger = logger.bind(**context)

    return logger


# ============================================================================
# Layer-Specific Logger Factories
# ============================================================================


def get_infrastructure_logger(
    component: str,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Logger for cross-cutting infrastructure (database pool, executors, config).

    Usage:
        >>> log = get_infrastructure_logger("database", dsn_host="localhost")
        >>> log.info("pool_created", min_size=1)
    """
    return get_logger(
        "infrastructure",
        layer="infrastructure",
        component=component,
        **context,
    )


def get_ingestion_logger(
    component: str,
    source: str | None = None,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Logger for the ingestion layer (data acquisition).

    Args:
        component: Component name (e.g., "batch-processor", "fallback", "http-adapter")
        source: Vendor name (e.g., "alphavantage", "coingecko") - optional
        **context: Additional context

    Usage:
        >>> log = get_ingestion_logger("http-adapter", source="coingecko")
        >>> log.info("request_sent", endpoint="/coins/bitcoin")
    """
    ctx = {}
    if source:
        ctx["source"] = source
    ctx.update(context)

    return get_logger(
        "ingestion",
        layer="ingestion",
        component=component,
        **ctx,
    )


def get_pipeline_logger(
    component: str = "loader",
    loader: str | None = None,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Logger for loader runs and process tracking.

    Usage:
        >>> log = get_pipeline_logger(loader="equity_overview")
        >>> log.info("run_started", tasks=120)
    """
    ctx = {}
    if loader:
        ctx["loader"] = loader
    ctx.update(context)

    return get_logger(
        "pipeline",
        layer="pipeline",
        component=component,
        **ctx,
    )


def get_database_logger(**context: Any) -> structlog.stdlib.BoundLogger:
    """Convenience alias for database logging (infrastructure layer)."""
    return get_infrastructure_logger("database-adapter", **context)
