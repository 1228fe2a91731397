"""
Shared enumerations for the quant-loader engine.

Separates WHO we fetch from (data sources) from WHAT state a unit of
work or a whole run ends in.
"""

import enum


# ============================================================================
# DATA SOURCES
# ============================================================================
class DataSource(str, enum.Enum):
    """External data providers. Every vendor carries its own tag.

    The value doubles as the ``api_source`` partition in the response
    cache and as ``source_name`` in the source-mapping table.
    """

    ALPHAVANTAGE = "alphavantage"
    COINGECKO = "coingecko"
    COINPAPRIKA = "coinpaprika"
    COINCAP = "coincap"
    COINMARKETCAP = "coinmarketcap"
    SOSOVALUE = "sosovalue"

    @classmethod
    def parse(cls, value: str) -> "DataSource | None":
        """Case-insensitive lookup by value, ``None`` when unknown."""
        normalized = value.strip().lower().replace("-", "").replace("_", "")
        for member in cls:
            if member.value == normalized:
                return member
        return None


# ============================================================================
# TASK & RUN LIFECYCLE
# ============================================================================
class TaskState(str, enum.Enum):
    """Lifecycle of a single fetch task.

    PENDING -> SUCCEEDED (cache hit), or
    PENDING -> IN_FLIGHT -> SUCCEEDED | FAILED | SKIPPED.
    """

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED)


class ProcessState(str, enum.Enum):
    """State of a tracked process (one loader run)."""

    RUNNING = "running"
    SUCCESS = "success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"

    @classmethod
    def from_counts(cls, succeeded: int, failed: int) -> "ProcessState":
        """Derive the terminal run state from task outcome counts.

        Zero failures is a success (skips do not count as failures);
        failures with nothing succeeded is a failed run.
        """
        if failed == 0:
            return cls.SUCCESS
        if succeeded == 0:
            return cls.FAILED
        return cls.COMPLETED_WITH_ERRORS
