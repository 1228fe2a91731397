"""Configuration value objects for dependency injection.

Instead of injecting the whole ``ConfigState`` into each component, inject
the specific frozen dataclass it needs. Built once at the composition root.
"""

from dataclasses import dataclass

from quant_loader.config.state import LoaderSettings, VendorConfig


@dataclass(frozen=True)
class HttpClientConfig:
    """Configuration for HTTP client."""

    timeout: float = 30.0
    connect_timeout: float = 10.0
    verify_ssl: bool = True

    @classmethod
    def from_vendor(cls, vendor: VendorConfig) -> "HttpClientConfig":
        return cls(timeout=vendor.timeout)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    rate_limit_max_delay: float = 60.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0 or self.max_delay < 0 or self.rate_limit_max_delay < 0:
            raise ValueError("retry delays must be >= 0")

    @classmethod
    def from_settings(cls, settings: LoaderSettings) -> "RetryConfig":
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            rate_limit_max_delay=settings.rate_limit_max_delay,
        )


@dataclass(frozen=True)
class BatchConfig:
    """Configuration for bounded-concurrency batch execution."""

    batch_size: int = 100
    max_concurrent: int = 5
    batch_delay_seconds: float = 0.1
    continue_on_error: bool = True

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if self.batch_delay_seconds < 0:
            raise ValueError("batch_delay_seconds must be >= 0")

    @classmethod
    def from_settings(cls, settings: LoaderSettings) -> "BatchConfig":
        return cls(
            batch_size=settings.batch_size,
            max_concurrent=settings.max_concurrent,
            batch_delay_seconds=settings.batch_delay_seconds,
            continue_on_error=settings.continue_on_error,
        )
