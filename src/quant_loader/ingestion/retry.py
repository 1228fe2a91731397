"""
Retry policy

Distinguishes retryable failures (rate limits, transient network errors)
from permanent ones by ``ErrorKind`` and computes exponential backoff.
"""

from quant_loader.ingestion.config.value_objects import RetryConfig
from quant_loader.ingestion.errors import ErrorKind, RateLimitedError, classify


class RetryPolicy:
    """Decides whether and how long to wait before another attempt."""

    def __init__(self, config: RetryConfig | None = None):
        self.config = config or RetryConfig()

    @property
    def max_retries(self) -> int:
        return self.config.max_retries

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """
        Args:
            error: The failure of the attempt that just ran
            attempt: Retries already performed (0 after the first failure)
        """
        return classify(error).retryable and attempt < self.config.max_retries

    def delay_for(self, error: BaseException, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt + 1``.

        Rate limits honour the vendor's ``retry_after`` and get a larger cap.
        """
        kind = classify(error)
        cap = (
            self.config.rate_limit_max_delay
            if kind is ErrorKind.RATE_LIMITED
            else self.config.max_delay
        )

        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            return min(max(error.retry_after, 0.0), cap)

        return min(self.config.base_delay * 2**attempt, cap)
