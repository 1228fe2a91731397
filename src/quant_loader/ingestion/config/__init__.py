from .value_objects import BatchConfig, HttpClientConfig, RetryConfig

__all__ = ["BatchConfig", "HttpClientConfig", "RetryConfig"]
