"""
Loader Exception Hierarchy

Every failure that crosses a vendor boundary is classified once, into a
``LoaderError`` subclass carrying an ``ErrorKind``. Retry, skip and abort
decisions are made on the kind alone, never on message text.
"""

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    """How the pipeline reacts to a failure."""

    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    UNSUPPORTED = "unsupported"
    AUTH_FAILED = "auth_failed"
    NOT_FOUND = "not_found"
    DATA_INTEGRITY = "data_integrity"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.NETWORK)

    @property
    def skips_task(self) -> bool:
        return self is ErrorKind.UNSUPPORTED

    @property
    def aborts_run(self) -> bool:
        return self is ErrorKind.AUTH_FAILED


class LoaderError(Exception):
    """Base exception for classified loader failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        source: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class RateLimitedError(LoaderError):
    """429 or an in-body rate-limit notice."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TransientNetworkError(LoaderError):
    """Connection errors, timeouts, 5xx."""

    kind = ErrorKind.NETWORK


class UnsupportedEntityError(LoaderError):
    """The entity cannot be loaded by this loader; the task is skipped."""

    kind = ErrorKind.UNSUPPORTED


class AuthenticationFailedError(LoaderError):
    """401/403 - bad or missing API key. Aborts the whole run."""

    kind = ErrorKind.AUTH_FAILED


class NotFoundError(LoaderError):
    """404 or a vendor notice that the symbol is unknown."""

    kind = ErrorKind.NOT_FOUND


class DataIntegrityError(LoaderError):
    """Response arrived but cannot be trusted or persisted."""

    kind = ErrorKind.DATA_INTEGRITY


class ConfigurationError(Exception):
    """Loader wired incorrectly (no sources, unknown source name...)."""


def classify(exc: BaseException) -> ErrorKind:
    """Return the ``ErrorKind`` of any exception; foreign ones are UNKNOWN."""
    if isinstance(exc, LoaderError):
        return exc.kind
    return ErrorKind.UNKNOWN


def _message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "Error Message", "Note", "Information"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return default


def _retry_after(headers: dict[str, str] | None, body: Any) -> float | None:
    candidates = []
    if headers:
        candidates.append(
            next((v for k, v in headers.items() if k.lower() == "retry-after"), None)
        )
    if isinstance(body, dict):
        candidates.append(body.get("retry_after", body.get("retryAfter")))
    for value in candidates:
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def map_http_error(
    status_code: int,
    body: Any = None,
    headers: dict[str, str] | None = None,
    source: str | None = None,
    endpoint: str = "",
) -> LoaderError:
    """Map a non-2xx HTTP response to a classified ``LoaderError``."""
    where = f" ({endpoint})" if endpoint else ""
    kwargs = {"source": source, "status_code": status_code}

    if status_code == 429:
        return RateLimitedError(
            _message(body, f"Rate limit exceeded{where}"),
            retry_after=_retry_after(headers, body),
            **kwargs,
        )
    if status_code in (401, 403):
        return AuthenticationFailedError(
            _message(body, f"Invalid API key or authentication failed{where}"), **kwargs
        )
    if status_code == 404:
        return NotFoundError(_message(body, f"Not found{where}"), **kwargs)
    if status_code in (408, 425) or status_code >= 500:
        return TransientNetworkError(_message(body, f"Server error {status_code}{where}"), **kwargs)
    if status_code == 422:
        return DataIntegrityError(_message(body, f"Unprocessable response{where}"), **kwargs)
    return LoaderError(_message(body, f"HTTP {status_code}{where}"), **kwargs)
