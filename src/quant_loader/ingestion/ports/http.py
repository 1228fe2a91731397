"""HTTP communication abstractions for vendor adapters.

Separates the transport from error classification, so adapters can be
tested with a fake client.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class HttpResponse:
    """HTTP response data container."""

    status_code: int
    body: Any  # JSON-decoded body, or raw text when not JSON
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class IHttpClient(Protocol):
    """Abstraction for HTTP client.

    Executes requests and returns responses. Does NOT map errors or retry.
    """

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """Execute GET request.

        Raises:
            TransientNetworkError: On connection errors and timeouts
        """
        ...

    async def close(self) -> None:
        ...
