"""
AlphaVantage adapter.

AlphaVantage answers most failures with HTTP 200 and a notice in the body:
  - "Note" / "Information": call frequency or daily quota exceeded
  - "Error Message": invalid call, usually an unknown symbol, or a bad key
  - {}: no data for the symbol
These are classified here, once, so nothing downstream reads message text.

Requests always ask for ``datatype=json``, so any other body (an HTML or
CSV error page) is a data integrity failure.
"""

from typing import Any

from quant_loader.config.state import VendorConfig
from quant_loader.ingestion.adapters.http_source import HttpSourceAdapter
from quant_loader.ingestion.errors import (
    AuthenticationFailedError,
    DataIntegrityError,
    NotFoundError,
    RateLimitedError,
)
from quant_loader.ingestion.ports.http import HttpResponse, IHttpClient
from quant_loader.shared.models.enums import DataSource

ALPHAVANTAGE_URL = "https://www.alphavantage.co/query"

# Free tier: 5 requests per minute
DEFAULT_RATE_LIMIT_RETRY_AFTER = 60.0


class AlphaVantageSourceAdapter(HttpSourceAdapter):
    """``task.request`` carries the AlphaVantage ``function`` and its options."""

    def __init__(
        self,
        http_client: IHttpClient,
        api_key: str,
        base_url: str = ALPHAVANTAGE_URL,
        request_interval: float = 12.0,
        timeout: float | None = None,
    ):
        if not api_key:
            raise ValueError("AlphaVantage requires an API key")
        super().__init__(
            DataSource.ALPHAVANTAGE.value,
            http_client,
            base_url,
            identifier_param="symbol",
            api_key=api_key,
            api_key_param="apikey",
            request_interval=request_interval,
            timeout=timeout,
        )

    @classmethod
    def from_config(
        cls, source: str, http_client: IHttpClient, vendor: VendorConfig, **kwargs: Any
    ) -> "AlphaVantageSourceAdapter":
        return cls(
            http_client,
            api_key=vendor.api_key or "",
            base_url=vendor.base_url or ALPHAVANTAGE_URL,
            request_interval=vendor.request_interval,
            timeout=vendor.timeout,
        )

    def build_request(self, identifier, task):
        url, params, headers = super().build_request(identifier, task)
        params.setdefault("datatype", "json")
        return url, params, headers

    def check_body(self, response: HttpResponse, identifier: str) -> None:
        body = response.body
        kwargs = {"source": self.source, "status_code": response.status_code}

        if not isinstance(body, dict):
            raise DataIntegrityError(
                f"AlphaVantage returned {type(body).__name__} instead of a JSON object "
                f"for {identifier}",
                **kwargs,
            )

        for key in ("Note", "Information"):
            if key in body:
                raise RateLimitedError(
                    f"AlphaVantage notice: {body[key]}",
                    retry_after=DEFAULT_RATE_LIMIT_RETRY_AFTER,
                    **kwargs,
                )

        if "Error Message" in body:
            message = str(body["Error Message"])
            if "apikey" in message.lower():
                raise AuthenticationFailedError(f"AlphaVantage error: {message}", **kwargs)
            raise NotFoundError(f"AlphaVantage error for {identifier}: {message}", **kwargs)

        if not body:
            raise NotFoundError(f"AlphaVantage returned no data for {identifier}", **kwargs)

    def resolved_identifier(self, body: Any, identifier: str) -> str | None:
        if isinstance(body, dict):
            symbol = body.get("Symbol")
            if isinstance(symbol, str) and symbol:
                return symbol
        return None
