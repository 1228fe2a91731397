"""
Generic HTTP vendor adapter.

Builds one GET request per fetch from the task's request shape, spaces
requests by ``request_interval`` and turns non-2xx responses into
classified ``LoaderError``s. Vendor-specific body checks go in
``check_body``.
"""

import asyncio
import time
from typing import Any

from quant_loader.config.state import VendorConfig
from quant_loader.ingestion.errors import map_http_error
from quant_loader.ingestion.ports.http import HttpResponse, IHttpClient
from quant_loader.ingestion.ports.sources import SourceResponse
from quant_loader.ingestion.tasks import FetchTask
from quant_loader.infrastructure.observability import get_ingestion_logger


class HttpSourceAdapter:
    """ISourceAdapter over a JSON HTTP API.

    Args:
        source: Vendor name, matches ``DataSource`` values
        http_client: Transport
        base_url: API root
        path: Appended to ``base_url``; may contain ``{identifier}``
        identifier_param: Query parameter carrying the identifier when
            ``path`` does not
        api_key: Sent as ``api_key_param`` query parameter or ``api_key_header``
        request_interval: Minimum seconds between two requests
    """

    def __init__(
        self,
        source: str,
        http_client: IHttpClient,
        base_url: str,
        *,
        path: str = "",
        identifier_param: str | None = "symbol",
        api_key: str | None = None,
        api_key_param: str | None = None,
        api_key_header: str | None = None,
        request_interval: float = 0.0,
        timeout: float | None = None,
    ):
        self.source = source.lower()
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.identifier_param = identifier_param
        self.api_key = api_key
        self.api_key_param = api_key_param
        self.api_key_header = api_key_header
        self.request_interval = request_interval
        self.timeout = timeout

        self._last_request_time = 0.0
        self._interval_lock = asyncio.Lock()
        self.log = get_ingestion_logger("http-adapter", source=self.source)

    @classmethod
    def from_config(
        cls, source: str, http_client: IHttpClient, vendor: VendorConfig, **kwargs: Any
    ) -> "HttpSourceAdapter":
        return cls(
            source,
            http_client,
            vendor.base_url,
            api_key=vendor.api_key,
            request_interval=vendor.request_interval,
            timeout=vendor.timeout,
            **kwargs,
        )

    async def _wait_for_interval(self) -> None:
        if self.request_interval <= 0:
            return
        async with self._interval_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.request_interval:
                await asyncio.sleep(self.request_interval - elapsed)
            self._last_request_time = time.monotonic()

    def build_request(
        self, identifier: str, task: FetchTask
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        """URL, query parameters and headers for one fetch."""
        url = self.base_url + self.path.format(identifier=identifier)
        params = {k: v for k, v in task.request.items() if v is not None}
        if "{identifier}" not in self.path and self.identifier_param:
            params[self.identifier_param] = identifier

        headers: dict[str, str] = {}
        if self.api_key:
            if self.api_key_header:
                headers[self.api_key_header] = self.api_key
            elif self.api_key_param:
                params[self.api_key_param] = self.api_key
        return url, params, headers

    def check_body(self, response: HttpResponse, identifier: str) -> None:
        """Raise a ``LoaderError`` for error payloads sent with a 2xx status."""

    def resolved_identifier(self, body: Any, identifier: str) -> str | None:
        """Vendor's own identifier for the entity, when the body reports one."""
        return None

    async def fetch(self, identifier: str, task: FetchTask) -> SourceResponse:
        await self._wait_for_interval()
        url, params, headers = self.build_request(identifier, task)

        self.log.debug("request_sent", url=url, identifier=identifier)
        response = await self.http_client.get(
            url, params=params, headers=headers or None, timeout=self.timeout
        )

        if not response.ok:
            raise map_http_error(
                response.status_code,
                response.body,
                response.headers,
                source=self.source,
                endpoint=url,
            )

        self.check_body(response, identifier)
        return SourceResponse(
            data=response.body,
            source_identifier=self.resolved_identifier(response.body, identifier),
            endpoint=url,
            status_code=response.status_code,
        )
