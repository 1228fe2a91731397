"""Concrete HTTP client implementation for async requests.

Wraps aiohttp behind the IHttpClient abstraction. Transport failures are
raised as ``TransientNetworkError``, undecodable bodies as
``DataIntegrityError``. Status codes are left to the caller.
"""

import asyncio
from typing import Any

import aiohttp

from quant_loader.ingestion.config.value_objects import HttpClientConfig
from quant_loader.ingestion.errors import DataIntegrityError, TransientNetworkError
from quant_loader.ingestion.ports.http import HttpResponse, IHttpClient


class AiohttpClient(IHttpClient):
    """HTTP client implementation using aiohttp."""

    def __init__(self, config: HttpClientConfig | None = None):
        self.config = config or HttpClientConfig()
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=self.config.timeout, connect=self.config.connect_timeout
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

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
            DataIntegrityError: Response body does not decode
        """
        session = await self._get_session()
        timeout_obj = aiohttp.ClientTimeout(total=timeout or self.config.timeout)

        try:
            async with session.get(
                url,
                params=params,
                headers=headers,
                timeout=timeout_obj,
                ssl=None if self.config.verify_ssl else False,
            ) as resp:
                try:
                    if resp.content_type == "application/json":
                        body = await resp.json()
                    else:
                        body = await resp.text()
                except ValueError as e:
                    raise DataIntegrityError(
                        f"Undecodable response from {url}: {e}", status_code=resp.status
                    ) from e
                return HttpResponse(
                    status_code=resp.status,
                    body=body,
                    headers=dict(resp.headers),
                    url=str(resp.url),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientNetworkError(f"Network error calling {url}: {e!r}") from e

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AiohttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
