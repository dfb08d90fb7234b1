"""HTTP transport that reaches the upstream API through the token-injecting proxy.

The access key never appears here: requests go to the proxy's ``/api``
prefix, which appends the token server-side.
"""

from typing import Any

import httpx

from marketdash.config import ClientSettings
from marketdash.exceptions import NetworkError, RateLimitedError, UpstreamError
from marketdash.logging import get_logger
from marketdash.transport.client import UpstreamTransport

logger = get_logger(__name__)


class ProxyTransport(UpstreamTransport):
    """Concrete transport using an httpx.AsyncClient against the proxy."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "ProxyTransport":
        return cls(settings.proxy_url, timeout=settings.timeout_seconds)

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError(f"Rate limited on {path}")
        if not response.is_success:
            raise UpstreamError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(response.status_code, response.text) from exc

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()
        logger.info("proxy_transport_closed", base_url=self._base_url)
