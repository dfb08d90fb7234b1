"""Upstream forwarding with server-side token injection.

The proxy is the security boundary: the API key is read from the server
environment and overwrites any ``token`` the client sent, so a browser never
sees the key and can never substitute its own.
"""

from collections.abc import Iterable, Sequence

import httpx

from marketdash.config import UpstreamSettings
from marketdash.logging import get_logger

logger = get_logger(__name__)

TOKEN_PARAM = "token"
PATH_PARAM = "path"


def normalize_path(path: str | Sequence[str] | None) -> str:
    """Join a path given as a string or as ordered segments; strip outer slashes.

    >>> normalize_path(["stock", "candle"])
    'stock/candle'
    >>> normalize_path("/quote")
    'quote'
    """
    if path is None:
        return ""
    if isinstance(path, str):
        joined = path
    else:
        joined = "/".join(segment.strip("/") for segment in path if segment)
    return joined.strip("/")


def build_upstream_params(
    query_items: Iterable[tuple[str, str]], api_key: str
) -> list[tuple[str, str]]:
    """Forward query parameters verbatim except for the token, which is replaced."""
    params = [(key, value) for key, value in query_items if key != TOKEN_PARAM]
    params.append((TOKEN_PARAM, api_key))
    return params


class UpstreamForwarder:
    """Sends proxied GET requests to the upstream API."""

    def __init__(
        self,
        settings: UpstreamSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    @property
    def has_api_key(self) -> bool:
        return bool(self._settings.api_key.get_secret_value())

    async def forward(
        self, path: str, query_items: Iterable[tuple[str, str]]
    ) -> httpx.Response:
        """GET ``<base_url>/<path>`` with the client's query plus the injected token.

        Raises:
            httpx.HTTPError: The upstream could not be reached.
        """
        url = f"{self._base_url}/{normalize_path(path)}"
        params = build_upstream_params(
            query_items, self._settings.api_key.get_secret_value()
        )
        response = await self._client.get(url, params=params)
        logger.debug("proxy_forwarded", path=path, status=response.status_code)
        return response

    async def close(self) -> None:
        await self._client.aclose()
