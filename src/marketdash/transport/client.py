"""Abstract upstream transport interface.

The data access layer depends only on this interface, keeping the HTTP
details (proxy URL, status mapping) isolated in the concrete implementation
and letting tests substitute an AsyncMock.
"""

from abc import ABC, abstractmethod
from typing import Any


class UpstreamTransport(ABC):
    """Abstract base class for market-data API transports."""

    @abstractmethod
    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET an upstream endpoint and return the decoded JSON body.

        Args:
            path: Upstream path such as "/quote" or "/stock/candle".
            params: Query parameters. Never includes the access token.

        Raises:
            RateLimitedError: Upstream answered 429.
            UpstreamError: Any other non-success status or an undecodable body.
            NetworkError: The request could not be completed.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connection resources."""
        ...
