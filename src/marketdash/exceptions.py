"""Custom exceptions for the market data layer.

Transport, gate and service exceptions live here to avoid circular
imports between modules. "No data" is not an exception:
an empty quote or candle response is a normal, absent result.
"""


class MarketDataError(Exception):
    """Base exception for all market data errors."""


class RateLimitedError(MarketDataError):
    """Raised when the upstream signals request-quota exhaustion (HTTP 429).

    Expected background noise on a shared free-tier key; callers log it at
    debug level and treat it as "no result this cycle".
    """


class UpstreamError(MarketDataError):
    """Raised when the upstream (or the proxy) answers with a non-success status."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"Upstream API error: {status}")
        self.status = status
        self.body = body


class NetworkError(MarketDataError):
    """Raised on transport failures: connection errors and request timeouts."""


class GateClosedError(MarketDataError):
    """Raised for requests still queued when the request gate shuts down."""
