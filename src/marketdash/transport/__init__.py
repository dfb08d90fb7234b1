"""Upstream transport layer -- market-data API access via the same-origin proxy."""

from marketdash.transport.client import UpstreamTransport
from marketdash.transport.proxy_client import ProxyTransport

__all__ = ["ProxyTransport", "UpstreamTransport"]
