"""Token-injecting proxy to the upstream market-data API."""

from marketdash.proxy.forwarder import UpstreamForwarder, build_upstream_params, normalize_path

__all__ = ["UpstreamForwarder", "build_upstream_params", "normalize_path"]
