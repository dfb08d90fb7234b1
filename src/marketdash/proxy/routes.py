"""Same-origin proxy routes mounted under ``/api``.

``GET /api/<upstream-path>?<query>`` is relayed to the upstream API with the
server-side token. Successful responses get short shared-cache headers;
upstream failures are relayed with their own status and a structured body;
only failures of the proxy itself become a generic 500.
"""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from marketdash.config import ProxySettings
from marketdash.proxy.forwarder import PATH_PARAM, UpstreamForwarder, normalize_path

log = structlog.get_logger(__name__)

router = APIRouter()

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "86400",
}


def _cache_control(settings: ProxySettings) -> str:
    return (
        f"public, s-maxage={settings.s_maxage}, "
        f"stale-while-revalidate={settings.stale_while_revalidate}"
    )


def _resolve_target(path: str, request: Request) -> tuple[str, list[tuple[str, str]]]:
    """Return (upstream path, forwarded query items).

    Supports both ``/api/stock/candle?...`` and the catch-all convention
    ``/api?path=stock&path=candle&...`` where the path arrives as a query
    parameter (single value or ordered list of segments).
    """
    items = request.query_params.multi_items()
    if path:
        return normalize_path(path), items
    segments = request.query_params.getlist(PATH_PARAM)
    forwarded = [(key, value) for key, value in items if key != PATH_PARAM]
    return normalize_path(segments), forwarded


@router.options("")
@router.options("/{path:path}")
async def proxy_preflight() -> Response:
    """Answer CORS preflight for cross-origin frontends."""
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)


@router.get("")
@router.get("/{path:path}")
async def proxy_get(request: Request) -> Response:
    """Relay a GET to the upstream API with the server-side token."""
    forwarder: UpstreamForwarder = request.app.state.forwarder
    settings: ProxySettings = request.app.state.proxy_settings

    upstream_path, query_items = _resolve_target(
        request.path_params.get("path", ""), request
    )

    with structlog.contextvars.bound_contextvars(upstream_path=upstream_path):
        return await _relay(forwarder, settings, upstream_path, query_items)


async def _relay(
    forwarder: UpstreamForwarder,
    settings: ProxySettings,
    upstream_path: str,
    query_items: list[tuple[str, str]],
) -> Response:
    try:
        upstream = await forwarder.forward(upstream_path, query_items)
    except httpx.HTTPError:
        log.error("proxy_exception", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Proxy Error"},
            headers=CORS_HEADERS,
        )

    if not upstream.is_success:
        if upstream.status_code == 429:
            log.debug("proxy_upstream_rate_limited")
        else:
            log.warning("proxy_upstream_error", status=upstream.status_code)
        return JSONResponse(
            status_code=upstream.status_code,
            content={
                "error": "Upstream API Error",
                "status": upstream.status_code,
                "details": upstream.text,
            },
            headers=CORS_HEADERS,
        )

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type", "application/json"),
        headers={**CORS_HEADERS, "Cache-Control": _cache_control(settings)},
    )
