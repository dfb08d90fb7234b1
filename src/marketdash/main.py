"""Entry point for the market dashboard backend.

Wires all components together and serves them from one FastAPI app via
uvicorn's programmatic API. The proxy, the data access layer and the
realtime update loop share a single asyncio event loop; the FastAPI
lifespan owns startup and shutdown of every long-lived resource.

Component wiring order (in build_components):
1. AppSettings (configuration)
2. Logging setup
3. CacheStore (memory or SQLite backend, seeded profiles)
4. RequestGate (the one process-wide upstream queue)
5. ProxyTransport (data layer -> proxy)
6. MarketDataService (cache + gate + transport)
7. UpstreamForwarder (proxy -> upstream, token injection)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from marketdash.cache.store import create_cache_store
from marketdash.config import AppSettings
from marketdash.logging import get_logger, setup_logging
from marketdash.market_data.gate import RequestGate
from marketdash.market_data.service import MarketDataService
from marketdash.proxy.forwarder import UpstreamForwarder
from marketdash.transport.proxy_client import ProxyTransport


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Does NOT open connections or start background tasks -- that happens in
    the lifespan.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("marketdash.main")

    cache = create_cache_store(settings.cache)
    gate = RequestGate.from_settings(settings.gate)
    transport = ProxyTransport.from_settings(settings.client)
    market_data = MarketDataService(transport, gate, cache, tickers=settings.tickers)
    forwarder = UpstreamForwarder(settings.upstream)

    if not forwarder.has_api_key:
        logger.warning(
            "no_upstream_api_key_configured",
            note="Set UPSTREAM_API_KEY; proxied requests will be rejected upstream.",
        )

    logger.info(
        "components_built",
        gate_spacing_ms=settings.gate.min_spacing_ms,
        max_requests_per_minute=round(60000 / max(settings.gate.min_spacing_ms, 1), 1),
        cache_backend=settings.cache.backend,
    )

    return {
        "cache": cache,
        "gate": gate,
        "transport": transport,
        "market_data": market_data,
        "forwarder": forwarder,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state, connects the cache backend,
    starts the realtime quote loop.

    On shutdown: cancels the loop, closes the gate (failing queued requests),
    closes HTTP clients and the cache backend.
    """
    from marketdash.dashboard.update_loop import realtime_update_loop

    logger = get_logger("marketdash.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.market_data = components["market_data"]
    app.state.forwarder = components["forwarder"]
    app.state.proxy_settings = settings.proxy
    app.state.update_interval = settings.dashboard.update_interval
    app.state.realtime_tickers = list(settings.dashboard.realtime_tickers)

    cache_backend = components["cache"].backend
    await cache_backend.connect()

    update_task = None
    if settings.dashboard.realtime_enabled:
        update_task = asyncio.create_task(realtime_update_loop(app))

    logger.info("lifespan_started", realtime=settings.dashboard.realtime_enabled)

    yield

    if update_task is not None:
        update_task.cancel()
        try:
            await update_task
        except asyncio.CancelledError:
            pass

    await components["gate"].close()
    await components["transport"].close()
    await components["forwarder"].close()
    await cache_backend.close()

    logger.info("market_dashboard_stopped")


async def run() -> None:
    """Run the dashboard server."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("marketdash.main")

    # 3-7. Build all components
    components = build_components(settings)

    from marketdash.dashboard.app import create_dashboard_app

    app = create_dashboard_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_dashboard",
        host=settings.dashboard.host,
        port=settings.dashboard.port,
        proxy_url=settings.client.proxy_url,
    )

    config = uvicorn.Config(
        app,
        host=settings.dashboard.host,
        port=settings.dashboard.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
