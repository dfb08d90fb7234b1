"""FastAPI application factory: proxy, JSON data routes and WebSocket hub."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from marketdash.config import ProxySettings
from marketdash.dashboard.routes import data, ws
from marketdash.proxy import routes as proxy_routes


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        FastAPI application with the proxy under /api, data routes under
        /data and the realtime WebSocket at /ws. Components (forwarder,
        market_data) are attached to app.state by the lifespan or by tests.
    """
    app = FastAPI(
        title="Market Dashboard",
        lifespan=lifespan,
    )

    app.state.hub = ws.QuoteHub()
    app.state.proxy_settings = ProxySettings()
    app.state.realtime_snapshot = None
    app.state.realtime_tickers = []

    app.include_router(proxy_routes.router, prefix="/api")
    app.include_router(data.router, prefix="/data")
    app.include_router(ws.router)

    return app
