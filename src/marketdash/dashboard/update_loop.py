"""Periodic realtime quote refresh for the dashboard.

Each cycle resolves the configured realtime tickers through the data access
layer (so it shares the cache and the request gate with every other
consumer), stores the snapshot on app.state for the ``/data/realtime``
route, and broadcasts it to connected WebSocket clients.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog
from fastapi import FastAPI

from marketdash.market_data.service import MarketDataService

log = structlog.get_logger(__name__)


async def refresh_realtime_snapshot(app: FastAPI) -> dict[str, Any]:
    """Fetch one snapshot, store it on app.state and broadcast it."""
    service: MarketDataService = app.state.market_data
    tickers: list[str] = app.state.realtime_tickers

    quotes = await service.get_batch_quotes(tickers)
    snapshot = {
        "type": "quotes",
        "quotes": [q.to_dict() for q in quotes],
        "updated_at": int(time.time() * 1000),
    }
    app.state.realtime_snapshot = snapshot

    hub = app.state.hub
    if hub.connections:
        await hub.broadcast(snapshot)

    log.debug("realtime_snapshot_refreshed", requested=len(tickers), received=len(quotes))
    return snapshot


async def realtime_update_loop(app: FastAPI) -> None:
    """Refresh the realtime snapshot immediately, then every update interval.

    Runs until the application shuts down. A failing cycle is logged and the
    loop carries on with the next one.
    """
    update_interval = getattr(app.state, "update_interval", 60)

    log.info("realtime_update_loop_started", interval=update_interval)

    while True:
        try:
            await refresh_realtime_snapshot(app)
            await asyncio.sleep(update_interval)
        except asyncio.CancelledError:
            log.info("realtime_update_loop_cancelled")
            break
        except Exception:
            log.warning("realtime_update_loop_error", exc_info=True)
            await asyncio.sleep(1)
