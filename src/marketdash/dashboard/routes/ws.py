"""Realtime quote feed over WebSocket.

Clients receive the latest quote snapshot on connect and every snapshot the
update loop produces afterwards. A client may narrow its feed by sending
``{"symbols": ["AAPL", "MSFT"]}``; an empty list restores the full feed.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

log = structlog.get_logger(__name__)

router = APIRouter()


class QuoteHub:
    """Connected quote clients, each with an optional symbol filter."""

    def __init__(self) -> None:
        self._filters: dict[WebSocket, frozenset[str]] = {}

    def __len__(self) -> int:
        return len(self._filters)

    @property
    def connections(self) -> list[WebSocket]:
        return list(self._filters)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._filters[ws] = frozenset()
        log.info("quote_client_joined", clients=len(self))

    def disconnect(self, ws: WebSocket) -> None:
        self._filters.pop(ws, None)
        log.info("quote_client_left", clients=len(self))

    def subscribe(self, ws: WebSocket, symbols: Iterable[Any]) -> frozenset[str]:
        """Replace a client's filter; non-string entries are ignored."""
        wanted = frozenset(
            s.strip().upper() for s in symbols if isinstance(s, str) and s.strip()
        )
        if ws in self._filters:
            self._filters[ws] = wanted
        return wanted

    def view(self, ws: WebSocket, snapshot: dict[str, Any]) -> dict[str, Any]:
        """The part of a snapshot a client asked for."""
        wanted = self._filters.get(ws)
        if not wanted:
            return snapshot
        quotes = [q for q in snapshot.get("quotes", []) if q.get("symbol") in wanted]
        return {**snapshot, "quotes": quotes}

    async def send_snapshot(self, ws: WebSocket, snapshot: dict[str, Any]) -> None:
        await ws.send_json(self.view(ws, snapshot))

    async def broadcast(self, snapshot: dict[str, Any]) -> None:
        """Push a snapshot to every client; clients that fail to receive are dropped."""
        for ws in self.connections:
            try:
                await self.send_snapshot(ws, snapshot)
            except Exception:
                self._filters.pop(ws, None)
                log.warning("quote_client_dropped", clients=len(self))


def _requested_symbols(message: str) -> list[Any] | None:
    try:
        data = json.loads(message)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("symbols"), list):
        return data["symbols"]
    return None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    hub: QuoteHub = websocket.app.state.hub
    await hub.connect(websocket)
    snapshot = getattr(websocket.app.state, "realtime_snapshot", None)
    if snapshot is not None:
        await hub.send_snapshot(websocket, snapshot)
    try:
        while True:
            symbols = _requested_symbols(await websocket.receive_text())
            if symbols is None:
                log.debug("quote_client_message_ignored")
                continue
            wanted = hub.subscribe(websocket, symbols)
            log.debug("quote_client_subscribed", symbols=sorted(wanted))
            current = getattr(websocket.app.state, "realtime_snapshot", None)
            if current is not None:
                await hub.send_snapshot(websocket, current)
    except WebSocketDisconnect:
        hub.disconnect(websocket)
