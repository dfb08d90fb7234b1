"""JSON data endpoints consumed by the dashboard widgets.

Every route goes through the MarketDataService, so widgets share its cache
and request gate. Single-entity lookups answer 404 when the data layer
resolves to absent; collection routes answer an empty list.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from marketdash.market_data.service import MarketDataService
from marketdash.models import ChartRange

log = structlog.get_logger(__name__)

router = APIRouter()

NOT_FOUND = {"error": "not_found"}


def _service(request: Request) -> MarketDataService:
    return request.app.state.market_data


@router.get("/quote/{symbol}")
async def get_quote(symbol: str, request: Request) -> JSONResponse:
    quote = await _service(request).get_quote(symbol)
    if quote is None:
        return JSONResponse(status_code=404, content=NOT_FOUND)
    return JSONResponse(content=quote.to_dict())


@router.get("/quotes")
async def get_quotes(request: Request, symbols: str = "") -> JSONResponse:
    """Batch quotes for a comma-separated symbol list, in request order."""
    tickers = [s.strip() for s in symbols.split(",") if s.strip()]
    quotes = await _service(request).get_batch_quotes(tickers)
    return JSONResponse(content=[q.to_dict() for q in quotes])


@router.get("/chart/{symbol}")
async def get_chart(
    symbol: str,
    request: Request,
    chart_range: ChartRange = Query(ChartRange.ONE_MONTH, alias="range"),
) -> JSONResponse:
    series = await _service(request).get_chart_series(symbol, chart_range)
    return JSONResponse(content=series.to_dict())


@router.get("/financials/{symbol}")
async def get_financials(symbol: str, request: Request) -> JSONResponse:
    metrics = await _service(request).get_financial_summary(symbol)
    return JSONResponse(content=[m.to_dict() for m in metrics])


@router.get("/news")
async def get_news(request: Request, symbol: str | None = None) -> JSONResponse:
    """Company news when ``symbol`` is given, otherwise the global feed."""
    items = await _service(request).get_news(symbol or None)
    return JSONResponse(content=[item.to_dict() for item in items])


@router.get("/search")
async def search(request: Request, q: str = "") -> JSONResponse:
    quotes = await _service(request).search_symbols(q)
    return JSONResponse(content=[quote.to_dict() for quote in quotes])


@router.get("/details/{symbol}")
async def get_details(symbol: str, request: Request) -> JSONResponse:
    details = await _service(request).get_stock_details(symbol)
    if details is None:
        return JSONResponse(status_code=404, content=NOT_FOUND)
    return JSONResponse(content=details.to_dict())


@router.get("/movers")
async def get_movers(request: Request, count: int = Query(5, ge=1, le=20)) -> JSONResponse:
    movers = await _service(request).get_top_movers(count)
    return JSONResponse(content=movers.to_dict())


@router.get("/indices")
async def get_indices(request: Request) -> JSONResponse:
    quotes = await _service(request).get_market_indices()
    return JSONResponse(content=[q.to_dict() for q in quotes])


@router.get("/realtime")
async def get_realtime(request: Request) -> JSONResponse:
    """Latest snapshot produced by the realtime update loop."""
    snapshot = getattr(request.app.state, "realtime_snapshot", None)
    if snapshot is None:
        return JSONResponse(content={"type": "quotes", "quotes": [], "updated_at": None})
    return JSONResponse(content=snapshot)
