"""Market data access layer -- the only reader/writer of the cache and the gate.

Each public operation follows the same path: check the cache, on a miss
enqueue the upstream call on the shared RequestGate, normalize the payload
into a model, cache it, return it. No error ever escapes a public method:
failures resolve to None or an empty list, and rate-limit refusals are
logged at debug level only because they are expected on a shared key.

State of a single fetch:
    REQUESTED -> cache hit -> RETURNED
    REQUESTED -> QUEUED -> IN_FLIGHT -> SUCCEEDED -> CACHED + RETURNED
                                     -> RATE_LIMITED | FAILED -> absent
There is no automatic retry; pollers call again on their own schedule.
"""

import random
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from typing import Any

from marketdash.cache.store import CacheStore
from marketdash.config import TickerSettings
from marketdash.exceptions import MarketDataError, RateLimitedError
from marketdash.logging import get_logger
from marketdash.market_data.charts import (
    NEUTRAL_ANCHOR_PRICE,
    candle_window,
    parse_candles,
    synthesize_series,
)
from marketdash.market_data.formatting import (
    classify_impact,
    format_large_number,
    format_percent,
    format_price,
    format_ratio,
)
from marketdash.market_data.gate import RequestGate
from marketdash.models import (
    ChartRange,
    ChartSeries,
    FinancialMetric,
    NewsImpact,
    NewsItem,
    ProfileRecord,
    Quote,
    StockDetails,
    TopMovers,
)
from marketdash.transport.client import UpstreamTransport

logger = get_logger(__name__)

NEWS_LIMIT = 10
NEWS_LOOKBACK_DAYS = 30
SEARCH_CANDIDATE_LIMIT = 3
SYMBOL_SEPARATOR = "."  # composite/foreign listings, e.g. "BRK.A", "SAP.DE"
MARKET_CAP_UNIT = 1e6  # upstream reports market capitalization in millions
GLOBAL_NEWS_KEY = "global"


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _same_sign(a: float, b: float) -> bool:
    return (a > 0) == (b > 0) and (a < 0) == (b < 0)


class MarketDataService:
    """Typed market-data operations over a cache, a request gate and a transport.

    Usage:
        service = MarketDataService(transport, gate, cache)
        quote = await service.get_quote("AAPL")
        series = await service.get_chart_series("AAPL", ChartRange.ONE_YEAR)
    """

    def __init__(
        self,
        transport: UpstreamTransport,
        gate: RequestGate,
        cache: CacheStore,
        tickers: TickerSettings | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport = transport
        self._gate = gate
        self._cache = cache
        self._tickers = tickers or TickerSettings()
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def popular_tickers(self) -> list[str]:
        return list(self._tickers.popular)

    @property
    def index_tickers(self) -> list[str]:
        return list(self._tickers.indices)

    # ──────────────────────────────────────────────
    # Quotes
    # ──────────────────────────────────────────────

    async def get_quote(self, symbol: str) -> Quote | None:
        """Return the latest quote, or None when the symbol has no data or the fetch failed."""
        symbol = symbol.strip().upper()
        if not symbol:
            return None

        cached = await self._cache.get("quote", symbol)
        if cached is not None:
            try:
                return Quote.from_dict(cached)
            except (KeyError, TypeError, ValueError):
                logger.debug("cached_quote_unreadable", symbol=symbol)

        payload = await self._fetch("quote", "/quote", {"symbol": symbol}, symbol)
        if payload is None:
            return None

        fields = self._parse_quote(payload)
        if fields is None:
            logger.debug("quote_no_data", symbol=symbol)
            return None

        price, change, percent = fields
        quote = Quote(
            symbol=symbol,
            display_name=await self._resolve_display_name(symbol),
            last_price=price,
            absolute_change=change,
            percent_change=percent,
        )
        await self._cache.set("quote", symbol, quote.to_dict())
        return quote

    async def get_batch_quotes(self, symbols: list[str]) -> list[Quote]:
        """Resolve quotes one after another in input order, omitting absent ones.

        Quotes are resolved one at a time; the gate serializes dispatch
        regardless, so this keeps at most one pending quote per caller.
        """
        quotes: list[Quote] = []
        for symbol in symbols:
            quote = await self.get_quote(symbol)
            if quote is not None:
                quotes.append(quote)
        return quotes

    async def get_market_indices(self) -> list[Quote]:
        return await self.get_batch_quotes(self.index_tickers)

    async def get_top_movers(self, count: int = 5) -> TopMovers:
        """Best and worst percent movers among the popular tickers."""
        quotes = await self.get_batch_quotes(self.popular_tickers)
        ranked = sorted(quotes, key=lambda q: q.percent_change, reverse=True)
        return TopMovers(
            gainers=ranked[:count],
            losers=list(reversed(ranked[-count:])) if count > 0 else [],
        )

    async def search_symbols(self, query: str) -> list[Quote]:
        """Search the upstream for symbols and resolve the top candidates to quotes."""
        query = query.strip()
        if not query:
            return []

        payload = await self._fetch("search", "/search", {"q": query}, query)
        if not isinstance(payload, dict) or not isinstance(payload.get("result"), list):
            return []

        candidates: list[str] = []
        for entry in payload["result"]:
            symbol = entry.get("symbol") if isinstance(entry, dict) else None
            if not isinstance(symbol, str) or not symbol:
                continue
            if SYMBOL_SEPARATOR in symbol or symbol in candidates:
                continue
            candidates.append(symbol)
            if len(candidates) >= SEARCH_CANDIDATE_LIMIT:
                break

        return await self.get_batch_quotes(candidates)

    # ──────────────────────────────────────────────
    # Charts
    # ──────────────────────────────────────────────

    async def get_chart_series(
        self, symbol: str, chart_range: ChartRange | str
    ) -> ChartSeries:
        """Return a chart series, synthesizing one when the upstream has none.

        The result is never empty for a non-blank symbol. Synthesized series
        are cached exactly like real ones, so a view stays stable for the
        chart TTL and a real series replaces it after expiry.
        """
        chart_range = ChartRange(chart_range)
        symbol = symbol.strip().upper()
        if not symbol:
            return ChartSeries(symbol=symbol, range=chart_range)

        key = f"{symbol}_{chart_range.value}"
        cached = await self._cache.get("chart", key)
        if cached is not None:
            try:
                return ChartSeries.from_dict(cached)
            except (KeyError, TypeError, ValueError):
                logger.debug("cached_chart_unreadable", symbol=symbol, range=chart_range.value)

        resolution, from_ts, to_ts = candle_window(chart_range, self._clock())
        payload = await self._fetch(
            "chart",
            "/stock/candle",
            {"symbol": symbol, "resolution": resolution, "from": from_ts, "to": to_ts},
            symbol,
        )
        series = parse_candles(symbol, chart_range, payload)
        if series is None:
            series = await self._synthesize(symbol, chart_range)

        await self._cache.set("chart", key, series.to_dict())
        return series

    async def _synthesize(self, symbol: str, chart_range: ChartRange) -> ChartSeries:
        quote = await self.get_quote(symbol)
        if quote is not None:
            price, percent = quote.last_price, quote.percent_change
        else:
            price, percent = NEUTRAL_ANCHOR_PRICE, 0.0

        logger.info(
            "chart_synthesized",
            symbol=symbol,
            range=chart_range.value,
            anchored_to_quote=quote is not None,
        )
        return synthesize_series(
            symbol, chart_range, price, percent, now=self._clock(), rng=self._rng
        )

    # ──────────────────────────────────────────────
    # Financials and news
    # ──────────────────────────────────────────────

    async def get_financial_summary(self, symbol: str) -> list[FinancialMetric]:
        """Project raw metrics onto a fixed, formatted set of labels."""
        symbol = symbol.strip().upper()
        if not symbol:
            return []

        cached = await self._cache.get("metrics", symbol)
        if cached is not None:
            try:
                return [FinancialMetric.from_dict(m) for m in cached]
            except (KeyError, TypeError):
                logger.debug("cached_metrics_unreadable", symbol=symbol)

        payload = await self._fetch(
            "financials", "/stock/metric", {"symbol": symbol, "metric": "all"}, symbol
        )
        metric = payload.get("metric") if isinstance(payload, dict) else None
        if not isinstance(metric, dict) or not metric:
            return []

        market_cap = _as_float(metric.get("marketCapitalization"))
        pe_ratio = metric.get("peNormalizedAnnual")
        if pe_ratio is None:
            pe_ratio = metric.get("peTTM")

        summary = [
            FinancialMetric(
                "Market Cap",
                format_large_number(market_cap * MARKET_CAP_UNIT if market_cap else None),
            ),
            FinancialMetric("52W High", format_price(metric.get("52WeekHigh"))),
            FinancialMetric("52W Low", format_price(metric.get("52WeekLow"))),
            FinancialMetric("P/E Ratio", format_ratio(pe_ratio)),
            FinancialMetric("Beta", format_ratio(metric.get("beta"))),
            FinancialMetric(
                "Dividend Yield", format_percent(metric.get("dividendYieldIndicatedAnnual"))
            ),
        ]
        await self._cache.set("metrics", symbol, [m.to_dict() for m in summary])
        return summary

    async def get_news(self, symbol: str | None = None) -> list[NewsItem]:
        """Latest news for a symbol (last 30 days), or the global feed when symbol is None."""
        symbol = symbol.strip().upper() if symbol else None
        key = symbol or GLOBAL_NEWS_KEY

        cached = await self._cache.get("news", key)
        if cached is not None:
            try:
                return [NewsItem.from_dict(item) for item in cached]
            except (KeyError, TypeError, ValueError):
                logger.debug("cached_news_unreadable", key=key)

        default_impact: NewsImpact
        if symbol:
            today = datetime.fromtimestamp(self._clock(), tz=timezone.utc).date()
            payload = await self._fetch(
                "news", "/company-news", self._news_window(symbol, today), symbol
            )
            default_impact = "Medium"
        else:
            payload = await self._fetch(
                "news", "/news", {"category": "general"}, GLOBAL_NEWS_KEY
            )
            default_impact = "Low"

        if not isinstance(payload, list):
            return []

        items: list[NewsItem] = []
        for article in payload:
            item = self._parse_article(article, default_impact)
            if item is not None:
                items.append(item)
            if len(items) >= NEWS_LIMIT:
                break

        await self._cache.set("news", key, [item.to_dict() for item in items])
        return items

    async def get_stock_details(self, symbol: str) -> StockDetails | None:
        """Quote, every chart range, financials and news for one symbol.

        Fetched sequentially so a detail page does not burst the queue.
        """
        quote = await self.get_quote(symbol)
        if quote is None:
            return None

        charts: dict[ChartRange, ChartSeries] = {}
        for chart_range in ChartRange:
            charts[chart_range] = await self.get_chart_series(quote.symbol, chart_range)

        financials = await self.get_financial_summary(quote.symbol)
        news = await self.get_news(quote.symbol)
        return StockDetails(quote=quote, charts=charts, financials=financials, news=news)

    # ──────────────────────────────────────────────
    # Internal helpers
    # ──────────────────────────────────────────────

    async def _request(self, path: str, params: dict[str, Any]) -> Any:
        return await self._gate.enqueue(lambda: self._transport.get_json(path, params))

    async def _fetch(
        self, operation: str, path: str, params: dict[str, Any], subject: str
    ) -> Any | None:
        """Enqueue an upstream call; any failure is logged and becomes None."""
        try:
            return await self._request(path, params)
        except RateLimitedError:
            logger.debug("upstream_rate_limited", operation=operation, subject=subject)
        except MarketDataError as exc:
            logger.warning(
                "upstream_fetch_failed",
                operation=operation,
                subject=subject,
                error=str(exc),
            )
        except Exception:
            logger.warning(
                "upstream_fetch_error",
                operation=operation,
                subject=subject,
                exc_info=True,
            )
        return None

    async def _resolve_display_name(self, symbol: str) -> str:
        """Company name from the profile cache, fetched once on a miss.

        A profile without a name is cached under the raw symbol so it is not
        refetched; a failed profile fetch falls back to the symbol uncached.
        """
        cached = await self._cache.get("profile", symbol)
        if isinstance(cached, dict) and cached.get("display_name"):
            return str(cached["display_name"])

        payload = await self._fetch("profile", "/stock/profile2", {"symbol": symbol}, symbol)
        if payload is None:
            return symbol

        name = payload.get("name") if isinstance(payload, dict) else None
        record = ProfileRecord(symbol=symbol, display_name=name or symbol)
        await self._cache.set("profile", symbol, record.to_dict())
        return record.display_name

    @staticmethod
    def _parse_quote(payload: Any) -> tuple[float, float, float] | None:
        """Return (price, change, percent) or None if the quote carries no data.

        A quote with zero current price and zero previous close means the
        upstream has nothing for the symbol.
        """
        if not isinstance(payload, dict):
            return None

        current = _as_float(payload.get("c")) or 0.0
        previous = _as_float(payload.get("pc")) or 0.0
        if current == 0 and previous == 0:
            return None

        price = current or previous
        change = _as_float(payload.get("d"))
        if change is None:
            change = price - previous if previous else 0.0
        change = round(change, 2)

        percent = _as_float(payload.get("dp"))
        if percent is None or not _same_sign(change, round(percent, 2)):
            percent = change / previous * 100 if previous else 0.0
        percent = round(percent, 2)
        if not _same_sign(change, percent):
            percent = 0.0

        return round(price, 2), change, percent

    @staticmethod
    def _news_window(symbol: str, today: date) -> dict[str, Any]:
        start = today - timedelta(days=NEWS_LOOKBACK_DAYS)
        return {"symbol": symbol, "from": start.isoformat(), "to": today.isoformat()}

    @staticmethod
    def _parse_article(article: Any, default_impact: NewsImpact) -> NewsItem | None:
        if not isinstance(article, dict):
            return None
        headline = article.get("headline")
        if not headline:
            return None
        try:
            published_at = int(article.get("datetime") or 0)
        except (TypeError, ValueError):
            published_at = 0
        return NewsItem(
            headline=str(headline),
            source=str(article.get("source") or ""),
            published_at=published_at,
            url=str(article.get("url") or ""),
            impact=classify_impact(str(headline), default=default_impact),
        )
