"""Core data models shared across the cache, data access layer and dashboard.

Prices are plain floats: they are display values relayed from the upstream
JSON, never used for accounting. Every model round-trips through a
JSON-compatible dict so it can live in any cache backend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

NewsImpact = Literal["High", "Medium", "Low"]


class ChartRange(str, Enum):
    """Chart time ranges offered by the dashboard."""

    INTRADAY = "1D"
    FIVE_DAY = "5D"
    ONE_MONTH = "1M"
    SIX_MONTH = "6M"
    ONE_YEAR = "1Y"
    FIVE_YEAR = "5Y"


@dataclass(frozen=True)
class Quote:
    """Latest quote for a symbol, enriched with a human-readable name.

    Replaced as a whole on every successful fetch.
    """

    symbol: str
    display_name: str
    last_price: float
    absolute_change: float
    percent_change: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "display_name": self.display_name,
            "last_price": self.last_price,
            "absolute_change": self.absolute_change,
            "percent_change": self.percent_change,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quote":
        return cls(
            symbol=data["symbol"],
            display_name=data["display_name"],
            last_price=float(data["last_price"]),
            absolute_change=float(data["absolute_change"]),
            percent_change=float(data["percent_change"]),
        )


@dataclass(frozen=True)
class ProfileRecord:
    """Long-lived company profile used to name quotes."""

    symbol: str
    display_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "display_name": self.display_name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProfileRecord":
        return cls(symbol=data["symbol"], display_name=data["display_name"])


@dataclass(frozen=True)
class ChartPoint:
    """A single (timestamp, price) sample. Timestamp is unix seconds."""

    timestamp: int
    price: float

    @property
    def date(self) -> str:
        """ISO-8601 UTC rendering of the timestamp."""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()


@dataclass
class ChartSeries:
    """Ordered price series for (symbol, range).

    Timestamps are strictly increasing. ``synthetic`` marks series that were
    fabricated from the live quote; it is not persisted, so a series read
    back from the cache always reports ``synthetic=False``.
    """

    symbol: str
    range: ChartRange
    points: list[ChartPoint] = field(default_factory=list)
    synthetic: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "range": self.range.value,
            "points": [{"timestamp": p.timestamp, "price": p.price} for p in self.points],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChartSeries":
        return cls(
            symbol=data["symbol"],
            range=ChartRange(data["range"]),
            points=[
                ChartPoint(timestamp=int(p["timestamp"]), price=float(p["price"]))
                for p in data["points"]
            ],
        )


@dataclass(frozen=True)
class FinancialMetric:
    """A labeled, pre-formatted financial figure (e.g. "Market Cap", "2.50T")."""

    label: str
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FinancialMetric":
        return cls(label=data["label"], value=data["value"])


@dataclass(frozen=True)
class NewsItem:
    """A news headline. ``impact`` is classified once at ingestion."""

    headline: str
    source: str
    published_at: int
    url: str
    impact: NewsImpact

    def to_dict(self) -> dict[str, Any]:
        return {
            "headline": self.headline,
            "source": self.source,
            "published_at": self.published_at,
            "url": self.url,
            "impact": self.impact,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NewsItem":
        return cls(
            headline=data["headline"],
            source=data["source"],
            published_at=int(data["published_at"]),
            url=data["url"],
            impact=data["impact"],
        )


@dataclass
class StockDetails:
    """Everything the stock detail page shows for one symbol."""

    quote: Quote
    charts: dict[ChartRange, ChartSeries]
    financials: list[FinancialMetric]
    news: list[NewsItem]

    def to_dict(self) -> dict[str, Any]:
        return {
            "quote": self.quote.to_dict(),
            "charts": {r.value: s.to_dict() for r, s in self.charts.items()},
            "financials": [m.to_dict() for m in self.financials],
            "news": [n.to_dict() for n in self.news],
        }


@dataclass
class TopMovers:
    """Best and worst performers among the popular tickers."""

    gainers: list[Quote]
    losers: list[Quote]

    def to_dict(self) -> dict[str, Any]:
        return {
            "gainers": [q.to_dict() for q in self.gainers],
            "losers": [q.to_dict() for q in self.losers],
        }
