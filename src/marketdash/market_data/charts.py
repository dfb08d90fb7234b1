"""Chart range parameters, candle parsing and synthetic series generation.

Free-tier keys frequently get no candle history. Rather than render a blank
chart, the service fabricates a plausible series anchored to the live quote:
the last point is the current price, the first point is the price implied by
the quote's percent change, and the points in between follow a smoothstep
curve with small bounded noise.
"""

import math
import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from marketdash.models import ChartPoint, ChartRange, ChartSeries

SYNTHETIC_POINTS = 30
MIN_PRICE = 0.01
NEUTRAL_ANCHOR_PRICE = 100.0  # used when no quote is available to anchor to
NOISE_FRACTION = 0.005  # max interior perturbation, as a fraction of the end price


@dataclass(frozen=True)
class RangeSpec:
    """Upstream candle resolution and lookback window for a chart range."""

    resolution: str
    lookback: timedelta


RANGE_SPECS: dict[ChartRange, RangeSpec] = {
    ChartRange.INTRADAY: RangeSpec("30", timedelta(days=1)),
    ChartRange.FIVE_DAY: RangeSpec("60", timedelta(days=5)),
    ChartRange.ONE_MONTH: RangeSpec("D", timedelta(days=30)),
    ChartRange.SIX_MONTH: RangeSpec("D", timedelta(days=182)),
    ChartRange.ONE_YEAR: RangeSpec("W", timedelta(days=365)),
    ChartRange.FIVE_YEAR: RangeSpec("M", timedelta(days=5 * 365)),
}


def candle_window(chart_range: ChartRange, now: float) -> tuple[str, int, int]:
    """Return (resolution, from_ts, to_ts) in unix seconds for a candle request."""
    spec = RANGE_SPECS[chart_range]
    to_ts = int(now)
    from_ts = to_ts - int(spec.lookback.total_seconds())
    return spec.resolution, from_ts, to_ts


def parse_candles(
    symbol: str, chart_range: ChartRange, payload: Any
) -> ChartSeries | None:
    """Build a series from an upstream candle payload, or None if unusable.

    The payload carries parallel arrays ``c`` (close prices) and ``t`` (unix
    seconds) plus a status marker ``s``. Points are rounded to cents, sorted
    and de-duplicated by timestamp (last value wins). Points whose price or
    timestamp is not a finite number are dropped.
    """
    if not isinstance(payload, dict) or payload.get("s") == "no_data":
        return None

    closes = payload.get("c")
    stamps = payload.get("t")
    if not isinstance(closes, list) or not isinstance(stamps, list):
        return None
    if not closes or len(closes) != len(stamps):
        return None

    by_timestamp: dict[int, float] = {}
    for price, ts in zip(closes, stamps):
        try:
            timestamp, close = int(ts), float(price)
        except (TypeError, ValueError, OverflowError):
            continue
        if math.isfinite(close):
            by_timestamp[timestamp] = round(close, 2)

    if not by_timestamp:
        return None

    points = [ChartPoint(timestamp=ts, price=p) for ts, p in sorted(by_timestamp.items())]
    return ChartSeries(symbol=symbol, range=chart_range, points=points)


def _smoothstep(t: float) -> float:
    return t * t * (3 - 2 * t)


def synthesize_series(
    symbol: str,
    chart_range: ChartRange,
    price: float,
    percent_change: float,
    now: float,
    rng: random.Random | None = None,
    points: int = SYNTHETIC_POINTS,
) -> ChartSeries:
    """Fabricate a plausible series ending at ``price``.

    Args:
        symbol: Ticker the series belongs to.
        chart_range: Range whose lookback the timestamps span.
        price: Current price; becomes the last point.
        percent_change: Quote percent change; the first point is
            ``price / (1 + percent_change / 100)``.
        now: Unix time of the last point.
        rng: Random source for interior noise.
        points: Number of points (at least 2).
    """
    if points < 2:
        raise ValueError("points must be at least 2")
    rng = rng or random.Random()

    end_price = max(float(price), MIN_PRICE)
    if percent_change > -100:
        start_price = end_price / (1 + percent_change / 100)
    else:
        start_price = end_price

    lookback = RANGE_SPECS[chart_range].lookback.total_seconds()
    step = max(lookback / (points - 1), 1.0)
    end_ts = int(now)
    max_noise = end_price * NOISE_FRACTION

    series: list[ChartPoint] = []
    for i in range(points):
        t = i / (points - 1)
        value = start_price + (end_price - start_price) * _smoothstep(t)
        if 0 < i < points - 1:
            value += rng.uniform(-max_noise, max_noise)
        timestamp = end_ts - int(round((points - 1 - i) * step))
        series.append(ChartPoint(timestamp=timestamp, price=round(max(value, MIN_PRICE), 2)))

    return ChartSeries(symbol=symbol, range=chart_range, points=series, synthetic=True)
