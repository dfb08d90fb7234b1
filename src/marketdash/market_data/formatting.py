"""Display formatting for financial metrics and news impact classification."""

import math
import re
from typing import Any

from marketdash.models import NewsImpact

NOT_AVAILABLE = "N/A"

_SCALES: tuple[tuple[float, str], ...] = (
    (1e12, "T"),
    (1e9, "B"),
    (1e6, "M"),
    (1e3, "K"),
)

_HIGH_IMPACT = re.compile(
    r"\b(earnings|beats?|miss(es|ed)?|record|guidance|acqui\w*|merger|lawsuit"
    r"|bankrupt\w*|plunges?|soars?|surges?|recall)\b"
)
_MEDIUM_IMPACT = re.compile(
    r"\b(upgrades?|downgrades?|price target|launch\w*|products?|unveils?"
    r"|partnership|analysts?|ratings?|contracts?|dividend)\b"
)


def _to_number(value: Any) -> float | None:
    """Coerce an upstream value to a finite float; None for missing/zero/garbage."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number == 0:
        return None
    return number


def format_large_number(value: Any) -> str:
    """Format a magnitude with a K/M/B/T suffix.

    >>> format_large_number(2.5e12)
    '2.50T'
    >>> format_large_number(0)
    'N/A'
    """
    number = _to_number(value)
    if number is None:
        return NOT_AVAILABLE
    magnitude = abs(number)
    for threshold, suffix in _SCALES:
        if magnitude >= threshold:
            return f"{number / threshold:.2f}{suffix}"
    return f"{number:.2f}"


def format_price(value: Any) -> str:
    number = _to_number(value)
    return NOT_AVAILABLE if number is None else f"${number:.2f}"


def format_ratio(value: Any) -> str:
    number = _to_number(value)
    return NOT_AVAILABLE if number is None else f"{number:.2f}"


def format_percent(value: Any) -> str:
    number = _to_number(value)
    return NOT_AVAILABLE if number is None else f"{number:.2f}%"


def classify_impact(headline: str, default: NewsImpact = "Medium") -> NewsImpact:
    """Best-effort impact tier from headline keywords."""
    text = headline.lower()
    if _HIGH_IMPACT.search(text):
        return "High"
    if _MEDIUM_IMPACT.search(text):
        return "Medium"
    return default
