"""Static ticker data: permanent profile names for frequently requested symbols.

These profiles are seeded into the cache at startup so the market overview
and top movers widgets can name their quotes without a profile round trip.
"""

SEEDED_PROFILES: dict[str, str] = {
    "AAPL": "Apple Inc",
    "GOOGL": "Alphabet Inc",
    "MSFT": "Microsoft Corp",
    "AMZN": "Amazon.com Inc",
    "TSLA": "Tesla Inc",
    "NVDA": "NVIDIA Corp",
    "META": "Meta Platforms Inc",
    "JPM": "JPMorgan Chase & Co",
    "V": "Visa Inc",
    "JNJ": "Johnson & Johnson",
    "WMT": "Walmart Inc",
    "PG": "Procter & Gamble Co",
    "DIS": "Walt Disney Co",
    "SPY": "S&P 500 ETF Trust",
    "QQQ": "Invesco QQQ Trust",
    "DIA": "SPDR Dow Jones Industrial Average ETF",
}
