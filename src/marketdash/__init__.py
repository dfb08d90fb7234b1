"""Market dashboard backend: rate-limited, cached access to a market-data API behind a token-injecting proxy."""

__version__ = "0.1.0"
