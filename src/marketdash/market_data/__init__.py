"""Market data layer -- request gate, chart synthesis, formatting and the data access service."""

from marketdash.market_data.gate import RequestGate
from marketdash.market_data.service import MarketDataService

__all__ = ["MarketDataService", "RequestGate"]
