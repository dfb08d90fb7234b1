"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class UpstreamSettings(BaseSettings):
    """Upstream market-data API, read only by the proxy."""

    model_config = SettingsConfigDict(env_prefix="UPSTREAM_")

    base_url: str = "https://finnhub.io/api/v1"
    api_key: SecretStr = SecretStr("")
    timeout_seconds: float = 10.0


class ClientSettings(BaseSettings):
    """How the data access layer reaches the proxy endpoint."""

    model_config = SettingsConfigDict(env_prefix="CLIENT_")

    proxy_url: str = "http://127.0.0.1:8080/api"
    timeout_seconds: float = 10.0


class GateSettings(BaseSettings):
    """Request gate pacing.

    60000 / min_spacing_ms must stay below the upstream's per-minute quota.
    The default gives ~54.5 req/min against a 60 req/min free-tier key.
    """

    model_config = SettingsConfigDict(env_prefix="GATE_")

    min_spacing_ms: int = 1100
    request_timeout: float = 8.0  # seconds; a hung call must not stall the queue


class CacheSettings(BaseSettings):
    """Cache store backend and per-kind lifetimes (seconds)."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: Literal["memory", "sqlite"] = "memory"
    db_path: str = "data/cache.db"
    profile_ttl: int = 48 * 3600
    quote_ttl: int = 5 * 60
    chart_ttl: int = 60 * 60
    news_ttl: int = 30 * 60
    metrics_ttl: int = 12 * 3600


class ProxySettings(BaseSettings):
    """Shared-cache headers attached to successful proxy responses."""

    model_config = SettingsConfigDict(env_prefix="PROXY_")

    s_maxage: int = 60
    stale_while_revalidate: int = 120


class DashboardSettings(BaseSettings):
    """Dashboard server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    realtime_enabled: bool = True
    update_interval: int = 60  # seconds between realtime quote pushes
    realtime_tickers: list[str] = ["SPY", "QQQ", "DIA"]


class TickerSettings(BaseSettings):
    """Ticker lists backing the market overview and top movers widgets."""

    model_config = SettingsConfigDict(env_prefix="TICKERS_")

    popular: list[str] = [
        "AAPL", "GOOGL", "MSFT", "AMZN", "TSLA", "NVDA", "META",
        "JPM", "V", "JNJ", "WMT", "PG", "DIS",
    ]
    indices: list[str] = ["SPY", "QQQ", "DIA"]


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"  # env LOG_FORMAT
    upstream: UpstreamSettings = UpstreamSettings()
    client: ClientSettings = ClientSettings()
    gate: GateSettings = GateSettings()
    cache: CacheSettings = CacheSettings()
    proxy: ProxySettings = ProxySettings()
    dashboard: DashboardSettings = DashboardSettings()
    tickers: TickerSettings = TickerSettings()
