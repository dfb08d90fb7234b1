"""TTL-aware cache store namespaced by data kind.

Every value is wrapped in a ``{"stored_at": <epoch seconds>, "payload": ...}``
envelope and stored under ``<kind>_<key>`` (``quote_AAPL``, ``chart_AAPL_1Y``,
``news_global``). Expiry is lazy: a stale entry reads as a miss and is
overwritten by the next successful fetch, never purged.

Caching is an optimization. Backend failures and corrupt entries are logged
and read as misses / ignored writes; they never reach the caller.
"""

import json
import time
from collections.abc import Callable
from typing import Any, Literal

from marketdash.cache.backends import CacheBackend, MemoryCacheBackend, SqliteCacheBackend
from marketdash.config import CacheSettings
from marketdash.logging import get_logger
from marketdash.tickers import SEEDED_PROFILES

logger = get_logger(__name__)

CacheKind = Literal["profile", "quote", "chart", "news", "metrics"]

DEFAULT_TTLS: dict[str, float] = {
    "profile": 48 * 3600,
    "quote": 5 * 60,
    "chart": 60 * 60,
    "news": 30 * 60,
    "metrics": 12 * 3600,
}


def cache_key(kind: str, key: str) -> str:
    """Build the namespaced storage key for an entry."""
    return f"{kind}_{key}"


class CacheStore:
    """Kind-namespaced cache with a fixed TTL per kind.

    Args:
        backend: Raw string storage.
        ttls: Seconds of validity per kind. Defaults to DEFAULT_TTLS.
        clock: Returns the current epoch time in seconds (injectable for tests).
    """

    def __init__(
        self,
        backend: CacheBackend,
        ttls: dict[str, float] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._ttls = dict(ttls or DEFAULT_TTLS)
        self._clock = clock
        self._permanent: dict[str, Any] = {}

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def ttl(self, kind: str) -> float:
        """Return the TTL for a kind. Unknown kinds are a programming error."""
        try:
            return self._ttls[kind]
        except KeyError:
            raise ValueError(f"Unknown cache kind: {kind}") from None

    def seed(self, kind: CacheKind, key: str, payload: Any) -> None:
        """Install a permanent entry that never expires and never hits storage."""
        self.ttl(kind)
        self._permanent[cache_key(kind, key)] = payload

    async def get(self, kind: CacheKind, key: str) -> Any | None:
        """Return the cached payload, or None if absent, stale or unreadable."""
        ttl = self.ttl(kind)
        storage_key = cache_key(kind, key)

        if storage_key in self._permanent:
            return self._permanent[storage_key]

        try:
            raw = await self._backend.read(storage_key)
        except Exception:
            logger.warning("cache_read_failed", key=storage_key, exc_info=True)
            return None

        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            stored_at = float(entry["stored_at"])
            payload = entry["payload"]
        except (ValueError, KeyError, TypeError):
            logger.debug("cache_entry_corrupt", key=storage_key)
            return None

        if self._clock() - stored_at > ttl:
            return None
        return payload

    async def set(self, kind: CacheKind, key: str, payload: Any) -> None:
        """Store a payload stamped with the current time. Failures are swallowed."""
        self.ttl(kind)
        storage_key = cache_key(kind, key)
        try:
            raw = json.dumps({"stored_at": self._clock(), "payload": payload})
            await self._backend.write(storage_key, raw)
        except Exception:
            logger.warning("cache_write_failed", key=storage_key, exc_info=True)


def create_cache_store(settings: CacheSettings) -> CacheStore:
    """Build a CacheStore for the configured backend, with seeded profiles.

    The returned store's backend still needs ``connect()`` for SQLite.
    """
    backend: CacheBackend
    if settings.backend == "sqlite":
        backend = SqliteCacheBackend(settings.db_path)
    else:
        backend = MemoryCacheBackend()

    store = CacheStore(
        backend,
        ttls={
            "profile": settings.profile_ttl,
            "quote": settings.quote_ttl,
            "chart": settings.chart_ttl,
            "news": settings.news_ttl,
            "metrics": settings.metrics_ttl,
        },
    )
    for symbol, name in SEEDED_PROFILES.items():
        store.seed("profile", symbol, {"symbol": symbol, "display_name": name})

    logger.info(
        "cache_store_created",
        backend=settings.backend,
        seeded_profiles=len(SEEDED_PROFILES),
    )
    return store
