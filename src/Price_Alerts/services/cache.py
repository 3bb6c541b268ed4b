"""In-memory TTL cache for upstream market snapshots.

Provides a cache-first pattern for data fetching: check cache, fetch on miss,
store, and return. Expired entries are kept until evicted so a caller can
still fall back to a stale value when the upstream is down.
"""

from __future__ import annotations

import datetime
import logging
from typing import Final

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Snapshots older than this are never served, even as a fallback
MAX_STALE_SECONDS: Final[int] = 15 * 60

# Lazy cleanup: run eviction at most every N accesses
LAZY_CLEANUP_INTERVAL: Final[int] = 100


class CacheEntry(BaseModel):
    """A single cached value with metadata for expiration checking."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str  # JSON-serialized payload
    created_at: datetime.datetime
    ttl_seconds: int

    def age_seconds(self) -> float:
        return (datetime.datetime.now(datetime.UTC) - self.created_at).total_seconds()

    def is_expired(self) -> bool:
        """Return True if this entry has exceeded its TTL.

        A ttl_seconds of 0 means the entry never expires.
        """
        if self.ttl_seconds == 0:
            return False
        return self.age_seconds() > self.ttl_seconds


class ServiceCache:
    """Memory-only cache keyed by string, holding JSON payloads.

    Usage::

        cache = ServiceCache()
        cached = await cache.get("dse:snapshot")
        if cached is None:
            data = await fetch_snapshot()
            await cache.set("dse:snapshot", json.dumps(data), 30)
    """

    def __init__(self, max_stale_seconds: int = MAX_STALE_SECONDS) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._max_stale_seconds = max_stale_seconds
        self._access_count: int = 0

    async def get(self, key: str) -> str | None:
        """Return a fresh cached value, or None on miss or expiry."""
        self._increment_access_count()
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None
        if entry.is_expired():
            logger.debug("Cache expired: %s", key)
            return None
        logger.debug("Cache hit: %s", key)
        return entry.value

    async def get_stale(self, key: str) -> str | None:
        """Return a value even if expired, as long as it is within the stale window."""
        entry = self._entries.get(key)
        if entry is None or entry.age_seconds() > self._max_stale_seconds:
            return None
        logger.debug("Serving stale cache entry: %s (age=%.0fs)", key, entry.age_seconds())
        return entry.value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with the given TTL in seconds."""
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=datetime.datetime.now(datetime.UTC),
            ttl_seconds=ttl_seconds,
        )
        logger.debug("Cache set: %s (ttl=%ds)", key, ttl_seconds)

    def _increment_access_count(self) -> None:
        """Track accesses and trigger lazy cleanup when threshold is reached."""
        self._access_count += 1
        if self._access_count >= LAZY_CLEANUP_INTERVAL:
            self._access_count = 0
            self._evict_dead_entries()

    def _evict_dead_entries(self) -> None:
        """Drop entries too old to be served even as stale fallbacks."""
        dead = [k for k, v in self._entries.items() if v.age_seconds() > self._max_stale_seconds]
        for key in dead:
            del self._entries[key]
        if dead:
            logger.debug("Lazy cleanup: evicted %d cache entries", len(dead))
