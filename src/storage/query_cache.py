# src/storage/query_cache.py

"""In-memory query result cache with lazy TTL expiry."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from src.config.settings import Settings

logger = logging.getLogger("realtime_search.cache")


@dataclass(frozen=True)
class CacheEntry:
    """A cached aggregate payload for one normalised query."""

    key: str
    payload: dict[str, Any]
    inserted_at: float


class QueryCache:
    """Maps a normalised search term to its last aggregate payload.

    Expiry is checked lazily on read: an entry is live while
    ``clock() - inserted_at < ttl``.  With ``max_entries`` of 0 the
    map grows without bound, which is fine for short-lived or
    periodically recycled processes; set a capacity for long-lived
    deployments to get least-recently-used eviction.

    Accessed from a single event loop only, so no locking.
    """

    def __init__(
        self,
        ttl: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl: float = (
            Settings.QUERY_CACHE_TTL if ttl is None else ttl
        )
        self._max_entries: int = (
            Settings.QUERY_CACHE_MAX_ENTRIES
            if max_entries is None
            else max_entries
        )
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @staticmethod
    def normalise_key(query: str) -> str:
        """Lower-case and trim a search term."""
        return query.strip().lower()

    def get(self, query: str) -> dict[str, Any] | None:
        """Return the cached payload for *query*, or ``None`` on miss."""
        key = self.normalise_key(query)
        entry = self._entries.get(key)
        if entry is None:
            return None

        age = self._clock() - entry.inserted_at
        if age >= self._ttl:
            del self._entries[key]
            logger.debug(
                "Expired cache entry for '%s' (age=%.1fs)", key, age
            )
            return None

        self._entries.move_to_end(key)
        logger.info("Cache hit for '%s' (age=%.1fs)", key, age)
        return entry.payload

    def put(self, query: str, payload: dict[str, Any]) -> None:
        """Store *payload* for *query*, replacing any previous entry."""
        key = self.normalise_key(query)
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            key=key,
            payload=payload,
            inserted_at=self._clock(),
        )
        if self._max_entries > 0:
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry for '%s'", evicted)
        logger.info(
            "Cached %d items for '%s'",
            len(payload.get("items", [])),
            key,
        )

    def clear(self) -> int:
        """Purge all cached entries.

        Returns the number of entries that were removed.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache manually purged (%d entries removed)", count)
        return count

    def __len__(self) -> int:
        return len(self._entries)
