"""
Time-bounded key -> value memo in front of upstream calls.

Absorbs duplicate and rapid requests so explorer rate limits are not burned
on the same address. Keys look like "bitcoin:<address>" or
"ethereum_price_usd". Entries expire lazily on read and are also removed by a
periodic sweep (run_cache_sweeper, started from the API lifespan).

Concurrent misses on the same key are not deduplicated: both callers fetch
and the later write wins. Reads and writes of a single key are atomic under an
internal lock; there are no cross-key transactions.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from backend_amlcheck.amlcheck_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SEC = 300.0
PRICE_TTL_SEC = 60.0
DEFAULT_SWEEP_INTERVAL_SEC = 60.0
SHUTDOWN_JOIN_TIMEOUT_SEC = 5.0


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """
    In-memory TTL cache. One instance per process, injected into the upstream clients.

    clock must be monotonic; tests pass a fake clock to step past TTLs.
    """

    def __init__(
        self,
        default_ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl_sec = default_ttl_sec
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> tuple[bool, Any]:
        """Return (True, value) for a live entry, (False, None) otherwise. Drops the entry if expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return False, None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self._misses += 1
                return False, None
            self._hits += 1
            return True, entry.value

    def set(self, key: str, value: Any, ttl_sec: float | None = None) -> None:
        ttl = self.default_ttl_sec if ttl_sec is None else ttl_sec
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def get_or_fetch(
        self,
        key: str,
        ttl_sec: float | None,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for key, or await fetch_fn(), store and return it.

        A live entry means zero calls to fetch_fn. Exceptions from fetch_fn
        propagate and nothing is stored.
        """
        found, value = self.get(key)
        if found:
            logger.debug("cache_hit", cache_key=key)
            return value
        logger.debug("cache_miss", cache_key=key)
        value = await fetch_fn()
        self.set(key, value, ttl_sec)
        return value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"keys": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def run_cache_sweeper(
    cache: TTLCache,
    stop_event: threading.Event,
    interval_sec: float = DEFAULT_SWEEP_INTERVAL_SEC,
) -> None:
    """
    Sweep expired entries every interval_sec until stop_event is set.

    Intended to run in a daemon thread started by the FastAPI lifespan.
    """
    interval = max(0.1, interval_sec)
    logger.info("cache_sweeper_started", interval_sec=interval)
    sweeps = 0
    while not stop_event.wait(timeout=interval):
        sweeps += 1
        try:
            removed = cache.sweep()
            logger.debug("cache_sweep", sweep=sweeps, removed=removed, **cache.stats())
        except Exception as e:
            logger.exception("cache_sweep_failed", sweep=sweeps, error=str(e))
    logger.info("cache_sweeper_stopped", sweeps=sweeps)
