"""
In-process TTL cache with a byte budget and LRU eviction.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_MS = 3_600_000
DEFAULT_MAX_BYTES = 104_857_600
DEFAULT_SWEEP_INTERVAL_MS = 300_000

# timestamp + ttl + object overhead
ENTRY_OVERHEAD_BYTES = 24


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class CacheEntry:
    """A cached value and its freshness bookkeeping."""
    value: Any
    stored_at: float
    ttl_ms: int
    size: int

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_ms


class MemoryCache:
    """Size-bounded in-memory cache.

    An entry is valid while ``now - stored_at <= ttl_ms``. Every successful
    ``get`` refreshes ``stored_at``, so the TTL acts as an idle timeout.
    Writes evict least-recently-used entries until the new entry fits; an
    entry larger than the whole budget is still stored, alone.

    None of the methods await, so concurrent tasks on the same loop can never
    observe a half-applied check-then-write.
    """

    def __init__(
        self,
        *,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
        clock: Optional[Callable[[], float]] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.default_ttl_ms = default_ttl_ms
        self.max_bytes = max_bytes
        self.sweep_interval_ms = sweep_interval_ms
        self.logger = get_logger("readme.cache")
        self.metrics = metrics
        self._clock = clock or _monotonic_ms
        self._entries: Dict[str, CacheEntry] = {}
        self._total_bytes = 0
        self._sweep_task: Optional[asyncio.Task] = None
        self._destroyed = False
        self._stats = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0}

    # Lifecycle

    def start(self) -> None:
        """Start the background sweep on the running event loop."""
        if self._destroyed:
            raise RuntimeError("Cache has been destroyed")
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        self.logger.info("Cache sweep started", interval_ms=self.sweep_interval_ms)

    async def destroy(self) -> None:
        """Stop the sweep and drop every entry. Safe to call more than once."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if not self._destroyed:
            self._destroyed = True
            self._entries.clear()
            self._total_bytes = 0
            self.logger.info("Cache destroyed")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_ms / 1000.0)
            try:
                self.sweep()
            except Exception as exc:  # pragma: no cover - sweep must keep running
                self.logger.error("Cache sweep failed", error=str(exc), exc_info=True)

    # Public API

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, evicting LRU entries to make room."""
        actual_ttl = ttl_ms if ttl_ms and ttl_ms > 0 else self.default_ttl_ms
        size = self.estimate_entry_size(key, value)

        previous = self._entries.pop(key, None)
        if previous is not None:
            self._total_bytes -= previous.size

        while self._entries and self._total_bytes + size > self.max_bytes:
            self._evict_least_recently_used()

        if size > self.max_bytes:
            self.logger.warning(
                "Cache entry exceeds max size, stored alone",
                key=key,
                size=size,
                max_bytes=self.max_bytes,
            )

        self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), ttl_ms=actual_ttl, size=size)
        self._total_bytes += size
        self.logger.debug("Cache set", key=key, ttl_ms=actual_ttl, size=size)

    def get(self, key: str) -> Optional[Any]:
        """Return the fresh value for ``key`` (refreshing it) or None."""
        entry = self._entries.get(key)
        if entry is None:
            self._record("misses", "miss")
            self.logger.debug("Cache miss", key=key)
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(key)
            self._record("expirations", "expire")
            self._record("misses", "miss")
            self.logger.debug("Cache expired", key=key)
            return None

        entry.stored_at = now
        self._record("hits", "hit")
        self.logger.debug("Cache hit", key=key)
        return entry.value

    def has(self, key: str) -> bool:
        """Freshness check without refreshing the entry."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self._remove(key)
            self._record("expirations", "expire")
            return False
        return True

    def delete(self, key: str) -> bool:
        deleted = self._remove(key)
        if deleted:
            self.logger.debug("Cache deleted", key=key)
        return deleted

    def clear(self) -> None:
        self._entries.clear()
        self._total_bytes = 0
        self.logger.info("Cache cleared")

    def size(self) -> int:
        return len(self._entries)

    def memory_usage(self) -> int:
        return self._total_bytes

    def sweep(self) -> int:
        """Remove all expired entries; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)
            self._record("expirations", "expire")

        if expired:
            self.logger.debug("Cache sweep removed expired entries", count=len(expired))
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            "entries": len(self._entries),
            "memory_usage": self._total_bytes,
            "max_bytes": self.max_bytes,
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "evictions": self._stats["evictions"],
            "expirations": self._stats["expirations"],
            "hit_rate": self._stats["hits"] / lookups if lookups else 0.0,
            "sweeping": self._sweep_task is not None and not self._sweep_task.done(),
        }

    @staticmethod
    def estimate_entry_size(key: str, value: Any) -> int:
        """Rough size: UTF-16 key + UTF-16 JSON payload + fixed overhead."""
        payload = json.dumps(value, separators=(",", ":"), default=str, ensure_ascii=False)
        return len(key) * 2 + len(payload) * 2 + ENTRY_OVERHEAD_BYTES

    # Internals

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_bytes -= entry.size
        return True

    def _evict_least_recently_used(self) -> None:
        oldest_key: Optional[str] = None
        oldest_stored_at = 0.0
        for key, entry in self._entries.items():
            if oldest_key is None or entry.stored_at < oldest_stored_at:
                oldest_key = key
                oldest_stored_at = entry.stored_at

        if oldest_key is not None:
            self._remove(oldest_key)
            self._record("evictions", "evict")
            self.logger.debug("Cache LRU eviction", key=oldest_key)

    def _record(self, stat: str, result: str) -> None:
        self._stats[stat] += 1
        if self.metrics is not None:
            self.metrics.record_cache_operation(result)
