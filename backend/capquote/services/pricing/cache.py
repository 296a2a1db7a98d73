"""Read-through LRU cache with TTL and hit-rate accounting."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar

from ...utils.metrics import incr
from .errors import DataUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Entry:
    value: Any
    stored_at: float


class PricingCache:
    """Thread-safe LRU map shared by concurrent requests.

    Expired entries are not dropped on read: they stay until evicted so
    :meth:`get_or_load` can serve them when a reload raises
    :class:`DataUnavailable`.
    """

    def __init__(
        self,
        name: str,
        max_size: int = 1024,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.name = name
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._data: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.stale_served = 0

    def _fresh(self, entry: _Entry) -> bool:
        return self.ttl is None or (self._clock() - entry.stored_at) < self.ttl

    def _lookup(self, key: str) -> tuple[bool, Optional[_Entry]]:
        with self._lock:
            entry = self._data.get(key)
            if entry is not None and self._fresh(entry):
                self._data.move_to_end(key)
                self.hits += 1
                hit = True
            else:
                self.misses += 1
                hit = False
        incr("pricing.cache.hit" if hit else "pricing.cache.miss", tags={"cache": self.name})
        return hit, entry

    def get(self, key: str, default: Any = None) -> Any:
        hit, entry = self._lookup(key)
        return entry.value if hit and entry is not None else default

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = _Entry(value, self._clock())
            self._data.move_to_end(key)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)
                self.evictions += 1

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        hit, entry = self._lookup(key)
        if hit and entry is not None:
            return entry.value
        try:
            value = loader()
        except DataUnavailable as exc:
            if entry is None:
                raise
            with self._lock:
                self.stale_served += 1
            logger.warning("Serving stale %s cache entry %s: %s", self.name, key, exc)
            return entry.value
        self.set(key, value)
        return value

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop every entry, or only those whose key starts with ``prefix``."""
        with self._lock:
            if prefix is None:
                removed = len(self._data)
                self._data.clear()
            else:
                doomed = [k for k in self._data if k.startswith(prefix)]
                for k in doomed:
                    del self._data[k]
                removed = len(doomed)
        if removed:
            logger.info("Invalidated %d %s cache entries", removed, self.name)
        return removed

    def reset_stats(self) -> None:
        with self._lock:
            self.hits = self.misses = self.evictions = self.stale_served = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "hitRate": round(self.hits / total, 4) if total else 0.0,
                "size": len(self._data),
                "maxSize": self.max_size,
                "evictions": self.evictions,
                "staleServed": self.stale_served,
            }
