"""Per-repository read cache that can serve last-known values during outages.

Fresh entries expire after *ttl* seconds (cachetools.TTLCache). Every value
written is also kept in a bounded LRU "last known" map that outlives TTL
expiry and invalidation; repositories read it only when the database call
itself failed.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

# Distinguishes "not cached" from a cached None
MISSING: Any = object()


class StaleTTLCache:
    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self.maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._last_known: OrderedDict[Hashable, Any] = OrderedDict()

    def get(self, key: Hashable) -> Any:
        return self._fresh.get(key, MISSING)

    def set(self, key: Hashable, value: Any) -> None:
        self._fresh[key] = value
        self._remember(key, value)

    def get_stale(self, key: Hashable) -> Any:
        """Last value ever set for *key*, fresh or not, or ``MISSING``."""
        if key not in self._last_known:
            return MISSING
        self._last_known.move_to_end(key)
        return self._last_known[key]

    def invalidate(self, key: Hashable) -> None:
        """Force the next read to hit the database; keep the fallback."""
        self._fresh.pop(key, None)

    def forget(self, key: Hashable) -> None:
        """Drop *key* entirely, e.g. after the row was deleted."""
        self._fresh.pop(key, None)
        self._last_known.pop(key, None)

    def clear(self) -> None:
        self._fresh.clear()

    def _remember(self, key: Hashable, value: Any) -> None:
        self._last_known[key] = value
        self._last_known.move_to_end(key)
        if len(self._last_known) > self.maxsize:
            self._last_known.popitem(last=False)

    @property
    def size(self) -> int:
        return len(self._fresh)

    @property
    def stale_size(self) -> int:
        return len(self._last_known)
