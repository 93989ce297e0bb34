# app/services/cache.py
"""
In-process cache for read-only query results.

One QueryCache is built at startup and handed to the QueryExecutor; tests build
their own. Keys are (compiled SQL text, ordered bound parameters), values are
the row lists the store returned.

Policy:
- fixed TTL; an expired entry is never returned as a hit
- no background timer and no LRU: when a write pushes the entry count past
  `max_entries`, every expired entry is swept in that same call
- no locking; the event loop serializes access. Two overlapping requests may
  both miss and both populate the same key, which is harmless.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Tuple[Hashable, ...]]
Rows = List[Dict[str, Any]]


@dataclass(frozen=True)
class CacheEntry:
    rows: Rows
    stored_at: float


class QueryCache:
    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._expired(entry, self._clock())

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, key: CacheKey) -> Optional[Rows]:
        """Cached rows for `key`, or None on a miss (absent or expired)."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry.rows

    def put(self, key: CacheKey, rows: Rows) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(rows=rows, stored_at=now)
        if len(self._entries) > self.max_entries:
            self.sweep(now)

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Swept %d expired cache entries (%d left)", len(expired), len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> Dict[str, float]:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.ttl_seconds,
        }
