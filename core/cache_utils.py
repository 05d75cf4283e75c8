from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from time import monotonic
from typing import Callable, Optional


@dataclass
class CacheCounter:
    hits: int = 0
    misses: int = 0


class TTLCache:
    """Small in-process cache with per-entry expiry and oldest-first eviction.

    A ``ttl_seconds`` of 0 disables caching entirely.
    """

    def __init__(self, ttl_seconds: int = 60, max_entries: int = 128, clock: Callable[[], float] = monotonic):
        self.ttl = ttl_seconds
        self.max_entries = max(1, max_entries)
        self.counter = CacheCounter()
        self._clock = clock
        self._store: OrderedDict[str, tuple[float, object]] = OrderedDict()
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def set(self, key: str, value: object) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._store.pop(key, None)
            self._store[key] = (self._clock(), value)
            while len(self._store) > self.max_entries:
                self._store.popitem(last=False)

    def get(self, key: str) -> Optional[object]:
        with self._lock:
            item = self._store.get(key)
            if not item:
                self.counter.misses += 1
                return None
            ts, val = item
            if self._clock() - ts > self.ttl:
                self._store.pop(key, None)
                self.counter.misses += 1
                return None
            self.counter.hits += 1
            return val

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
