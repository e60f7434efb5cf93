# utils/cache.py
"""
Generation-scoped result cache
------------------------------
LRU cache with optional TTL, owned by exactly one index generation.
A rebuild never clears entries selectively: the whole cache object is
dropped together with the snapshot that owns it.

Concurrent readers may both miss and compute the same value; the second
insert simply overwrites the first with an identical result.
"""

import time
from collections import OrderedDict, namedtuple
from threading import Lock

# op: operation name, filters: ReportFilter.key() (or None), params: tuple
CacheKey = namedtuple("CacheKey", ["op", "filters", "params"])

_MISSING = object()


class GenerationCache:
    def __init__(self, generation: int, maxsize: int = 2048, ttl: float = 0.0):
        self.generation = generation
        self.maxsize = max(1, int(maxsize))
        self.ttl = float(ttl or 0.0)
        self._data = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def _expired(self, stamp):
        return self.ttl > 0 and (time.monotonic() - stamp) > self.ttl

    def get(self, key, default=None):
        with self._lock:
            entry = self._data.get(key, _MISSING)
            if entry is _MISSING:
                self.misses += 1
                return default
            generation, stamp, value = entry
            if generation != self.generation or self._expired(stamp):
                del self._data[key]
                self.misses += 1
                return default
            self._data.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key, value):
        with self._lock:
            self._data[key] = (self.generation, time.monotonic(), value)
            self._data.move_to_end(key)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)
        return value

    def get_or_compute(self, key, compute):
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        # computed outside the lock; pure functions make a duplicate harmless
        return self.set(key, compute())

    def __len__(self):
        with self._lock:
            return len(self._data)
