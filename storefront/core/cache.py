# storefront/core/cache.py

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class CacheTags:
    PRODUCTS = "products"
    CATEGORIES = "categories"
    FEATURED_PRODUCTS = "featured-products"


DEFAULT_TTL = 300


# ``False`` keeps an entry until it is invalidated, ``0`` never serves it.
TTL = Union[int, float, bool]


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: TTL
    tags: List[str] = field(default_factory=list)

    def is_valid(self, now: Optional[float] = None) -> bool:
        if self.ttl is False:
            return True
        if not self.ttl:
            return False
        now = time.time() if now is None else now
        return now - self.timestamp < self.ttl


class TimedCache:
    """
    Timestamped in-memory map used for catalog reads.
    Entries expire on read once their ttl has elapsed and can be dropped in
    bulk by tag when the underlying data changes.
    """

    def __init__(self, default_ttl: TTL = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.default_ttl = default_ttl
        self.clock = clock
        self.cache_stats = {"hits": 0, "misses": 0, "sets": 0, "invalidations": 0}

    @staticmethod
    def generate_key(prefix: str, params: Optional[Dict[str, Any]] = None) -> str:
        params = params or {}
        sorted_params = ",".join(
            f"{key}:{json.dumps(params[key], default=str)}" for key in sorted(params)
        )
        return f"{prefix}:{sorted_params}"

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.cache_stats["misses"] += 1
                return None
            if not entry.is_valid(self.clock()):
                del self._entries[key]
                self.cache_stats["misses"] += 1
                logger.debug(f"Expired cache entry removed: {key}")
                return None
            self.cache_stats["hits"] += 1
            return entry.data

    def set(self, key: str, data: Any, ttl: Optional[TTL] = None, tags: Optional[List[str]] = None) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                data=data,
                timestamp=self.clock(),
                ttl=self.default_ttl if ttl is None else ttl,
                tags=list(tags or []),
            )
            self.cache_stats["sets"] += 1

    def get_or_set(self, key: str, loader: Callable[[], Any], ttl: Optional[TTL] = None,
                   tags: Optional[List[str]] = None) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        data = loader()
        self.set(key, data, ttl=ttl, tags=tags)
        return data

    def invalidate_tag(self, tag: str) -> int:
        with self._lock:
            keys = [key for key, entry in self._entries.items() if tag in entry.tags]
            for key in keys:
                del self._entries[key]
            self.cache_stats["invalidations"] += len(keys)
        if keys:
            logger.info(f"Invalidated {len(keys)} cache entries tagged '{tag}'")
        return len(keys)

    def invalidate_tags(self, *tags: str) -> int:
        return sum(self.invalidate_tag(tag) for tag in tags)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clean_expired(self) -> Dict[str, int]:
        now = self.clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)
        return {"cleaned": len(expired), "remaining": remaining}

    def stats(self) -> Dict[str, Any]:
        now = self.clock()
        with self._lock:
            entries = [
                {
                    "key": key,
                    "age": round(now - entry.timestamp, 3),
                    "tags": entry.tags,
                    "ttl": entry.ttl,
                    "valid": entry.is_valid(now),
                }
                for key, entry in self._entries.items()
            ]
        return {"size": len(entries), "entries": entries, **self.cache_stats}


catalog_cache = TimedCache()
