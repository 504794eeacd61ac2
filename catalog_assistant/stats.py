"""Catalog overview statistics with a TTL cache."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, Protocol

from .cache import CacheBackend, get_cache
from .config import Settings, settings
from .models import CategoryMatch
from .search import CATEGORY_FIELDS
from .store import get_store
from .utils import bounded

logger = logging.getLogger(__name__)

STATS_KEY = "catalog:stats"
SAMPLE_SIZE = 10
EMPTY_STATS: Dict[str, Any] = {"totalProducts": 0, "categories": [], "sampleProducts": []}


class StatsStore(Protocol):
    async def count(self) -> int: ...

    async def categories(self, size: int = 100) -> list[str]: ...

    async def sample_codes(self, size: int = 10) -> list[str]: ...

    async def find_contains(self, terms, fields, size: int = 20) -> list: ...


class CatalogStats:
    """Aggregate counts for the knowledge-base overview and ``/api/stats``.

    Readers never wait on each other: a fresh cached copy is returned
    directly, and only one coroutine at a time refreshes an expired copy.
    If the refresh fails the last good copy is served.
    """

    def __init__(self, store: StatsStore, cache: CacheBackend | None = None, config: Settings = settings) -> None:
        self.store = store
        self.cache = cache or get_cache()
        self.config = config
        self._refresh_lock = asyncio.Lock()

    async def get(self) -> Dict[str, Any]:
        cached = self.cache.get(STATS_KEY)
        if cached is not None:
            return cached
        async with self._refresh_lock:
            cached = self.cache.get(STATS_KEY)
            if cached is not None:
                return cached
            return await self._refresh()

    async def _refresh(self) -> Dict[str, Any]:
        timeout = self.config.db_timeout
        total, categories, samples = await asyncio.gather(
            bounded(self.store.count(), timeout, "catalog count"),
            bounded(self.store.categories(), timeout, "catalog categories"),
            bounded(self.store.sample_codes(SAMPLE_SIZE), timeout, "catalog samples"),
        )
        if not total.ok:
            stale = self.cache.get_stale(STATS_KEY)
            logger.warning("catalog stats refresh failed; serving %s copy", "stale" if stale else "empty")
            return stale or dict(EMPTY_STATS)
        stats = {
            "totalProducts": total.value,
            "categories": categories.value_or([]),
            "sampleProducts": samples.value_or([]),
        }
        self.cache.set(STATS_KEY, stats, self.config.stats_ttl_seconds)
        logger.info("catalog stats refreshed: %s products, %s categories", stats["totalProducts"], len(stats["categories"]))
        return stats

    async def category_matches(self, keyword: str, limit: int = 200) -> CategoryMatch:
        records = await self.store.find_contains([keyword], CATEGORY_FIELDS, size=limit)
        codes = sorted({record.productCode for record in records if record.productCode})
        return CategoryMatch(keyword=keyword, count=len(codes), products=codes)


@lru_cache(maxsize=1)
def get_stats() -> CatalogStats:
    return CatalogStats(get_store())
