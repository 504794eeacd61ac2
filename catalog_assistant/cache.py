"""TTL caches for catalog aggregates.

The default backend keeps entries in process. When ``REDIS_URL`` is set the
entries are shared through Redis instead. Both backends remember the last value
written for a key after it expires, so a failed refresh can still serve a stale
but valid copy.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)

STALE_SUFFIX = ":stale"


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def get_stale(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...


@dataclass
class RedisCache:
    client: redis.Redis

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis get failed: %s", exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._read(key)

    def get_stale(self, key: str) -> Optional[Dict[str, Any]]:
        return self._read(key + STALE_SUFFIX)

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        payload = json.dumps(value)
        try:
            pipe = self.client.pipeline()
            pipe.setex(key, ttl, payload)
            pipe.set(key + STALE_SUFFIX, payload)
            pipe.execute()
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis set failed: %s", exc)


class InMemoryCache:
    def __init__(self, clock=time.monotonic) -> None:
        self._store: Dict[str, tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        return payload if expires_at > self._clock() else None

    def get_stale(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._store.get(key)
        return entry[1] if entry else None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _cache
    if _cache is not None:
        return _cache
    if not settings.redis_url:
        _cache = InMemoryCache()
        return _cache
    try:
        client = redis.Redis.from_url(settings.redis_url, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s", settings.redis_url)
        _cache = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        _cache = InMemoryCache()
    return _cache
