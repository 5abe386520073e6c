from __future__ import annotations

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional

from .models import CacheEntry, ContentType, PartialResult, ProviderStatus

try:
    import redis.asyncio as redis
    REDIS_AVAILABLE = True
except ImportError:  # pragma: no cover - redis is a declared dependency
    REDIS_AVAILABLE = False

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


def normalize_content(content: str | bytes | None) -> str:
    """Collapse whitespace and case so trivially different submissions share a key."""
    if content is None:
        return ""
    if isinstance(content, bytes):
        return "sha256:" + hashlib.sha256(content).hexdigest()
    return " ".join(content.split()).lower()


def make_cache_key(provider_id: str, content: str | bytes | None, content_type: ContentType | str) -> str:
    kind = content_type.value if isinstance(content_type, ContentType) else str(content_type)
    material = f"{provider_id}\x1f{kind}\x1f{normalize_content(content)}"
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return f"factify:{provider_id}:{digest}"


class ResponseCache(ABC):
    """Provider response cache. Only ``ok`` results are ever stored."""

    @abstractmethod
    async def get(self, key: str) -> Optional[PartialResult]:
        ...

    @abstractmethod
    async def put(self, key: str, value: PartialResult, ttl: float = DEFAULT_TTL_SECONDS) -> None:
        ...

    async def close(self) -> None:
        return None

    @staticmethod
    def cacheable(value: PartialResult, ttl: float) -> bool:
        return value.status == ProviderStatus.OK and ttl > 0


class InMemoryResponseCache(ResponseCache):
    def __init__(self, *, max_entries: int = 2048, clock: Callable[[], float] = time.time) -> None:
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[PartialResult]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(now):
                del self._entries[key]
                return None
            return entry.value

    async def put(self, key: str, value: PartialResult, ttl: float = DEFAULT_TTL_SECONDS) -> None:
        if not self.cacheable(value, ttl):
            return
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(key=key, value=value, created_at=now, ttl=ttl)
            self._evict(now)

    def _evict(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisResponseCache(ResponseCache):
    """Redis-backed cache with automatic fallback to memory, like the job storage."""

    def __init__(self, url: str, *, fallback: Optional[InMemoryResponseCache] = None) -> None:
        self._url = url
        self._client: Optional["redis.Redis"] = None
        self.fallback = fallback if fallback is not None else InMemoryResponseCache()
        self.use_redis = False

    async def connect(self) -> None:
        if not REDIS_AVAILABLE:
            logger.warning("Redis not available, using in-memory response cache")
            return
        try:
            self._client = redis.from_url(self._url, decode_responses=True, socket_connect_timeout=5)
            await self._client.ping()
            self.use_redis = True
            logger.info("Response cache connected to Redis")
        except Exception as exc:
            logger.warning("Redis connection failed: %s. Using in-memory response cache", exc)
            self._client = None

    async def close(self) -> None:
        if self._client:
            await self._client.close()

    async def get(self, key: str) -> Optional[PartialResult]:
        if self.use_redis and self._client:
            try:
                data = await self._client.get(key)
                return PartialResult.model_validate_json(data) if data else None
            except Exception as exc:
                logger.error("Redis cache get error: %s", exc)
        return await self.fallback.get(key)

    async def put(self, key: str, value: PartialResult, ttl: float = DEFAULT_TTL_SECONDS) -> None:
        if not self.cacheable(value, ttl):
            return
        if self.use_redis and self._client:
            try:
                await self._client.set(key, value.model_dump_json(), ex=max(1, int(ttl)))
                return
            except Exception as exc:
                logger.error("Redis cache set error: %s", exc)
        await self.fallback.put(key, value, ttl)
