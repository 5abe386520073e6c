"""
Recent verdict history with Redis or in-memory storage.

Entries are kept newest first and capped at ``limit``.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .models import AnalysisRequest, Verdict

try:
    import redis.asyncio as redis
    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False

logger = logging.getLogger(__name__)

HISTORY_KEY = "factify:history"


class HistoryStore:
    """Manages Redis or in-memory history with automatic fallback"""

    def __init__(self, redis_url: Optional[str] = None, *, limit: int = 100):
        self.redis_url = redis_url
        self.limit = limit
        self.redis_client: Optional["redis.Redis"] = None
        self.memory_entries: Deque[Dict[str, Any]] = deque(maxlen=limit)
        self.use_redis = False

    async def connect(self):
        """Attempt Redis connection, fallback to memory"""
        if not self.redis_url:
            logger.info("No Redis URL configured, history kept in memory")
            return
        if not REDIS_AVAILABLE:
            logger.warning("Redis not available, history kept in memory")
            return

        try:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True, socket_connect_timeout=5)
            await self.redis_client.ping()
            self.use_redis = True
            logger.info("History store connected to Redis")
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. History kept in memory")
            self.redis_client = None

    async def close(self):
        if self.redis_client:
            await self.redis_client.close()

    async def record(self, request: AnalysisRequest, verdict: Verdict, request_id: Optional[str] = None) -> Dict[str, Any]:
        entry = {
            "id": request_id or uuid.uuid4().hex[:12],
            "content": request.summary(),
            "content_type": request.content_type.value,
            "source": request.source,
            "verdict": verdict.to_flat(),
        }
        if self.use_redis and self.redis_client:
            try:
                await self.redis_client.lpush(HISTORY_KEY, json.dumps(entry))
                await self.redis_client.ltrim(HISTORY_KEY, 0, self.limit - 1)
                return entry
            except Exception as e:
                logger.error(f"Redis history write error: {e}")

        self.memory_entries.appendleft(entry)
        return entry

    async def recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        count = self.limit if limit is None else max(0, min(limit, self.limit))
        if count == 0:
            return []
        if self.use_redis and self.redis_client:
            try:
                rows = await self.redis_client.lrange(HISTORY_KEY, 0, count - 1)
                return [json.loads(row) for row in rows]
            except Exception as e:
                logger.error(f"Redis history read error: {e}")

        return list(self.memory_entries)[:count]

    async def clear(self) -> None:
        if self.use_redis and self.redis_client:
            try:
                await self.redis_client.delete(HISTORY_KEY)
            except Exception as e:
                logger.error(f"Redis history delete error: {e}")
        self.memory_entries.clear()

    def __len__(self) -> int:
        return len(self.memory_entries)
