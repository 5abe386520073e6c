"""
Fixed-window rate limiting for provider calls.

Windows are keyed by ``floor(now / window_seconds)`` so a window is never
revisited once the clock moves past it. Every window that has ended is
swept from the store on the next check, whichever key it belonged to.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from .models import RateLimitWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    limit: Optional[int]
    window_seconds: int = 3600

    @property
    def unlimited(self) -> bool:
        return self.limit is None


class RateLimitStore(ABC):
    """Counter storage shared by every request hitting the limiter."""

    @abstractmethod
    def try_increment(self, key: str, bucket: int, limit: int, window_start: float, window_seconds: int) -> bool:
        """Atomically increment the counter for (key, bucket) unless it already reached ``limit``."""

    @abstractmethod
    def count(self, key: str, bucket: int) -> int:
        ...

    @abstractmethod
    def prune(self, now: float) -> int:
        """Drop every window that ended at or before ``now``; returns how many were removed."""


class InMemoryRateLimitStore(RateLimitStore):
    def __init__(self) -> None:
        self._windows: Dict[Tuple[str, int], RateLimitWindow] = {}
        self._lock = threading.Lock()
        # earliest end of any stored window; nothing can be stale before it
        self._next_expiry = math.inf

    def try_increment(self, key: str, bucket: int, limit: int, window_start: float, window_seconds: int) -> bool:
        with self._lock:
            window = self._windows.get((key, bucket))
            if window is None:
                window = RateLimitWindow(
                    provider_id=key, window_start=window_start, limit=limit, window_seconds=window_seconds
                )
                self._windows[(key, bucket)] = window
                self._next_expiry = min(self._next_expiry, window_start + window_seconds)
            if window.count >= limit:
                return False
            window.count += 1
            return True

    def count(self, key: str, bucket: int) -> int:
        with self._lock:
            window = self._windows.get((key, bucket))
            return window.count if window else 0

    def prune(self, now: float) -> int:
        with self._lock:
            if now < self._next_expiry:
                return 0
            stale = [item for item, window in self._windows.items() if window.expired(now)]
            for item in stale:
                del self._windows[item]
            self._next_expiry = min(
                (window.window_start + window.window_seconds for window in self._windows.values()),
                default=math.inf,
            )
        if stale:
            logger.debug("Pruned %d ended rate-limit window(s)", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RateLimiter:
    """Bounds call volume per key (provider id or client address) per time window."""

    def __init__(
        self,
        policies: Optional[Mapping[str, RateLimitPolicy]] = None,
        *,
        default_policy: Optional[RateLimitPolicy] = None,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._policies = dict(policies or {})
        self._default = default_policy or RateLimitPolicy(limit=None)
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def policy(self, key: str) -> RateLimitPolicy:
        return self._policies.get(key, self._default)

    def allow(self, key: str) -> bool:
        policy = self.policy(key)
        if policy.unlimited:
            return True
        now = self._clock()
        bucket, window_start = self._bucket(policy, now)
        self._store.prune(now)
        allowed = self._store.try_increment(key, bucket, policy.limit, window_start, policy.window_seconds)
        if not allowed:
            logger.warning("Rate limit reached for %s (%s per %ss)", key, policy.limit, policy.window_seconds)
        return allowed

    def used(self, key: str) -> int:
        policy = self.policy(key)
        if policy.unlimited:
            return 0
        bucket, _ = self._bucket(policy, self._clock())
        return self._store.count(key, bucket)

    def remaining(self, key: str) -> Optional[int]:
        """Calls left in the current window, or None when the key is unlimited."""
        policy = self.policy(key)
        if policy.unlimited:
            return None
        return max(0, policy.limit - self.used(key))

    def retry_after(self, key: str) -> float:
        policy = self.policy(key)
        now = self._clock()
        _, window_start = self._bucket(policy, now)
        return max(0.0, window_start + policy.window_seconds - now)

    @staticmethod
    def _bucket(policy: RateLimitPolicy, now: float) -> Tuple[int, float]:
        bucket = math.floor(now / policy.window_seconds)
        return bucket, float(bucket * policy.window_seconds)
