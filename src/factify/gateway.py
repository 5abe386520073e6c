"""
Provider gateway: cache, rate limit and timeout guard around one provider.

``invoke`` never raises for provider failures; every outcome comes back as
a PartialResult whose status says what happened.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from .cache import DEFAULT_TTL_SECONDS, InMemoryResponseCache, ResponseCache, make_cache_key
from .models import AnalysisRequest, ContentType, PartialResult, ProviderStatus
from .providers.base import MalformedResponseError, Provider, ProviderRateLimitedError
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

_OUTPUT_FIELDS = ("score", "confidence", "red_flags", "category", "explanation", "extracted_text", "raw")


class ProviderGateway:
    def __init__(
        self,
        provider: Provider,
        *,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cache_ttl: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else InMemoryResponseCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.timeout = timeout
        self.cache_ttl = cache_ttl

    @property
    def provider_id(self) -> str:
        return self.provider.provider_id

    def cache_key(self, request: AnalysisRequest) -> str:
        content_type = ContentType.IMAGE if ContentType.IMAGE in self.provider.modalities else ContentType.TEXT
        return make_cache_key(self.provider_id, self.provider.cache_material(request), content_type)

    async def invoke(self, request: AnalysisRequest) -> PartialResult:
        key = self.cache_key(request)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", self.provider_id)
            return cached.model_copy(update={"cached": True})

        if not self.rate_limiter.allow(self.provider_id):
            return PartialResult.failure(
                self.provider_id,
                ProviderStatus.RATE_LIMITED,
                f"{self.provider_id} rate limit reached for this window",
            )

        try:
            output = await asyncio.wait_for(self.provider.analyze(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", self.provider_id, self.timeout)
            return PartialResult.failure(self.provider_id, ProviderStatus.TIMEOUT, f"No answer within {self.timeout:g}s")
        except ProviderRateLimitedError as exc:
            logger.warning("%s refused upstream: %s", self.provider_id, exc)
            return PartialResult.failure(self.provider_id, ProviderStatus.RATE_LIMITED, str(exc))
        except MalformedResponseError as exc:
            logger.warning("%s returned a malformed response: %s", self.provider_id, exc)
            return PartialResult.failure(self.provider_id, ProviderStatus.MALFORMED, str(exc))
        except Exception as exc:
            logger.warning("%s unavailable: %s", self.provider_id, exc)
            return PartialResult.failure(self.provider_id, ProviderStatus.UNAVAILABLE, str(exc))

        result = self._validate(output)
        if result.ok:
            await self.cache.put(key, result, self.cache_ttl)
        return result

    def _validate(self, output: Any) -> PartialResult:
        if not isinstance(output, Mapping):
            logger.warning("%s returned %s instead of a mapping", self.provider_id, type(output).__name__)
            return PartialResult.failure(self.provider_id, ProviderStatus.MALFORMED, "Provider output is not a mapping")

        missing = [name for name in self.provider.required_fields if output.get(name) is None]
        if missing:
            logger.warning("%s output is missing %s", self.provider_id, ", ".join(missing))
            return PartialResult.failure(
                self.provider_id,
                ProviderStatus.MALFORMED,
                f"Missing required field(s): {', '.join(missing)}",
            )

        fields = {name: output[name] for name in _OUTPUT_FIELDS if output.get(name) is not None}
        try:
            return PartialResult(provider_id=self.provider_id, status=ProviderStatus.OK, **fields)
        except ValidationError as exc:
            logger.warning("%s output failed validation: %s", self.provider_id, exc.errors()[0].get("msg"))
            return PartialResult.failure(self.provider_id, ProviderStatus.MALFORMED, "Provider output failed validation")
