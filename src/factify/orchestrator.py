"""
Concurrent fan-out of one request to every applicable provider.

Each request runs at most two waves: the primary wave over the submitted
content, and, when OCR pulled text out of an image, one derived wave over
that text. Derived requests never trigger a further wave.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .cache import InMemoryResponseCache, ResponseCache
from .config import Settings
from .fusion import FusionEngine
from .gateway import ProviderGateway
from .models import OCR, AnalysisRequest, ContentType, PartialResult, ProviderStatus, Verdict
from .providers.base import Provider
from .rate_limiter import RateLimiter, RateLimitPolicy

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        gateways: Sequence[ProviderGateway],
        *,
        fusion: Optional[FusionEngine] = None,
        overhead_seconds: float = 2.0,
    ) -> None:
        self.gateways = list(gateways)
        self.fusion = fusion or FusionEngine()
        self.overhead_seconds = overhead_seconds

    @property
    def provider_ids(self) -> List[str]:
        return [gateway.provider_id for gateway in self.gateways]

    def applicable(
        self, request: AnalysisRequest, gateways: Optional[Sequence[ProviderGateway]] = None
    ) -> List[ProviderGateway]:
        candidates = self.gateways if gateways is None else gateways
        return [gateway for gateway in candidates if gateway.provider.handles(request)]

    async def run(
        self, request: AnalysisRequest, gateways: Optional[Sequence[ProviderGateway]] = None
    ) -> List[PartialResult]:
        """Collect partial results for ``request``, including a derived text wave when OCR found text."""
        results = await self._wave(request, gateways)
        if request.derived:
            return results

        extracted = self._extracted_text(results)
        if extracted:
            derived = AnalysisRequest(
                text=extracted,
                content_type=ContentType.TEXT,
                derived=True,
                source=request.source,
            )
            logger.info("Running derived text wave over %d OCR characters", len(extracted))
            results.extend(await self._wave(derived, gateways))
        return results

    async def evaluate(self, request: AnalysisRequest) -> Verdict:
        results = await self.run(request)
        verdict = self.fusion.fuse(results)
        logger.info(
            "Evaluated '%s': %s (%d) from %d result(s)",
            request.summary(50),
            verdict.label.value,
            verdict.score,
            len(results),
        )
        return verdict

    async def _wave(
        self, request: AnalysisRequest, gateways: Optional[Sequence[ProviderGateway]] = None
    ) -> List[PartialResult]:
        gateways = self.applicable(request, gateways)
        if not gateways:
            return []

        deadline = max(gateway.timeout for gateway in gateways) + self.overhead_seconds
        tasks: Dict[asyncio.Task, ProviderGateway] = {
            asyncio.create_task(gateway.invoke(request)): gateway for gateway in gateways
        }
        done, pending = await asyncio.wait(tasks, timeout=deadline)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: List[PartialResult] = []
        for task, gateway in tasks.items():
            if task in done and not task.cancelled() and task.exception() is None:
                results.append(task.result())
            elif task in done and not task.cancelled():
                logger.error("Gateway for %s raised: %s", gateway.provider_id, task.exception())
                results.append(
                    PartialResult.failure(gateway.provider_id, ProviderStatus.UNAVAILABLE, str(task.exception()))
                )
            else:
                logger.warning("%s missed the %.1fs deadline", gateway.provider_id, deadline)
                results.append(
                    PartialResult.failure(gateway.provider_id, ProviderStatus.TIMEOUT, "Deadline exceeded")
                )
        return results

    @staticmethod
    def _extracted_text(results: Iterable[PartialResult]) -> Optional[str]:
        for result in results:
            if result.provider_id == OCR and result.ok and result.extracted_text and result.extracted_text.strip():
                return result.extracted_text
        return None


def build_orchestrator(
    settings: Settings,
    providers: Sequence[Provider],
    *,
    cache: Optional[ResponseCache] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> Orchestrator:
    """Wrap each provider in a gateway that shares one cache and one rate limiter."""
    cache = cache if cache is not None else InMemoryResponseCache(max_entries=settings.cache_max_entries)
    if rate_limiter is None:
        policies = {}
        for provider in providers:
            options = settings.provider(provider.provider_id)
            policies[provider.provider_id] = RateLimitPolicy(options.rate_limit, options.window_seconds)
        rate_limiter = RateLimiter(policies)

    gateways = []
    for provider in providers:
        options = settings.provider(provider.provider_id)
        gateways.append(
            ProviderGateway(
                provider,
                cache=cache,
                rate_limiter=rate_limiter,
                timeout=options.timeout_seconds,
                cache_ttl=options.cache_ttl_seconds,
            )
        )
    return Orchestrator(gateways, overhead_seconds=settings.orchestrator_overhead_seconds)
