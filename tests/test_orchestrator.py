import asyncio
import time

import pytest

from factify.config import Settings
from factify.gateway import ProviderGateway
from factify.models import AnalysisRequest, ContentType, ProviderStatus, VerdictLabel
from factify.orchestrator import Orchestrator, build_orchestrator
from factify.providers.base import Provider, ProviderUnavailableError
from factify.providers.heuristic import HeuristicClaimClassifier
from factify.providers.registry import build_providers


class SleepyProvider(Provider):
    def __init__(self, provider_id, score=60.0, delay=0.2, error=None):
        self.provider_id = provider_id
        self.score = score
        self.delay = delay
        self.error = error
        self.requests = []

    async def analyze(self, request):
        self.requests.append(request)
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"score": self.score, "confidence": 0.6}


class FakeOCR(Provider):
    provider_id = "ocr"
    modalities = frozenset({ContentType.IMAGE})

    def __init__(self, text):
        self.text = text
        self.calls = 0

    async def analyze(self, request):
        self.calls += 1
        return {"confidence": 0.9, "extracted_text": self.text}


class StuckGateway(ProviderGateway):
    """Ignores its own timeout so only the orchestrator deadline can stop it."""

    async def invoke(self, request):
        await asyncio.sleep(30)


class BrokenGateway(ProviderGateway):
    async def invoke(self, request):
        raise RuntimeError("gateway bug")


@pytest.mark.asyncio
async def test_providers_run_concurrently():
    providers = [SleepyProvider(pid, delay=0.3) for pid in ("llm-factcheck", "heuristic", "classification")]
    orchestrator = Orchestrator([ProviderGateway(p, timeout=5) for p in providers])

    started = time.perf_counter()
    results = await orchestrator.run(AnalysisRequest(text="concurrent"))
    elapsed = time.perf_counter() - started

    assert [r.status for r in results] == [ProviderStatus.OK] * 3
    assert elapsed < 0.7


@pytest.mark.asyncio
async def test_partial_failure_still_produces_verdict():
    gateways = [
        ProviderGateway(SleepyProvider("llm-factcheck", error=ProviderUnavailableError("down"), delay=0), timeout=5),
        ProviderGateway(SleepyProvider("heuristic", score=80, delay=0), timeout=5),
        ProviderGateway(SleepyProvider("classification", delay=1.0), timeout=0.05),
    ]
    orchestrator = Orchestrator(gateways)

    results = await orchestrator.run(AnalysisRequest(text="some claim"))
    statuses = {r.provider_id: r.status for r in results}
    verdict = orchestrator.fusion.fuse(results)

    assert statuses == {
        "llm-factcheck": ProviderStatus.UNAVAILABLE,
        "heuristic": ProviderStatus.OK,
        "classification": ProviderStatus.TIMEOUT,
    }
    assert verdict.score == 65
    assert verdict.label == VerdictLabel.MIXED_SIGNALS


@pytest.mark.asyncio
async def test_deadline_is_max_timeout_plus_overhead():
    stuck = StuckGateway(SleepyProvider("llm-factcheck"), timeout=0.1)
    fast = ProviderGateway(SleepyProvider("heuristic", delay=0), timeout=0.1)
    orchestrator = Orchestrator([stuck, fast], overhead_seconds=0.1)

    started = time.perf_counter()
    results = await orchestrator.run(AnalysisRequest(text="deadline"))
    elapsed = time.perf_counter() - started

    assert elapsed < 1.0
    assert {r.provider_id: r.status for r in results} == {
        "llm-factcheck": ProviderStatus.TIMEOUT,
        "heuristic": ProviderStatus.OK,
    }


@pytest.mark.asyncio
async def test_gateway_exception_does_not_fail_request():
    orchestrator = Orchestrator([
        BrokenGateway(SleepyProvider("llm-factcheck")),
        ProviderGateway(HeuristicClaimClassifier()),
    ])
    verdict = await orchestrator.evaluate(AnalysisRequest(text="Local bakery opens a second shop"))
    assert verdict.score == 50
    assert verdict.label == VerdictLabel.MIXED_SIGNALS


@pytest.mark.asyncio
async def test_ocr_text_triggers_one_derived_wave():
    ocr = FakeOCR("Miracle cure, act now!")
    text_provider = SleepyProvider("heuristic", delay=0)
    orchestrator = Orchestrator([ProviderGateway(ocr), ProviderGateway(text_provider)])

    request = AnalysisRequest(image_ref="https://example.com/post.png", content_type=ContentType.IMAGE, source="web")
    results = await orchestrator.run(request)

    assert ocr.calls == 1
    assert [r.provider_id for r in results] == ["ocr", "heuristic"]
    assert len(text_provider.requests) == 1
    derived = text_provider.requests[0]
    assert derived.derived is True
    assert derived.text == "Miracle cure, act now!"
    assert derived.content_type == ContentType.TEXT
    assert derived.source == "web"


@pytest.mark.asyncio
async def test_image_with_caption_runs_text_providers_in_both_waves():
    ocr = FakeOCR("text inside the image")
    text_provider = SleepyProvider("heuristic", delay=0)
    orchestrator = Orchestrator([ProviderGateway(ocr), ProviderGateway(text_provider)])

    request = AnalysisRequest(text="caption", image_ref=b"\x89PNG", content_type=ContentType.IMAGE)
    results = await orchestrator.run(request)

    assert [r.text for r in text_provider.requests] == ["caption", "text inside the image"]
    assert len(results) == 3


@pytest.mark.asyncio
async def test_empty_ocr_text_does_not_trigger_second_wave():
    ocr = FakeOCR("   ")
    text_provider = SleepyProvider("heuristic", delay=0)
    orchestrator = Orchestrator([ProviderGateway(ocr), ProviderGateway(text_provider)])

    results = await orchestrator.run(
        AnalysisRequest(image_ref="https://example.com/blank.png", content_type=ContentType.IMAGE)
    )

    assert [r.provider_id for r in results] == ["ocr"]
    assert text_provider.requests == []


@pytest.mark.asyncio
async def test_derived_request_never_fans_out_again():
    ocr = FakeOCR("more text")
    orchestrator = Orchestrator([ProviderGateway(ocr), ProviderGateway(SleepyProvider("heuristic", delay=0))])

    request = AnalysisRequest(
        text="already derived",
        image_ref="https://example.com/x.png",
        content_type=ContentType.IMAGE,
        derived=True,
    )
    results = await orchestrator.run(request)

    assert len(results) == 2
    assert ocr.calls == 1


@pytest.mark.asyncio
async def test_empty_text_without_providers_needs_verification():
    verdict = await Orchestrator([]).evaluate(AnalysisRequest(text=""))
    assert verdict.label == VerdictLabel.NEEDS_VERIFICATION
    assert verdict.score == 50
    assert verdict.confidence <= 50


@pytest.mark.asyncio
async def test_offline_settings_evaluate_with_heuristic_only():
    settings = Settings(_env_file=None)
    providers = build_providers(settings)
    orchestrator = build_orchestrator(settings, providers)

    verdict = await orchestrator.evaluate(
        AnalysisRequest(text="They don't want you to know this secret miracle cure, 100% proven, act now!")
    )

    assert orchestrator.provider_ids == ["heuristic"]
    # (50 + 5) / 2 = 27.5
    assert verdict.score == 28
    assert verdict.confidence == 70
    assert verdict.label == VerdictLabel.QUESTIONABLE
    assert "Red flags detected: Conspiracy language, Absolute claims, Urgency tactics" in verdict.reasoning


def test_build_orchestrator_applies_provider_settings():
    settings = Settings(_env_file=None)
    orchestrator = build_orchestrator(settings, [HeuristicClaimClassifier(), SleepyProvider("ocr")])

    heuristic, ocr = orchestrator.gateways
    assert heuristic.rate_limiter.remaining("heuristic") is None
    assert ocr.rate_limiter.remaining("ocr") == 25
    assert ocr.cache_ttl == 1800
    assert heuristic.cache is ocr.cache


@pytest.mark.asyncio
async def test_run_accepts_an_explicit_gateway_set():
    registered = ProviderGateway(SleepyProvider("llm-factcheck", delay=0))
    ad_hoc = ProviderGateway(HeuristicClaimClassifier())
    orchestrator = Orchestrator([registered])

    results = await orchestrator.run(AnalysisRequest(text="Climate research published in a journal"), [ad_hoc])

    assert [r.provider_id for r in results] == ["heuristic"]
    assert results[0].category == "science"
