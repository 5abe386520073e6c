from __future__ import annotations

import logging
from typing import List

import httpx

from ..config import Settings
from ..models import (
    CLASSIFICATION,
    HEURISTIC,
    IMAGE_AUTHENTICITY,
    IMAGE_MODERATION,
    LLM_FACTCHECK,
    OCR,
    SENTIMENT,
)
from .base import Provider
from .gemini import GeminiFactCheckProvider
from .heuristic import HeuristicClaimClassifier
from .huggingface import ClassificationProvider, SentimentProvider
from .ocr import OCRSpaceProvider
from .sightengine import ImageAuthenticityProvider, ImageModerationProvider

logger = logging.getLogger(__name__)


def build_providers(settings: Settings, client: httpx.AsyncClient | None = None) -> List[Provider]:
    """Register every enabled provider whose credentials are configured."""
    providers: List[Provider] = []

    def enabled(provider_id: str) -> bool:
        return settings.provider(provider_id).enabled

    def timeout(provider_id: str) -> float:
        return settings.provider(provider_id).timeout_seconds

    if enabled(LLM_FACTCHECK) and settings.is_configured(settings.gemini_api_key):
        providers.append(
            GeminiFactCheckProvider(
                settings.gemini_api_key,
                base_url=settings.gemini_base_url,
                model=settings.gemini_model,
                temperature=settings.gemini_temperature,
                max_tokens=settings.gemini_max_tokens,
                client=client,
                timeout=timeout(LLM_FACTCHECK),
            )
        )

    if enabled(HEURISTIC):
        providers.append(HeuristicClaimClassifier())

    if settings.is_configured(settings.hugging_face_api_key):
        if enabled(CLASSIFICATION):
            providers.append(
                ClassificationProvider(
                    settings.hugging_face_api_key,
                    base_url=settings.hugging_face_base_url,
                    model=settings.classification_model,
                    client=client,
                    timeout=timeout(CLASSIFICATION),
                )
            )
        if enabled(SENTIMENT):
            providers.append(
                SentimentProvider(
                    settings.hugging_face_api_key,
                    base_url=settings.hugging_face_base_url,
                    model=settings.sentiment_model,
                    client=client,
                    timeout=timeout(SENTIMENT),
                )
            )

    if settings.is_configured(settings.sightengine_api_user, settings.sightengine_api_secret):
        if enabled(IMAGE_AUTHENTICITY):
            providers.append(
                ImageAuthenticityProvider(
                    settings.sightengine_api_user,
                    settings.sightengine_api_secret,
                    url=settings.sightengine_url,
                    client=client,
                    timeout=timeout(IMAGE_AUTHENTICITY),
                )
            )
        if enabled(IMAGE_MODERATION):
            providers.append(
                ImageModerationProvider(
                    settings.sightengine_api_user,
                    settings.sightengine_api_secret,
                    url=settings.sightengine_url,
                    client=client,
                    timeout=timeout(IMAGE_MODERATION),
                )
            )

    if enabled(OCR) and settings.is_configured(settings.ocr_space_api_key):
        providers.append(
            OCRSpaceProvider(
                settings.ocr_space_api_key,
                url=settings.ocr_space_url,
                language=settings.ocr_language,
                client=client,
                timeout=timeout(OCR),
            )
        )

    logger.info("Registered providers: %s", ", ".join(p.provider_id for p in providers) or "none")
    return providers
