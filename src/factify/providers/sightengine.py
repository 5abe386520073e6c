from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..models import IMAGE_AUTHENTICITY, IMAGE_MODERATION, AnalysisRequest, ContentType
from .base import HTTPProvider, MalformedResponseError, ProviderUnavailableError

MODERATION_MODELS = "nudity,wad,offensive,gore"
GENAI_MODELS = "genai"
AI_GENERATED_THRESHOLD = 0.5


def _number(value: Any, default: Optional[float]) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _section(result: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = result.get(name) or {}
    if not isinstance(section, dict):
        raise MalformedResponseError(f"SightEngine '{name}' section is not an object")
    return section


def safety_score(result: Dict[str, Any]) -> tuple[int, List[str]]:
    """100 for a clean image, minus a fixed penalty per unsafe dimension."""
    score = 100
    flags: List[str] = []
    nudity = _section(result, "nudity")
    gore = _section(result, "gore")
    offensive = _section(result, "offensive")
    if nudity and _number(nudity.get("safe"), 1.0) < 0.8:
        score -= 30
        flags.append("Explicit imagery")
    if gore and _number(gore.get("prob"), 0.0) > 0.3:
        score -= 40
        flags.append("Graphic violence")
    if offensive and _number(offensive.get("prob"), 0.0) > 0.5:
        score -= 25
        flags.append("Offensive symbols")
    return max(0, score), flags


def ai_generated_probability(result: Dict[str, Any]) -> Optional[float]:
    candidates = (
        _section(result, "type").get("ai_generated"),
        result.get("ai_generated"),
        _section(result, "genai").get("ai_generated"),
    )
    for value in candidates:
        if value is not None:
            return _number(value, None)
    return None


class _SightEngineProvider(HTTPProvider):
    modalities = frozenset({ContentType.IMAGE})
    models: str = ""

    def __init__(
        self,
        api_user: str,
        api_secret: str,
        *,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client, timeout=timeout)
        self._api_user = api_user
        self._api_secret = api_secret
        self._url = url

    async def _check(self, request: AnalysisRequest) -> Dict[str, Any]:
        params = {"models": self.models, "api_user": self._api_user, "api_secret": self._api_secret}
        fields, files = self._image_fields(request, url_field="url", file_field="media")
        if files:
            data = await self._send("POST", self._url, data=params, files=files)
        else:
            data = await self._send("GET", self._url, params={**params, **fields})
        if not isinstance(data, dict):
            raise MalformedResponseError("SightEngine response is not an object")
        if data.get("status") != "success":
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            raise ProviderUnavailableError(f"SightEngine error: {message or 'request failed'}")
        return data


class ImageModerationProvider(_SightEngineProvider):
    provider_id = IMAGE_MODERATION
    models = MODERATION_MODELS

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        data = await self._check(request)
        score, flags = safety_score(data)
        return {
            "red_flags": flags,
            "category": "safe" if not flags else "unsafe",
            "explanation": f"Image safety score {score}/100",
            "raw": {"safety_score": score, "moderation": data},
        }


class ImageAuthenticityProvider(_SightEngineProvider):
    provider_id = IMAGE_AUTHENTICITY
    models = GENAI_MODELS
    required_fields = ("score", "confidence", "category")

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        data = await self._check(request)
        probability = ai_generated_probability(data)
        if probability is None or not 0 <= probability <= 1:
            raise MalformedResponseError("SightEngine response carries no AI-generation probability")
        flagged = probability > AI_GENERATED_THRESHOLD
        return {
            "score": round((1 - probability) * 100, 2),
            "confidence": probability if flagged else 1 - probability,
            "category": "ai-generated" if flagged else "authentic",
            "explanation": f"AI-generation probability {round(probability * 100)}%",
            "raw": data,
        }
