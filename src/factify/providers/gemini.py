"""
Gemini fact-check provider.

The model is asked for a JSON verdict. Free-text answers are handled by
``parse_factcheck_text``; anything we cannot read a score out of is
reported as malformed instead of being guessed.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

import httpx

from ..models import LLM_FACTCHECK, AnalysisRequest
from .base import HTTPProvider, MalformedResponseError

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_CREDIBILITY_TEXT = re.compile(r"credibility[^0-9]{0,40}?(\d{1,3})", re.IGNORECASE)
_VERDICT_TEXT = re.compile(r"verdict[^a-z]{0,20}(credible|questionable|false)", re.IGNORECASE)

PROMPT_TEMPLATE = """As an expert fact-checker, analyze the following {kind} content for misinformation, bias, and credibility. Provide a detailed analysis including:

1. Credibility Score (0-100)
2. Key Claims Identified
3. Fact-Check Results
4. Source Reliability Assessment
5. Potential Red Flags
6. Recommendations

Content to analyze:
{content}

Please respond in JSON format with the following structure:
{{
    "credibilityScore": number,
    "verdict": "credible|questionable|false",
    "keyClaims": [array of claims],
    "factCheckResults": [array of fact-check results],
    "sourceReliability": "high|medium|low",
    "redFlags": [array of concerns],
    "recommendations": [array of recommendations],
    "explanation": "detailed explanation"
}}"""


def build_prompt(content: str, *, derived: bool = False) -> str:
    return PROMPT_TEMPLATE.format(kind="extracted_text" if derived else "text", content=content)


def _coerce_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"credibility score is not numeric: {value!r}") from exc
    if not 0 <= score <= 100:
        raise MalformedResponseError(f"credibility score out of range: {score}")
    return score


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if str(item).strip()]


def parse_factcheck_text(text: str) -> Dict[str, Any]:
    """Turn the model's answer into provider fields or raise MalformedResponseError."""
    if not text or not text.strip():
        raise MalformedResponseError("empty model answer")

    match = _JSON_BLOCK.search(text)
    if match:
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict) and "credibilityScore" in payload:
            score = _coerce_score(payload.get("credibilityScore"))
            confidence = payload.get("confidence")
            try:
                confidence = float(confidence) if confidence is not None else score / 100
            except (TypeError, ValueError):
                confidence = score / 100
            return {
                "score": score,
                "confidence": max(0.0, min(1.0, confidence)),
                "red_flags": _string_list(payload.get("redFlags")),
                "category": str(payload.get("verdict") or "questionable").lower(),
                "explanation": payload.get("explanation"),
                "raw": payload,
            }

    score_match = _CREDIBILITY_TEXT.search(text)
    if not score_match:
        raise MalformedResponseError("no credibility score found in model answer")
    score = _coerce_score(score_match.group(1))
    verdict_match = _VERDICT_TEXT.search(text)
    return {
        "score": score,
        "confidence": score / 100,
        "red_flags": [],
        "category": verdict_match.group(1).lower() if verdict_match else "questionable",
        "explanation": text[:500],
        "raw": {"text": text},
    }


class GeminiFactCheckProvider(HTTPProvider):
    provider_id = LLM_FACTCHECK
    required_fields = ("score",)

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 2048,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client, timeout=timeout)
        self._api_key = api_key
        self._endpoint = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        body = {
            "contents": [{"parts": [{"text": build_prompt(request.text or "", derived=request.derived)}]}],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_tokens,
            },
        }
        data = await self._send(
            "POST",
            self._endpoint,
            json=body,
            headers={"x-goog-api-key": self._api_key},
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError("Gemini response has no candidate text") from exc
        return parse_factcheck_text(text)
