from __future__ import annotations

from typing import Any, Dict, List, Sequence

import httpx

from ..models import CLASSIFICATION, SENTIMENT, AnalysisRequest
from .base import HTTPProvider, MalformedResponseError

CANDIDATE_LABELS = ("factual", "opinion", "misleading")
LABEL_SCORES = {"factual": 75.0, "opinion": 50.0, "misleading": 25.0}

# cardiffnlp models answer with either LABEL_n or the plain label
_SENTIMENT_ALIASES = {
    "label_0": "negative",
    "label_1": "neutral",
    "label_2": "positive",
}


class _HuggingFaceProvider(HTTPProvider):
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        model: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client, timeout=timeout)
        self._api_key = api_key
        self._endpoint = f"{base_url.rstrip('/')}/{model}"

    async def _infer(self, payload: Dict[str, Any]) -> Any:
        return await self._send(
            "POST",
            self._endpoint,
            json=payload,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )


def parse_sentiment(data: Any) -> Dict[str, Any]:
    # Inference API nests the label list one level deep for single inputs.
    candidates: Sequence[Any] = data
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], list):
        candidates = candidates[0]
    if not isinstance(candidates, list) or not candidates:
        raise MalformedResponseError("sentiment response carries no labels")
    try:
        best = max(candidates, key=lambda item: float(item["score"]))
        label = str(best["label"]).lower()
        confidence = float(best["score"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError("sentiment label entries are malformed") from exc
    label = _SENTIMENT_ALIASES.get(label, label)
    return {
        "confidence": confidence,
        "category": label,
        "explanation": f"Sentiment {label} ({round(confidence * 100)}%)",
        "raw": data,
    }


def parse_classification(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedResponseError("classification response is not an object")
    labels: List[Any] = data.get("labels") or []
    scores: List[Any] = data.get("scores") or []
    if not labels or not scores:
        raise MalformedResponseError("classification response carries no labels")
    label = str(labels[0]).lower()
    try:
        confidence = float(scores[0])
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError("classification score is not numeric") from exc
    if label not in LABEL_SCORES:
        raise MalformedResponseError(f"unexpected classification label: {label}")
    return {
        "score": LABEL_SCORES[label],
        "confidence": confidence,
        "category": label,
        "explanation": f"Zero-shot classification: {label} ({round(confidence * 100)}%)",
        "raw": data,
    }


class SentimentProvider(_HuggingFaceProvider):
    provider_id = SENTIMENT
    required_fields = ("category", "confidence")

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        return parse_sentiment(await self._infer({"inputs": request.text}))


class ClassificationProvider(_HuggingFaceProvider):
    provider_id = CLASSIFICATION
    required_fields = ("score", "category")

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        data = await self._infer({
            "inputs": request.text,
            "parameters": {"candidate_labels": list(CANDIDATE_LABELS)},
        })
        return parse_classification(data)
