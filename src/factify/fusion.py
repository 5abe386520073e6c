"""
Fusion of provider partial results into one verdict.

Scores are blended with a running pairwise average in a fixed provider
order, so each provider pulls the running value halfway toward its own
score. Results are applied in FUSION_ORDER, not arrival order, so the same
set of results always fuses to the same verdict.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import (
    CLASSIFICATION,
    HEURISTIC,
    IMAGE_AUTHENTICITY,
    LLM_FACTCHECK,
    SENTIMENT,
    PartialResult,
    Verdict,
    VerdictLabel,
)

logger = logging.getLogger(__name__)

FUSION_ORDER: Tuple[str, ...] = (LLM_FACTCHECK, HEURISTIC, CLASSIFICATION, IMAGE_AUTHENTICITY)

MISLEADING_PENALTY = 20.0
AI_IMAGE_PENALTY = 15.0
STRONG_SENTIMENT_CONFIDENCE = 0.8

RECOMMENDATIONS: Dict[VerdictLabel, Tuple[str, ...]] = {
    VerdictLabel.LIKELY_RELIABLE: (
        "Cross-reference with multiple reliable sources",
        "Check publication dates and author credentials",
        "Verify important information before sharing",
    ),
    VerdictLabel.MIXED_SIGNALS: (
        "Verify key claims with primary sources",
        "Cross-reference with established fact-checking organizations",
        "Look for the original source of the content",
    ),
    VerdictLabel.QUESTIONABLE: (
        "Verify with primary sources before relying on this content",
        "Consult authoritative organizations (e.g. WHO, official agencies) on the topic",
        "Be cautious of emotional or urgent framing",
    ),
    VerdictLabel.HIGHLY_UNRELIABLE: (
        "Do not share this content without independent verification",
        "Consult authoritative organizations and established fact-checkers",
        "Report the content if it is spreading on social media",
    ),
    VerdictLabel.NEEDS_VERIFICATION: (
        "Automated analysis was not available; verify with primary sources",
        "Cross-reference with multiple reliable sources",
        "Do not share without verification",
    ),
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def label_for(score: float) -> VerdictLabel:
    if score >= 75:
        return VerdictLabel.LIKELY_RELIABLE
    if score >= 50:
        return VerdictLabel.MIXED_SIGNALS
    if score >= 25:
        return VerdictLabel.QUESTIONABLE
    return VerdictLabel.HIGHLY_UNRELIABLE


@dataclass
class FusionEngine:
    order: Sequence[str] = FUSION_ORDER
    recommendations: Dict[VerdictLabel, Tuple[str, ...]] = field(default_factory=lambda: dict(RECOMMENDATIONS))

    def fuse(self, results: Iterable[PartialResult]) -> Verdict:
        usable = [item for item in results if isinstance(item, PartialResult) and item.ok]

        score = 50.0
        confidence = 0.5
        reasoning: List[str] = []

        scored = self._in_fusion_order(usable)
        for partial in scored:
            score = (score + partial.score) / 2

        for partial in usable:
            if partial.confidence is not None:
                confidence = max(confidence, partial.confidence)

        for partial in usable:
            if partial.red_flags:
                reasoning.append(f"Red flags detected: {', '.join(partial.red_flags)}")

        for partial in usable:
            if partial.provider_id == CLASSIFICATION and partial.category == "misleading":
                score -= MISLEADING_PENALTY
                reasoning.append("Content classified as potentially misleading")

        for partial in usable:
            if (
                partial.provider_id == SENTIMENT
                and partial.category == "negative"
                and (partial.confidence or 0.0) > STRONG_SENTIMENT_CONFIDENCE
            ):
                reasoning.append("Strong negative sentiment detected; emotional framing can be a manipulation tactic")

        for partial in usable:
            if partial.provider_id == IMAGE_AUTHENTICITY and partial.category == "ai-generated":
                image_confidence = partial.confidence or 0.0
                score -= AI_IMAGE_PENALTY * image_confidence
                reasoning.append(
                    f"Image appears to be AI-generated ({round_half_up(image_confidence * 100)}% confidence)"
                )

        score = clamp(score, 0.0, 100.0)

        if not scored:
            return self._needs_verification(confidence, reasoning)

        label = label_for(score)
        verdict = Verdict(
            score=round_half_up(score),
            confidence=round_half_up(clamp(confidence, 0.0, 1.0) * 100),
            label=label,
            reasoning=reasoning,
            recommendations=list(self.recommendations[label]),
        )
        logger.debug("Fused %d usable result(s) into %s (%d)", len(usable), verdict.label.value, verdict.score)
        return verdict

    def _in_fusion_order(self, usable: Sequence[PartialResult]) -> List[PartialResult]:
        ordered: List[PartialResult] = []
        for provider_id in self.order:
            ordered.extend(
                item for item in usable if item.provider_id == provider_id and item.score is not None
            )
        return ordered

    def _needs_verification(self, confidence: float, reasoning: List[str]) -> Verdict:
        label = VerdictLabel.NEEDS_VERIFICATION
        return Verdict(
            score=50,
            confidence=min(50, round_half_up(clamp(confidence, 0.0, 1.0) * 100)),
            label=label,
            reasoning=["No analysis provider returned a usable score", *reasoning],
            recommendations=list(self.recommendations[label]),
        )
