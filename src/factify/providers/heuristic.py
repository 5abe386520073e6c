"""
Zero-network claim classifier.

Categorizes content by keyword groups and counts manipulation red flags.
Pure and deterministic: the same text always produces the same result, so
it doubles as the fallback signal when every networked provider fails.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

from ..models import HEURISTIC, AnalysisRequest
from .base import Provider

# Checked in this order; the first group with a hit wins.
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("health", (
        "health", "medical", "medicine", "cure", "treatment", "covid", "vaccine",
        "disease", "hospital", "doctor", "miracle", "virus", "cancer", "remedy", "remedies",
    )),
    ("politics", (
        "politics", "political", "election", "government", "policy", "policies", "parliament",
        "congress", "senate", "vote", "president", "minister", "campaign",
    )),
    ("science", (
        "science", "scientist", "study", "studies", "research", "peer-reviewed", "university",
        "journal", "experiment", "climate", "nasa",
    )),
    ("conspiracy", (
        "conspiracy", "cover-up", "cover up", "hoax", "illuminati", "deep state",
        "new world order", "they don't want you to know", "false flag", "chemtrail",
    )),
)
GENERAL = "general"

BASE_SCORES: Dict[str, float] = {
    "health": 30.0,
    "politics": 40.0,
    "science": 75.0,
    "conspiracy": 15.0,
    GENERAL: 50.0,
}

CONFIDENCE: Dict[str, float] = {
    "health": 0.7,
    "politics": 0.6,
    "science": 0.8,
    "conspiracy": 0.9,
    GENERAL: 0.5,
}

RED_FLAG_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("Sensational language", r"\b(?:shocking|unbelievable|bombshell|mind[- ]blowing|jaw[- ]dropping|explosive)\b"),
    ("Conspiracy language", r"they don'?t want you to know|\bcover[- ]?up\b|hidden truth|what they(?:'re| are) hiding|\bdeep state\b"),
    ("Clickbait framing", r"you won'?t believe|this one (?:simple )?trick|what happens next|will shock you|doctors hate|!{2,}|\?{2,}"),
    ("Absolute claims", r"100%|\bguaranteed\b|\bmiracle\b|\balways works\b|\bnever fails\b|\bcompletely cures?\b|\bproven\b"),
    ("Urgency tactics", r"\bact now\b|\blimited time\b|\burgent\b|before it'?s too late|\bshare (?:this )?before\b|\bhurry\b|don'?t wait"),
    ("Anti-establishment rhetoric", r"mainstream media|big pharma|\bthe elites?\b|government lies|\bwake up\b|\bsheeple\b"),
)

# plural and verb endings a keyword may carry and still count as a match
KEYWORD_SUFFIX = r"(?:s|es|d|ed|r|rs|er|ers|ing|ings|y|al)?"

PENALTY_PER_FLAG = 10.0
SCORE_FLOOR = 5.0
SCORE_CEILING = 95.0


def _compile_keyword(keyword: str) -> re.Pattern[str]:
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword) + KEYWORD_SUFFIX + r"(?![a-z0-9])")


_CATEGORY_PATTERNS: List[Tuple[str, List[re.Pattern[str]]]] = [
    (category, [_compile_keyword(keyword) for keyword in keywords])
    for category, keywords in CATEGORY_KEYWORDS
]
_RED_FLAG_REGEXES: List[Tuple[str, re.Pattern[str]]] = [
    (label, re.compile(pattern)) for label, pattern in RED_FLAG_PATTERNS
]


def _normalize(text: str | None) -> str:
    # Curly apostrophes show up in pasted social media text.
    return (text or "").lower().replace("’", "'")


def categorize(text: str | None) -> str:
    lowered = _normalize(text)
    for category, patterns in _CATEGORY_PATTERNS:
        if any(pattern.search(lowered) for pattern in patterns):
            return category
    return GENERAL


def detect_red_flags(text: str | None) -> List[str]:
    lowered = _normalize(text)
    return [label for label, regex in _RED_FLAG_REGEXES if regex.search(lowered)]


def score_for(category: str, red_flag_count: int) -> float:
    score = BASE_SCORES.get(category, BASE_SCORES[GENERAL]) - PENALTY_PER_FLAG * red_flag_count
    return max(SCORE_FLOOR, min(SCORE_CEILING, score))


class HeuristicClaimClassifier(Provider):
    provider_id = HEURISTIC
    required_fields = ("score", "confidence", "category")

    def classify(self, text: str | None) -> Dict[str, Any]:
        category = categorize(text)
        red_flags = detect_red_flags(text)
        score = score_for(category, len(red_flags))
        if red_flags:
            explanation = f"Classified as {category} content with {len(red_flags)} manipulation pattern(s)."
        else:
            explanation = f"Classified as {category} content with no manipulation patterns."
        return {
            "score": score,
            "confidence": CONFIDENCE.get(category, CONFIDENCE[GENERAL]),
            "red_flags": red_flags,
            "category": category,
            "explanation": explanation,
        }

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        return self.classify(request.text)
