from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

LLM_FACTCHECK = "llm-factcheck"
SENTIMENT = "sentiment"
CLASSIFICATION = "classification"
IMAGE_MODERATION = "image-moderation"
IMAGE_AUTHENTICITY = "image-authenticity"
OCR = "ocr"
HEURISTIC = "heuristic"


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class ProviderStatus(str, Enum):
    OK = "ok"
    RATE_LIMITED = "rateLimited"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"


class VerdictLabel(str, Enum):
    LIKELY_RELIABLE = "LIKELY_RELIABLE"
    MIXED_SIGNALS = "MIXED_SIGNALS"
    QUESTIONABLE = "QUESTIONABLE"
    HIGHLY_UNRELIABLE = "HIGHLY_UNRELIABLE"
    NEEDS_VERIFICATION = "NEEDS_VERIFICATION"


class AnalysisRequest(BaseModel):
    """One piece of user content submitted for a credibility check.

    ``image_ref`` is opaque to the core: a URL string or raw image bytes,
    interpreted only by the image providers.
    """

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    image_ref: str | bytes | None = None
    content_type: ContentType = ContentType.TEXT
    derived: bool = False
    source: str | None = None

    @model_validator(mode="after")
    def _check_image_ref(self) -> "AnalysisRequest":
        if self.content_type == ContentType.IMAGE and self.image_ref is None:
            raise ValueError("An image request requires image_ref.")
        return self

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    def summary(self, limit: int = 80) -> str:
        if self.has_text:
            text = " ".join(self.text.split())
            return text if len(text) <= limit else text[:limit] + "..."
        if isinstance(self.image_ref, str):
            return f"[image] {self.image_ref[:limit]}"
        if self.image_ref is not None:
            return f"[image] {len(self.image_ref)} bytes"
        return ""


class PartialResult(BaseModel):
    """Typed outcome of one provider for one request."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    status: ProviderStatus
    score: float | None = Field(default=None, ge=0.0, le=100.0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    red_flags: list[str] = Field(default_factory=list)
    category: str | None = None
    explanation: str | None = None
    extracted_text: str | None = None
    raw: Any = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.status == ProviderStatus.OK

    @classmethod
    def failure(cls, provider_id: str, status: ProviderStatus, explanation: str | None = None) -> "PartialResult":
        return cls(provider_id=provider_id, status=status, explanation=explanation)


class CacheEntry(BaseModel):
    key: str
    value: PartialResult
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class RateLimitWindow(BaseModel):
    provider_id: str
    window_start: float
    count: int = 0
    limit: int
    window_seconds: int = 3600

    def expired(self, now: float) -> bool:
        return now >= self.window_start + self.window_seconds


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100)
    confidence: int = Field(..., ge=0, le=100)
    label: VerdictLabel
    reasoning: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_flat(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
