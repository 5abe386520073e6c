from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .models import (
    CLASSIFICATION,
    HEURISTIC,
    IMAGE_AUTHENTICITY,
    IMAGE_MODERATION,
    LLM_FACTCHECK,
    OCR,
    SENTIMENT,
)

_PLACEHOLDER_MARKERS = ("your_", "_here")


class ProviderSettings(BaseModel):
    enabled: bool = True
    rate_limit: int | None = Field(default=100, ge=0)
    window_seconds: int = Field(default=3600, gt=0)
    cache_ttl_seconds: int = Field(default=1800, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0)


def _default_providers() -> dict[str, ProviderSettings]:
    return {
        LLM_FACTCHECK: ProviderSettings(rate_limit=50),
        SENTIMENT: ProviderSettings(rate_limit=100),
        CLASSIFICATION: ProviderSettings(rate_limit=100),
        IMAGE_MODERATION: ProviderSettings(rate_limit=100),
        IMAGE_AUTHENTICITY: ProviderSettings(rate_limit=100),
        OCR: ProviderSettings(rate_limit=25),
        HEURISTIC: ProviderSettings(rate_limit=None),
    }


class Settings(BaseSettings):
    """Configuration sourced from environment variables."""

    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.3
    gemini_max_tokens: int = 2048

    hugging_face_api_key: str | None = None
    hugging_face_base_url: str = "https://api-inference.huggingface.co/models"
    sentiment_model: str = "cardiffnlp/twitter-roberta-base-sentiment-latest"
    classification_model: str = "facebook/bart-large-mnli"

    ocr_space_api_key: str | None = None
    ocr_space_url: str = "https://api.ocr.space/parse/image"
    ocr_language: str = "eng"

    sightengine_api_user: str | None = None
    sightengine_api_secret: str | None = None
    sightengine_url: str = "https://api.sightengine.com/1.0/check.json"

    providers: dict[str, ProviderSettings] = Field(default_factory=_default_providers)

    redis_url: str | None = None
    cache_max_entries: int = 2048
    history_limit: int = 100
    client_rate_limit_per_minute: int = 60
    orchestrator_overhead_seconds: float = 2.0

    cors_origins: str = "*"
    debug: bool = False
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def provider(self, provider_id: str) -> ProviderSettings:
        if provider_id in self.providers:
            return self.providers[provider_id]
        return _default_providers().get(provider_id) or ProviderSettings()

    def get_cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @staticmethod
    def is_configured(*values: str | None) -> bool:
        """True when every credential is set and is not a template placeholder."""
        for value in values:
            if not value or not value.strip():
                return False
            lowered = value.lower()
            if any(marker in lowered for marker in _PLACEHOLDER_MARKERS):
                return False
        return True


@lru_cache(1)
def get_settings() -> Settings:
    return Settings()
