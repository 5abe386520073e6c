"""
Factify Credibility Service - HTTP API
Fans content out to the analysis providers and returns one fused verdict
"""

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator
from typing import Optional, Dict, Any, List
import base64
import binascii
import httpx
import uuid
import logging
import time
import os
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from dotenv import load_dotenv

from factify.cache import InMemoryResponseCache, RedisResponseCache
from factify.config import get_settings
from factify.history import HistoryStore
from factify.models import AnalysisRequest, ContentType, ProviderStatus
from factify.orchestrator import build_orchestrator
from factify.providers.registry import build_providers
from factify.rate_limiter import RateLimiter, RateLimitPolicy

# Load environment variables early so Settings picks them up
load_dotenv()
settings = get_settings()

# Logging configuration
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler('logs/factify.log') if os.path.exists('logs') else logging.NullHandler()
    ]
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
TITLE = "Factify Credibility Service"
DESCRIPTION = "Multi-provider credibility checks for text and images"


# Metrics tracker
class Metrics:
    """Track service metrics"""

    def __init__(self):
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.total_processing_time = 0.0
        self.labels: Dict[str, int] = {}
        self.start_time = time.time()

    def record_request(self, success: bool, processing_time: float, label: Optional[str] = None):
        """Record request outcome"""
        self.total_requests += 1
        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1
        self.total_processing_time += processing_time
        if label:
            self.labels[label] = self.labels.get(label, 0) + 1

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics"""
        uptime = time.time() - self.start_time
        avg_time = self.total_processing_time / self.total_requests if self.total_requests > 0 else 0

        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": f"{(self.successful_requests / self.total_requests * 100):.1f}%" if self.total_requests > 0 else "N/A",
            "average_processing_time": f"{avg_time:.2f}s",
            "verdicts": dict(self.labels),
            "uptime_seconds": int(uptime)
        }


metrics = Metrics()

client_limiter = RateLimiter(
    default_policy=RateLimitPolicy(limit=settings.client_rate_limit_per_minute, window_seconds=60)
)


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("=" * 60)
    logger.info(f"Starting {TITLE} v{VERSION}")
    logger.info("=" * 60)

    http_client = httpx.AsyncClient()
    memory_cache = InMemoryResponseCache(max_entries=settings.cache_max_entries)
    if settings.redis_url:
        cache = RedisResponseCache(settings.redis_url, fallback=memory_cache)
        await cache.connect()
    else:
        cache = memory_cache

    history = HistoryStore(settings.redis_url, limit=settings.history_limit)
    await history.connect()

    providers = build_providers(settings, client=http_client)
    orchestrator = build_orchestrator(settings, providers, cache=cache)

    app.state.http_client = http_client
    app.state.cache = cache
    app.state.memory_cache = memory_cache
    app.state.history = history
    app.state.orchestrator = orchestrator

    logger.info(f"Storage: {'redis' if history.use_redis else 'memory'}")
    logger.info("Service ready")

    yield

    logger.info("Shutting down...")
    await history.close()
    await cache.close()
    await http_client.aclose()
    logger.info("Shutdown complete")


# FastAPI application
app = FastAPI(
    title=TITLE,
    version=VERSION,
    description=DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An error occurred"
        }
    )


# Request/Response models
class EvaluateRequest(BaseModel):
    """Content submitted for a credibility check"""

    text: Optional[str] = Field(None, max_length=10000, description="Text content to evaluate")
    image_url: Optional[str] = Field(None, description="Public URL of an image to evaluate")
    image_base64: Optional[str] = Field(None, description="Base64 encoded image bytes")
    source: Optional[str] = Field(None, max_length=50, description="Caller tag, e.g. web, telegram, extension")

    @model_validator(mode="after")
    def require_content(self):
        if not (self.text and self.text.strip()) and not self.image_url and not self.image_base64:
            raise ValueError("Provide text, image_url or image_base64")
        return self


class ProviderOutcome(BaseModel):
    provider_id: str
    status: ProviderStatus
    cached: bool = False


class EvaluateResponse(BaseModel):
    request_id: str
    verdict: Dict[str, Any]
    providers: List[ProviderOutcome]
    extracted_text: Optional[str] = None


def to_analysis_request(body: EvaluateRequest) -> AnalysisRequest:
    image_ref: Optional[Any] = None
    if body.image_base64:
        payload = body.image_base64.split(",", 1)[-1] if body.image_base64.startswith("data:") else body.image_base64
        try:
            image_ref = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="image_base64 is not valid base64"
            )
    elif body.image_url:
        image_ref = body.image_url

    return AnalysisRequest(
        text=body.text,
        image_ref=image_ref,
        content_type=ContentType.IMAGE if image_ref is not None else ContentType.TEXT,
        source=body.source,
    )


# API endpoints
@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": TITLE,
        "version": VERSION,
        "status": "operational",
        "endpoints": {
            "evaluate": "POST /evaluate",
            "history": "GET /history",
            "health": "GET /health",
            "metrics": "GET /metrics"
        },
        "providers": app.state.orchestrator.provider_ids,
    }


@app.get("/health")
async def health_check():
    """Provider registry and remaining rate-limit budget"""
    orchestrator = app.state.orchestrator
    providers = {}
    for gateway in orchestrator.gateways:
        providers[gateway.provider_id] = {
            "enabled": settings.provider(gateway.provider_id).enabled,
            "remaining": gateway.rate_limiter.remaining(gateway.provider_id),
            "timeout_seconds": gateway.timeout,
        }

    return {
        "status": "healthy" if providers else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "api": "healthy",
            "storage": "redis" if app.state.history.use_redis else "memory",
        },
        "providers": providers,
    }


@app.get("/metrics")
async def get_metrics():
    """Get service metrics"""
    return {
        "service": TITLE,
        "version": VERSION,
        "metrics": metrics.get_stats(),
        "storage": {
            "type": "redis" if app.state.history.use_redis else "memory",
            "cache_items": len(app.state.memory_cache),
            "history_items": len(app.state.history),
        }
    }


@app.post("/evaluate", response_model=EvaluateResponse)
async def evaluate(body: EvaluateRequest, http_request: Request):
    """Evaluate text and/or an image and return the fused verdict"""

    client_ip = http_request.client.host if http_request.client else "unknown"
    if not client_limiter.allow(client_ip):
        wait = int(client_limiter.retry_after(client_ip)) + 1
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Try again in {wait}s"
        )

    request_id = f"req_{uuid.uuid4().hex[:12]}"
    analysis_request = to_analysis_request(body)
    logger.info(f"[{request_id}] New evaluation from {client_ip}: {analysis_request.summary(50)}")

    started = time.time()
    orchestrator = app.state.orchestrator
    try:
        results = await orchestrator.run(analysis_request)
        verdict = orchestrator.fusion.fuse(results)
    except Exception:
        metrics.record_request(False, time.time() - started)
        raise

    metrics.record_request(True, time.time() - started, verdict.label.value)
    await app.state.history.record(analysis_request, verdict, request_id=request_id)
    logger.info(f"[{request_id}] {verdict.label.value} ({verdict.score}/100) in {time.time() - started:.2f}s")

    extracted = next((item.extracted_text for item in results if item.ok and item.extracted_text), None)
    return EvaluateResponse(
        request_id=request_id,
        verdict=verdict.to_flat(),
        providers=[
            ProviderOutcome(provider_id=item.provider_id, status=item.status, cached=item.cached)
            for item in results
        ],
        extracted_text=extracted,
    )


@app.get("/history")
async def get_history(limit: int = Query(20, ge=1, le=100)):
    """Most recent verdicts, newest first"""
    entries = await app.state.history.recent(limit)
    return {"count": len(entries), "entries": entries}


@app.delete("/history")
async def clear_history():
    """Delete stored verdict history"""
    await app.state.history.clear()
    logger.info("History cleared")
    return {"message": "History cleared successfully"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
