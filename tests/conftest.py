import sys
from pathlib import Path
import os

import pytest


# Ensure project src is on path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (ROOT, SRC):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

# Keep tests offline: no vendor credentials, no Redis
for name in (
    "GEMINI_API_KEY",
    "HUGGING_FACE_API_KEY",
    "OCR_SPACE_API_KEY",
    "SIGHTENGINE_API_USER",
    "SIGHTENGINE_API_SECRET",
):
    os.environ[name] = ""
os.environ.pop("REDIS_URL", None)
os.environ.pop("PROVIDERS", None)


class FakeClock:
    """Manually advanced clock for rate limiter and cache tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
