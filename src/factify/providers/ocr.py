from __future__ import annotations

from typing import Any, Dict

import httpx

from ..models import OCR, AnalysisRequest, ContentType
from .base import HTTPProvider, MalformedResponseError, ProviderUnavailableError


def parse_ocr_response(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedResponseError("OCR response is not an object")
    if data.get("IsErroredOnProcessing"):
        message = data.get("ErrorMessage") or "OCR processing failed"
        if isinstance(message, list):
            message = "; ".join(str(item) for item in message)
        raise ProviderUnavailableError(str(message))
    parsed = data.get("ParsedResults")
    if not isinstance(parsed, list):
        raise MalformedResponseError("OCR response has no ParsedResults")
    first = parsed[0] if parsed else {}
    if not isinstance(first, dict):
        raise MalformedResponseError("OCR parsed result is not an object")
    text = first.get("ParsedText") or ""
    if not isinstance(text, str):
        raise MalformedResponseError("OCR ParsedText is not a string")
    text = text.strip()
    overlay = first.get("TextOverlay") or {}
    has_overlay = isinstance(overlay, dict) and bool(overlay.get("HasOverlay"))
    return {
        "confidence": 0.9 if has_overlay else 0.7,
        "extracted_text": text,
        "explanation": f"Extracted {len(text)} characters of text" if text else "No readable text in image",
        "raw": {"exit_code": data.get("OCRExitCode")},
    }


class OCRSpaceProvider(HTTPProvider):
    """OCR as a provider: its extracted text feeds the derived text wave."""

    provider_id = OCR
    modalities = frozenset({ContentType.IMAGE})

    def __init__(
        self,
        api_key: str,
        *,
        url: str,
        language: str = "eng",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client, timeout=timeout)
        self._api_key = api_key
        self._url = url
        self._language = language

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        form = {
            "apikey": self._api_key,
            "language": self._language,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "scale": "true",
            "isTable": "false",
        }
        fields, files = self._image_fields(request, url_field="url", file_field="file")
        form.update(fields)
        data = await self._send("POST", self._url, data=form, files=files or None)
        return parse_ocr_response(data)
