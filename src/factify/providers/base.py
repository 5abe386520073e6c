from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, FrozenSet

import httpx

from ..models import AnalysisRequest, ContentType


class ProviderError(RuntimeError):
    """Base class for failures raised by a provider implementation."""


class ProviderUnavailableError(ProviderError):
    """Network, HTTP or vendor-side failure."""


class ProviderRateLimitedError(ProviderError):
    """The vendor itself refused the call because of its quota."""


class MalformedResponseError(ProviderError):
    """The vendor answered, but not in a shape we can turn into a typed result."""


class Provider(ABC):
    """
    One independent analysis capability.

    ``analyze`` returns a plain mapping with any of ``score`` (0-100),
    ``confidence`` (0-1), ``red_flags``, ``category``, ``explanation``,
    ``extracted_text`` and ``raw``. The gateway turns it into a PartialResult.
    """

    provider_id: ClassVar[str]
    modalities: ClassVar[FrozenSet[ContentType]] = frozenset({ContentType.TEXT})
    required_fields: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        ...

    def handles(self, request: AnalysisRequest) -> bool:
        if ContentType.IMAGE in self.modalities and request.content_type == ContentType.IMAGE:
            return request.image_ref is not None
        return ContentType.TEXT in self.modalities and request.has_text

    def cache_material(self, request: AnalysisRequest) -> str | bytes | None:
        if ContentType.TEXT in self.modalities:
            return request.text
        return request.image_ref

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.provider_id!r})"


class HTTPProvider(Provider):
    """Provider reached over HTTP with a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float = 30.0) -> None:
        self._client = client
        self._timeout = timeout

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            if self._client is not None:
                response = await self._client.request(method, url, timeout=self._timeout, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"{self.provider_id} request failed: {exc}") from exc

        if response.status_code == 429:
            raise ProviderRateLimitedError(f"{self.provider_id} quota exceeded upstream")
        if response.status_code >= 400:
            raise ProviderUnavailableError(f"{self.provider_id} API error: {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{self.provider_id} returned non-JSON body") from exc

    @staticmethod
    def _image_fields(request: AnalysisRequest, *, url_field: str, file_field: str) -> tuple[dict, dict]:
        """Split an opaque image handle into form data (URL) or a multipart file (bytes)."""
        if isinstance(request.image_ref, bytes):
            return {}, {file_field: ("image.jpg", request.image_ref, "application/octet-stream")}
        return {url_field: str(request.image_ref)}, {}
