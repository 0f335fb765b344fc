"""Gemini ``generateContent`` transport over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..builder import AiRequest
from ..constants import DEFAULT_GEMINI_BASE_URL, DEFAULT_GEMINI_MODEL
from ..errors import ServiceError
from .base import CompletionTransport

logger = logging.getLogger(__name__)


class GeminiTransport(CompletionTransport):
    """Call the Gemini REST API with a JSON response schema."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

    async def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def build_payload(request: AiRequest) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": request.user_query}]}],
            "systemInstruction": {"parts": [{"text": request.system_instruction}]},
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": request.output_schema.to_wire(),
            },
        }

    async def complete(self, request: AiRequest) -> Optional[str]:
        if not self._client:
            await self.connect()

        try:
            response = await self._client.post(
                self.url,
                params={"key": self.api_key or ""},
                json=self.build_payload(request),
            )
        except httpx.HTTPError as e:
            raise ServiceError(f"Gemini API request failed: {e}") from e

        if response.is_error:
            raise ServiceError(f"Gemini API Failed: {_error_message(response)}")

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Gemini returned a non-JSON body for {request.kind.value}")
            return None
        return _extract_text(body)


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error") or {}
        message = error.get("message")
    except (ValueError, AttributeError):
        message = None
    return message or response.reason_phrase or f"HTTP {response.status_code}"


def _extract_text(body: Any) -> Optional[str]:
    try:
        return body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
