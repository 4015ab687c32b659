"""Gemini ``generateContent`` provider."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from app.core.errors import UpstreamError
from app.services.generation.base import GenerationRequest, GenerationResult, Generator

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY = 500

ResponseAdapter = Callable[[Dict[str, Any]], Optional[str]]


def _first_candidate(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    candidate = candidates[0]
    return candidate if isinstance(candidate, dict) else None


def _parts_adapter(body: Dict[str, Any]) -> Optional[str]:
    """Current shape: ``candidates[0].content.parts[*].text``."""
    candidate = _first_candidate(body)
    if candidate is None:
        return None
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list):
        return None
    texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    return "".join(texts) or None


def _legacy_content_adapter(body: Dict[str, Any]) -> Optional[str]:
    """Legacy shape: ``candidates[0].content`` as a plain string."""
    candidate = _first_candidate(body)
    if candidate is None:
        return None
    content = candidate.get("content")
    if isinstance(content, str) and content:
        return content
    return None


# Tried in order; the first adapter returning text wins.
RESPONSE_ADAPTERS: Tuple[Tuple[str, ResponseAdapter], ...] = (
    ("parts", _parts_adapter),
    ("legacy_content", _legacy_content_adapter),
)


def extract_text(body: Any) -> Tuple[str, str]:
    """Return ``(adapter_name, text)`` for a ``generateContent`` response body."""
    if isinstance(body, dict):
        for name, adapter in RESPONSE_ADAPTERS:
            text = adapter(body)
            if text:
                return name, text
    raise UpstreamError("Generator response contained no text")


def build_request_body(request: GenerationRequest) -> Dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
        "generationConfig": {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_output_tokens,
        },
    }


def _truncate(value: str) -> str:
    if len(value) <= MAX_LOGGED_BODY:
        return value
    return value[:MAX_LOGGED_BODY] + "..."


class GeminiGenerator(Generator):
    provider = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def generate(self, request: GenerationRequest) -> GenerationResult:
        url = f"{self.base_url}/models/{request.model}:generateContent"
        try:
            response = self._client.post(
                url,
                params={"key": self.api_key},
                json=build_request_body(request),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            # The exception text can echo the URL, which carries the key.
            logger.error("Gemini request to %s failed: %s", request.model, exc.__class__.__name__)
            raise UpstreamError(f"Generator request failed ({exc.__class__.__name__})") from exc

        if response.status_code >= 400:
            logger.error(
                "Gemini returned HTTP %s for %s: %s",
                response.status_code,
                request.model,
                _truncate(response.text),
            )
            raise UpstreamError(
                f"Generator returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as exc:
            logger.error("Gemini returned a non-JSON body for %s: %s", request.model, _truncate(response.text))
            raise UpstreamError("Generator returned a non-JSON body") from exc

        try:
            adapter_name, text = extract_text(body)
        except UpstreamError:
            logger.error("Gemini returned no content for %s: %s", request.model, _truncate(response.text))
            raise

        logger.debug("Gemini %s answered via %s adapter (%d chars)", request.model, adapter_name, len(text))
        return GenerationResult(text=text, model=request.model, provider=self.provider)

    def close(self) -> None:
        self._client.close()
