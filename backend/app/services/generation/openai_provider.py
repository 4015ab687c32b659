"""OpenAI chat-completions provider."""
from __future__ import annotations

import logging
from typing import Any, Optional

import openai

from app.core.errors import UpstreamError
from app.services.generation.base import GenerationRequest, GenerationResult, Generator

logger = logging.getLogger(__name__)


class OpenAIGenerator(Generator):
    """Send the prompt as a single user message.

    ``model`` pins every call to one OpenAI model; without it the request's
    model identifier is passed through unchanged.
    """

    provider = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        timeout: float,
        model: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def generate(self, request: GenerationRequest) -> GenerationResult:
        model = self.model or request.model
        try:
            completion = self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": request.prompt}],
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
            )
        except openai.OpenAIError as exc:
            logger.error("OpenAI request to %s failed: %s", model, exc)
            raise UpstreamError(f"Generator request failed ({exc.__class__.__name__})") from exc

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            logger.error("OpenAI returned no content for %s", model)
            raise UpstreamError("Generator response contained no text")
        return GenerationResult(text=content, model=model, provider=self.provider)
