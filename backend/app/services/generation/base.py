"""Generator capability shared by every text-generation provider."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationRequest:
    model: str
    prompt: str
    max_output_tokens: int = 1024
    temperature: float = 0.2


@dataclass
class GenerationResult:
    text: str
    model: str
    provider: str


class Generator:
    """Base interface for text-generation providers.

    Implementations perform exactly one outbound call per ``generate`` and raise
    ``UpstreamError`` when the call fails or yields no text.
    """

    provider = "base"

    def generate(self, request: GenerationRequest) -> GenerationResult:
        raise NotImplementedError
