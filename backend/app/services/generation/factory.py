"""Generator provider factory."""
from __future__ import annotations

from functools import lru_cache

from app.core.config import Settings, settings
from app.core.errors import ConfigurationError
from app.services.generation.base import Generator
from app.services.generation.gemini import GeminiGenerator
from app.services.generation.openai_provider import OpenAIGenerator


def build_generator(config: Settings) -> Generator:
    provider = config.generator_provider.lower()
    if provider == "gemini":
        if not config.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")
        return GeminiGenerator(
            api_key=config.gemini_api_key,
            base_url=config.gemini_base_url,
            timeout=config.generator_timeout_seconds,
        )
    if provider == "openai":
        if not config.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        return OpenAIGenerator(
            api_key=config.openai_api_key,
            timeout=config.generator_timeout_seconds,
            model=config.openai_model,
        )
    raise ConfigurationError(f"Unknown generator provider: {config.generator_provider}")


@lru_cache
def get_generator() -> Generator:
    """Return the configured generator; used as a FastAPI dependency."""
    return build_generator(settings)
