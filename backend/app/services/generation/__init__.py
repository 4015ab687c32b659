"""Pluggable text-generation providers."""
from app.services.generation.base import GenerationRequest, GenerationResult, Generator
from app.services.generation.factory import build_generator, get_generator

__all__ = [
    "GenerationRequest",
    "GenerationResult",
    "Generator",
    "build_generator",
    "get_generator",
]
