"""Image providers."""

from __future__ import annotations

from .base import ImageOptions, ImageProvider, ProviderError
from .dryrun import DryRunProvider
from .fallback import FallbackExhaustedError, GenerationWithFallback
from .geekai import GeekAIProvider
from .gemini import GeminiProvider

__all__ = [
    "DryRunProvider",
    "FallbackExhaustedError",
    "GeekAIProvider",
    "GeminiProvider",
    "GenerationWithFallback",
    "ImageOptions",
    "ImageProvider",
    "ProviderError",
    "default_generator",
]


def default_generator(dry_run: bool = False) -> GenerationWithFallback:
    if dry_run:
        return GenerationWithFallback(DryRunProvider(), DryRunProvider())
    return GenerationWithFallback(GeminiProvider(), GeekAIProvider())
