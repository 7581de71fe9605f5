"""Provider base classes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

QUALITY_CHOICES = ("normal", "2k")
IMAGE_SIZE_CHOICES = ("1K", "2K", "4K")
DEFAULT_QUALITY = "2k"


class ProviderError(RuntimeError):
    """A single provider call failed."""


@dataclass(frozen=True)
class ImageOptions:
    aspect_ratio: str | None = None
    quality: str = DEFAULT_QUALITY
    image_size: str | None = None
    reference_images: Sequence[str] = ()


class ImageProvider(Protocol):
    name: str

    def default_model(self) -> str:
        ...

    def generate(self, prompt: str, model: str, options: ImageOptions) -> bytes:
        ...


def image_size_tier(options: ImageOptions) -> str:
    if options.image_size in IMAGE_SIZE_CHOICES:
        return options.image_size
    return "2K" if options.quality == "2k" else "1K"


def add_aspect_ratio_to_prompt(prompt: str, aspect_ratio: str | None) -> str:
    if not aspect_ratio:
        return prompt
    return f"{prompt} Aspect ratio: {aspect_ratio}."
