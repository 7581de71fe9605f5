"""Gemini image provider (via a Gemini-compatible proxy)."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..image_format import mime_type_for_path
from ..utils import getenv_str
from .base import ImageOptions, ProviderError, add_aspect_ratio_to_prompt, image_size_tier

DEFAULT_BASE_URL = "https://lnapi.com"
DEFAULT_MODEL = "gemini-3-pro-image-preview"
API_VERSION = "v1beta"
MULTIMODAL_MODELS = ("gemini-3-pro-image-preview", "gemini-3-flash-preview")


class GeminiProvider:
    name = "gemini"

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = base_url

    def default_model(self) -> str:
        return getenv_str("GOOGLE_IMAGE_MODEL") or DEFAULT_MODEL

    def generate(self, prompt: str, model: str, options: ImageOptions) -> bytes:
        api_key = getenv_str("LNAPI_KEY")
        if not api_key:
            raise ProviderError("LNAPI_KEY is required")

        model_id = normalize_model_id(model)
        if options.reference_images and not is_multimodal(model_id):
            print(
                "Warning: Reference images are only supported with Gemini multimodal models.",
                file=sys.stderr,
            )

        client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(base_url=self._resolve_base_url(), api_version=API_VERSION),
        )
        parts = _build_parts(prompt, options)
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(image_size=image_size_tier(options)),
        )
        try:
            response = client.models.generate_content(
                model=model_id,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            )
        except genai_errors.APIError as exc:
            raise ProviderError(f"Google API error ({exc.code}): {exc.message}") from exc

        data = _extract_inline_image(getattr(response, "candidates", None) or [])
        if data is None:
            raise ProviderError("No image in response")
        return data

    def _resolve_base_url(self) -> str:
        base = self.base_url or getenv_str("LNAPI_BASE_URL") or DEFAULT_BASE_URL
        base = base.rstrip("/")
        if base.endswith(f"/{API_VERSION}"):
            base = base[: -len(API_VERSION) - 1]
        return base


def normalize_model_id(model: str) -> str:
    return model[len("models/"):] if model.startswith("models/") else model


def is_multimodal(model: str) -> bool:
    normalized = normalize_model_id(model)
    return any(name in normalized for name in MULTIMODAL_MODELS)


def _build_parts(prompt: str, options: ImageOptions) -> list[types.Part]:
    parts: list[types.Part] = []
    for ref in options.reference_images:
        path = Path(ref).expanduser()
        parts.append(types.Part.from_bytes(data=path.read_bytes(), mime_type=mime_type_for_path(path)))
    parts.append(types.Part(text=add_aspect_ratio_to_prompt(prompt, options.aspect_ratio)))
    return parts


def _extract_inline_image(candidates: Sequence[Any]) -> bytes | None:
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            data = getattr(inline_data, "data", None) if inline_data else None
            if isinstance(data, str):
                data = data.encode("latin1")
            if isinstance(data, (bytes, bytearray)) and data:
                return bytes(data)
    return None
