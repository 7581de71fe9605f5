"""GeekAI image provider (OpenAI-style images API)."""

from __future__ import annotations

import base64
import json
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..utils import getenv_str
from .base import ImageOptions, ProviderError, add_aspect_ratio_to_prompt, image_size_tier

DEFAULT_BASE_URL = "https://geekai.co/api/v1"
DEFAULT_MODEL = "nano-banana-2"

_PIXEL_SIZES = {
    "4K": "2048x2048",
    "2K": "1536x1536",
    "1K": "1024x1024",
}


class GeekAIProvider:
    name = "geekai"

    def __init__(self, base_url: str | None = None, timeout_s: float = 300.0) -> None:
        self.base_url = (base_url or getenv_str("GEEKAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s

    def default_model(self) -> str:
        return getenv_str("GEEKAI_IMAGE_MODEL") or DEFAULT_MODEL

    def generate(self, prompt: str, model: str, options: ImageOptions) -> bytes:
        api_key = getenv_str("GEEKAI_API_KEY")
        if not api_key:
            raise ProviderError("GEEKAI_API_KEY is required for GeekAI fallback")

        payload = build_payload(prompt, model, options)
        response = _post_json(f"{self.base_url}/images/generations", payload, api_key, self.timeout_s)
        data = response.get("data")
        first = data[0] if isinstance(data, list) and data else None
        if not isinstance(first, Mapping):
            raise ProviderError("GeekAI returned empty data")

        url = first.get("url")
        if isinstance(url, str) and url:
            return _download_bytes(url, self.timeout_s)
        blob = first.get("b64_json")
        if isinstance(blob, str) and blob:
            return base64.b64decode(blob)
        raise ProviderError("GeekAI response does not contain image data")


def build_payload(prompt: str, model: str, options: ImageOptions) -> dict[str, Any]:
    return {
        "model": model,
        "prompt": add_aspect_ratio_to_prompt(prompt, options.aspect_ratio),
        "n": 1,
        "size": build_image_size(options, model),
        "quality": "high" if options.quality == "2k" else "medium",
        "response_format": "url",
        "async": False,
        "retries": 0,
    }


def build_image_size(options: ImageOptions, model: str) -> str:
    tier = image_size_tier(options)
    if "nano-banana-2" in model:
        return tier
    return _PIXEL_SIZES[tier]


def _post_json(url: str, payload: Mapping[str, Any], api_key: str, timeout_s: float) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    req = Request(
        url,
        data=body,
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        method="POST",
    )
    try:
        with urlopen(req, timeout=timeout_s) as response:
            raw = response.read().decode("utf-8")
    except HTTPError as exc:
        raw = exc.read().decode("utf-8", errors="replace") if exc.fp else str(exc)
        raise ProviderError(f"GeekAI API error ({exc.code}): {raw}") from exc
    except URLError as exc:
        raise ProviderError(f"GeekAI API request failed: {exc}") from exc

    try:
        payload_json = json.loads(raw)
    except ValueError as exc:
        raise ProviderError(f"GeekAI returned non-JSON response: {raw[:400]}") from exc
    if not isinstance(payload_json, dict):
        raise ProviderError("GeekAI returned empty data")
    return payload_json


def _download_bytes(url: str, timeout_s: float) -> bytes:
    req = Request(url, method="GET")
    try:
        with urlopen(req, timeout=timeout_s) as response:
            return response.read()
    except HTTPError as exc:
        raw = exc.read().decode("utf-8", errors="replace") if exc.fp else str(exc)
        raise ProviderError(f"GeekAI image download error ({exc.code}): {raw}") from exc
    except URLError as exc:
        raise ProviderError(f"GeekAI image download failed: {exc}") from exc
