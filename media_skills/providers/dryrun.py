"""Dry-run image provider (offline)."""

from __future__ import annotations

import hashlib
import io
import re

from PIL import Image, ImageDraw, ImageFont

from .base import ImageOptions, image_size_tier

_LONG_SIDE = {"1K": 1024, "2K": 2048, "4K": 4096}
_RATIO_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*[:/xX]\s*(\d+(?:\.\d+)?)\s*$")


class DryRunProvider:
    name = "dryrun"

    def default_model(self) -> str:
        return "dryrun-image-1"

    def generate(self, prompt: str, model: str, options: ImageOptions) -> bytes:
        width, height = resolve_dims(options)
        image = Image.new("RGB", (width, height), color_from_prompt(prompt))
        draw = ImageDraw.Draw(image)
        draw.text((20, 20), f"dryrun {model}\n{prompt[:60]}", fill=(255, 255, 255), font=ImageFont.load_default())
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()


def resolve_dims(options: ImageOptions) -> tuple[int, int]:
    long_side = _LONG_SIDE[image_size_tier(options)]
    match = _RATIO_RE.match(options.aspect_ratio or "")
    if not match:
        return long_side, long_side
    w, h = float(match.group(1)), float(match.group(2))
    if w <= 0 or h <= 0:
        return long_side, long_side
    if w >= h:
        return long_side, max(1, int(round(long_side * h / w)))
    return max(1, int(round(long_side * w / h))), long_side


def color_from_prompt(prompt: str) -> tuple[int, int, int]:
    digest = hashlib.sha256(prompt.encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
