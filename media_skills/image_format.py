"""Output path and binary signature helpers for generated images."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

DEFAULT_IMAGE_SUFFIX = ".png"

_MIME_BY_SUFFIX = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def normalize_output_image_path(value: str | Path) -> Path:
    path = Path(value).expanduser().resolve()
    if path.suffix:
        return path
    return path.with_name(path.name + DEFAULT_IMAGE_SUFFIX)


def detect_image_extension(data: bytes) -> str | None:
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return ".png"
    if data[:3] == b"\xff\xd8\xff":
        return ".jpg"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ".gif"
    return None


def with_detected_image_extension(path: Path, data: bytes, stream: TextIO | None = None) -> Path:
    """Return ``path`` with its suffix matching the payload signature.

    A mismatch is corrected with a warning on ``stream`` (stderr by default);
    unknown payloads keep the requested path.
    """
    detected = detect_image_extension(data)
    if detected is None:
        return path
    current = path.suffix.lower()
    if not current:
        return path.with_name(path.name + detected)
    normalized = ".jpg" if current == ".jpeg" else current
    if normalized == detected:
        return path
    corrected = path.with_suffix(detected)
    print(
        f"Warning: Output extension {path.suffix} does not match image format {detected}, saved as {corrected}",
        file=stream or sys.stderr,
    )
    return corrected


def mime_type_for_path(path: str | Path) -> str:
    return _MIME_BY_SUFFIX.get(Path(path).suffix.lower(), "image/png")
