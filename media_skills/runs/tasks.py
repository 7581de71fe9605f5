"""Batch task loading and resolution."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..image_format import normalize_output_image_path
from ..providers.base import DEFAULT_QUALITY, IMAGE_SIZE_CHOICES, QUALITY_CHOICES, ImageOptions


class TaskValidationError(ValueError):
    """A batch file or one of its tasks cannot be run."""


@dataclass(frozen=True)
class TaskDefaults:
    model: str
    aspect_ratio: str | None = None
    quality: str = DEFAULT_QUALITY
    image_size: str | None = None
    reference_images: Sequence[str] = ()


@dataclass(frozen=True)
class ResolvedTask:
    prompt: str
    output_path: Path
    model: str
    options: ImageOptions = field(default_factory=ImageOptions)


def load_batch_tasks(batch_path: str | Path) -> list[dict[str, Any]]:
    """Read raw tasks from a ``.json`` array file or a JSONL file."""
    path = Path(batch_path).expanduser().resolve()
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TaskValidationError(f"Cannot read --batch file {path}: {exc}") from exc
    if not content.strip():
        return []

    if path.suffix.lower() == ".json":
        try:
            parsed = json.loads(content)
        except ValueError as exc:
            raise TaskValidationError(f"Invalid JSON in --batch file: {exc}") from exc
        if not isinstance(parsed, list):
            raise TaskValidationError("--batch JSON must be an array")
        return [_require_object(item, idx) for idx, item in enumerate(parsed, start=1)]

    tasks: list[dict[str, Any]] = []
    for line_no, raw_line in enumerate(content.splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except ValueError as exc:
            raise TaskValidationError(f"Invalid JSONL at line {line_no}") from exc
        tasks.append(_require_object(item, len(tasks) + 1))
    return tasks


def _require_object(item: Any, index: int) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise TaskValidationError(f"Batch task #{index} must be a JSON object")
    return item


def resolve_batch_tasks(raw_tasks: Sequence[Mapping[str, Any]], defaults: TaskDefaults) -> list[ResolvedTask]:
    return [resolve_task(raw, defaults, index) for index, raw in enumerate(raw_tasks, start=1)]


def resolve_task(raw: Mapping[str, Any], defaults: TaskDefaults, index: int) -> ResolvedTask:
    label = f"Batch task #{index}"

    prompt = str(raw.get("prompt") or "").strip()
    prompt_file = raw.get("promptFile")
    if not prompt and prompt_file:
        try:
            prompt = Path(str(prompt_file)).expanduser().read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise TaskValidationError(f"{label} cannot read promptFile {prompt_file}: {exc}") from exc
    if not prompt:
        raise TaskValidationError(f"{label} missing prompt/promptFile")

    image = raw.get("image")
    if not image:
        raise TaskValidationError(f"{label} missing image")

    quality = raw.get("quality") or defaults.quality
    if quality not in QUALITY_CHOICES:
        raise TaskValidationError(f"{label} has invalid quality: {quality}")

    image_size = raw.get("imageSize") or defaults.image_size
    if image_size and image_size not in IMAGE_SIZE_CHOICES:
        raise TaskValidationError(f"{label} has invalid imageSize: {image_size}")

    refs = raw.get("ref")
    if refs is None:
        reference_images = tuple(defaults.reference_images)
    elif isinstance(refs, list):
        reference_images = tuple(str(ref) for ref in refs)
    else:
        raise TaskValidationError(f"{label} ref must be a list of paths")

    return ResolvedTask(
        prompt=prompt,
        output_path=normalize_output_image_path(str(image)),
        model=str(raw.get("model") or defaults.model),
        options=ImageOptions(
            aspect_ratio=raw.get("ar") or defaults.aspect_ratio,
            quality=quality,
            image_size=image_size or None,
            reference_images=reference_images,
        ),
    )
