"""Shared utilities for the media skill tools."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, TextIO


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: Any) -> None:
    ensure_parent_dir(path)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def getenv_str(key: str, default: str | None = None) -> str | None:
    raw = os.getenv(key)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


def load_dotenv(path: Path, override: bool = False) -> bool:
    """Apply ``KEY=VALUE`` lines from ``path`` to ``os.environ``.

    Existing (non-empty) variables win unless ``override`` is set, so calling this
    for several files in priority order gives first-writer-wins layering.
    """
    if not path.is_file():
        return False
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[7:].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value.startswith(("\"", "'")):
            value = value[1:-1]
        if not override and os.environ.get(key):
            continue
        os.environ[key] = value
    return True


def load_layered_env(config_dirname: str, cwd: Path | None = None, home: Path | None = None) -> list[Path]:
    """Load ``<cwd>/<dir>/.env`` then ``~/<dir>/.env`` under the process environment.

    Precedence: process env > working-directory file > home-directory file.
    """
    cwd_dir = cwd or Path.cwd()
    home_dir = home or Path.home()
    loaded: list[Path] = []
    for base in (cwd_dir, home_dir):
        env_path = base / config_dirname / ".env"
        if load_dotenv(env_path):
            loaded.append(env_path)
    return loaded


def read_prompt_files(paths: Iterable[str | Path]) -> str:
    parts = [Path(p).read_text(encoding="utf-8") for p in paths]
    return "\n\n".join(parts)


def read_prompt_stdin(stream: TextIO) -> str | None:
    if getattr(stream, "isatty", lambda: False)():
        return None
    text = stream.read().strip()
    return text or None
