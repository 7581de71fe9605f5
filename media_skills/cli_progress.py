"""CLI progress helpers."""

from __future__ import annotations

import sys
import time
from typing import TextIO


class StatusLine:
    """Single status line: rewritten in place on a TTY, one line per change otherwise."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stderr
        self.start = time.monotonic()
        self._enabled = bool(getattr(self.stream, "isatty", lambda: False)())
        self._last: str | None = None

    def update(self, text: str) -> None:
        if text == self._last:
            return
        self._last = text
        if self._enabled:
            self.stream.write("\r")
            self.stream.write(text)
            self.stream.write("\033[K")
        else:
            self.stream.write(f"{text}\n")
        self.stream.flush()

    def close(self, label: str = "Finished") -> None:
        elapsed = int(max(0, time.monotonic() - self.start))
        prefix = "\n" if self._enabled and self._last is not None else ""
        self.stream.write(f"{prefix}{label} ({format_duration(elapsed)})\n")
        self.stream.flush()


def format_duration(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"
