"""Bounded-concurrency batch image generation."""

from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from ..image_format import with_detected_image_extension
from ..providers.base import ImageProvider
from .events import EventWriter
from .tasks import ResolvedTask

DEFAULT_CONCURRENCY = 4
REPORT_PROVIDER = "banana-gemini"


@dataclass(frozen=True)
class TaskOutcome:
    index: int
    output_path: Path
    ok: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"index": self.index, "image": str(self.output_path), "ok": self.ok}
        if not self.ok:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class BatchReport:
    outcomes: list[TaskOutcome]

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def success(self) -> int:
        return self.total - self.failed

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": REPORT_PROVIDER,
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "results": [outcome.to_dict() for outcome in self.outcomes],
        }

    def lines(self) -> list[str]:
        out: list[str] = []
        for outcome in self.outcomes:
            if outcome.ok:
                out.append(f"[OK][{outcome.index}] {outcome.output_path}")
            else:
                out.append(f"[FAIL][{outcome.index}] {outcome.output_path} :: {outcome.error}")
        return out


class _TaskCursor:
    def __init__(self, total: int) -> None:
        self._total = total
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> int | None:
        with self._lock:
            if self._next >= self._total:
                return None
            idx = self._next
            self._next += 1
            return idx


def write_image(requested: Path, data: bytes) -> Path:
    output_path = with_detected_image_extension(requested, data)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    return output_path


def run_batch(
    tasks: Sequence[ResolvedTask],
    generator: ImageProvider,
    concurrency: int = DEFAULT_CONCURRENCY,
    events: EventWriter | None = None,
) -> BatchReport:
    """Run every task exactly once on ``min(concurrency, len(tasks))`` workers.

    Each worker claims the next index from a shared cursor until none remain.
    A failing task is recorded and never stops the others; outcomes are
    returned sorted by 1-based task index.
    """
    if concurrency <= 0:
        raise ValueError("concurrency must be a positive integer")
    worker_count = min(concurrency, len(tasks))
    cursor = _TaskCursor(len(tasks))
    outcomes: list[TaskOutcome] = []
    outcomes_lock = threading.Lock()

    def emit(event_type: str, **payload: Any) -> None:
        if not events:
            return
        try:
            events.emit(event_type, **payload)
        except OSError as exc:
            print(f"Warning: could not write {event_type} event: {exc}", file=sys.stderr)

    emit("batch_started", total=len(tasks), workers=worker_count)

    def worker() -> None:
        while True:
            idx = cursor.claim()
            if idx is None:
                return
            task = tasks[idx]
            try:
                data = generator.generate(task.prompt, task.model, task.options)
                outcome = TaskOutcome(index=idx + 1, output_path=write_image(task.output_path, data), ok=True)
            except Exception as exc:
                outcome = TaskOutcome(index=idx + 1, output_path=task.output_path, ok=False, error=str(exc))
            with outcomes_lock:
                outcomes.append(outcome)
            emit("task_finished", **outcome.to_dict())

    if worker_count:
        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="batch-worker") as pool:
            futures = [pool.submit(worker) for _ in range(worker_count)]
            for future in futures:
                future.result()

    report = BatchReport(outcomes=sorted(outcomes, key=lambda outcome: outcome.index))
    emit("batch_finished", total=report.total, success=report.success, failed=report.failed)
    return report
