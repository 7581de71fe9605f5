from __future__ import annotations

import io
import json
import threading
import time
from pathlib import Path

import pytest

from media_skills.providers.base import ImageOptions
from media_skills.providers.fallback import GenerationWithFallback
from media_skills.runs.batch import BatchReport, TaskOutcome, run_batch
from media_skills.runs.events import EventWriter
from media_skills.runs.tasks import ResolvedTask

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class TrackingGenerator:
    """Fake generator that records peak concurrency and fails on chosen prompts."""

    name = "fake"

    def __init__(self, fail_prompts: tuple[str, ...] = (), delay_s: float = 0.02) -> None:
        self.fail_prompts = fail_prompts
        self.delay_s = delay_s
        self.active = 0
        self.peak = 0
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def default_model(self) -> str:
        return "fake-model"

    def generate(self, prompt: str, model: str, options: ImageOptions) -> bytes:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.prompts.append(prompt)
        try:
            time.sleep(self.delay_s)
            if prompt in self.fail_prompts:
                raise RuntimeError(f"failed {prompt}")
            return PNG
        finally:
            with self._lock:
                self.active -= 1


def _tasks(tmp_path: Path, count: int, suffix: str = ".png") -> list[ResolvedTask]:
    return [
        ResolvedTask(prompt=f"p{i}", output_path=tmp_path / f"img{i}{suffix}", model="fake-model")
        for i in range(1, count + 1)
    ]


def test_every_task_runs_once_in_index_order(tmp_path: Path) -> None:
    generator = TrackingGenerator()
    report = run_batch(_tasks(tmp_path, 7), generator, concurrency=3)

    assert [outcome.index for outcome in report.outcomes] == list(range(1, 8))
    assert sorted(generator.prompts) == sorted(f"p{i}" for i in range(1, 8))
    assert all(outcome.ok for outcome in report.outcomes)
    assert all(outcome.output_path.exists() for outcome in report.outcomes)


@pytest.mark.parametrize(("concurrency", "count"), [(1, 4), (2, 6), (4, 3), (8, 2)])
def test_concurrency_is_bounded(tmp_path: Path, concurrency: int, count: int) -> None:
    generator = TrackingGenerator()
    report = run_batch(_tasks(tmp_path, count), generator, concurrency=concurrency)

    assert report.total == count
    assert 1 <= generator.peak <= min(concurrency, count)


def test_failure_is_isolated(tmp_path: Path) -> None:
    generator = TrackingGenerator(fail_prompts=("p2",))
    report = run_batch(_tasks(tmp_path, 3), generator, concurrency=2)

    assert [outcome.ok for outcome in report.outcomes] == [True, False, True]
    failed = report.outcomes[1]
    assert failed.error == "failed p2"
    assert not failed.output_path.exists()
    assert report.success == 2
    assert report.failed == 1
    assert report.exit_code == 1
    assert report.lines()[1] == f"[FAIL][2] {tmp_path / 'img2.png'} :: failed p2"


def test_all_successful_exit_code_zero(tmp_path: Path) -> None:
    report = run_batch(_tasks(tmp_path, 3), TrackingGenerator(), concurrency=4)
    assert report.exit_code == 0
    assert report.lines()[0] == f"[OK][1] {tmp_path / 'img1.png'}"


def test_png_payload_corrects_jpg_request(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    report = run_batch(_tasks(tmp_path, 1, suffix=".jpg"), TrackingGenerator(), concurrency=1)

    outcome = report.outcomes[0]
    assert outcome.output_path == tmp_path / "img1.png"
    assert outcome.output_path.read_bytes() == PNG
    assert not (tmp_path / "img1.jpg").exists()
    assert "does not match image format .png" in capsys.readouterr().err


def test_empty_batch_and_invalid_concurrency(tmp_path: Path) -> None:
    report = run_batch([], TrackingGenerator(), concurrency=4)
    assert report.total == 0
    assert report.exit_code == 0
    with pytest.raises(ValueError):
        run_batch(_tasks(tmp_path, 1), TrackingGenerator(), concurrency=0)


def test_report_dict_shape(tmp_path: Path) -> None:
    report = BatchReport(
        outcomes=[
            TaskOutcome(index=1, output_path=tmp_path / "a.png", ok=True),
            TaskOutcome(index=2, output_path=tmp_path / "b.png", ok=False, error="boom"),
        ]
    )
    payload = report.to_dict()
    assert payload["provider"] == "banana-gemini"
    assert (payload["total"], payload["success"], payload["failed"]) == (2, 1, 1)
    assert payload["results"][0] == {"index": 1, "image": str(tmp_path / "a.png"), "ok": True}
    assert payload["results"][1]["error"] == "boom"


def test_batch_events(tmp_path: Path) -> None:
    events_path = tmp_path / "events.jsonl"
    run_batch(
        _tasks(tmp_path, 2),
        TrackingGenerator(fail_prompts=("p1",)),
        concurrency=2,
        events=EventWriter(events_path, "run-1"),
    )
    events = [json.loads(line) for line in events_path.read_text(encoding="utf-8").splitlines()]
    types = [event["type"] for event in events]
    assert types[0] == "batch_started"
    assert types[-1] == "batch_finished"
    assert types.count("task_finished") == 2
    assert events[0]["workers"] == 2
    assert events[-1]["failed"] == 1


def test_fallback_success_is_a_clean_outcome(tmp_path: Path) -> None:
    generator = GenerationWithFallback(
        TrackingGenerator(fail_prompts=("p1",), delay_s=0),
        TrackingGenerator(delay_s=0),
        stream=io.StringIO(),
    )
    report = run_batch(_tasks(tmp_path, 3), generator, concurrency=8)

    assert all(outcome.ok for outcome in report.outcomes)
    first = report.outcomes[0]
    assert first.error is None
    assert "error" not in first.to_dict()
    assert first.output_path.read_bytes() == PNG
    assert report.exit_code == 0
    assert report.to_dict()["failed"] == 0


class BrokenEventWriter:
    def __init__(self) -> None:
        self.emitted: list[str] = []

    def emit(self, event_type: str, **payload) -> dict:
        if event_type == "task_finished":
            raise OSError("No space left on device")
        self.emitted.append(event_type)
        return {}


def test_event_write_failure_keeps_outcomes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    events = BrokenEventWriter()
    report = run_batch(_tasks(tmp_path, 4), TrackingGenerator(delay_s=0), concurrency=2, events=events)  # type: ignore[arg-type]

    assert [outcome.index for outcome in report.outcomes] == [1, 2, 3, 4]
    assert report.exit_code == 0
    assert events.emitted == ["batch_started", "batch_finished"]
    assert "could not write task_finished event" in capsys.readouterr().err
