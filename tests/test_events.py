from __future__ import annotations

import json
import threading
from pathlib import Path

from media_skills.runs.events import EventWriter, open_event_writer


def test_event_writer(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "run-123")
    writer.emit("batch_started", total=3, workers=2)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["type"] == "batch_started"
    assert payload["run_id"] == "run-123"
    assert "ts" in payload
    assert payload["total"] == 3
    assert payload["workers"] == 2


def test_event_writer_concurrent_emits_keep_lines_intact(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "events.jsonl"
    writer = EventWriter(path)

    def emit_many(worker: int) -> None:
        for i in range(25):
            writer.emit("task_finished", worker=worker, index=i, note="x" * 200)

    threads = [threading.Thread(target=emit_many, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    events = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(events) == 100
    assert {event["run_id"] for event in events} == {writer.run_id}


def test_open_event_writer_optional(tmp_path: Path) -> None:
    assert open_event_writer(None) is None
    assert open_event_writer("") is None
    writer = open_event_writer(str(tmp_path / "e.jsonl"))
    assert writer is not None
    assert writer.path == (tmp_path / "e.jsonl").resolve()
