"""sora-video: create a video task, poll it, download the result."""

from __future__ import annotations

import argparse
import base64
import json
import sys
import time
from pathlib import Path
from typing import Any

from .cli_progress import StatusLine
from .runs.events import EventWriter, open_event_writer
from .utils import load_layered_env, read_prompt_files, read_prompt_stdin
from .video.lnapi import CreateVideoRequest, LnapiVideoClient, VideoTask, VideoTaskError

CONFIG_DIRNAME = ".shuliu-skills"
REPORT_PROVIDER = "lnapi-sora"

EPILOG = """\
examples:
  sora-video --prompt "A video prompt" --output video.mp4
  sora-video --prompt "Animate this" --image input.jpg --output video.mp4

environment variables:
  LNAPI_KEY                 API key for lnapi.com
"""


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sora-video",
        description="Generate a short video through the lnapi.com video task API.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("words", nargs="*", help="Prompt text (when --prompt/--promptfiles are not given)")
    parser.add_argument("-p", "--prompt", help="Prompt text")
    parser.add_argument("--promptfiles", nargs="+", default=[], help="Read prompt from files (concatenated)")
    parser.add_argument("--image", help="Input image path or URL (image-to-video)")
    parser.add_argument("--output", help="Output video path (required)")
    parser.add_argument("--model", default="sora-2", help="Model id (default: sora-2)")
    parser.add_argument("--seconds", choices=("10", "15"), default="10", help="Duration in seconds (default: 10)")
    parser.add_argument("--size", default="720x1280", help="Resolution: 1280x720, 720x1280, 720x720 (default: 720x1280)")
    parser.add_argument("--poll", type=_positive_int, default=5000, help="Polling interval in ms (default: 5000)")
    parser.add_argument(
        "--timeout",
        type=float,
        default=0.0,
        help="Give up after this many seconds of polling (default: 0, wait indefinitely)",
    )
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--events", help="Append JSONL events to this path")
    return parser


def image_reference(value: str) -> str:
    """Pass URLs through; inline local files as a data URL."""
    if value.startswith(("http://", "https://")):
        return value
    path = Path(value).expanduser().resolve()
    data = path.read_bytes()
    ext = path.suffix.lower().lstrip(".")
    mime_subtype = "jpeg" if ext == "jpg" else ext
    return f"data:image/{mime_subtype};base64,{base64.b64encode(data).decode('ascii')}"


def wait_for_completion(
    client: LnapiVideoClient,
    task: VideoTask,
    *,
    poll_ms: int,
    timeout_s: float = 0.0,
    status: StatusLine | None = None,
    events: EventWriter | None = None,
) -> VideoTask:
    deadline = time.monotonic() + timeout_s if timeout_s > 0 else None
    current = task
    while current.pending:
        if status:
            status.update(f"Status: {current.status} (Progress: {_format_progress(current.progress)}%)")
        if deadline is not None and time.monotonic() > deadline:
            raise VideoTaskError(f"Timed out waiting for video task {task.id} after {timeout_s:g}s")
        time.sleep(poll_ms / 1000.0)
        previous = current.status
        current = client.get_task_status(task.id)
        if events and current.status != previous:
            events.emit("video_task_status", task_id=task.id, status=current.status, progress=current.progress)
    return current


def _format_progress(value: float | None) -> str:
    if value is None:
        return "0"
    return f"{value:g}"


def _resolve_prompt(args: argparse.Namespace) -> str | None:
    if args.prompt:
        return args.prompt
    if args.promptfiles:
        return read_prompt_files(args.promptfiles)
    if args.words:
        return " ".join(args.words)
    return read_prompt_stdin(sys.stdin)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def run(args: argparse.Namespace, parser: argparse.ArgumentParser, client: LnapiVideoClient) -> int:
    prompt = _resolve_prompt(args)
    if not prompt:
        print("Error: Prompt is required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1
    if not args.output:
        print("Error: Output path is required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    events = open_event_writer(args.events)
    request = CreateVideoRequest(
        model=args.model,
        prompt=prompt,
        seconds=args.seconds,
        size=args.size,
        image=image_reference(args.image) if args.image else None,
    )
    if not args.json:
        print("Starting video generation...", file=sys.stderr)
        print(f"Prompt: {prompt}", file=sys.stderr)
        if request.image:
            print("Image input provided", file=sys.stderr)

    task = client.create_video_task(request)
    if events:
        events.emit("video_task_created", task_id=task.id, status=task.status, model=args.model)
    status = None if args.json else StatusLine(sys.stderr)
    if status:
        print(f"Task created: {task.id}", file=sys.stderr)

    final = wait_for_completion(
        client,
        task,
        poll_ms=args.poll,
        timeout_s=float(args.timeout),
        status=status,
        events=events,
    )
    if status:
        status.close(f"Final status: {final.status}")

    if final.status == "completed" and final.video_url:
        if not args.json:
            print(f"Downloading video from {final.video_url}...", file=sys.stderr)
        data = client.download_video(final.video_url)
        output_path = Path(args.output).expanduser().resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        if events:
            events.emit("video_saved", task_id=final.id, video=str(output_path))
        if args.json:
            _print_json(
                {
                    "savedVideo": str(output_path),
                    "provider": REPORT_PROVIDER,
                    "model": args.model,
                    "prompt": prompt,
                    "task": dict(final.raw),
                }
            )
        else:
            print(f"Video saved to: {output_path}")
        return 0

    reason = final.failure_reason or "Unknown error"
    if events:
        events.emit("video_failed", task_id=final.id, status=final.status, error=reason)
    if args.json:
        _print_json({"error": reason, "task": dict(final.raw)})
    else:
        print(f"Generation failed: {reason}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_intermixed_args(argv)
    load_layered_env(CONFIG_DIRNAME)
    try:
        return run(args, parser, LnapiVideoClient())
    except (VideoTaskError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
