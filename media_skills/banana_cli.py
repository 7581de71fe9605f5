"""banana-proxy: Gemini image generation with GeekAI fallback, single or batch."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from .image_format import normalize_output_image_path
from .providers import ImageOptions, ProviderError, default_generator
from .providers.base import DEFAULT_QUALITY, IMAGE_SIZE_CHOICES, QUALITY_CHOICES, ImageProvider
from .runs.batch import DEFAULT_CONCURRENCY, REPORT_PROVIDER, run_batch, write_image
from .runs.events import EventWriter, open_event_writer
from .runs.tasks import TaskDefaults, TaskValidationError, load_batch_tasks, resolve_batch_tasks
from .utils import load_layered_env, read_prompt_files, read_prompt_stdin

CONFIG_DIRNAME = ".baoyu-skills"

EPILOG = """\
examples:
  banana-proxy --prompt "A cat" --image cat.png
  banana-proxy --prompt "A landscape" --image landscape.png --ar 16:9
  banana-proxy --promptfiles system.md content.md --image out.png
  banana-proxy --batch jobs.jsonl --concurrency 4

environment variables:
  LNAPI_KEY                 Primary (Gemini proxy) API key
  GOOGLE_IMAGE_MODEL        Default primary model (gemini-3-pro-image-preview)
  GEEKAI_API_KEY            GeekAI fallback API key (used when primary fails)
  GEEKAI_IMAGE_MODEL        GeekAI fallback model (default: nano-banana-2)

env file load order: CLI args > process env > <cwd>/.baoyu-skills/.env > ~/.baoyu-skills/.env
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
        prog="banana-proxy",
        description="Generate images with Gemini, falling back to GeekAI when the primary provider fails.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("words", nargs="*", help="Prompt text (when --prompt/--promptfiles are not given)")
    parser.add_argument("-p", "--prompt", help="Prompt text")
    parser.add_argument("--promptfiles", nargs="+", default=[], help="Read prompt from files (concatenated)")
    parser.add_argument("--image", help="Output image path (required outside --batch)")
    parser.add_argument("--batch", help="Batch tasks file (.json array or .jsonl)")
    parser.add_argument(
        "--concurrency",
        type=_positive_int,
        default=DEFAULT_CONCURRENCY,
        help=f"Parallel workers for --batch (default: {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument("-m", "--model", help="Primary model id")
    parser.add_argument("--ar", dest="aspect_ratio", help="Aspect ratio (e.g. 16:9, 1:1, 4:3)")
    parser.add_argument("--quality", choices=QUALITY_CHOICES, default=DEFAULT_QUALITY, help="Quality preset (default: 2k)")
    parser.add_argument(
        "--imageSize",
        dest="image_size",
        type=str.upper,
        choices=IMAGE_SIZE_CHOICES,
        help="Image size tier (default: from quality)",
    )
    parser.add_argument("--ref", "--reference", dest="reference_images", nargs="+", default=[], help="Reference images")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--events", help="Append JSONL events to this path")
    parser.add_argument("--dry-run", action="store_true", help="Render offline placeholders instead of calling providers")
    return parser


def _options_from_args(args: argparse.Namespace) -> ImageOptions:
    return ImageOptions(
        aspect_ratio=args.aspect_ratio,
        quality=args.quality,
        image_size=args.image_size,
        reference_images=tuple(args.reference_images),
    )


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


def _run_batch_mode(args: argparse.Namespace, generator: ImageProvider, events: EventWriter | None) -> int:
    raw_tasks = load_batch_tasks(args.batch)
    if not raw_tasks:
        raise TaskValidationError("--batch file has no tasks")
    defaults = TaskDefaults(
        model=args.model or generator.default_model(),
        aspect_ratio=args.aspect_ratio,
        quality=args.quality,
        image_size=args.image_size,
        reference_images=tuple(args.reference_images),
    )
    tasks = resolve_batch_tasks(raw_tasks, defaults)
    report = run_batch(tasks, generator, concurrency=args.concurrency, events=events)
    if args.json:
        _print_json(report.to_dict())
    else:
        for line in report.lines():
            print(line)
    return report.exit_code


def _run_single(
    args: argparse.Namespace,
    parser: argparse.ArgumentParser,
    generator: ImageProvider,
    events: EventWriter | None,
) -> int:
    prompt = _resolve_prompt(args)
    if not prompt:
        print("Error: Prompt is required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1
    if not args.image:
        print("Error: --image is required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    model = args.model or generator.default_model()
    requested = normalize_output_image_path(args.image)
    data = generator.generate(prompt, model, _options_from_args(args))
    output_path = write_image(requested, data)
    if events:
        events.emit("image_saved", image=str(output_path), model=model)

    if args.json:
        _print_json(
            {
                "savedImage": str(output_path),
                "provider": REPORT_PROVIDER,
                "model": model,
                "prompt": prompt[:200],
            }
        )
    else:
        print(output_path)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_intermixed_args(argv)
    load_layered_env(CONFIG_DIRNAME)
    events = open_event_writer(args.events)
    generator = default_generator(dry_run=args.dry_run)
    try:
        if args.batch:
            return _run_batch_mode(args, generator, events)
        return _run_single(args, parser, generator, events)
    except (TaskValidationError, ProviderError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
