"""douyin-share-info: normalized metadata for a Douyin share link."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .social.douyin import DouyinFetchError, build_output, fetch_by_share_url
from .utils import load_layered_env, write_json

CONFIG_DIRNAME = ".baoyu-skills"

EPILOG = """\
examples:
  douyin-share-info --share-url "https://v.douyin.com/xxxx/"

environment variables:
  TIKHUB_API_KEY           API key for TikHub (required)
  TIKHUB_BASE_URL          API base URL (default: https://api.tikhub.io)

env file load order: CLI > process env > <cwd>/.baoyu-skills/.env > ~/.baoyu-skills/.env
"""

TEXT_FIELDS = ("aweme_id", "desc", "cover_url", "audio_url", "video_url")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="douyin-share-info",
        description="Fetch Douyin video metadata (cover, audio, video URLs) from a share link.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", nargs="*", help="Douyin share URL (alternative to --share-url)")
    parser.add_argument("--share-url", "--url", dest="share_url", help="Douyin share URL")
    parser.add_argument("--raw", help="Save the raw TikHub response JSON to this path")
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Output JSON (default: on)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_intermixed_args(argv)
    positional = list(args.url)
    share_url = args.share_url
    if not share_url and positional:
        share_url = positional.pop(0)
    if positional:
        parser.error(f"unexpected argument: {positional[0]}")
    if not share_url:
        parser.print_usage(sys.stderr)
        print("Error: --share-url is required", file=sys.stderr)
        return 1

    load_layered_env(CONFIG_DIRNAME)
    try:
        raw = fetch_by_share_url(share_url)
        if args.raw:
            write_json(Path(args.raw).expanduser().resolve(), raw)
    except (DouyinFetchError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    output = build_output(share_url, raw)
    if args.json:
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return 0
    for key in TEXT_FIELDS:
        print(f"{key}: {output[key] or ''}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
