"""Douyin share-link metadata via the TikHub API."""

from __future__ import annotations

import json
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from ..utils import getenv_str

DEFAULT_BASE_URL = "https://api.tikhub.io"
ENDPOINT_PATH = "/api/v1/douyin/web/fetch_one_video_by_share_url"


class DouyinFetchError(RuntimeError):
    pass


def fetch_by_share_url(share_url: str, timeout_s: float = 60.0) -> dict[str, Any]:
    api_key = getenv_str("TIKHUB_API_KEY")
    if not api_key:
        raise DouyinFetchError("TIKHUB_API_KEY is required")
    base_url = (getenv_str("TIKHUB_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
    url = f"{base_url}{ENDPOINT_PATH}?{urlencode({'share_url': share_url})}"
    req = Request(url, headers={"Authorization": f"Bearer {api_key}"}, method="GET")

    try:
        with urlopen(req, timeout=timeout_s) as resp:
            status = int(getattr(resp, "status", 200))
            text = resp.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        status = exc.code
        text = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
    except URLError as exc:
        raise DouyinFetchError(f"TikHub request failed: {exc}") from exc

    try:
        body = json.loads(text)
    except ValueError as exc:
        raise DouyinFetchError(f"TikHub returned non-JSON response ({status}): {text[:400]}") from exc
    if not isinstance(body, dict):
        raise DouyinFetchError(f"TikHub returned non-JSON response ({status}): {text[:400]}")
    if not 200 <= status < 300:
        raise DouyinFetchError(f"TikHub request failed ({status}): {body.get('message') or 'Unknown error'}")
    return body


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def pick_first_url(urls: Any) -> str | None:
    if not isinstance(urls, list):
        return None
    for item in urls:
        if isinstance(item, str) and item:
            return item
    return None


def quality_label(item: Mapping[str, Any]) -> str:
    gear_name = item.get("gear_name")
    if isinstance(gear_name, str) and gear_name.strip():
        return gear_name.strip().lower()
    quality_type = item.get("quality_type")
    if isinstance(quality_type, (int, float)) and not isinstance(quality_type, bool):
        if isinstance(quality_type, float) and quality_type.is_integer():
            quality_type = int(quality_type)
        return f"quality_type_{quality_type}"
    return "unknown"


def pick_video_url(bit_rates: Any) -> tuple[str | None, str | None, int]:
    """First playable URL across bit-rate variants, its quality label, and the variant count."""
    if not isinstance(bit_rates, list) or not bit_rates:
        return None, None, 0
    for item in bit_rates:
        entry = _mapping(item)
        url = pick_first_url(_mapping(entry.get("play_addr")).get("url_list"))
        if url:
            return url, quality_label(entry), len(bit_rates)
    return None, None, len(bit_rates)


def build_output(share_url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    aweme = _mapping(_mapping(payload.get("data")).get("aweme_detail"))
    video = _mapping(aweme.get("video"))
    music = _mapping(aweme.get("music"))
    author = _mapping(aweme.get("author"))
    video_url, quality, count = pick_video_url(video.get("bit_rate"))
    code = payload.get("code")

    return {
        "share_url": share_url,
        "aweme_id": _str_or_none(aweme.get("aweme_id")),
        "desc": _str_or_none(aweme.get("desc")),
        "author": {
            "uid": _str_or_none(author.get("uid")),
            "sec_uid": _str_or_none(author.get("sec_uid")),
            "unique_id": _str_or_none(author.get("unique_id")),
            "nickname": _str_or_none(author.get("nickname")),
        },
        "cover_url": pick_first_url(_mapping(video.get("origin_cover")).get("url_list")),
        "audio_url": pick_first_url(_mapping(music.get("play_url")).get("url_list")),
        "video_url": video_url,
        "video_url_first_available": video_url,
        "video_quality_selected": quality,
        "video_bit_rate_count": count,
        "api": {
            "code": code if isinstance(code, int) and not isinstance(code, bool) else None,
            "message": _str_or_none(payload.get("message")),
            "request_id": _str_or_none(payload.get("request_id")),
        },
    }
