"""lnapi.com video task client (Sora-style create / poll / download)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..utils import getenv_str

DEFAULT_API_BASE = "https://lnapi.com/v1"
PENDING_STATUSES = {"queued", "in_progress"}


class VideoTaskError(RuntimeError):
    pass


@dataclass(frozen=True)
class VideoTask:
    id: str
    status: str
    progress: float | None = None
    video_url: str | None = None
    failure_reason: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "VideoTask":
        progress = payload.get("progress")
        return cls(
            id=str(payload.get("id") or ""),
            status=str(payload.get("status") or "unknown"),
            progress=float(progress) if isinstance(progress, (int, float)) else None,
            video_url=payload.get("video_url") or None,
            failure_reason=payload.get("failure_reason") or None,
            raw=dict(payload),
        )


@dataclass(frozen=True)
class CreateVideoRequest:
    model: str
    prompt: str
    seconds: str
    size: str
    image: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": self.prompt,
            "seconds": self.seconds,
            "size": self.size,
        }
        if self.image:
            payload["image"] = self.image
        return payload


class LnapiVideoClient:
    def __init__(self, api_base: str | None = None, timeout_s: float = 90.0) -> None:
        self.api_base = (api_base or getenv_str("LNAPI_VIDEO_BASE_URL") or DEFAULT_API_BASE).rstrip("/")
        self.timeout_s = timeout_s

    def create_video_task(self, request: CreateVideoRequest) -> VideoTask:
        body = json.dumps(request.to_payload()).encode("utf-8")
        headers = self._headers()
        headers["Content-Type"] = "application/json"
        payload = _request_json(
            "POST",
            f"{self.api_base}/videos",
            headers,
            body=body,
            timeout_s=self.timeout_s,
            action="create video task",
        )
        task = VideoTask.from_payload(payload)
        if not task.id:
            raise VideoTaskError(f"Video create response missing id: {payload}")
        return task

    def get_task_status(self, task_id: str) -> VideoTask:
        payload = _request_json(
            "GET",
            f"{self.api_base}/videos/{task_id}",
            self._headers(),
            timeout_s=self.timeout_s,
            action="get task status",
        )
        task = VideoTask.from_payload(payload)
        return task if task.id else VideoTask.from_payload({**payload, "id": task_id})

    def download_video(self, url: str, timeout_s: float = 600.0) -> bytes:
        req = Request(url, method="GET")
        try:
            with urlopen(req, timeout=timeout_s) as resp:
                return resp.read()
        except HTTPError as exc:
            raise VideoTaskError(f"Failed to download video: {exc.code} {exc.reason}") from exc
        except URLError as exc:
            raise VideoTaskError(f"Failed to download video: {exc}") from exc

    def _headers(self) -> dict[str, str]:
        api_key = getenv_str("LNAPI_KEY")
        if not api_key:
            raise VideoTaskError("LNAPI_KEY is not set in environment")
        return {"Authorization": f"Bearer {api_key}"}


def _request_json(
    method: str,
    url: str,
    headers: Mapping[str, str],
    *,
    action: str,
    body: bytes | None = None,
    timeout_s: float = 90.0,
) -> dict[str, Any]:
    req = Request(url, data=body, headers=dict(headers), method=method)
    try:
        with urlopen(req, timeout=timeout_s) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
        raise VideoTaskError(f"Failed to {action}: {exc.code} {exc.reason} - {text}") from exc
    except URLError as exc:
        raise VideoTaskError(f"Failed to {action}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise VideoTaskError(f"Failed to {action}: non-JSON response: {raw[:400]}") from exc
    if not isinstance(payload, dict):
        raise VideoTaskError(f"Failed to {action}: unexpected response: {raw[:400]}")
    return payload
