from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from google.genai import errors as genai_errors

from media_skills.providers.base import ImageOptions, ProviderError
from media_skills.providers.gemini import GeminiProvider, is_multimodal, normalize_model_id

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _response(*parts: Any) -> SimpleNamespace:
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


class FakeClient:
    instances: list["FakeClient"] = []

    def __init__(self, response: Any = None, error: Exception | None = None, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.calls: list[dict[str, Any]] = []
        self._response = response
        self._error = error
        self.models = self
        FakeClient.instances.append(self)

    def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response


def _install(monkeypatch: pytest.MonkeyPatch, response: Any = None, error: Exception | None = None) -> None:
    FakeClient.instances = []

    def factory(**kwargs: Any) -> FakeClient:
        return FakeClient(response=response, error=error, **kwargs)

    monkeypatch.setattr("media_skills.providers.gemini.genai.Client", factory)


def test_gemini_provider_returns_inline_image(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ref = tmp_path / "ref.jpg"
    ref.write_bytes(b"ref-bytes")
    monkeypatch.setenv("LNAPI_KEY", "test-key")
    monkeypatch.setenv("LNAPI_BASE_URL", "https://proxy.example/v1beta/")
    _install(monkeypatch, response=_response(SimpleNamespace(inline_data=None, text="note"), SimpleNamespace(inline_data=SimpleNamespace(data=PNG))))

    provider = GeminiProvider()
    data = provider.generate(
        "A cat",
        "models/gemini-3-pro-image-preview",
        ImageOptions(aspect_ratio="16:9", quality="2k", reference_images=(str(ref),)),
    )

    assert data == PNG
    client = FakeClient.instances[0]
    assert client.kwargs["api_key"] == "test-key"
    assert client.kwargs["http_options"].base_url == "https://proxy.example"
    assert client.kwargs["http_options"].api_version == "v1beta"
    call = client.calls[0]
    assert call["model"] == "gemini-3-pro-image-preview"
    parts = call["contents"][0].parts
    assert parts[0].inline_data.data == b"ref-bytes"
    assert parts[0].inline_data.mime_type == "image/jpeg"
    assert parts[-1].text == "A cat Aspect ratio: 16:9."
    assert call["config"].image_config.image_size == "2K"


def test_gemini_provider_requires_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LNAPI_KEY", raising=False)
    with pytest.raises(ProviderError, match="LNAPI_KEY is required"):
        GeminiProvider().generate("A cat", "gemini-3-pro-image-preview", ImageOptions())


def test_gemini_provider_without_image_part(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LNAPI_KEY", "test-key")
    _install(monkeypatch, response=_response(SimpleNamespace(inline_data=None, text="refused")))
    with pytest.raises(ProviderError, match="No image in response"):
        GeminiProvider().generate("A cat", "gemini-3-pro-image-preview", ImageOptions())


def test_gemini_provider_wraps_api_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LNAPI_KEY", "test-key")
    error = genai_errors.ClientError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})
    _install(monkeypatch, error=error)
    with pytest.raises(ProviderError, match=r"Google API error \(429\)"):
        GeminiProvider().generate("A cat", "gemini-3-pro-image-preview", ImageOptions(quality="normal"))


def test_reference_images_warn_on_non_multimodal_model(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    ref = tmp_path / "ref.png"
    ref.write_bytes(PNG)
    monkeypatch.setenv("LNAPI_KEY", "test-key")
    _install(monkeypatch, response=_response(SimpleNamespace(inline_data=SimpleNamespace(data=PNG))))

    GeminiProvider().generate("A cat", "imagen-4", ImageOptions(reference_images=(str(ref),)))

    assert "Reference images are only supported" in capsys.readouterr().err


def test_default_model_and_model_helpers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GOOGLE_IMAGE_MODEL", raising=False)
    assert GeminiProvider().default_model() == "gemini-3-pro-image-preview"
    monkeypatch.setenv("GOOGLE_IMAGE_MODEL", "gemini-3-flash-preview")
    assert GeminiProvider().default_model() == "gemini-3-flash-preview"
    assert normalize_model_id("models/foo") == "foo"
    assert is_multimodal("models/gemini-3-flash-preview")
    assert not is_multimodal("imagen-4")
