"""Primary-with-retry, then fallback, image generation."""

from __future__ import annotations

import sys
from typing import TextIO

from .base import ImageOptions, ImageProvider, ProviderError

PRIMARY_ATTEMPTS = 2


class FallbackExhaustedError(ProviderError):
    def __init__(self, primary_error: BaseException, fallback_error: BaseException, fallback_name: str) -> None:
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(
            f"Primary provider failed: {primary_error}; {fallback_name} fallback failed: {fallback_error}"
        )


class GenerationWithFallback:
    """Try ``primary`` up to ``PRIMARY_ATTEMPTS`` times back to back, then ``fallback`` once.

    The fallback runs with its own default model; the task's model only applies
    to the primary. Transitions are reported on ``stream`` (stderr by default).
    """

    def __init__(
        self,
        primary: ImageProvider,
        fallback: ImageProvider,
        attempts: int = PRIMARY_ATTEMPTS,
        stream: TextIO | None = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.attempts = max(1, int(attempts))
        self._stream = stream

    def default_model(self) -> str:
        return self.primary.default_model()

    def generate(self, prompt: str, model: str, options: ImageOptions) -> bytes:
        primary_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                return self.primary.generate(prompt, model, options)
            except Exception as exc:
                primary_error = exc
                if attempt < self.attempts:
                    self._note(f"Primary provider ({self.primary.name}) failed: {exc}; retrying...")

        fallback_model = self.fallback.default_model()
        self._note(
            f"Primary provider failed: {primary_error}. Falling back to {self.fallback.name} {fallback_model}..."
        )
        try:
            return self.fallback.generate(prompt, fallback_model, options)
        except Exception as fallback_exc:
            raise FallbackExhaustedError(primary_error, fallback_exc, self.fallback.name) from fallback_exc

    def _note(self, message: str) -> None:
        print(message, file=self._stream or sys.stderr)
