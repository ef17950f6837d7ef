"""
TextGenerationService: prompt -> generated text with a bounded response cache.

Cache key:  {backend endpoint}::{model}::{trimmed prompt}
TTL:        30 minutes
Capacity:   500 entries, oldest-inserted evicted first

The model answers with a JSON object {"text": "..."}; it is parsed and
validated as GeneratedText before it is cached or returned. A bad
payload is reported to Sentry (prompt truncated to 200 chars) and surfaces
as TextGenerationError, as does any backend failure. There is no per-status
classification on this path.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, StrictStr, ValidationError

from services.api import telemetry
from services.api.ai.backends import TextBackend
from services.api.ai.prompt import SYSTEM_PROMPT
from services.api.cache import TTLCache

logger = logging.getLogger(__name__)

AI_CACHE_TTL_SECONDS = 30 * 60
AI_CACHE_MAX_ENTRIES = 500

_PROMPT_PREVIEW_CHARS = 200


class GeneratedText(BaseModel):
    text: StrictStr


class TextGenerationError(Exception):
    """Raised when the backend fails or returns an unusable payload."""


def ai_cache_key(endpoint: str, model: str, prompt: str) -> str:
    return f"{endpoint}::{model}::{prompt.strip()}"


def parse_completion(text: Any) -> GeneratedText:
    """Decode the model's JSON reply. Raises ValueError (incl. ValidationError)."""
    if not isinstance(text, str):
        raise ValueError(f"Expected a JSON string completion, got {type(text).__name__}")
    return GeneratedText.model_validate(json.loads(text.strip()))


def _prompt_preview(prompt: str) -> str:
    if len(prompt) > _PROMPT_PREVIEW_CHARS:
        return f"{prompt[:_PROMPT_PREVIEW_CHARS]}…"
    return prompt


class TextGenerationService:
    """
    Usage:
        service = TextGenerationService(backend=build_text_backend(settings))
        result = await service.get_text("Write a short poem about coding.")
        result.text
    """

    def __init__(
        self,
        backend: TextBackend,
        cache: TTLCache[GeneratedText] | None = None,
        *,
        ttl: float = AI_CACHE_TTL_SECONDS,
        system_prompt: str | None = SYSTEM_PROMPT,
    ) -> None:
        self._backend = backend
        self._cache = (
            cache if cache is not None
            else TTLCache(name="ai", max_entries=AI_CACHE_MAX_ENTRIES)
        )
        self._ttl = ttl
        self._system_prompt = system_prompt

    @property
    def backend(self) -> TextBackend:
        return self._backend

    async def get_text(self, prompt: str) -> GeneratedText:
        """Generate (or recall) text for prompt. Raises ValueError on an empty prompt."""
        result, _ = await self.fetch_text(prompt)
        return result

    async def fetch_text(self, prompt: str) -> tuple[GeneratedText, bool]:
        """Return (result, served_from_cache)."""
        if not prompt or not prompt.strip():
            raise ValueError("Prompt is required")

        key = ai_cache_key(self._backend.endpoint, self._backend.model, prompt)
        cached = self._cache.get(key)
        if cached is not None:
            return cached, True

        try:
            completion = await self._backend.generate_text(
                prompt.strip(), system=self._system_prompt
            )
        except Exception as exc:
            logger.warning(
                "%s backend call failed (%s): %s",
                self._backend.name, type(exc).__name__, exc,
            )
            raise TextGenerationError(f"{self._backend.name} request failed") from exc

        try:
            result = parse_completion(completion.text)
        except (ValueError, ValidationError) as exc:
            telemetry.report_invalid_payload(
                exc,
                repr(completion.raw)[:2000],
                prompt=_prompt_preview(prompt),
                backend=self._backend.name,
                model=self._backend.model,
            )
            raise TextGenerationError(
                f"Invalid response from {self._backend.name} AI API"
            ) from exc

        self._cache.put(key, result, self._ttl)
        return result, False

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return {"aiEntries": self._cache.stats().entry_count}
