"""
LLM backends behind a single generate_text() interface.

Exactly one backend is active per process, picked from settings.ai_backend:

  anthropic   Anthropic Messages API via the anthropic SDK
  ollama      self-hosted Ollama server, POST {host}/api/chat over httpx

Backends return the raw completion; validating it is the caller's job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import anthropic
import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TIMEOUT_S = 60.0


@dataclass(frozen=True)
class Completion:
    """Unvalidated backend output: the candidate text plus the raw response for diagnostics."""

    text: Any
    raw: Any


class TextBackend(ABC):
    """Base contract for text-generation backends."""

    name: str = "base"

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Where requests go; part of the response cache key."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier; part of the response cache key."""

    @abstractmethod
    def missing_credential(self) -> str | None:
        """Return a message naming the missing setting, or None when configured."""

    @abstractmethod
    async def generate_text(self, prompt: str, system: str | None = None) -> Completion:
        """Send one prompt, return the unvalidated completion. May raise anything."""

    async def close(self) -> None:
        """Release backend resources."""


class AnthropicTextBackend(TextBackend):
    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = "https://api.anthropic.com",
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT_S,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._max_tokens = max_tokens
        self._timeout = timeout
        # Built lazily so a process without a key can still start.
        self._client = client
        self._owns_client = client is None

    @property
    def endpoint(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    def missing_credential(self) -> str | None:
        # An injected client carries its own credentials.
        if not self._api_key and self._owns_client:
            return "Anthropic API key not configured"
        return None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    async def generate_text(self, prompt: str, system: str | None = None) -> Completion:
        kwargs: dict[str, Any] = {}
        if system:
            kwargs["system"] = system

        response = await self._get_client().messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )

        texts = [
            block.text
            for block in getattr(response, "content", None) or []
            if getattr(block, "type", None) == "text"
        ]
        if not texts:
            return Completion(text=None, raw=response)
        if not all(isinstance(t, str) for t in texts):
            return Completion(text=texts, raw=response)
        return Completion(text="".join(texts), raw=response)

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None


class OllamaTextBackend(TextBackend):
    name = "ollama"

    def __init__(
        self,
        host: str,
        model: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._host = host.rstrip("/")
        self._model = model
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return self._host

    @property
    def model(self) -> str:
        return self._model

    def missing_credential(self) -> str | None:
        if not self._host:
            return "Ollama host not configured"
        if not self._model:
            return "Ollama model not configured"
        return None

    async def generate_text(self, prompt: str, system: str | None = None) -> Completion:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = await self._http.post(
            f"{self._host}/api/chat",
            json={
                "model": self._model,
                "messages": messages,
                "format": "json",
                "stream": False,
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Ollama returned a non-JSON %d body", response.status_code)
            return Completion(text=None, raw=response.text[:2000])

        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, dict):
            return Completion(text=None, raw=payload)
        content = message.get("content")
        return Completion(text="" if content is None else content, raw=payload)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()


def build_text_backend(settings, http_client: httpx.AsyncClient | None = None) -> TextBackend:
    """Pick the backend named by settings.ai_backend."""
    if settings.ai_backend == "ollama":
        logger.info("AI backend: ollama (%s, model=%s)", settings.ollama_host, settings.ollama_model)
        return OllamaTextBackend(
            host=settings.ollama_host,
            model=settings.ollama_model,
            http_client=http_client,
            timeout=settings.ai_timeout_s,
        )
    if settings.ai_backend == "anthropic":
        logger.info("AI backend: anthropic (model=%s)", settings.anthropic_model)
        return AnthropicTextBackend(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            max_tokens=settings.ai_max_tokens,
            timeout=settings.ai_timeout_s,
        )
    raise ValueError(f"Unknown AI backend: {settings.ai_backend!r}")
