"""
AI text generation package.

One configured LLM backend (Anthropic or Ollama) behind a cached gateway.
"""

from services.api.ai.backends import (
    AnthropicTextBackend,
    Completion,
    OllamaTextBackend,
    TextBackend,
    build_text_backend,
)
from services.api.ai.service import GeneratedText, TextGenerationError, TextGenerationService

__all__ = [
    "AnthropicTextBackend",
    "Completion",
    "GeneratedText",
    "OllamaTextBackend",
    "TextBackend",
    "TextGenerationError",
    "TextGenerationService",
    "build_text_backend",
]
