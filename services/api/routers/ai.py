"""
POST /ai/text: free-text prompt -> generated text.

The backend (Anthropic or Ollama) is fixed at startup by settings.ai_backend.
Any backend failure is reported as a single generic 500; there is no
rate-limit / timeout distinction on this path.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

from services.api.ai import TextGenerationError, TextGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

MAX_PROMPT_LENGTH = 4000


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class TextRequest(BaseModel):
    prompt: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
        description="Prompt text (e.g. 'Write a short poem about coding.')",
    )

    @field_validator("prompt")
    @classmethod
    def strip_prompt(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("prompt must not be empty or whitespace-only")
        return stripped


class TextResponse(BaseModel):
    success: bool
    data: dict
    requestId: str


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

@router.post("/text", response_model=TextResponse)
async def generate_text(body: TextRequest, request: Request) -> dict:
    service: TextGenerationService = request.app.state.text_service

    missing = service.backend.missing_credential()
    if missing:
        raise HTTPException(
            status_code=500,
            detail={"code": "CONFIGURATION_ERROR", "message": missing},
        )

    try:
        result = await service.get_text(body.prompt)
    except TextGenerationError as exc:
        logger.warning("Text generation failed: %s", exc)
        raise HTTPException(
            status_code=500,
            detail={
                "code": "AI_GENERATION_FAILED",
                "message": "Failed to generate text. Please try again.",
            },
        ) from exc

    return {
        "success": True,
        "data": result.model_dump(),
        "requestId": request.state.request_id,
    }
