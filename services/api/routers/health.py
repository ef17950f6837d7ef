"""Health check endpoint."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    state = request.app.state
    cache: dict[str, int] = {}
    for service_name in ("weather_service", "text_service"):
        service = getattr(state, service_name, None)
        if service is not None:
            cache.update(service.cache_stats())

    started_at = getattr(state, "started_at", None)
    uptime = int(time.monotonic() - started_at) if started_at is not None else 0

    return {
        "success": True,
        "data": {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": state.settings.app_version,
            "uptime": uptime,
            "cache": cache,
        },
        "requestId": request.state.request_id,
    }
