"""
GET /weather/current: current conditions for a city or coordinate pair.

Query: city | (lat & lon), units=metric|imperial, lang=<2 chars>.

UpstreamError raised by WeatherService is not caught here; the app-level
exception handler maps it through services.api.errors.map_upstream_error.

HTTP errors:
- 400 when neither city nor both coordinates are given, or params are invalid
- 401 / 404 / 429 / 500 / 503 / 504 from the upstream taxonomy
- 500 CONFIGURATION_ERROR when OPENWEATHER_API_KEY is unset (per request)
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from services.api.weather import WeatherQuery, WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/weather", tags=["weather"])


class WeatherEnvelope(BaseModel):
    success: bool
    data: dict
    requestId: str


def _weather_service(request: Request) -> WeatherService:
    service: WeatherService = request.app.state.weather_service
    if not service.client.has_api_key:
        raise HTTPException(
            status_code=500,
            detail={
                "code": "CONFIGURATION_ERROR",
                "message": "OpenWeather API key not configured",
            },
        )
    return service


@router.get("/current", response_model=WeatherEnvelope)
async def get_current_weather(
    query: Annotated[WeatherQuery, Query()],
    request: Request,
) -> dict:
    """Resolve the location, fetch current weather, return the normalised shape."""
    if not query.has_location:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "VALIDATION_ERROR",
                "message": "Provide either city or both lat and lon.",
            },
        )

    service = _weather_service(request)
    result = await service.get_current_weather(query)

    return {
        "success": True,
        "data": result.to_dict(),
        "requestId": request.state.request_id,
    }
