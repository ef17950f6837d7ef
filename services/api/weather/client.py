"""
OpenWeatherMap HTTP client.

Two calls, each bounded by a 5 second timeout and never retried:

  resolve_location(city)                  GET /geo/1.0/direct?q=..&limit=1
  fetch_weather(lat, lon, units, lang)    GET /data/2.5/weather?lat=..&lon=..

This is the only place raw failures are classified into UpstreamError:

  httpx timeout                 -> 504
  other transport failure       -> 503  (DNS, refused connection, TLS)
  401 / 404 / 429 from upstream -> same code, fixed message
  other 4xx                     -> 400
  5xx / other non-2xx           -> 503
  payload fails validation      -> 500  (reported to Sentry with the raw payload)
  empty geocoding result        -> 404
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from services.api import telemetry
from services.api.weather.errors import (
    BAD_REQUEST,
    MALFORMED_RESPONSE,
    NOT_FOUND,
    RATE_LIMITED,
    TIMED_OUT,
    UNAUTHORIZED,
    UNREACHABLE,
    UpstreamError,
)
from services.api.weather.schemas import GEO_RESULTS, GeoResult, WeatherSnapshot

logger = logging.getLogger(__name__)

OWM_BASE_URL = "https://api.openweathermap.org/data/2.5"
OWM_GEO_BASE_URL = "https://api.openweathermap.org/geo/1.0"

UPSTREAM_TIMEOUT_S = 5.0

_FIXED_MESSAGES = {
    UNAUTHORIZED: "Invalid API key",
    NOT_FOUND: "City not found",
    RATE_LIMITED: "Rate limit exceeded",
}


class OpenWeatherClient:
    """
    Thin async client over a shared httpx.AsyncClient.

    Usage:
        client = OpenWeatherClient(api_key="...", http_client=httpx.AsyncClient())
        geo = await client.resolve_location("London")
        snapshot = await client.fetch_weather(geo.lat, geo.lon, "metric", "en")
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = OWM_BASE_URL,
        geo_base_url: str = OWM_GEO_BASE_URL,
        timeout: float = UPSTREAM_TIMEOUT_S,
    ) -> None:
        """
        Args:
            api_key:      OpenWeatherMap API key (OPENWEATHER_API_KEY env var).
            http_client:  Shared client; one is created (and owned) if omitted.
            base_url:     Current-weather API root.
            geo_base_url: Geocoding API root.
            timeout:      Per-call budget in seconds.
        """
        self._api_key = api_key
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._base_url = base_url.rstrip("/")
        self._geo_base_url = geo_base_url.rstrip("/")
        self._timeout = timeout

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Public calls
    # ------------------------------------------------------------------

    async def resolve_location(self, city: str) -> GeoResult:
        """Geocode a city name to its best match. Raises UpstreamError."""
        context = {"city": city}
        payload = await self._get_json(
            f"{self._geo_base_url}/direct",
            params={"q": city, "limit": 1, "appid": self._api_key},
            context=context,
            invalid_message="Invalid response from geocoding API",
        )

        try:
            results = GEO_RESULTS.validate_python(payload)
        except ValidationError as exc:
            telemetry.report_invalid_payload(exc, payload, **context)
            raise UpstreamError(
                MALFORMED_RESPONSE, "Invalid response from geocoding API", cause=exc
            ) from exc

        if not results:
            raise UpstreamError(NOT_FOUND, f"City not found: {city}")
        return results[0]

    async def fetch_weather(
        self,
        lat: float,
        lon: float,
        units: str,
        lang: str,
    ) -> WeatherSnapshot:
        """Fetch current conditions for a coordinate pair. Raises UpstreamError."""
        context = {"lat": lat, "lon": lon, "units": units, "lang": lang}
        payload = await self._get_json(
            f"{self._base_url}/weather",
            params={
                "lat": lat,
                "lon": lon,
                "units": units,
                "lang": lang,
                "appid": self._api_key,
            },
            context=context,
            invalid_message="Invalid response from weather API",
        )

        try:
            return WeatherSnapshot.model_validate(payload)
        except ValidationError as exc:
            telemetry.report_invalid_payload(exc, payload, **context)
            raise UpstreamError(
                MALFORMED_RESPONSE, "Invalid response from weather API", cause=exc
            ) from exc

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get_json(
        self,
        url: str,
        *,
        params: dict[str, Any],
        context: dict[str, Any],
        invalid_message: str,
    ) -> Any:
        try:
            response = await self._http.get(url, params=params, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            logger.warning("OpenWeatherMap timed out after %.1fs: %s", self._timeout, context)
            raise UpstreamError(
                TIMED_OUT,
                "Request timeout - OpenWeather API did not respond in time",
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "OpenWeatherMap request failed (%s): %s", type(exc).__name__, context
            )
            raise UpstreamError(
                UNREACHABLE, "Failed to connect to OpenWeather API", cause=exc
            ) from exc

        if not response.is_success:
            raise self._classify_error(response, context)

        try:
            return response.json()
        except ValueError as exc:
            telemetry.report_invalid_payload(exc, response.text[:500], **context)
            raise UpstreamError(MALFORMED_RESPONSE, invalid_message, cause=exc) from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull {message} out of an error body; never raises."""
        try:
            body = response.json()
        except ValueError:
            return "Unknown error"
        message = body.get("message") if isinstance(body, dict) else None
        if not isinstance(message, str) or not message.strip():
            return "Unknown error"
        return message

    def _classify_error(self, response: httpx.Response, context: dict[str, Any]) -> UpstreamError:
        status = response.status_code
        upstream_message = self._error_message(response)
        logger.warning(
            "OpenWeatherMap returned %d for %s: %s", status, context, upstream_message[:200]
        )

        if status in _FIXED_MESSAGES:
            return UpstreamError(status, _FIXED_MESSAGES[status], detail=upstream_message)
        if 400 <= status < 500:
            return UpstreamError(BAD_REQUEST, upstream_message, detail=upstream_message)
        return UpstreamError(UNREACHABLE, "OpenWeather API error", detail=upstream_message)
