"""
WeatherService: two-stage geocode -> current-weather pipeline with caching.

Cache strategy: two independent in-memory stores, both 10 minute TTL.

  geocoding   key: city name, trimmed + lowercased      "london"
  weather     key: lat/lon rounded to 4 dp + units      "51.5074,-0.1278,metric"

Rounding to 4 decimals (~11 m) makes repeat geocodes of the same city land on
the same weather entry despite float jitter. Units are part of the key because
OpenWeatherMap converts server-side.

Only the weather stage's hit/miss is surfaced (CurrentWeatherResponse.cached).
UpstreamError from either stage propagates unchanged; translating it for
clients happens at the HTTP boundary.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from services.api.cache import TTLCache
from services.api.weather.client import OpenWeatherClient
from services.api.weather.models import (
    AtmosphereResponse,
    ConditionResponse,
    Coordinates,
    CurrentWeatherResponse,
    LocationResponse,
    PrecipitationResponse,
    TemperatureResponse,
    VolumeResponse,
    WeatherQuery,
    WindResponse,
)
from services.api.weather.schemas import GeoResult, Volume, WeatherSnapshot

logger = logging.getLogger(__name__)

GEO_CACHE_TTL_SECONDS = 10 * 60
WEATHER_CACHE_TTL_SECONDS = 10 * 60

DEFAULT_LANG = "en"

_UNIT_SYMBOLS = {
    "metric": ("°C", "m/s"),
    "imperial": ("°F", "mph"),
}


def geo_cache_key(city: str) -> str:
    return city.strip().lower()


def weather_cache_key(lat: float, lon: float, units: str) -> str:
    # + 0.0 folds -0.0 into 0.0 so "-0.0000" and "0.0000" share an entry
    return f"{round(lat, 4) + 0.0:.4f},{round(lon, 4) + 0.0:.4f},{units}"


def _epoch_to_iso(seconds: int) -> str:
    """Unix seconds -> ISO-8601 UTC string with a Z suffix."""
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def _volume(volume: Volume | None) -> VolumeResponse | None:
    if volume is None:
        return None
    return VolumeResponse(one_hour=volume.one_hour, three_hours=volume.three_hours)


def transform_weather_response(
    snapshot: WeatherSnapshot,
    units: str,
    cached: bool,
) -> CurrentWeatherResponse:
    """Map a validated OpenWeatherMap payload onto the public response shape."""
    temp_unit, wind_unit = _UNIT_SYMBOLS.get(units, _UNIT_SYMBOLS["metric"])
    condition = snapshot.weather[0]

    precipitation = None
    if snapshot.rain is not None or snapshot.snow is not None:
        precipitation = PrecipitationResponse(
            rain=_volume(snapshot.rain),
            snow=_volume(snapshot.snow),
        )

    return CurrentWeatherResponse(
        location=LocationResponse(
            name=snapshot.name,
            country=snapshot.sys.country,
            coordinates=Coordinates(lat=snapshot.coord.lat, lon=snapshot.coord.lon),
            timezone=snapshot.timezone,
            sunrise=_epoch_to_iso(snapshot.sys.sunrise),
            sunset=_epoch_to_iso(snapshot.sys.sunset),
        ),
        condition=ConditionResponse(
            id=condition.id,
            main=condition.main,
            description=condition.description,
            icon=condition.icon,
        ),
        temperature=TemperatureResponse(
            current=snapshot.main.temp,
            feels_like=snapshot.main.feels_like,
            min=snapshot.main.temp_min,
            max=snapshot.main.temp_max,
            unit=temp_unit,
        ),
        wind=WindResponse(
            speed=snapshot.wind.speed,
            direction=snapshot.wind.deg,
            gust=snapshot.wind.gust,
            unit=wind_unit,
        ),
        atmosphere=AtmosphereResponse(
            humidity=snapshot.main.humidity,
            pressure=snapshot.main.pressure,
            visibility=snapshot.visibility,
            cloudiness=snapshot.clouds.all,
        ),
        precipitation=precipitation,
        timestamp=_epoch_to_iso(snapshot.dt),
        cached=cached,
    )


class WeatherService:
    """
    Orchestrates geocoding, weather fetch and response shaping.

    Usage:
        service = WeatherService(client=OpenWeatherClient(api_key="..."))
        response = await service.get_current_weather(WeatherQuery(city="Tokyo"))
    """

    def __init__(
        self,
        client: OpenWeatherClient,
        geo_cache: TTLCache[GeoResult] | None = None,
        weather_cache: TTLCache[WeatherSnapshot] | None = None,
        *,
        geo_ttl: float = GEO_CACHE_TTL_SECONDS,
        weather_ttl: float = WEATHER_CACHE_TTL_SECONDS,
    ) -> None:
        self._client = client
        self._geo_cache = geo_cache if geo_cache is not None else TTLCache(name="geo")
        self._weather_cache = (
            weather_cache if weather_cache is not None else TTLCache(name="weather")
        )
        self._geo_ttl = geo_ttl
        self._weather_ttl = weather_ttl

    @property
    def client(self) -> OpenWeatherClient:
        return self._client

    async def get_current_weather(self, query: WeatherQuery) -> CurrentWeatherResponse:
        """
        Resolve the query's location, fetch current conditions, normalise.

        A city wins over explicit coordinates. With neither, (0, 0) is used;
        the HTTP layer rejects such queries before they get here.
        """
        lang = query.lang or DEFAULT_LANG

        if query.city:
            geo = await self.geocode_city(query.city)
            lat, lon = geo.lat, geo.lon
        else:
            lat = query.lat if query.lat is not None else 0.0
            lon = query.lon if query.lon is not None else 0.0

        snapshot, cached = await self.fetch_current_weather(lat, lon, query.units, lang)
        return transform_weather_response(snapshot, query.units, cached)

    async def geocode_city(self, city: str) -> GeoResult:
        key = geo_cache_key(city)
        cached = self._geo_cache.get(key)
        if cached is not None:
            return cached

        result = await self._client.resolve_location(city)
        self._geo_cache.put(key, result, self._geo_ttl)
        return result

    async def fetch_current_weather(
        self,
        lat: float,
        lon: float,
        units: str,
        lang: str = DEFAULT_LANG,
    ) -> tuple[WeatherSnapshot, bool]:
        """Return (snapshot, served_from_cache)."""
        key = weather_cache_key(lat, lon, units)
        cached = self._weather_cache.get(key)
        if cached is not None:
            return cached, True

        snapshot = await self._client.fetch_weather(lat, lon, units, lang)
        self._weather_cache.put(key, snapshot, self._weather_ttl)
        return snapshot, False

    def clear_cache(self) -> None:
        """Drop every cached geocode and weather entry."""
        self._weather_cache.clear()
        self._geo_cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return {
            "weatherEntries": self._weather_cache.stats().entry_count,
            "geoEntries": self._geo_cache.stats().entry_count,
        }
