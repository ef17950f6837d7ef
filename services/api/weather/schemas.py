"""
Pydantic shapes for OpenWeatherMap payloads.

Validated at the client boundary; anything that does not fit is reported and
rejected rather than patched up.

Endpoints:
  /geo/1.0/direct      -> list[GeoResult]
  /data/2.5/weather    -> WeatherSnapshot
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Upstream(BaseModel):
    # Unknown upstream fields are ignored.
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class GeoResult(_Upstream):
    name: str
    lat: float
    lon: float
    country_code: str = Field(alias="country")
    state: str | None = None
    local_names: dict[str, str] | None = None


GEO_RESULTS = TypeAdapter(list[GeoResult])


class Coord(_Upstream):
    lat: float
    lon: float


class WeatherCondition(_Upstream):
    id: int
    main: str
    description: str
    icon: str


class MainWeather(_Upstream):
    temp: float
    feels_like: float
    temp_min: float
    temp_max: float
    pressure: int
    humidity: int
    sea_level: int | None = None
    grnd_level: int | None = None


class Wind(_Upstream):
    speed: float
    deg: float
    gust: float | None = None


class Clouds(_Upstream):
    all: int


class Volume(_Upstream):
    """Rain or snow volume in mm."""

    one_hour: float | None = Field(default=None, alias="1h")
    three_hours: float | None = Field(default=None, alias="3h")


class Sys(_Upstream):
    country: str
    sunrise: int
    sunset: int


class WeatherSnapshot(_Upstream):
    coord: Coord
    weather: list[WeatherCondition] = Field(min_length=1)
    main: MainWeather
    visibility: int
    wind: Wind
    clouds: Clouds
    rain: Volume | None = None
    snow: Volume | None = None
    dt: int
    sys: Sys
    timezone: int
    name: str
