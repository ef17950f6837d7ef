"""
Inbound query and outbound response models for current weather.

The response is the normalised, unit-aware shape served at
GET /weather/current. Optional fields that are None are left out of the
serialised JSON entirely (see CurrentWeatherResponse.to_dict).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Units = Literal["metric", "imperial"]


class WeatherQuery(BaseModel):
    city: str | None = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="City name (e.g. 'London', 'New York', 'Tokyo')",
    )
    lat: float | None = Field(default=None, ge=-90, le=90, description="Latitude")
    lon: float | None = Field(default=None, ge=-180, le=180, description="Longitude")
    units: Units = Field(
        default="metric",
        description="'metric' (Celsius, m/s) or 'imperial' (Fahrenheit, mph)",
    )
    lang: str = Field(
        default="en",
        min_length=2,
        max_length=2,
        description="Language code for condition descriptions (e.g. 'en', 'es', 'fr')",
    )

    @field_validator("city")
    @classmethod
    def strip_city(cls, v: str | None) -> str | None:
        if v is None:
            return None
        stripped = v.strip()
        if not stripped:
            raise ValueError("city must not be empty or whitespace-only")
        return stripped

    @property
    def has_location(self) -> bool:
        return self.city is not None or (self.lat is not None and self.lon is not None)


class _Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Coordinates(_Response):
    lat: float
    lon: float


class LocationResponse(_Response):
    name: str
    country: str
    coordinates: Coordinates
    timezone: int = Field(description="Offset from UTC in seconds")
    sunrise: str
    sunset: str


class ConditionResponse(_Response):
    id: int
    main: str
    description: str
    icon: str


class TemperatureResponse(_Response):
    current: float
    feels_like: float
    min: float
    max: float
    unit: Literal["°C", "°F"]


class WindResponse(_Response):
    speed: float
    direction: float
    gust: float | None = None
    unit: Literal["m/s", "mph"]


class AtmosphereResponse(_Response):
    humidity: int = Field(description="Percent")
    pressure: int = Field(description="hPa")
    visibility: int = Field(description="Metres, capped at 10000 upstream")
    cloudiness: int = Field(description="Percent")


class VolumeResponse(_Response):
    one_hour: float | None = Field(default=None, alias="1h")
    three_hours: float | None = Field(default=None, alias="3h")


class PrecipitationResponse(_Response):
    rain: VolumeResponse | None = None
    snow: VolumeResponse | None = None


class CurrentWeatherResponse(_Response):
    location: LocationResponse
    condition: ConditionResponse
    temperature: TemperatureResponse
    wind: WindResponse
    atmosphere: AtmosphereResponse
    precipitation: PrecipitationResponse | None = None
    timestamp: str
    cached: bool

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
