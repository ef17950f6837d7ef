"""
Weather service package.

OpenWeatherMap geocoding + current weather, with per-process TTL caching.
Geocodes are keyed by city name; weather by rounded coordinates + units.
"""

from services.api.weather.client import OpenWeatherClient
from services.api.weather.errors import UpstreamError
from services.api.weather.models import CurrentWeatherResponse, WeatherQuery
from services.api.weather.service import WeatherService, transform_weather_response

__all__ = [
    "CurrentWeatherResponse",
    "OpenWeatherClient",
    "UpstreamError",
    "WeatherQuery",
    "WeatherService",
    "transform_weather_response",
]
