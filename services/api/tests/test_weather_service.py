"""
Tests for WeatherService: geocode -> weather pipeline, caching, shaping.

Coverage targets:
  - end-to-end London lookup, first uncached then cached
  - geocode cache is case/whitespace-insensitive
  - weather cache keyed on 4 dp coordinates + units
  - TTL expiry re-fetches
  - coordinate path skips geocoding; (0, 0) fallback
  - response shaping: unit symbols, ISO timestamps, optional fields omitted
  - UpstreamError propagates unchanged and nothing is cached on failure
"""

from __future__ import annotations

import httpx
import pytest

from services.api.weather import UpstreamError, WeatherQuery, transform_weather_response
from services.api.weather.schemas import WeatherSnapshot
from services.api.weather.service import geo_cache_key, weather_cache_key
from services.api.tests.helpers.fakes import WEATHER_PATH, make_geo_result, make_owm_weather


# ---------------------------------------------------------------------------
# Cache keys
# ---------------------------------------------------------------------------

class TestCacheKeys:
    def test_geo_key_normalised(self):
        assert geo_cache_key("  LONDON ") == "london"
        assert geo_cache_key("London") == geo_cache_key("london")

    def test_weather_key_format(self):
        assert weather_cache_key(51.5074, -0.1278, "metric") == "51.5074,-0.1278,metric"

    def test_weather_key_rounds_to_four_places(self):
        assert weather_cache_key(51.50741, -0.12781, "metric") == weather_cache_key(
            51.50739, -0.12779, "metric"
        )

    def test_weather_key_separates_units(self):
        assert weather_cache_key(1.0, 2.0, "metric") != weather_cache_key(1.0, 2.0, "imperial")

    def test_negative_zero_shares_entry(self):
        assert weather_cache_key(-0.00001, 0.0, "metric") == "0.0000,0.0000,metric"


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------

class TestGetCurrentWeather:
    @pytest.mark.asyncio
    async def test_london_first_call_uncached(self, weather_service, owm):
        result = await weather_service.get_current_weather(WeatherQuery(city="London"))

        assert result.cached is False
        assert result.location.name == "London"
        assert result.location.country == "GB"
        assert result.temperature.current == 15.5
        assert result.temperature.unit == "°C"
        assert result.atmosphere.humidity == 65
        assert result.wind.unit == "m/s"
        assert owm.geo_calls == 1
        assert owm.weather_calls == 1

    @pytest.mark.asyncio
    async def test_london_second_call_cached(self, weather_service, owm):
        await weather_service.get_current_weather(WeatherQuery(city="London"))
        result = await weather_service.get_current_weather(WeatherQuery(city="London"))

        assert result.cached is True
        assert result.temperature.current == 15.5
        assert owm.geo_calls == 1
        assert owm.weather_calls == 1

    @pytest.mark.asyncio
    async def test_city_case_insensitive_single_geocode(self, weather_service, owm):
        await weather_service.get_current_weather(WeatherQuery(city="London"))
        await weather_service.get_current_weather(WeatherQuery(city="  LONDON "))
        await weather_service.get_current_weather(WeatherQuery(city="london"))

        assert owm.geo_calls == 1

    @pytest.mark.asyncio
    async def test_units_cached_separately(self, weather_service, owm):
        metric = await weather_service.get_current_weather(WeatherQuery(city="London"))
        imperial = await weather_service.get_current_weather(
            WeatherQuery(city="London", units="imperial")
        )

        assert owm.weather_calls == 2
        assert owm.geo_calls == 1
        assert metric.cached is False
        assert imperial.cached is False
        assert imperial.temperature.unit == "°F"
        assert imperial.wind.unit == "mph"

    @pytest.mark.asyncio
    async def test_nearby_coordinates_share_entry(self, weather_service, owm):
        first = await weather_service.get_current_weather(WeatherQuery(lat=51.50741, lon=-0.12781))
        second = await weather_service.get_current_weather(WeatherQuery(lat=51.50739, lon=-0.12779))

        assert first.cached is False
        assert second.cached is True
        assert owm.weather_calls == 1

    @pytest.mark.asyncio
    async def test_coordinates_skip_geocoding(self, weather_service, owm):
        await weather_service.get_current_weather(WeatherQuery(lat=35.68, lon=139.69))

        assert owm.geo_calls == 0
        (request,) = owm.calls_to(WEATHER_PATH)
        assert request.url.params["lat"] == "35.68"
        assert request.url.params["lon"] == "139.69"

    @pytest.mark.asyncio
    async def test_city_wins_over_coordinates(self, weather_service, owm):
        await weather_service.get_current_weather(
            WeatherQuery(city="London", lat=35.68, lon=139.69)
        )

        assert owm.geo_calls == 1
        (request,) = owm.calls_to(WEATHER_PATH)
        assert request.url.params["lat"] == "51.5074"

    @pytest.mark.asyncio
    async def test_missing_location_falls_back_to_origin(self, weather_service, owm):
        await weather_service.get_current_weather(WeatherQuery())

        (request,) = owm.calls_to(WEATHER_PATH)
        assert request.url.params["lat"] == "0.0"
        assert request.url.params["lon"] == "0.0"

    @pytest.mark.asyncio
    async def test_lang_forwarded(self, weather_service, owm):
        await weather_service.get_current_weather(WeatherQuery(city="Paris", lang="fr"))

        (request,) = owm.calls_to(WEATHER_PATH)
        assert request.url.params["lang"] == "fr"

    @pytest.mark.asyncio
    async def test_geocoded_coordinates_feed_weather_call(self, weather_service, owm):
        owm.geo = [make_geo_result(name="Tokyo", lat=35.6762, lon=139.6503, country="JP")]

        await weather_service.get_current_weather(WeatherQuery(city="Tokyo"))

        (request,) = owm.calls_to(WEATHER_PATH)
        assert request.url.params["lat"] == "35.6762"
        assert request.url.params["lon"] == "139.6503"


class TestExpiry:
    @pytest.mark.asyncio
    async def test_weather_refetched_after_ttl(self, weather_service, owm, clock):
        await weather_service.get_current_weather(WeatherQuery(city="London"))
        clock.advance(601)
        result = await weather_service.get_current_weather(WeatherQuery(city="London"))

        assert result.cached is False
        assert owm.weather_calls == 2
        assert owm.geo_calls == 2

    @pytest.mark.asyncio
    async def test_still_cached_just_before_ttl(self, weather_service, owm, clock):
        await weather_service.get_current_weather(WeatherQuery(city="London"))
        clock.advance(599)
        result = await weather_service.get_current_weather(WeatherQuery(city="London"))

        assert result.cached is True
        assert owm.weather_calls == 1

    @pytest.mark.asyncio
    async def test_geocode_refetched_after_ttl(self, weather_service, owm, clock):
        await weather_service.geocode_city("London")
        clock.advance(599)
        await weather_service.geocode_city("London")
        assert owm.geo_calls == 1

        clock.advance(1)
        geo = await weather_service.geocode_city("London")

        assert owm.geo_calls == 2
        assert geo.name == "London"
        assert owm.weather_calls == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_unknown_city_propagates_404(self, weather_service, owm):
        owm.geo = []

        with pytest.raises(UpstreamError) as exc_info:
            await weather_service.get_current_weather(WeatherQuery(city="Atlantis"))

        assert exc_info.value.status_code == 404
        assert owm.weather_calls == 0

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, weather_service, owm):
        owm.weather = httpx.Response(503, json={"message": "down"})

        with pytest.raises(UpstreamError):
            await weather_service.get_current_weather(WeatherQuery(city="London"))

        owm.weather = make_owm_weather()
        result = await weather_service.get_current_weather(WeatherQuery(city="London"))

        assert result.cached is False
        assert owm.weather_calls == 2
        # Geocode succeeded the first time and stays cached
        assert owm.geo_calls == 1

    @pytest.mark.asyncio
    async def test_timeout_propagates_504(self, weather_service, owm):
        owm.weather = httpx.ReadTimeout("slow")

        with pytest.raises(UpstreamError) as exc_info:
            await weather_service.get_current_weather(WeatherQuery(lat=1.0, lon=2.0))

        assert exc_info.value.status_code == 504


class TestCacheAdmin:
    @pytest.mark.asyncio
    async def test_stats_and_clear(self, weather_service):
        assert weather_service.cache_stats() == {"weatherEntries": 0, "geoEntries": 0}

        await weather_service.get_current_weather(WeatherQuery(city="London"))
        await weather_service.get_current_weather(WeatherQuery(lat=10.0, lon=10.0))
        assert weather_service.cache_stats() == {"weatherEntries": 2, "geoEntries": 1}

        weather_service.clear_cache()
        assert weather_service.cache_stats() == {"weatherEntries": 0, "geoEntries": 0}

    @pytest.mark.asyncio
    async def test_clear_forces_refetch(self, weather_service, owm):
        await weather_service.get_current_weather(WeatherQuery(city="London"))
        weather_service.clear_cache()
        result = await weather_service.get_current_weather(WeatherQuery(city="London"))

        assert result.cached is False
        assert owm.geo_calls == 2


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------

class TestTransform:
    def _snapshot(self, **overrides) -> WeatherSnapshot:
        return WeatherSnapshot.model_validate(make_owm_weather(**overrides))

    def test_timestamps_are_iso_utc(self):
        result = transform_weather_response(self._snapshot(), "metric", cached=False)

        assert result.timestamp == "2024-01-15T12:00:00Z"
        assert result.location.sunrise == "2024-01-15T08:05:00Z"
        assert result.location.sunset == "2024-01-15T16:10:00Z"

    def test_first_condition_used(self):
        snapshot = self._snapshot(
            weather=[
                {"id": 500, "main": "Rain", "description": "light rain", "icon": "10d"},
                {"id": 701, "main": "Mist", "description": "mist", "icon": "50d"},
            ]
        )
        result = transform_weather_response(snapshot, "metric", cached=False)

        assert result.condition.main == "Rain"
        assert result.condition.icon == "10d"

    def test_precipitation_omitted_when_dry(self):
        data = transform_weather_response(self._snapshot(), "metric", cached=False).to_dict()

        assert "precipitation" not in data

    def test_precipitation_partial_volumes(self):
        snapshot = self._snapshot(rain={"1h": 0.5})
        data = transform_weather_response(snapshot, "metric", cached=False).to_dict()

        assert data["precipitation"] == {"rain": {"1h": 0.5}}

    def test_snow_only(self):
        snapshot = self._snapshot(snow={"3h": 2.0})
        data = transform_weather_response(snapshot, "metric", cached=False).to_dict()

        assert data["precipitation"] == {"snow": {"3h": 2.0}}

    def test_gust_omitted_when_absent(self):
        snapshot = self._snapshot(wind={"speed": 3.0, "deg": 90})
        data = transform_weather_response(snapshot, "metric", cached=False).to_dict()

        assert "gust" not in data["wind"]
        assert data["wind"]["direction"] == 90

    def test_serialised_shape(self):
        data = transform_weather_response(self._snapshot(), "imperial", cached=True).to_dict()

        assert set(data) == {
            "location", "condition", "temperature", "wind", "atmosphere", "timestamp", "cached",
        }
        assert data["location"]["coordinates"] == {"lat": 51.5074, "lon": -0.1278}
        assert data["temperature"]["feels_like"] == 14.9
        assert data["temperature"]["unit"] == "°F"
        assert data["atmosphere"] == {
            "humidity": 65, "pressure": 1013, "visibility": 10000, "cloudiness": 75,
        }
        assert all(type(value) is int for value in data["atmosphere"].values())
        assert data["cached"] is True
