"""
Shared test fixtures for the Weather API test suite.

Provides:
- a fake OpenWeatherMap behind httpx.MockTransport (no network)
- WeatherService / TextGenerationService wired to fresh in-memory caches
- async FastAPI test client with those services injected into app.state
"""

import os
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("OPENWEATHER_API_KEY", "test-owm-key")

from services.api.ai import TextGenerationService  # noqa: E402
from services.api.cache import TTLCache  # noqa: E402
from services.api.tests.helpers.fakes import FakeClock, FakeOpenWeather, FakeTextBackend  # noqa: E402
from services.api.weather import OpenWeatherClient, WeatherService  # noqa: E402


# ---------------------------------------------------------------------------
# Upstream fakes
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def owm() -> FakeOpenWeather:
    """Fake OpenWeatherMap; tweak .geo / .weather per test."""
    return FakeOpenWeather()


@pytest.fixture
async def owm_http(owm):
    async with httpx.AsyncClient(transport=httpx.MockTransport(owm)) as http:
        yield http


@pytest.fixture
def owm_client(owm_http) -> OpenWeatherClient:
    return OpenWeatherClient(api_key="test-owm-key", http_client=owm_http)


@pytest.fixture
def weather_service(owm_client, clock) -> WeatherService:
    return WeatherService(
        client=owm_client,
        geo_cache=TTLCache(name="geo", clock=clock),
        weather_cache=TTLCache(name="weather", clock=clock),
    )


@pytest.fixture
def text_backend() -> FakeTextBackend:
    return FakeTextBackend()


@pytest.fixture
def text_service(text_backend, clock) -> TextGenerationService:
    return TextGenerationService(
        backend=text_backend,
        cache=TTLCache(name="ai", max_entries=500, clock=clock),
    )


# ---------------------------------------------------------------------------
# FastAPI test client
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_redis():
    """In-memory mock Redis client for rate limiter tests."""
    redis = AsyncMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[None, 0, None, None])
    redis.pipeline = MagicMock(return_value=pipe)
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
async def app(weather_service, text_service):
    """The FastAPI app with fake-backed services injected into app.state."""
    from services.api.config import settings
    from services.api.main import app as _app

    _app.state.redis = None
    _app.state.settings = settings
    _app.state.started_at = None
    _app.state.weather_service = weather_service
    _app.state.text_service = text_service
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
