"""
Weather API FastAPI service: current weather by city or coordinates, plus AI text.

Entrypoint: uvicorn services.api.main:app --host 0.0.0.0 --port 3000
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from services.api import telemetry
from services.api.ai import TextGenerationService, build_text_backend
from services.api.cache import TTLCache
from services.api.config import settings
from services.api.errors import map_upstream_error
from services.api.middleware.cors import setup_cors
from services.api.middleware.rate_limit import RateLimitMiddleware
from services.api.middleware.sentry import setup_sentry
from services.api.routers import ai, health, weather
from services.api.weather import OpenWeatherClient, UpstreamError, WeatherService

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Shared redis reference: set during lifespan, read by rate limiter
_redis_holder: dict = {"client": None}


def build_services(http_client: httpx.AsyncClient) -> tuple[WeatherService, TextGenerationService]:
    """Construct the per-process services and their caches from settings."""
    weather_service = WeatherService(
        client=OpenWeatherClient(
            api_key=settings.openweather_api_key,
            http_client=http_client,
            base_url=settings.openweather_base_url,
            geo_base_url=settings.openweather_geo_base_url,
            timeout=settings.upstream_timeout_s,
        ),
        geo_cache=TTLCache(name="geo"),
        weather_cache=TTLCache(name="weather"),
        geo_ttl=settings.geo_cache_ttl_s,
        weather_ttl=settings.weather_cache_ttl_s,
    )
    text_service = TextGenerationService(
        backend=build_text_backend(settings, http_client=http_client),
        cache=TTLCache(name="ai", max_entries=settings.ai_cache_max_entries),
        ttl=settings.ai_cache_ttl_s,
    )
    return weather_service, text_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    if setup_sentry():
        logger.info("Sentry initialised (%s)", settings.environment)
    else:
        logger.warning("SENTRY_DSN not set; error tracking disabled")

    # Redis for rate limiting
    redis_client = None
    if settings.redis_url:
        try:
            redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            await redis_client.ping()
        except Exception as e:
            # Rate limiting degrades gracefully: requests pass through
            logger.warning(f"Redis unavailable, rate limiting disabled: {e}")
            redis_client = None

    _redis_holder["client"] = redis_client
    app.state.redis = redis_client
    app.state.settings = settings
    app.state.started_at = time.monotonic()

    # One connection pool shared by every upstream call
    http_client = httpx.AsyncClient()
    weather_service, text_service = build_services(http_client)
    app.state.weather_service = weather_service
    app.state.text_service = text_service

    if not settings.openweather_api_key:
        logger.warning("OPENWEATHER_API_KEY not set; /weather requests will fail")

    yield

    await text_service.backend.close()
    await http_client.aclose()
    if redis_client:
        await redis_client.aclose()


app = FastAPI(
    title="Weather API",
    version=settings.app_version,
    description="Current weather data for cities worldwide, powered by OpenWeatherMap.",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# -- Routers --

app.include_router(health.router)
app.include_router(weather.router)
app.include_router(ai.router)


@app.get("/", tags=["meta"])
async def index() -> dict:
    return {
        "name": "Weather API",
        "version": settings.app_version,
        "description": "A RESTful API for weather data powered by OpenWeatherMap",
        "endpoints": {
            "health": "/health",
            "currentWeather": "/weather/current",
            "aiText": "/ai/text",
        },
    }


# -- Middleware (order matters: last added = outermost in Starlette) --

# Rate limiting: uses lazy redis reference from lifespan
class _LazyRateLimitMiddleware(RateLimitMiddleware):
    """Rate limiter that picks up Redis client after lifespan init."""

    def __init__(self, app):
        super().__init__(app, redis_client=None)

    async def dispatch(self, request, call_next):
        self.redis = _redis_holder.get("client")
        return await super().dispatch(request, call_next)


app.add_middleware(_LazyRateLimitMiddleware)


# Request ID injection
@app.middleware("http")
async def request_envelope_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# CORS (outermost so preflight never hits the limiter)
setup_cors(app)


# -- Exception Handlers --

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_response(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    request_id = _request_id(request)
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message},
            "requestId": request_id,
        },
        headers={"X-Request-ID": request_id},
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    external = map_upstream_error(exc)
    logger.info(
        "Upstream error %d -> %d on %s: %s",
        exc.status_code, external.status_code, request.url.path, exc.message,
    )
    request_id = _request_id(request)
    response = external.to_response(request_id)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        code = exc.detail.get("code", "HTTP_ERROR")
        message = exc.detail.get("message", "Request failed.")
    elif exc.status_code == 404:
        code, message = "NOT_FOUND", "Resource not found."
    elif exc.status_code == 405:
        code, message = "METHOD_NOT_ALLOWED", "Method not allowed."
    else:
        code, message = "HTTP_ERROR", str(exc.detail)
    return _error_response(request, exc.status_code, code, message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("query", "body"))
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "")
    else:
        message = "Validation error."
    return _error_response(request, 400, "VALIDATION_ERROR", message or "Validation error.")


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    telemetry.report_exception(
        exc,
        path=request.url.path,
        method=request.method,
        query=dict(request.query_params),
    )
    return _error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")
