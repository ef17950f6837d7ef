"""
Application configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # App
    app_name: str = "weather-api"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:5173"])

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.2, ge=0.0, le=1.0)

    # Rate Limiting
    # Redis is optional: without it the limiter lets every request through.
    redis_url: str = ""
    rate_limit_requests: int = 25
    rate_limit_window_s: int = 180

    # Weather (OpenWeatherMap)
    # 10 minute cache matches OpenWeatherMap's own update cadence.
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_geo_base_url: str = "https://api.openweathermap.org/geo/1.0"
    upstream_timeout_s: float = 5.0
    weather_cache_ttl_s: int = 600
    geo_cache_ttl_s: int = 600

    # AI text generation
    ai_backend: str = Field(default="anthropic", pattern=r"^(anthropic|ollama)$")
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-haiku-4-5-20251001"
    anthropic_base_url: str = "https://api.anthropic.com"
    ai_max_tokens: int = 1024
    ollama_host: str = ""
    ollama_model: str = ""
    ai_timeout_s: float = 60.0
    ai_cache_ttl_s: int = 1800
    ai_cache_max_entries: int = 500

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
