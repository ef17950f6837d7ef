"""
Sentry instrumentation for the FastAPI service.
Server-side only. Strips sensitive headers from breadcrumbs.
"""

from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from services.api.config import settings

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie", "x-api-key"}

# Transactions not worth sampling: liveness probes and the index page.
IGNORED_TRANSACTIONS = {"GET /health", "GET /", "/health", "/"}


def _filter_headers(headers: Any) -> None:
    if not isinstance(headers, dict):
        return
    for key in list(headers.keys()):
        if key.lower() in SENSITIVE_HEADERS:
            headers[key] = "[FILTERED]"


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook: strip Authorization headers and cookies from breadcrumbs."""
    if "breadcrumbs" in event:
        for breadcrumb in event["breadcrumbs"].get("values", []):
            data = breadcrumb.get("data", {})
            if isinstance(data, dict):
                _filter_headers(data.get("headers", {}))
    request = event.get("request", {})
    if isinstance(request, dict):
        _filter_headers(request.get("headers", {}))
        # OpenWeatherMap credentials travel as the appid query parameter
        query = request.get("query_string")
        if isinstance(query, str) and "appid=" in query:
            request["query_string"] = "[FILTERED]"
    return event


def _drop_noise_transactions(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send_transaction hook: skip health checks and the index route."""
    if event.get("transaction") in IGNORED_TRANSACTIONS:
        return None
    return event


def setup_sentry() -> bool:
    """Initialise Sentry if a DSN is configured. Returns True when enabled."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        attach_stacktrace=True,
        before_send=_strip_sensitive_data,
        before_send_transaction=_drop_noise_transactions,
        integrations=[
            StarletteIntegration(transaction_style="url"),
            FastApiIntegration(transaction_style="url"),
        ],
        send_default_pii=False,
    )
    return True
