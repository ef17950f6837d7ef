"""
Upstream error -> client-facing error translation.

The only place UpstreamError turns into user-safe text. Upstream's own
wording never reaches clients; it is kept on UpstreamError.detail for logs.

A 429 additionally raises a warning in Sentry so quota exhaustion shows up
in monitoring. Nothing here retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from starlette.responses import JSONResponse

from services.api import telemetry
from services.api.weather.errors import UpstreamError

logger = logging.getLogger(__name__)

# status -> (envelope code, message)
_EXTERNAL_ERRORS: dict[int, tuple[str, str]] = {
    400: ("BAD_REQUEST", "Invalid request parameters"),
    401: ("INVALID_API_KEY", "Invalid API key"),
    404: ("CITY_NOT_FOUND", "City not found"),
    429: ("RATE_LIMITED", "Rate limit exceeded"),
    500: ("UPSTREAM_INVALID_RESPONSE", "Invalid response from weather provider"),
    503: ("UPSTREAM_UNAVAILABLE", "Weather service unavailable"),
    504: ("UPSTREAM_TIMEOUT", "Weather service timed out"),
}

_FALLBACK_STATUS = 500


@dataclass(frozen=True)
class ExternalError:
    status_code: int
    code: str
    message: str

    def to_content(self, request_id: str) -> dict[str, Any]:
        return {
            "success": False,
            "error": {"code": self.code, "message": self.message},
            "requestId": request_id,
        }

    def to_response(self, request_id: str) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_content(request_id))


def map_upstream_error(error: UpstreamError) -> ExternalError:
    """Translate an UpstreamError into its fixed client-facing form."""
    status = error.status_code if error.status_code in _EXTERNAL_ERRORS else _FALLBACK_STATUS
    code, message = _EXTERNAL_ERRORS[status]

    if status == 429:
        telemetry.report_warning(
            "OpenWeather API rate limit exceeded",
            originalMessage=error.detail or error.message,
        )

    return ExternalError(status_code=status, code=code, message=message)
