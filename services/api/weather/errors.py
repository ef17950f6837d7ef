"""
Typed upstream failure raised by the OpenWeatherMap client.

The status code is one of a closed set; the HTTP boundary turns it into a
user-facing error via services.api.errors.map_upstream_error.
"""

from __future__ import annotations

BAD_REQUEST = 400
UNAUTHORIZED = 401
NOT_FOUND = 404
RATE_LIMITED = 429
MALFORMED_RESPONSE = 500
UNREACHABLE = 503
TIMED_OUT = 504


class UpstreamError(Exception):
    """Raised when a geocoding or weather call fails."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        detail: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        # Upstream's own message, kept for logs and telemetry only
        self.detail = detail
        self.cause = cause

    def __repr__(self) -> str:
        return f"UpstreamError(status_code={self.status_code}, message={self.message!r})"
