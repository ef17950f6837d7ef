"""
Telemetry hooks over sentry_sdk.

Every call is a no-op when Sentry was never initialised (no DSN), so these
are safe to call from tests and local dev.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk

logger = logging.getLogger(__name__)


def report_invalid_payload(error: Exception, payload: Any, **context: Any) -> None:
    """Capture an upstream schema-validation failure with the raw payload attached."""
    logger.warning("Upstream payload failed validation (%s): %s", context, error)
    sentry_sdk.capture_exception(
        error,
        extras={"responseData": payload, **context},
    )


def report_warning(message: str, **context: Any) -> None:
    """Capture a warning-level monitoring signal."""
    logger.warning("%s %s", message, context)
    sentry_sdk.capture_message(message, level="warning", extras=context)


def report_exception(error: BaseException, **context: Any) -> None:
    """Capture an unhandled exception with request context."""
    sentry_sdk.capture_exception(error, extras=context)
