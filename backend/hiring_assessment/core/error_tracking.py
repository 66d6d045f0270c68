"""Sentry error tracking.

Wraps the Sentry SDK so the rest of the application can report errors
without caring whether a DSN is configured. When ``SENTRY_DSN`` is empty
every call is a no-op.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from hiring_assessment.core.config import Settings

logger = logging.getLogger(__name__)


def _serialize_value(value: Any, _seen: set[int] | None = None) -> Any:
    """Serialize a value to a JSON-compatible type.

    Circular references are replaced with a placeholder string.
    """
    if _seen is None:
        _seen = set()

    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if isinstance(value, UUID):
        return str(value)

    value_id = id(value)
    if value_id in _seen:
        return f"<circular reference: {type(value).__name__}>"
    _seen.add(value_id)

    if isinstance(value, dict):
        return {str(k): _serialize_value(v, _seen) for k, v in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [_serialize_value(item, _seen) for item in value]

    return str(value)


def serialize_context(context: dict[str, Any]) -> dict[str, Any]:
    """Serialize a context dict so every value is JSON-compatible."""
    seen: set[int] = set()
    return {key: _serialize_value(value, seen) for key, value in context.items()}


class ErrorTracker:
    """Reports exceptions to Sentry once initialized."""

    def __init__(self) -> None:
        self._initialized = False

    @property
    def enabled(self) -> bool:
        return self._initialized

    def init(self, settings: Settings) -> bool:
        """Initialize the Sentry SDK with FastAPI/Starlette integrations.

        Returns:
            True if Sentry was initialized, False if skipped or failed.
        """
        if not settings.SENTRY_DSN:
            logger.debug("Sentry initialization skipped (DSN not configured)")
            return False

        try:
            sentry_sdk.init(
                dsn=settings.SENTRY_DSN,
                environment=settings.ENV,
                release=settings.APP_VERSION,
                traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
                integrations=[
                    LoggingIntegration(level=None, event_level=None),
                    FastApiIntegration(transaction_style="endpoint"),
                    StarletteIntegration(transaction_style="endpoint"),
                ],
                send_default_pii=False,
            )
        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
            return False

        self._initialized = True
        logger.info(
            f"Sentry initialized for environment '{settings.ENV}' "
            f"with {settings.SENTRY_TRACES_SAMPLE_RATE * 100:.0f}% trace sampling"
        )
        return True

    def capture_error(
        self,
        exception: BaseException,
        *,
        context: dict[str, Any] | None = None,
        tags: dict[str, str] | None = None,
        level: str = "error",
    ) -> str | None:
        """Capture an exception and send it to Sentry.

        Returns:
            Event ID if captured, None if not initialized.
        """
        if not self._initialized:
            return None

        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("additional", serialize_context(context))
            if tags:
                for key, value in tags.items():
                    scope.set_tag(key, value)
            scope.level = level
            return sentry_sdk.capture_exception(exception)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Flush pending events before the process exits."""
        if not self._initialized:
            return
        sentry_sdk.flush(timeout=timeout)


error_tracker = ErrorTracker()
