"""
Graceful failure utilities.

Context manager for non-critical work that must never block a session
transition: notification dispatch, cohort ranking, error reporting. The
pattern is always the same:
1. Attempt the operation
2. Log any exception with context
3. Continue without raising

Critical failures (scoring, persistence) are not wrapped; they propagate and
roll the transaction back.

Usage:
    from hiring_assessment.core.graceful_failure import graceful_failure

    with graceful_failure("dispatch evaluation notification", logger):
        dispatcher.session_evaluated(event)

    with graceful_failure(
        "compute cohort rank", logger, context={"session_id": code}
    ):
        rank = rank_among(...)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from hiring_assessment.core.error_tracking import error_tracker


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    Unlike the domain exceptions this does NOT:
    - Roll back the database session
    - Produce an HTTP error
    - Stop execution

    Args:
        operation_name: Human-readable name of the operation for logging
            (e.g., "dispatch evaluation notification").
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log.
        context: Optional dictionary of additional context to include in
            the log message (e.g., {"session_id": "TS4KQ9ZP2M7X"}).
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info)

        error_tracker.capture_error(
            e,
            context={"operation": operation_name, **(context or {})},
            tags={"error_type": "GracefulFailure"},
            level="warning",
        )
