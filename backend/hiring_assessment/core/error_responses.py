"""
Standardized error response messages and builders.

Domain exceptions in ``hiring_assessment.core.exceptions`` take their
messages from ``ErrorMessages`` so the same wording reaches API clients,
logs and the sweep script. The ``raise_*`` builders cover the HTTP-only
failures (admin authentication, missing configuration).

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: TS123)"
- Use action-oriented language ("Please wait..." not "You must wait...")

Usage:
    from hiring_assessment.core.error_responses import ErrorMessages, raise_unauthorized

    raise NotFoundError(ErrorMessages.session_not_found("TSABC123"))
    raise_unauthorized(ErrorMessages.ADMIN_TOKEN_INVALID)
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authorization Errors (401/403)
    # ==========================================================================
    ADMIN_TOKEN_INVALID = "Invalid admin token."

    # ==========================================================================
    # Eligibility Errors (403)
    # ==========================================================================
    CANDIDATE_BLOCKED = "Account is temporarily blocked."
    ALREADY_QUALIFIED = "Candidate has already qualified."
    MAX_ATTEMPTS_REACHED = "Maximum attempts reached."

    # ==========================================================================
    # Conflict Errors (409)
    # ==========================================================================
    SESSION_ALREADY_EVALUATED = "Test session has already been submitted."

    # ==========================================================================
    # Configuration Errors (500)
    # ==========================================================================
    ADMIN_TOKEN_NOT_CONFIGURED = "Admin token not configured on server."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def session_not_found(session_id: str) -> str:
        return f"Test session not found (ID: {session_id})."

    @staticmethod
    def candidate_not_found(candidate_id: int) -> str:
        return f"Candidate not found (ID: {candidate_id})."

    @staticmethod
    def question_not_in_session(question_number: int, total_questions: int) -> str:
        """Message when a question number falls outside the session's slots."""
        return (
            f"Question {question_number} does not exist in this session. "
            f"Valid question numbers are 1 to {total_questions}."
        )

    @staticmethod
    def cooldown_active(hours_remaining: int) -> str:
        """Message for when the candidate retries before the cooldown elapsed."""
        return f"Please wait {hours_remaining} hours before next attempt."

    @staticmethod
    def active_session_exists(session_id: str) -> str:
        """Message for when the candidate has an active session blocking a new one.

        Includes session_id so clients can offer "Resume session" functionality.
        """
        return (
            f"Candidate already has an active test session (ID: {session_id}). "
            "Please complete the existing session before starting a new one."
        )

    @staticmethod
    def invalid_transition(operation: str, status: str) -> str:
        """Message when an operation is not allowed in the session's status."""
        return f"Cannot {operation} a test session that is {status}."

    @staticmethod
    def session_time_expired(session_id: str) -> str:
        return (
            f"Time for test session {session_id} has expired. "
            "The session was submitted automatically."
        )

    @staticmethod
    def start_window_elapsed(session_id: str) -> str:
        return (
            f"Test session {session_id} was not started in time and has expired."
        )

    @staticmethod
    def insufficient_questions(requested: int, available: int) -> str:
        """Message when the eligible pool cannot fill a test."""
        return (
            f"Only {available} eligible questions available, but {requested} "
            "are required. Please try again later."
        )

    @staticmethod
    def result_not_available(status: str) -> str:
        return f"Result is not available for a test session that is {status}."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_unauthorized(detail: str) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 401 Unauthorized
    """
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Args:
        detail: Error message describing what's not configured

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
