"""
Domain exceptions raised by the assessment core.

Each exception carries the HTTP status and a stable machine-readable
``error_code`` used by the API exception handler, so core modules stay free
of FastAPI imports and can be reused by scripts.
"""
from typing import Any, Dict, Optional

from fastapi import status


class AssessmentError(Exception):
    """Base class for every error the assessment core raises on purpose."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "assessment-error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON body returned to API clients."""
        return {"detail": self.message, "error_code": self.error_code}


class NotFoundError(AssessmentError):
    """A session, candidate or question slot does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not-found"


class EligibilityError(AssessmentError):
    """The candidate may not start a new session right now."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ineligible"

    def __init__(
        self,
        message: str,
        reason_code: str,
        active_session_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason_code = reason_code
        self.active_session_id = active_session_id

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["reason_code"] = self.reason_code
        payload["active_session_id"] = self.active_session_id
        return payload


class InsufficientQuestionPoolError(AssessmentError):
    """The eligible pool cannot fill the requested number of questions."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "insufficient-question-pool"

    def __init__(self, message: str, requested: int, available: int):
        super().__init__(message)
        self.requested = requested
        self.available = available

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["requested"] = self.requested
        payload["available"] = self.available
        return payload


class InvalidStateError(AssessmentError):
    """The operation is not allowed in the session's current status."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "invalid-session-state"

    def __init__(self, message: str, current_status: str):
        super().__init__(message)
        self.current_status = current_status

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["status"] = self.current_status
        return payload


class SessionExpiredError(AssessmentError):
    """
    The session's time ran out before the request arrived.

    By the time this is raised the session has already been force-submitted
    and evaluated, so clients should fetch the result.
    """

    status_code = status.HTTP_409_CONFLICT
    error_code = "session-expired"

    def __init__(self, message: str, session_id: str):
        super().__init__(message)
        self.session_id = session_id

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["session_id"] = self.session_id
        return payload
