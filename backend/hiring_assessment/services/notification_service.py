"""
Outbound notifications for finished test sessions.

Delivery (email, SMS, messaging) belongs to an external collaborator that
implements ``NotificationDispatcher``. The default dispatcher only writes
structured log entries. Dispatch happens after the session transition has
been committed and never raises into the caller.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

from hiring_assessment.core.graceful_failure import graceful_failure
from hiring_assessment.models import TerminationReason, TestSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionEvent:
    """Summary of a finished session handed to the dispatcher."""

    session_id: str
    candidate_id: int
    candidate_email: Optional[str]
    candidate_name: Optional[str]
    termination_reason: Optional[str]
    percentage: Optional[int]
    grade: Optional[str]
    is_passed: Optional[bool]

    @classmethod
    def from_session(cls, test_session: TestSession) -> "SessionEvent":
        candidate = test_session.candidate
        score = test_session.score or {}
        reason = test_session.termination_reason
        return cls(
            session_id=test_session.session_code,
            candidate_id=test_session.candidate_id,
            candidate_email=candidate.email if candidate else None,
            candidate_name=candidate.full_name if candidate else None,
            termination_reason=reason.value if reason else None,
            percentage=score.get("percentage"),
            grade=score.get("grade"),
            is_passed=test_session.is_passed,
        )


class NotificationDispatcher(Protocol):
    def session_evaluated(self, event: SessionEvent) -> None:
        """Called once a session has been scored."""

    def session_terminated(self, event: SessionEvent) -> None:
        """Called when a session was ended by the system rather than submitted."""


class LoggingNotificationDispatcher:
    """Dispatcher that records notifications in the application log."""

    def session_evaluated(self, event: SessionEvent) -> None:
        logger.info(
            f"Session {event.session_id} evaluated for candidate "
            f"{event.candidate_id}: {event.percentage}% ({event.grade})",
            extra={"event": "session_evaluated", **asdict(event)},
        )

    def session_terminated(self, event: SessionEvent) -> None:
        logger.info(
            f"Session {event.session_id} terminated ({event.termination_reason})",
            extra={"event": "session_terminated", **asdict(event)},
        )


_dispatcher: NotificationDispatcher = LoggingNotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    """Install the dispatcher used for every subsequent notification."""
    global _dispatcher
    _dispatcher = dispatcher


def notify_session_finished(
    test_session: TestSession,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> None:
    """
    Inform the dispatcher about a finished session.

    Failures are logged and swallowed.
    """
    dispatcher = dispatcher or get_dispatcher()
    context = {"session_id": test_session.session_code}

    with graceful_failure("build notification event", logger, context=context):
        event = SessionEvent.from_session(test_session)
        forced = test_session.termination_reason not in (
            None,
            TerminationReason.SUBMITTED,
        )

        if forced:
            with graceful_failure(
                "dispatch termination notification", logger, context=context
            ):
                dispatcher.session_terminated(event)

        if test_session.score is not None:
            with graceful_failure(
                "dispatch evaluation notification", logger, context=context
            ):
                dispatcher.session_evaluated(event)
