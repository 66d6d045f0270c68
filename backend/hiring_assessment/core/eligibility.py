"""
Eligibility gate for starting a new test session.

Checks run in a fixed priority order and the first failure wins:

1. Account temporarily blocked
2. Candidate already qualified
3. Maximum attempts reached
4. Cooldown since the previous attempt has not elapsed
5. An active (created, started or in-progress) session exists

Whenever an active session exists its ID is returned with the result, even
when an earlier check is the reason for rejection, so clients can offer to
resume it.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from hiring_assessment.core.config import Settings
from hiring_assessment.core.datetime_utils import ensure_timezone_aware
from hiring_assessment.core.error_responses import ErrorMessages
from hiring_assessment.models import ACTIVE_SESSION_STATUSES, Candidate, TestSession


class ReasonCode:
    BLOCKED = "blocked"
    ALREADY_QUALIFIED = "already_qualified"
    MAX_ATTEMPTS = "max_attempts_reached"
    COOLDOWN = "cooldown"
    ACTIVE_SESSION = "active_session_exists"


@dataclass(frozen=True)
class EligibilityPolicy:
    max_attempts: int = 5
    cooldown_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings) -> "EligibilityPolicy":
        return cls(
            max_attempts=settings.MAX_ATTEMPTS,
            cooldown_hours=settings.ATTEMPT_COOLDOWN_HOURS,
        )


@dataclass
class EligibilityResult:
    can_attempt: bool
    reason_code: Optional[str] = None
    reason: Optional[str] = None
    active_session_id: Optional[str] = None


def check_eligibility(
    candidate: Candidate,
    now: datetime,
    policy: EligibilityPolicy,
    active_session_id: Optional[str] = None,
) -> EligibilityResult:
    """
    Decide whether the candidate may start a new session.

    Args:
        candidate: Candidate whose attempt record is evaluated.
        now: Current time (timezone-aware).
        policy: Attempt limit and cooldown.
        active_session_id: Code of the candidate's active session, if any.
    """

    def reject(reason_code: str, reason: str) -> EligibilityResult:
        return EligibilityResult(
            can_attempt=False,
            reason_code=reason_code,
            reason=reason,
            active_session_id=active_session_id,
        )

    if candidate.blocked_until is not None:
        if ensure_timezone_aware(candidate.blocked_until) > now:
            return reject(ReasonCode.BLOCKED, ErrorMessages.CANDIDATE_BLOCKED)

    if candidate.has_qualified:
        return reject(ReasonCode.ALREADY_QUALIFIED, ErrorMessages.ALREADY_QUALIFIED)

    if (candidate.total_attempts or 0) >= policy.max_attempts:
        return reject(ReasonCode.MAX_ATTEMPTS, ErrorMessages.MAX_ATTEMPTS_REACHED)

    if candidate.last_attempt_at is not None and policy.cooldown_hours > 0:
        elapsed = now - ensure_timezone_aware(candidate.last_attempt_at)
        hours_since = elapsed.total_seconds() / 3600
        if hours_since < policy.cooldown_hours:
            hours_remaining = math.ceil(policy.cooldown_hours - hours_since)
            return reject(
                ReasonCode.COOLDOWN, ErrorMessages.cooldown_active(hours_remaining)
            )

    if active_session_id is not None:
        return reject(
            ReasonCode.ACTIVE_SESSION,
            ErrorMessages.active_session_exists(active_session_id),
        )

    return EligibilityResult(can_attempt=True)


def find_active_session(db: Session, candidate_id: int) -> Optional[TestSession]:
    """Most recent session of the candidate that has not reached a terminal status."""
    return (
        db.query(TestSession)
        .filter(
            TestSession.candidate_id == candidate_id,
            TestSession.status.in_(ACTIVE_SESSION_STATUSES),
        )
        .order_by(TestSession.id.desc())
        .first()
    )
