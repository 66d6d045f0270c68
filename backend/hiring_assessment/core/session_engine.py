"""
Test session state machine.

    created -> started -> in_progress -> completed -> evaluated
       |                      |
       +-> expired            +-> (forced submit on timeout or violations)
       +-> cancelled

Every public operation owns its transaction: it loads the session under a
per-session lock (plus a row lock where the database supports it), applies
the transition, commits and only then dispatches notifications.

Time is enforced lazily. Each mutating call first checks the server-side
deadline; an overdue session is force-submitted, the termination is
committed, and the call fails with ``SessionExpiredError``. The optional
sweep (``sweep_expired_sessions``) applies the same rule to sessions nobody
is touching.

Scoring happens exactly once per session. The score is computed from frozen
slot snapshots before anything is written, so a scoring failure rolls the
transaction back and leaves the session in progress.
"""
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from hiring_assessment.core import proctoring
from hiring_assessment.core.config import Settings, settings
from hiring_assessment.core.datetime_utils import ensure_timezone_aware
from hiring_assessment.core.eligibility import (
    EligibilityPolicy,
    check_eligibility,
    find_active_session,
)
from hiring_assessment.core.error_responses import ErrorMessages
from hiring_assessment.core.exceptions import (
    EligibilityError,
    InvalidStateError,
    NotFoundError,
    SessionExpiredError,
)
from hiring_assessment.core.graceful_failure import graceful_failure
from hiring_assessment.core.question_selection import (
    load_eligible_pool,
    seen_question_ids,
    select_questions,
)
from hiring_assessment.core.scoring import (
    SessionScore,
    SlotSnapshot,
    compute_time_analytics,
    score_slots,
)
from hiring_assessment.core.session_locks import candidate_locks, session_locks
from hiring_assessment.core.statistics import cohort_position
from hiring_assessment.models import (
    ACTIVE_SESSION_STATUSES,
    Candidate,
    QuestionSlot,
    SessionStatus,
    TerminationReason,
    TestSession,
)
from hiring_assessment.models.models import generate_session_code
from hiring_assessment.services.notification_service import (
    NotificationDispatcher,
    notify_session_finished,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    """Test configuration snapshotted onto each new session."""

    total_questions: int = 30
    duration_minutes: int = 30
    difficulty_distribution: dict = field(
        default_factory=lambda: {"easy": 30, "moderate": 30, "hard": 40}
    )
    passing_percentage: int = 65
    negative_marking: bool = True
    violation_threshold: int = 3
    critical_violation_limit: int = 2
    categories: tuple = ()
    exclude_seen_questions: bool = False
    start_window_hours: int = 24

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "SessionConfig":
        return cls(
            total_questions=app_settings.TEST_TOTAL_QUESTIONS,
            duration_minutes=app_settings.TEST_DURATION_MINUTES,
            difficulty_distribution=dict(app_settings.TEST_DIFFICULTY_DISTRIBUTION),
            passing_percentage=app_settings.TEST_PASSING_PERCENTAGE,
            negative_marking=app_settings.TEST_NEGATIVE_MARKING,
            violation_threshold=app_settings.VIOLATION_THRESHOLD,
            critical_violation_limit=app_settings.CRITICAL_VIOLATION_LIMIT,
            categories=tuple(app_settings.TEST_CATEGORIES),
            exclude_seen_questions=app_settings.EXCLUDE_SEEN_QUESTIONS,
            start_window_hours=app_settings.SESSION_START_WINDOW_HOURS,
        )


@dataclass
class AnswerReceipt:
    question_number: int
    remaining_seconds: int


@dataclass
class ViolationReceipt:
    decision: proctoring.ViolationDecision
    session_completed: bool


@dataclass
class SessionStatusView:
    session_id: str
    status: SessionStatus
    remaining_seconds: int
    answered_count: int
    flagged_count: int
    total_questions: int
    termination_reason: Optional[TerminationReason] = None


@dataclass
class SweepResult:
    evaluated: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


# =============================================================================
# Clock arithmetic
# =============================================================================


def deadline_of(test_session: TestSession) -> Optional[datetime]:
    """Server-side deadline of a begun session, None before begin."""
    if test_session.started_at is None:
        return None
    started_at = ensure_timezone_aware(test_session.started_at)
    return started_at + timedelta(minutes=test_session.duration_minutes)


def is_time_expired(test_session: TestSession, now: datetime) -> bool:
    deadline = deadline_of(test_session)
    return deadline is not None and now > deadline


def remaining_seconds(test_session: TestSession, now: datetime) -> int:
    """Seconds left on the clock, derived from the server's start time."""
    if test_session.status in (SessionStatus.CREATED, SessionStatus.STARTED):
        return test_session.duration_minutes * 60
    if test_session.status != SessionStatus.IN_PROGRESS:
        return 0
    deadline = deadline_of(test_session)
    return max(0, int((deadline - now).total_seconds()))


def _start_window_elapsed(test_session: TestSession, now: datetime) -> bool:
    return (
        test_session.status == SessionStatus.CREATED
        and now > ensure_timezone_aware(test_session.valid_until)
    )


def is_overdue(test_session: TestSession, now: datetime) -> bool:
    """True when the next call touching the session would settle it."""
    if test_session.status == SessionStatus.IN_PROGRESS:
        return is_time_expired(test_session, now)
    return _start_window_elapsed(test_session, now)


# =============================================================================
# Loading and guards
# =============================================================================


def get_session(db: Session, session_id: str, for_update: bool = False) -> TestSession:
    """
    Load a session by its public code or raise NotFoundError.

    With ``for_update`` the row is locked and re-read even when the object is
    already in ``db``; a copy loaded before the caller took the session lock
    may have been settled by another request since.
    """
    query = db.query(TestSession).filter(TestSession.session_code == session_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    test_session = query.first()
    if test_session is None:
        raise NotFoundError(ErrorMessages.session_not_found(session_id))
    return test_session


def _get_slot(test_session: TestSession, question_number: int) -> QuestionSlot:
    for slot in test_session.slots:
        if slot.question_number == question_number:
            return slot
    raise NotFoundError(
        ErrorMessages.question_not_in_session(
            question_number, test_session.total_questions
        )
    )


def _require_in_progress(
    db: Session, test_session: TestSession, now: datetime, operation: str
) -> None:
    """
    Guard for operations that need a running clock.

    An overdue session is force-submitted and committed before
    SessionExpiredError is raised.
    """
    if test_session.status == SessionStatus.IN_PROGRESS:
        if is_time_expired(test_session, now):
            _finalize(db, test_session, now, TerminationReason.TIME_EXPIRED)
            db.commit()
            notify_session_finished(test_session)
            raise SessionExpiredError(
                ErrorMessages.session_time_expired(test_session.session_code),
                session_id=test_session.session_code,
            )
        return

    if (
        test_session.status == SessionStatus.EVALUATED
        and test_session.termination_reason == TerminationReason.TIME_EXPIRED
    ):
        raise SessionExpiredError(
            ErrorMessages.session_time_expired(test_session.session_code),
            session_id=test_session.session_code,
        )

    raise InvalidStateError(
        ErrorMessages.invalid_transition(operation, test_session.status.value),
        current_status=test_session.status.value,
    )


def _append_attempt_event(
    test_session: TestSession, question_number: int, action: str, now: datetime
) -> None:
    # Reassign so SQLAlchemy detects the change to the JSON column
    test_session.attempt_pattern = [
        *(test_session.attempt_pattern or []),
        {
            "question_number": question_number,
            "action": action,
            "timestamp": now.isoformat(),
        },
    ]


# =============================================================================
# Finalization
# =============================================================================


def snapshot_slot(slot: QuestionSlot) -> SlotSnapshot:
    return SlotSnapshot(
        question_number=slot.question_number,
        question_type=slot.question_type.value,
        category=slot.category,
        difficulty=slot.difficulty.value,
        correct_answer=slot.correct_answer,
        points=slot.points,
        negative_points=slot.negative_points,
        options=slot.options,
        selected_answer=slot.selected_answer,
        is_answered=bool(slot.is_answered),
        time_spent_seconds=slot.time_spent_seconds or 0,
    )


def _rank_session(db: Session, test_session: TestSession, score: SessionScore) -> None:
    with graceful_failure(
        "rank session among evaluated sessions",
        logger,
        context={"session_id": test_session.session_code},
    ):
        test_session.rank, test_session.percentile = cohort_position(
            db, score.percentage
        )


def _finalize(
    db: Session,
    test_session: TestSession,
    now: datetime,
    reason: TerminationReason,
) -> SessionScore:
    """
    Score an in-progress session and move it to evaluated.

    The caller commits. Nothing is written if scoring raises.
    """
    snapshots = [snapshot_slot(slot) for slot in test_session.slots]
    score = score_slots(
        snapshots,
        negative_marking=test_session.negative_marking,
        passing_percentage=test_session.passing_percentage,
    )
    analytics = compute_time_analytics(snapshots)

    if reason == TerminationReason.TIME_EXPIRED:
        ended_at = deadline_of(test_session)
    else:
        ended_at = now
    started_at = ensure_timezone_aware(test_session.started_at)

    test_session.status = SessionStatus.COMPLETED
    test_session.termination_reason = reason
    test_session.ended_at = ended_at
    test_session.submitted_at = now
    test_session.actual_duration_seconds = max(
        0, int((ended_at - started_at).total_seconds())
    )

    outcomes = {o.question_number: o for o in score.outcomes}
    for slot in test_session.slots:
        outcome = outcomes[slot.question_number]
        slot.is_correct = outcome.is_correct
        slot.points_earned = outcome.points_earned

    test_session.score = score.to_dict()
    test_session.percentage = score.percentage
    test_session.is_passed = score.is_passed
    test_session.analytics = analytics
    _rank_session(db, test_session, score)
    test_session.status = SessionStatus.EVALUATED

    candidate = test_session.candidate
    if candidate.best_score is None or score.percentage > candidate.best_score:
        candidate.best_score = score.percentage
    if score.is_passed and not candidate.has_qualified:
        candidate.has_qualified = True
        candidate.qualified_at = now

    logger.info(
        f"Session {test_session.session_code} evaluated ({reason.value}): "
        f"{score.percentage}% {score.grade}, passed={score.is_passed}",
        extra={
            "session_id": test_session.session_code,
            "candidate_id": test_session.candidate_id,
        },
    )
    return score


def _expire_unstarted(test_session: TestSession, now: datetime) -> None:
    test_session.status = SessionStatus.EXPIRED
    test_session.termination_reason = TerminationReason.START_WINDOW_ELAPSED
    test_session.ended_at = now
    logger.info(f"Session {test_session.session_code} expired before it was begun")


def _settle_if_stale(db: Session, test_session: TestSession, now: datetime) -> bool:
    """
    Apply an overdue deadline without failing the caller.

    Returns True if the session changed status.
    """
    if test_session.status == SessionStatus.IN_PROGRESS and is_time_expired(
        test_session, now
    ):
        _finalize(db, test_session, now, TerminationReason.TIME_EXPIRED)
        return True
    if _start_window_elapsed(test_session, now):
        _expire_unstarted(test_session, now)
        return True
    return False


# =============================================================================
# Operations
# =============================================================================


def create_session(
    db: Session,
    candidate_id: int,
    now: datetime,
    config: Optional[SessionConfig] = None,
    policy: Optional[EligibilityPolicy] = None,
    rng: Optional[random.Random] = None,
) -> TestSession:
    """
    Issue a new session to a candidate.

    Runs the eligibility gate, selects and freezes the questions, and
    consumes one attempt. Nothing is written when eligibility or question
    selection fails.

    Raises:
        NotFoundError: Unknown candidate.
        EligibilityError: The gate rejected the candidate.
        InsufficientQuestionPoolError: Not enough eligible questions.
    """
    config = config or SessionConfig.from_settings(settings)
    policy = policy or EligibilityPolicy.from_settings(settings)

    with candidate_locks.hold(candidate_id):
        try:
            active = find_active_session(db, candidate_id)
            if active is not None:
                with session_locks.hold(active.session_code):
                    active = get_session(db, active.session_code, for_update=True)
                    settled = _settle_if_stale(db, active, now)
                    if settled:
                        db.commit()
                if settled:
                    notify_session_finished(active)
                if active.status not in ACTIVE_SESSION_STATUSES:
                    active = None

            # Read after settling: a finished session updates the best score
            candidate = (
                db.query(Candidate)
                .filter(Candidate.id == candidate_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if candidate is None:
                raise NotFoundError(ErrorMessages.candidate_not_found(candidate_id))

            result = check_eligibility(
                candidate,
                now,
                policy,
                active_session_id=active.session_code if active else None,
            )
            if not result.can_attempt:
                raise EligibilityError(
                    result.reason,
                    reason_code=result.reason_code,
                    active_session_id=result.active_session_id,
                )

            pool = load_eligible_pool(db, config.categories)
            exclude = (
                seen_question_ids(db, candidate_id)
                if config.exclude_seen_questions
                else set()
            )
            selection = select_questions(
                config.total_questions,
                config.difficulty_distribution,
                pool,
                exclude_ids=exclude,
                rng=rng,
            )

            previous_attempts = candidate.total_attempts or 0
            test_session = TestSession(
                session_code=generate_session_code(),
                candidate_id=candidate.id,
                total_questions=config.total_questions,
                duration_minutes=config.duration_minutes,
                difficulty_distribution=dict(config.difficulty_distribution),
                passing_percentage=config.passing_percentage,
                negative_marking=config.negative_marking,
                violation_threshold=config.violation_threshold,
                critical_violation_limit=config.critical_violation_limit,
                composition_metadata=selection.metadata,
                created_at=now,
                valid_until=now + timedelta(hours=config.start_window_hours),
                status=SessionStatus.CREATED,
                critical_violations=0,
                major_violations=0,
                minor_violations=0,
                attempt_pattern=[],
                attempt_number=previous_attempts + 1,
                is_retake=previous_attempts > 0,
                previous_best_score=candidate.best_score,
            )
            test_session.slots = [
                QuestionSlot(
                    question_number=number,
                    source_question_id=question.id,
                    question_text=question.question_text,
                    question_type=question.question_type,
                    category=question.category,
                    difficulty=question.difficulty,
                    options=list(question.options) if question.options else None,
                    correct_answer=question.correct_answer,
                    points=question.points,
                    negative_points=question.negative_points,
                    time_spent_seconds=0,
                    is_answered=False,
                    flagged_for_review=False,
                )
                for number, question in enumerate(selection.questions, start=1)
            ]

            candidate.total_attempts = previous_attempts + 1
            candidate.last_attempt_at = now

            db.add(test_session)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(test_session)
    logger.info(
        f"Created session {test_session.session_code} for candidate {candidate_id} "
        f"(attempt {test_session.attempt_number})",
        extra={"session_id": test_session.session_code, "candidate_id": candidate_id},
    )
    return test_session


def begin_session(db: Session, session_id: str, now: datetime) -> TestSession:
    """
    Start the clock on a created session.

    Raises:
        SessionExpiredError: The begin window elapsed; the session is now expired.
        InvalidStateError: The session was already begun or is finished.
    """
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)

            if _start_window_elapsed(test_session, now):
                _expire_unstarted(test_session, now)
                db.commit()
                notify_session_finished(test_session)
                raise SessionExpiredError(
                    ErrorMessages.start_window_elapsed(session_id),
                    session_id=session_id,
                )

            if test_session.status != SessionStatus.CREATED:
                raise InvalidStateError(
                    ErrorMessages.invalid_transition("begin", test_session.status.value),
                    current_status=test_session.status.value,
                )

            test_session.status = SessionStatus.STARTED
            test_session.started_at = now
            test_session.status = SessionStatus.IN_PROGRESS
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info(f"Session {session_id} begun", extra={"session_id": session_id})
    return test_session


def record_answer(
    db: Session,
    session_id: str,
    question_number: int,
    answer: str,
    time_spent_seconds: int,
    now: datetime,
) -> AnswerReceipt:
    """Record (or overwrite) the answer to one question."""
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)
            _require_in_progress(db, test_session, now, "answer questions in")

            slot = _get_slot(test_session, question_number)
            slot.selected_answer = answer
            slot.time_spent_seconds = time_spent_seconds
            slot.is_answered = True
            slot.answered_at = now
            _append_attempt_event(test_session, question_number, "answered", now)

            db.commit()
        except Exception:
            db.rollback()
            raise

    return AnswerReceipt(
        question_number=question_number,
        remaining_seconds=remaining_seconds(test_session, now),
    )


def set_flag(
    db: Session, session_id: str, question_number: int, flagged: bool, now: datetime
) -> QuestionSlot:
    """Mark or unmark a question for review."""
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)
            _require_in_progress(db, test_session, now, "flag questions in")

            slot = _get_slot(test_session, question_number)
            slot.flagged_for_review = flagged
            _append_attempt_event(
                test_session,
                question_number,
                "flagged" if flagged else "unflagged",
                now,
            )

            db.commit()
        except Exception:
            db.rollback()
            raise

    return slot


def report_violation(
    db: Session,
    session_id: str,
    violation_type: str,
    details: Optional[dict[str, Any]],
    now: datetime,
) -> ViolationReceipt:
    """
    Record a proctoring violation and terminate the session if a threshold
    is crossed.
    """
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)
            _require_in_progress(db, test_session, now, "report violations for")

            decision = proctoring.record_violation(
                test_session, violation_type, details, now
            )
            if decision.should_terminate:
                _finalize(db, test_session, now, TerminationReason.VIOLATION_LIMIT)

            db.commit()
        except Exception:
            db.rollback()
            raise

    if decision.should_terminate:
        notify_session_finished(test_session)

    return ViolationReceipt(
        decision=decision, session_completed=decision.should_terminate
    )


def submit_session(
    db: Session,
    session_id: str,
    now: datetime,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> TestSession:
    """
    Submit and score an in-progress session.

    Raises:
        SessionExpiredError: Time ran out first; the session was scored anyway.
        InvalidStateError: The session is not in progress (e.g. already submitted).
    """
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)
            if (
                test_session.status == SessionStatus.EVALUATED
                and test_session.termination_reason == TerminationReason.SUBMITTED
            ):
                raise InvalidStateError(
                    ErrorMessages.SESSION_ALREADY_EVALUATED,
                    current_status=test_session.status.value,
                )
            _require_in_progress(db, test_session, now, "submit")

            _finalize(db, test_session, now, TerminationReason.SUBMITTED)
            db.commit()
        except Exception:
            db.rollback()
            raise

    notify_session_finished(test_session, dispatcher)
    return test_session


def get_status(db: Session, session_id: str, now: datetime) -> SessionStatusView:
    """
    Current status and clock of a session.

    An overdue session is settled (scored or expired) before answering;
    polling never fails because time ran out.
    """
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)
            settled = _settle_if_stale(db, test_session, now)
            if settled:
                db.commit()
        except Exception:
            db.rollback()
            raise

    if settled:
        notify_session_finished(test_session)

    slots = test_session.slots
    return SessionStatusView(
        session_id=test_session.session_code,
        status=test_session.status,
        remaining_seconds=remaining_seconds(test_session, now),
        answered_count=sum(1 for s in slots if s.is_answered),
        flagged_count=sum(1 for s in slots if s.flagged_for_review),
        total_questions=len(slots),
        termination_reason=test_session.termination_reason,
    )


def get_result(db: Session, session_id: str) -> TestSession:
    """Evaluated session with its score block."""
    test_session = get_session(db, session_id)
    if test_session.status != SessionStatus.EVALUATED:
        raise InvalidStateError(
            ErrorMessages.result_not_available(test_session.status.value),
            current_status=test_session.status.value,
        )
    return test_session


def cancel_session(db: Session, session_id: str, now: datetime) -> TestSession:
    """Cancel a session the candidate has not begun. The attempt stays consumed."""
    with session_locks.hold(session_id):
        try:
            test_session = get_session(db, session_id, for_update=True)
            if test_session.status != SessionStatus.CREATED:
                raise InvalidStateError(
                    ErrorMessages.invalid_transition("cancel", test_session.status.value),
                    current_status=test_session.status.value,
                )
            test_session.status = SessionStatus.CANCELLED
            test_session.termination_reason = TerminationReason.CANCELLED
            test_session.ended_at = now
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info(f"Session {session_id} cancelled", extra={"session_id": session_id})
    return test_session


def find_overdue_session_codes(db: Session, now: datetime) -> Iterable[str]:
    in_progress = (
        db.query(TestSession)
        .filter(TestSession.status == SessionStatus.IN_PROGRESS)
        .order_by(TestSession.id)
        .all()
    )
    for test_session in in_progress:
        if is_time_expired(test_session, now):
            yield test_session.session_code

    unstarted = (
        db.query(TestSession.session_code)
        .filter(
            TestSession.status == SessionStatus.CREATED,
            TestSession.valid_until < now,
        )
        .order_by(TestSession.id)
        .all()
    )
    for (code,) in unstarted:
        yield code


def sweep_expired_sessions(db: Session, now: datetime) -> SweepResult:
    """
    Settle every overdue session.

    Overdue in-progress sessions are force-submitted; created sessions whose
    begin window elapsed are expired. Safe to run repeatedly and concurrently
    with client requests.
    """
    result = SweepResult()
    codes = list(find_overdue_session_codes(db, now))

    for code in codes:
        settled_status = None
        with graceful_failure(
            "settle overdue session",
            logger,
            log_level=logging.ERROR,
            exc_info=True,
            context={"session_id": code},
        ):
            with session_locks.hold(code):
                try:
                    test_session = get_session(db, code, for_update=True)
                    if _settle_if_stale(db, test_session, now):
                        db.commit()
                        settled_status = test_session.status
                except Exception:
                    db.rollback()
                    result.failed.append(code)
                    raise

        if settled_status is None:
            continue
        if settled_status == SessionStatus.EVALUATED:
            result.evaluated.append(code)
        else:
            result.expired.append(code)
        notify_session_finished(test_session)

    logger.info(
        f"Expiry sweep finished: {len(result.evaluated)} evaluated, "
        f"{len(result.expired)} expired, {len(result.failed)} failed"
    )
    return result
