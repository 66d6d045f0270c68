"""
Test session endpoints.

Each endpoint is a thin wrapper over ``hiring_assessment.core.session_engine``;
domain exceptions are rendered by the handlers registered in ``main``.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from hiring_assessment.core import session_engine
from hiring_assessment.core.datetime_utils import Clock, get_clock
from hiring_assessment.models import TestSession, get_db
from hiring_assessment.schemas.test_sessions import (
    AnswerRequest,
    AnswerResponse,
    BeginSessionResponse,
    CancelSessionResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    FlagRequest,
    FlagResponse,
    SessionQuestionResponse,
    SessionResultResponse,
    SessionStatusResponse,
    SubmitSessionResponse,
    ViolationRequest,
    ViolationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def build_question_list(test_session: TestSession) -> list[SessionQuestionResponse]:
    """Questions in delivery order, without correct answers or option flags."""
    return [
        SessionQuestionResponse(
            question_number=slot.question_number,
            question_text=slot.question_text,
            question_type=slot.question_type.value,
            category=slot.category,
            difficulty=slot.difficulty.value,
            points=slot.points,
            options=(
                [{"text": option["text"]} for option in slot.options]
                if slot.options
                else None
            ),
        )
        for slot in test_session.slots
    ]


@router.post(
    "",
    response_model=CreateSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    request: CreateSessionRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Issue a new test session to a candidate.

    Raises:
        403 ineligible: Blocked, qualified, out of attempts, cooling down,
            or an active session exists (its ID is returned).
        503 insufficient-question-pool: Not enough eligible questions.
    """
    test_session = session_engine.create_session(
        db, request.candidate_id, now=clock.now()
    )
    return CreateSessionResponse(
        session_id=test_session.session_code,
        status=test_session.status.value,
        questions=build_question_list(test_session),
        duration_minutes=test_session.duration_minutes,
        total_questions=test_session.total_questions,
        passing_percentage=test_session.passing_percentage,
        negative_marking=test_session.negative_marking,
        valid_until=test_session.valid_until,
        attempt_number=test_session.attempt_number,
        is_retake=test_session.is_retake,
    )


@router.post("/{session_id}/begin", response_model=BeginSessionResponse)
def begin_session(
    session_id: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Start the clock on a created session."""
    now = clock.now()
    test_session = session_engine.begin_session(db, session_id, now=now)
    return BeginSessionResponse(
        status=test_session.status.value,
        start_time=test_session.started_at,
        remaining_seconds=session_engine.remaining_seconds(test_session, now),
    )


@router.put("/{session_id}/answer", response_model=AnswerResponse)
def answer_question(
    session_id: str,
    request: AnswerRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record or overwrite the answer to one question.

    Returns 409 session-expired when the time limit has passed; the session
    has then been submitted automatically.
    """
    receipt = session_engine.record_answer(
        db,
        session_id,
        question_number=request.question_number,
        answer=request.answer,
        time_spent_seconds=request.time_spent_seconds,
        now=clock.now(),
    )
    return AnswerResponse(
        question_number=receipt.question_number,
        remaining_seconds=receipt.remaining_seconds,
    )


@router.put("/{session_id}/flag", response_model=FlagResponse)
def flag_question(
    session_id: str,
    request: FlagRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Mark or unmark a question for review."""
    slot = session_engine.set_flag(
        db,
        session_id,
        question_number=request.question_number,
        flagged=request.flagged,
        now=clock.now(),
    )
    return FlagResponse(
        question_number=slot.question_number, flagged=slot.flagged_for_review
    )


@router.post("/{session_id}/violations", response_model=ViolationResponse)
def report_violation(
    session_id: str,
    request: ViolationRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record a proctoring violation.

    When the violation crosses a termination threshold the session is
    submitted and scored, and ``session_completed`` is true.
    """
    receipt = session_engine.report_violation(
        db,
        session_id,
        violation_type=request.type,
        details=request.details,
        now=clock.now(),
    )
    return ViolationResponse(
        severity=receipt.decision.severity.value,
        total_violations=receipt.decision.total_violations,
        should_terminate=receipt.decision.should_terminate,
        session_completed=receipt.session_completed,
    )


@router.post("/{session_id}/submit", response_model=SubmitSessionResponse)
def submit_session(
    session_id: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Submit and score the session. A session can be submitted only once."""
    test_session = session_engine.submit_session(db, session_id, now=clock.now())
    return SubmitSessionResponse(
        session_id=test_session.session_code,
        score=test_session.score,
        is_passed=test_session.is_passed,
        rank=test_session.rank,
        percentile=test_session.percentile,
        submitted_at=test_session.submitted_at,
    )


@router.get("/{session_id}/status", response_model=SessionStatusResponse)
def get_session_status(
    session_id: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Status and remaining time. An overdue session is settled first."""
    view = session_engine.get_status(db, session_id, now=clock.now())
    return SessionStatusResponse(
        session_id=view.session_id,
        status=view.status.value,
        remaining_seconds=view.remaining_seconds,
        answered_count=view.answered_count,
        flagged_count=view.flagged_count,
        total_questions=view.total_questions,
        termination_reason=(
            view.termination_reason.value if view.termination_reason else None
        ),
    )


@router.get("/{session_id}/result", response_model=SessionResultResponse)
def get_session_result(session_id: str, db: Session = Depends(get_db)):
    """Score block, ranking and analytics of an evaluated session."""
    test_session = session_engine.get_result(db, session_id)
    return SessionResultResponse(
        session_id=test_session.session_code,
        candidate_id=test_session.candidate_id,
        status=test_session.status.value,
        termination_reason=(
            test_session.termination_reason.value
            if test_session.termination_reason
            else None
        ),
        score=test_session.score,
        is_passed=test_session.is_passed,
        rank=test_session.rank,
        percentile=test_session.percentile,
        analytics=test_session.analytics,
        started_at=test_session.started_at,
        ended_at=test_session.ended_at,
        submitted_at=test_session.submitted_at,
        actual_duration_seconds=test_session.actual_duration_seconds,
        violation_counts={
            "critical": test_session.critical_violations,
            "major": test_session.major_violations,
            "minor": test_session.minor_violations,
        },
    )


@router.post("/{session_id}/cancel", response_model=CancelSessionResponse)
def cancel_session(
    session_id: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Cancel a session that has not been begun."""
    test_session = session_engine.cancel_session(db, session_id, now=clock.now())
    return CancelSessionResponse(
        session_id=test_session.session_code, status=test_session.status.value
    )
