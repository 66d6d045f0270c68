"""
Database models for the hiring assessment service.

The test session is the aggregate root: its question slots and proctoring
violations are only written through the session engine.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import secrets

from .base import Base


class QuestionType(str, enum.Enum):
    """Question type enumeration."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_IN_THE_BLANK = "fill_in_the_blank"


class DifficultyLevel(str, enum.Enum):
    """Difficulty level enumeration."""

    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"


class QuestionStatus(str, enum.Enum):
    """Editorial status of a question in the bank."""

    DRAFT = "draft"
    REVIEW = "review"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class SessionStatus(str, enum.Enum):
    """Test session lifecycle status."""

    CREATED = "created"
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EVALUATED = "evaluated"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Statuses that block the candidate from starting another session
ACTIVE_SESSION_STATUSES = (
    SessionStatus.CREATED,
    SessionStatus.STARTED,
    SessionStatus.IN_PROGRESS,
)


class TerminationReason(str, enum.Enum):
    """Why a session left the in-progress state."""

    SUBMITTED = "submitted"
    TIME_EXPIRED = "time_expired"
    VIOLATION_LIMIT = "violation_limit"
    START_WINDOW_ELAPSED = "start_window_elapsed"
    CANCELLED = "cancelled"


class ViolationSeverity(str, enum.Enum):
    """Severity of a proctoring violation."""

    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


# Points awarded for a correct answer when a question does not set its own
DEFAULT_POINTS_BY_DIFFICULTY = {
    DifficultyLevel.EASY: 2,
    DifficultyLevel.MODERATE: 3,
    DifficultyLevel.HARD: 4,
}
DEFAULT_NEGATIVE_POINTS = 1

# Unambiguous characters only (no 0/O, 1/I)
_SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_SESSION_CODE_LENGTH = 10


def generate_session_code() -> str:
    """Generate a human-shareable session identifier such as ``TS4KQ9ZP2M7X``."""
    suffix = "".join(
        secrets.choice(_SESSION_CODE_ALPHABET) for _ in range(_SESSION_CODE_LENGTH)
    )
    return f"TS{suffix}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Candidate(Base):
    """Candidate in the hiring pipeline and their attempt record."""

    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(30))
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    # Attempt record (owned by the session engine)
    total_attempts = Column(Integer, default=0, nullable=False)
    last_attempt_at = Column(DateTime(timezone=True))
    best_score = Column(Integer)  # Best percentage across evaluated sessions
    has_qualified = Column(Boolean, default=False, nullable=False)
    qualified_at = Column(DateTime(timezone=True))
    blocked_until = Column(DateTime(timezone=True))
    blocked_reason = Column(String(500))

    # Relationships
    test_sessions = relationship(
        "TestSession", back_populates="candidate", order_by="TestSession.id"
    )


class Question(Base):
    """Question in the bank. Read-only to the assessment core."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(Enum(QuestionType), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    difficulty = Column(Enum(DifficultyLevel), nullable=False, index=True)
    # [{"text": "...", "is_correct": bool}, ...]; null for fill in the blank
    options = Column(JSON)
    correct_answer = Column(String(500), nullable=False)
    explanation = Column(Text)
    points = Column(Integer, nullable=False)
    negative_points = Column(Integer, default=DEFAULT_NEGATIVE_POINTS, nullable=False)
    status = Column(
        Enum(QuestionStatus), default=QuestionStatus.DRAFT, nullable=False, index=True
    )
    is_approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    def __init__(self, **kwargs):
        difficulty = kwargs.get("difficulty")
        if kwargs.get("points") is None and difficulty is not None:
            kwargs["points"] = DEFAULT_POINTS_BY_DIFFICULTY[DifficultyLevel(difficulty)]
        super().__init__(**kwargs)


class TestSession(Base):
    """One candidate's attempt at an assessment."""

    __tablename__ = "test_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_code = Column(
        String(16), unique=True, nullable=False, index=True, default=generate_session_code
    )
    candidate_id = Column(
        Integer, ForeignKey("candidates.id"), nullable=False, index=True
    )

    # Configuration snapshot, immutable after creation
    total_questions = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    difficulty_distribution = Column(JSON, nullable=False)
    passing_percentage = Column(Integer, nullable=False)
    negative_marking = Column(Boolean, nullable=False)
    violation_threshold = Column(Integer, nullable=False)
    critical_violation_limit = Column(Integer, nullable=False)
    composition_metadata = Column(JSON)

    # Timing
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))
    submitted_at = Column(DateTime(timezone=True))
    actual_duration_seconds = Column(Integer)

    status = Column(
        Enum(SessionStatus), default=SessionStatus.CREATED, nullable=False, index=True
    )
    termination_reason = Column(Enum(TerminationReason))

    # Proctoring counters
    critical_violations = Column(Integer, default=0, nullable=False)
    major_violations = Column(Integer, default=0, nullable=False)
    minor_violations = Column(Integer, default=0, nullable=False)

    # Evaluation outcome, null until evaluated
    score = Column(JSON)
    # Copy of score["percentage"] so cohort ranking can count in SQL
    percentage = Column(Integer, index=True)
    is_passed = Column(Boolean)
    percentile = Column(Integer)
    rank = Column(Integer)
    analytics = Column(JSON)

    # Chronological log of answered/flagged/unflagged events
    attempt_pattern = Column(JSON, default=list, nullable=False)

    attempt_number = Column(Integer, nullable=False)
    is_retake = Column(Boolean, default=False, nullable=False)
    previous_best_score = Column(Integer)

    # Relationships
    candidate = relationship("Candidate", back_populates="test_sessions")
    slots = relationship(
        "QuestionSlot",
        back_populates="test_session",
        order_by="QuestionSlot.question_number",
        cascade="all, delete-orphan",
    )
    violations = relationship(
        "ProctoringViolation",
        back_populates="test_session",
        order_by="ProctoringViolation.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_test_sessions_candidate_status", "candidate_id", "status"),
    )

    @property
    def total_violations(self) -> int:
        return (
            (self.critical_violations or 0)
            + (self.major_violations or 0)
            + (self.minor_violations or 0)
        )


class QuestionSlot(Base):
    """Frozen copy of a question inside a session plus the candidate's response."""

    __tablename__ = "session_questions"

    id = Column(Integer, primary_key=True, index=True)
    test_session_id = Column(
        Integer,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_number = Column(Integer, nullable=False)
    # Audit only; scoring reads the snapshot below
    source_question_id = Column(Integer, ForeignKey("questions.id"))

    question_text = Column(Text, nullable=False)
    question_type = Column(Enum(QuestionType), nullable=False)
    category = Column(String(100), nullable=False)
    difficulty = Column(Enum(DifficultyLevel), nullable=False)
    options = Column(JSON)
    correct_answer = Column(String(500), nullable=False)
    points = Column(Integer, nullable=False)
    negative_points = Column(Integer, nullable=False)

    # Response state
    selected_answer = Column(String(500))
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    is_answered = Column(Boolean, default=False, nullable=False)
    answered_at = Column(DateTime(timezone=True))
    flagged_for_review = Column(Boolean, default=False, nullable=False)

    # Evaluation outcome, null until the session is evaluated
    is_correct = Column(Boolean)
    points_earned = Column(Integer)

    test_session = relationship("TestSession", back_populates="slots")

    __table_args__ = (
        UniqueConstraint(
            "test_session_id", "question_number", name="uq_session_question_number"
        ),
    )


class ProctoringViolation(Base):
    """Append-only record of a proctoring event reported by the client."""

    __tablename__ = "proctoring_violations"

    id = Column(Integer, primary_key=True, index=True)
    test_session_id = Column(
        Integer,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    violation_type = Column(String(50), nullable=False)
    severity = Column(Enum(ViolationSeverity), nullable=False)
    occurred_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    details = Column(JSON)

    test_session = relationship("TestSession", back_populates="violations")
