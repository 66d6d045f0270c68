"""
Models package for the hiring assessment backend.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    Candidate,
    Question,
    TestSession,
    QuestionSlot,
    ProctoringViolation,
    QuestionType,
    DifficultyLevel,
    QuestionStatus,
    SessionStatus,
    TerminationReason,
    ViolationSeverity,
    ACTIVE_SESSION_STATUSES,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "Candidate",
    "Question",
    "TestSession",
    "QuestionSlot",
    "ProctoringViolation",
    "QuestionType",
    "DifficultyLevel",
    "QuestionStatus",
    "SessionStatus",
    "TerminationReason",
    "ViolationSeverity",
    "ACTIVE_SESSION_STATUSES",
]
