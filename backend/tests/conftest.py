"""
Pytest configuration and shared fixtures for testing.
"""
import sys
from pathlib import Path

# Make the backend directory importable regardless of where pytest runs from
backend_root = Path(__file__).parent.parent
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

from contextlib import asynccontextmanager  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from hiring_assessment.core.config import settings  # noqa: E402
from hiring_assessment.core.datetime_utils import get_clock  # noqa: E402
from hiring_assessment.core.session_engine import SessionConfig  # noqa: E402
from hiring_assessment.main import app  # noqa: E402
from hiring_assessment.models import (  # noqa: E402
    Base,
    Candidate,
    DifficultyLevel,
    Question,
    QuestionStatus,
    QuestionType,
    get_db,
)

TEST_ADMIN_TOKEN = "test-admin-token"
CLOCK_START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests: tables are managed by the db_session fixture."""
    yield


app.router.lifespan_context = _test_lifespan


# SQLite file next to this module so it lands inside tests/ regardless of cwd
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FrozenClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime = CLOCK_START):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def small_test_settings(monkeypatch):
    """Shrink the configured test to 10 questions so API tests stay readable."""
    monkeypatch.setattr(settings, "TEST_TOTAL_QUESTIONS", 10)
    monkeypatch.setattr(settings, "TEST_DURATION_MINUTES", 30)
    monkeypatch.setattr(
        settings, "TEST_DIFFICULTY_DISTRIBUTION", {"easy": 30, "moderate": 30, "hard": 40}
    )
    monkeypatch.setattr(settings, "TEST_PASSING_PERCENTAGE", 65)
    monkeypatch.setattr(settings, "TEST_NEGATIVE_MARKING", True)
    monkeypatch.setattr(settings, "TEST_CATEGORIES", [])
    monkeypatch.setattr(settings, "EXCLUDE_SEEN_QUESTIONS", False)
    monkeypatch.setattr(settings, "MAX_ATTEMPTS", 5)
    monkeypatch.setattr(settings, "ATTEMPT_COOLDOWN_HOURS", 24)
    monkeypatch.setattr(settings, "VIOLATION_THRESHOLD", 3)
    monkeypatch.setattr(settings, "CRITICAL_VIOLATION_LIMIT", 2)
    monkeypatch.setattr(settings, "SESSION_START_WINDOW_HOURS", 24)
    return settings


@pytest.fixture
def session_config():
    """Ten-question configuration used by engine tests."""
    return SessionConfig(total_questions=10, duration_minutes=30)


@pytest.fixture(scope="function")
def client(db_session, clock, small_test_settings):
    """
    Create a test client with database and clock dependency overrides.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(monkeypatch):
    """
    Create headers with valid admin token for admin endpoints.
    """
    monkeypatch.setattr(settings, "ADMIN_TOKEN", TEST_ADMIN_TOKEN)
    return {"X-Admin-Token": TEST_ADMIN_TOKEN}


@pytest.fixture
def make_candidate(db_session):
    """Factory creating candidates with an optional attempt record."""
    counter = {"n": 0}

    def _make(**overrides) -> Candidate:
        counter["n"] += 1
        fields = {
            "full_name": f"Candidate {counter['n']}",
            "email": f"candidate{counter['n']}@example.com",
            "phone": "+15550100",
            "total_attempts": 0,
            "has_qualified": False,
        }
        fields.update(overrides)
        candidate = Candidate(**fields)
        db_session.add(candidate)
        db_session.commit()
        db_session.refresh(candidate)
        return candidate

    return _make


@pytest.fixture
def candidate(make_candidate):
    return make_candidate(full_name="Ada Lovelace", email="ada@example.com")


def build_question(
    number: int,
    difficulty: DifficultyLevel,
    category: str = "Aptitude",
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    status: QuestionStatus = QuestionStatus.ACTIVE,
    is_approved: bool = True,
    **overrides,
) -> Question:
    """Question whose correct answer is always 'Right {number}'."""
    correct = f"Right {number}"
    if question_type == QuestionType.MULTIPLE_CHOICE:
        options = [
            {"text": f"Wrong {number}a", "is_correct": False},
            {"text": correct, "is_correct": True},
            {"text": f"Wrong {number}b", "is_correct": False},
        ]
    elif question_type == QuestionType.TRUE_FALSE:
        correct = "True"
        options = [
            {"text": "True", "is_correct": True},
            {"text": "False", "is_correct": False},
        ]
    else:
        options = None

    fields = {
        "question_text": f"Question {number} ({difficulty.value})",
        "question_type": question_type,
        "category": category,
        "difficulty": difficulty,
        "options": options,
        "correct_answer": correct,
        "status": status,
        "is_approved": is_approved,
    }
    fields.update(overrides)
    return Question(**fields)


@pytest.fixture
def question_bank(db_session):
    """
    Active, approved questions: 6 easy, 6 moderate and 6 hard, split across
    two categories, plus draft and unapproved questions that must never be
    selected.
    """
    questions = []
    number = 0
    for difficulty in DifficultyLevel:
        for i in range(6):
            number += 1
            category = "Aptitude" if i % 2 == 0 else "Reasoning"
            questions.append(build_question(number, difficulty, category=category))

    questions.append(
        build_question(900, DifficultyLevel.EASY, status=QuestionStatus.DRAFT)
    )
    questions.append(build_question(901, DifficultyLevel.HARD, is_approved=False))

    db_session.add_all(questions)
    db_session.commit()
    for question in questions:
        db_session.refresh(question)
    return questions


def correct_answer_for(slot) -> str:
    """Answer that scores as correct for a session slot."""
    if slot.options:
        return next(opt["text"] for opt in slot.options if opt["is_correct"])
    return slot.correct_answer
