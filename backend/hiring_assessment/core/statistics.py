"""
Cohort statistics over evaluated sessions.

Plain transforms over lists of results; the database layer only loads the
rows (``load_evaluated_results``) or counts them (``cohort_position``).
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from hiring_assessment.core.scoring import round_half_up
from hiring_assessment.models import SessionStatus, TestSession


@dataclass(frozen=True)
class EvaluatedResult:
    percentage: int
    is_passed: bool
    duration_seconds: Optional[int] = None


@dataclass
class CohortStats:
    total_tests: int
    passed_tests: int
    pass_rate: float
    avg_score: Optional[float]
    avg_duration_minutes: Optional[float]
    max_score: Optional[int]
    min_score: Optional[int]


def summarize(results: Sequence[EvaluatedResult]) -> CohortStats:
    """Pass rate, score range and averages of a cohort."""
    if not results:
        return CohortStats(
            total_tests=0,
            passed_tests=0,
            pass_rate=0.0,
            avg_score=None,
            avg_duration_minutes=None,
            max_score=None,
            min_score=None,
        )

    scores = [r.percentage for r in results]
    passed = sum(1 for r in results if r.is_passed)
    durations = [r.duration_seconds for r in results if r.duration_seconds is not None]

    return CohortStats(
        total_tests=len(results),
        passed_tests=passed,
        pass_rate=round(passed / len(results) * 100, 2),
        avg_score=round(sum(scores) / len(scores), 2),
        avg_duration_minutes=(
            round(sum(durations) / len(durations) / 60, 2) if durations else None
        ),
        max_score=max(scores),
        min_score=min(scores),
    )


def _percentile(below: int, size: int) -> int:
    if size == 0:
        return 0
    return round_half_up(below / size * 100)


def rank_of(percentage: int, cohort: Sequence[int]) -> int:
    """1-based rank of a score within a cohort; ties share the better rank."""
    return 1 + sum(1 for score in cohort if score > percentage)


def percentile_of(percentage: int, cohort: Sequence[int]) -> int:
    """
    Percentage of the cohort scoring strictly below ``percentage``.

    The cohort is expected to include the score being ranked.
    """
    return _percentile(sum(1 for score in cohort if score < percentage), len(cohort))


def cohort_position(db: Session, percentage: int) -> tuple[int, int]:
    """
    Rank and percentile of a new score among the sessions already evaluated.

    Same rules as ``rank_of``/``percentile_of`` with the new score counted as
    a cohort member, but the counting runs in the database.
    """
    higher, lower, total = (
        db.query(
            func.count(case((TestSession.percentage > percentage, 1))),
            func.count(case((TestSession.percentage < percentage, 1))),
            func.count(TestSession.id),
        )
        .filter(
            TestSession.status == SessionStatus.EVALUATED,
            TestSession.percentage.isnot(None),
        )
        .one()
    )
    return 1 + higher, _percentile(lower, total + 1)


def load_evaluated_results(db: Session) -> list[EvaluatedResult]:
    rows = (
        db.query(
            TestSession.percentage,
            TestSession.is_passed,
            TestSession.actual_duration_seconds,
        )
        .filter(
            TestSession.status == SessionStatus.EVALUATED,
            TestSession.percentage.isnot(None),
        )
        .all()
    )
    return [
        EvaluatedResult(
            percentage=percentage,
            is_passed=bool(is_passed),
            duration_seconds=duration,
        )
        for percentage, is_passed, duration in rows
    ]
