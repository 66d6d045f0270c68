"""
Question selection for new test sessions.

Questions are drawn per difficulty bucket according to the configured
percentage split. When a bucket cannot supply its target, the shortfall is
filled from any remaining eligible question so the test is always full
length, and the final order is shuffled.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from hiring_assessment.core.error_responses import ErrorMessages
from hiring_assessment.core.exceptions import InsufficientQuestionPoolError
from hiring_assessment.core.scoring import round_half_up
from hiring_assessment.models import Question, QuestionSlot, TestSession
from hiring_assessment.models.models import QuestionStatus

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """Selected questions in presentation order plus composition metadata."""

    questions: list[Any]
    metadata: dict = field(default_factory=dict)


def difficulty_targets(
    total_count: int, difficulty_percentages: Mapping[str, int]
) -> dict[str, int]:
    """
    Number of questions to draw per difficulty.

    Each target is ``round(total_count * pct / 100)`` rounded half up, so
    30 questions at 30/30/40 gives 9/9/12.
    """
    return {
        getattr(difficulty, "value", difficulty): round_half_up(total_count * pct / 100)
        for difficulty, pct in difficulty_percentages.items()
    }


def select_questions(
    total_count: int,
    difficulty_percentages: Mapping[str, int],
    eligible_pool: Sequence[Any],
    exclude_ids: Iterable[int] = (),
    rng: Optional[random.Random] = None,
) -> SelectionResult:
    """
    Select ``total_count`` questions from the eligible pool.

    Args:
        total_count: Number of questions the test needs.
        difficulty_percentages: Percentage of the test per difficulty key
            (e.g. {"easy": 30, "moderate": 30, "hard": 40}).
        eligible_pool: Candidate questions; each needs ``id`` and ``difficulty``.
        exclude_ids: Question IDs that must not be selected.
        rng: Random source, injectable for reproducible tests.

    Returns:
        SelectionResult with exactly ``total_count`` distinct questions.

    Raises:
        InsufficientQuestionPoolError: If the pool cannot fill the test even
            after falling back to other difficulties.
    """
    rng = rng or random.Random()
    excluded = set(exclude_ids)
    available = [q for q in eligible_pool if q.id not in excluded]

    targets = difficulty_targets(total_count, difficulty_percentages)
    selected: list[Any] = []
    drawn_by_difficulty: dict[str, int] = {}

    for difficulty, target in targets.items():
        bucket = [q for q in available if q.difficulty == difficulty]
        drawn = rng.sample(bucket, min(target, len(bucket)))
        drawn_by_difficulty[difficulty] = len(drawn)
        selected.extend(drawn)

        if len(drawn) < target:
            logger.warning(
                f"Insufficient {difficulty} questions: requested {target}, "
                f"found {len(drawn)}"
            )

    fallback_count = 0
    shortfall = total_count - len(selected)
    if shortfall > 0:
        selected_ids = {q.id for q in selected}
        remaining = [q for q in available if q.id not in selected_ids]
        if len(remaining) < shortfall:
            available_count = len(selected) + len(remaining)
            raise InsufficientQuestionPoolError(
                ErrorMessages.insufficient_questions(total_count, available_count),
                requested=total_count,
                available=available_count,
            )
        fill = rng.sample(remaining, shortfall)
        fallback_count = len(fill)
        selected.extend(fill)
        logger.info(
            f"Filled {fallback_count} question(s) from other difficulties "
            "to reach the requested test length"
        )

    rng.shuffle(selected)
    # Rounded targets can add up to more than total_count
    selected = selected[:total_count]

    metadata = {
        "requested": targets,
        "drawn": drawn_by_difficulty,
        "fallback_count": fallback_count,
        "total": len(selected),
    }
    return SelectionResult(questions=selected, metadata=metadata)


def load_eligible_pool(
    db: Session, categories: Optional[Sequence[str]] = None
) -> list[Question]:
    """
    Load questions that may appear in a test: active and approved, optionally
    restricted to the given categories.
    """
    query = db.query(Question).filter(
        Question.status == QuestionStatus.ACTIVE,
        Question.is_approved.is_(True),
    )
    if categories:
        query = query.filter(Question.category.in_(list(categories)))
    return query.order_by(Question.id).all()


def seen_question_ids(db: Session, candidate_id: int) -> set[int]:
    """IDs of source questions the candidate received in earlier sessions."""
    rows = (
        db.query(QuestionSlot.source_question_id)
        .join(TestSession, QuestionSlot.test_session_id == TestSession.id)
        .filter(
            TestSession.candidate_id == candidate_id,
            QuestionSlot.source_question_id.isnot(None),
        )
        .distinct()
        .all()
    )
    return {row[0] for row in rows}
