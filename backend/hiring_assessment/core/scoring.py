"""
Scoring engine for evaluated test sessions.

All functions here are pure: they take frozen slot snapshots and return new
values without touching the database, the wall clock or any random source.
Scoring the same snapshots twice always gives the same result.

Scoring Rules
=============
- Unanswered questions earn 0 points and count as neither correct nor wrong.
- Multiple choice: correct iff the selected answer equals the text of the
  option flagged correct.
- True/false and fill in the blank: correct iff the selected answer equals
  the stored correct answer, ignoring surrounding whitespace and case.
- Correct answers earn the question's points. Wrong answers cost the
  question's negative points when negative marking is enabled.

Percentage
==========
    net_score  = points_earned - negative_points
    percentage = round_half_up(net_score / total_points * 100)

``total_points`` sums every question in the session, answered or not. The
percentage is not clamped, so heavy negative marking can push it below zero.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence

# Inclusive lower bounds, highest first
GRADE_BOUNDARIES: tuple[tuple[int, str], ...] = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C+"),
    (40, "C"),
    (30, "D"),
)
FAILING_GRADE = "F"

# (label, inclusive lower bound, exclusive upper bound) in seconds
TIME_BUCKETS: tuple[tuple[str, float, float], ...] = (
    ("0-30s", 0, 30),
    ("30-60s", 30, 60),
    ("60-120s", 60, 120),
    ("120s+", 120, math.inf),
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up (-2.5 -> -2)."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class SlotSnapshot:
    """Immutable view of one question slot used as scoring input."""

    question_number: int
    question_type: str
    category: str
    difficulty: str
    correct_answer: str
    points: int
    negative_points: int
    options: Optional[list] = None
    selected_answer: Optional[str] = None
    is_answered: bool = False
    time_spent_seconds: int = 0


@dataclass
class SlotOutcome:
    """Evaluation of a single slot."""

    question_number: int
    is_correct: bool
    points_earned: int


@dataclass
class BreakdownEntry:
    """Per-category or per-difficulty performance."""

    name: str
    total_questions: int
    correct_answers: int
    percentage: int
    points: int


@dataclass
class SessionScore:
    """Complete score block of an evaluated session."""

    total_questions: int
    attempted_questions: int
    correct_answers: int
    wrong_answers: int
    unanswered_questions: int
    total_points: int
    points_earned: int
    negative_points: int
    net_score: int
    percentage: int
    grade: str
    is_passed: bool
    category_breakdown: list[BreakdownEntry] = field(default_factory=list)
    difficulty_breakdown: list[BreakdownEntry] = field(default_factory=list)
    outcomes: list[SlotOutcome] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Score block as persisted on the session (slot outcomes live on the slots)."""
        data = asdict(self)
        data.pop("outcomes")
        return data


def _enum_value(value: Any) -> str:
    return getattr(value, "value", value)


def _normalize(answer: Optional[str]) -> str:
    return (answer or "").strip().lower()


def is_answer_correct(slot: SlotSnapshot) -> bool:
    """Decide whether an answered slot is correct."""
    if not slot.is_answered or slot.selected_answer is None:
        return False

    if _enum_value(slot.question_type) == "multiple_choice" and slot.options:
        correct_option = next(
            (opt for opt in slot.options if opt.get("is_correct")), None
        )
        if correct_option is None:
            return False
        return slot.selected_answer == correct_option.get("text")

    return _normalize(slot.selected_answer) == _normalize(slot.correct_answer)


def grade_for(percentage: int) -> str:
    """Map a percentage to a letter grade."""
    for lower_bound, grade in GRADE_BOUNDARIES:
        if percentage >= lower_bound:
            return grade
    return FAILING_GRADE


def evaluate_slot(slot: SlotSnapshot, negative_marking: bool) -> SlotOutcome:
    """Points earned (possibly negative) for one slot."""
    if not slot.is_answered:
        return SlotOutcome(slot.question_number, is_correct=False, points_earned=0)
    if is_answer_correct(slot):
        return SlotOutcome(
            slot.question_number, is_correct=True, points_earned=slot.points
        )
    penalty = slot.negative_points if negative_marking else 0
    return SlotOutcome(slot.question_number, is_correct=False, points_earned=-penalty)


def _breakdown(
    slots: Sequence[SlotSnapshot],
    outcomes: Sequence[SlotOutcome],
    key: str,
) -> list[BreakdownEntry]:
    """Group slots by ``key`` in first-appearance order."""
    groups: dict[str, BreakdownEntry] = {}
    for slot, outcome in zip(slots, outcomes):
        name = _enum_value(getattr(slot, key))
        entry = groups.get(name)
        if entry is None:
            entry = BreakdownEntry(
                name=name, total_questions=0, correct_answers=0, percentage=0, points=0
            )
            groups[name] = entry
        entry.total_questions += 1
        entry.points += outcome.points_earned
        if outcome.is_correct:
            entry.correct_answers += 1

    for entry in groups.values():
        entry.percentage = round_half_up(
            entry.correct_answers / entry.total_questions * 100
        )
    return list(groups.values())


def score_slots(
    slots: Sequence[SlotSnapshot],
    negative_marking: bool,
    passing_percentage: int,
) -> SessionScore:
    """
    Score a session from its slot snapshots.

    Args:
        slots: Slot snapshots in question-number order.
        negative_marking: Whether wrong answers cost negative points.
        passing_percentage: Minimum percentage that passes.

    Returns:
        SessionScore including per-slot outcomes and both breakdowns.
    """
    outcomes = [evaluate_slot(slot, negative_marking) for slot in slots]

    total_points = sum(slot.points for slot in slots)
    points_earned = sum(o.points_earned for o in outcomes if o.is_correct)
    negative_points = -sum(o.points_earned for o in outcomes if o.points_earned < 0)
    net_score = points_earned - negative_points

    attempted = sum(1 for slot in slots if slot.is_answered)
    correct = sum(1 for o in outcomes if o.is_correct)

    if total_points > 0:
        percentage = round_half_up(net_score / total_points * 100)
    else:
        percentage = 0

    return SessionScore(
        total_questions=len(slots),
        attempted_questions=attempted,
        correct_answers=correct,
        wrong_answers=attempted - correct,
        unanswered_questions=len(slots) - attempted,
        total_points=total_points,
        points_earned=points_earned,
        negative_points=negative_points,
        net_score=net_score,
        percentage=percentage,
        grade=grade_for(percentage),
        is_passed=percentage >= passing_percentage,
        category_breakdown=_breakdown(slots, outcomes, "category"),
        difficulty_breakdown=_breakdown(slots, outcomes, "difficulty"),
        outcomes=outcomes,
    )


def compute_time_analytics(slots: Sequence[SlotSnapshot]) -> dict[str, Any]:
    """
    Time-per-question analytics over answered slots.

    Returns a dict with ``avg_time_per_question`` (seconds, rounded),
    ``fastest_question`` and ``slowest_question`` (question number and time,
    None when nothing was answered) and ``time_distribution`` bucket counts.
    """
    answered = [slot for slot in slots if slot.is_answered]
    distribution = [{"range": label, "count": 0} for label, _, _ in TIME_BUCKETS]

    if not answered:
        return {
            "avg_time_per_question": 0,
            "fastest_question": None,
            "slowest_question": None,
            "time_distribution": distribution,
        }

    total_time = sum(slot.time_spent_seconds for slot in answered)
    by_time = sorted(answered, key=lambda slot: slot.time_spent_seconds)

    for slot in answered:
        for bucket, (_, lower, upper) in zip(distribution, TIME_BUCKETS):
            if lower <= slot.time_spent_seconds < upper:
                bucket["count"] += 1
                break

    return {
        "avg_time_per_question": round_half_up(total_time / len(answered)),
        "fastest_question": {
            "question_number": by_time[0].question_number,
            "time_spent_seconds": by_time[0].time_spent_seconds,
        },
        "slowest_question": {
            "question_number": by_time[-1].question_number,
            "time_spent_seconds": by_time[-1].time_spent_seconds,
        },
        "time_distribution": distribution,
    }
