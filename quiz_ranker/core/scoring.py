"""Turns a finished set of answers into a scored result."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from quiz_ranker.constants.quiz_constants import (
    DIFFICULTY_MULTIPLIERS,
    POINTS_PER_SCORE_PERCENT,
    TIME_BONUS_PER_SECOND,
)
from quiz_ranker.core.errors import InvalidQuiz
from quiz_ranker.core.models import Answer, Quiz, QuizResult


def round_half_up(value: Decimal | int | float) -> int:
    """Round to the nearest integer with .5 going up (Python's round() is banker's)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_points(score_percent: int, quiz: Quiz, time_spent_seconds: int) -> int:
    unused_seconds = max(0, quiz.duration_seconds - time_spent_seconds)
    time_bonus = Decimal(unused_seconds) * Decimal(TIME_BONUS_PER_SECOND)
    multiplier = Decimal(DIFFICULTY_MULTIPLIERS[quiz.difficulty.value])
    base_points = Decimal(score_percent * POINTS_PER_SCORE_PERCENT)
    return round_half_up((base_points + time_bonus) * multiplier)


def calculate_result(
    quiz: Quiz,
    answers: list[Answer],
    time_spent_seconds: int,
    completed_at: datetime,
) -> QuizResult:
    """Score the answers given for a quiz.

    Questions without an answer count as incorrect. If the same question index
    appears more than once the last answer wins.
    """
    total = quiz.question_count
    if total == 0:
        raise InvalidQuiz(f"Quiz '{quiz.id}' has no questions.")

    latest: dict[int, Answer] = {}
    for answer in answers:
        if not 0 <= answer.question_index < total:
            raise ValueError(f"Answer refers to unknown question index {answer.question_index}.")
        latest[answer.question_index] = answer

    correct = sum(1 for answer in latest.values() if answer.is_correct)
    time_spent = max(0, time_spent_seconds)
    score_percent = round_half_up(Decimal(100 * correct) / Decimal(total))

    return QuizResult(
        score_percent=score_percent,
        correct_count=correct,
        incorrect_count=total - correct,
        total_questions=total,
        time_spent_seconds=time_spent,
        average_time_per_question=round_half_up(Decimal(time_spent) / Decimal(total)),
        points=calculate_points(score_percent, quiz, time_spent),
        completed_at=completed_at,
    )
