from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quiz_ranker.core.models import Difficulty, Quiz, QuizOption, QuizQuestion, QuizResult

BASE_TIME = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _build_quiz(
    question_count: int = 4,
    difficulty: Difficulty = Difficulty.EASY,
    duration_minutes: int = 10,
    category: str = "Science",
    quiz_id: str = "quiz-1",
) -> Quiz:
    questions = tuple(
        QuizQuestion(
            text=f"Question {number}",
            options=(
                QuizOption("right", is_correct=True),
                QuizOption("wrong"),
                QuizOption("also wrong"),
            ),
        )
        for number in range(1, question_count + 1)
    )
    return Quiz(
        id=quiz_id,
        title=f"Quiz {quiz_id}",
        category=category,
        difficulty=difficulty,
        duration_minutes=duration_minutes,
        questions=questions,
    )


def _build_result(
    score_percent: int = 80,
    correct: int = 4,
    total: int = 5,
    time_spent_seconds: int = 400,
    points: int = 800,
    completed_at: datetime = BASE_TIME,
) -> QuizResult:
    return QuizResult(
        score_percent=score_percent,
        correct_count=correct,
        incorrect_count=total - correct,
        total_questions=total,
        time_spent_seconds=time_spent_seconds,
        average_time_per_question=round(time_spent_seconds / total),
        points=points,
        completed_at=completed_at,
    )


@pytest.fixture
def make_quiz():
    return _build_quiz


@pytest.fixture
def make_result():
    return _build_result


@pytest.fixture
def fixed_clock():
    return lambda: BASE_TIME


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def days():
    return lambda n: BASE_TIME + timedelta(days=n)
