"""Running per-user statistics, history and achievements."""

from __future__ import annotations

from datetime import datetime
import logging
from threading import Lock

from quiz_ranker.constants.quiz_constants import STREAK_WINDOW
from quiz_ranker.core.achievements import evaluate_achievements
from quiz_ranker.core.models import (
    Achievement,
    CategoryStats,
    Difficulty,
    Profile,
    QuizHistoryEntry,
    QuizResult,
)
from quiz_ranker.core.services.stores import ProfileStore

logger = logging.getLogger(__name__)


def incremental_mean(previous_mean: float, count: int, value: float) -> float:
    """Mean of ``count`` values, given the mean of the first ``count - 1`` and the new one."""
    return (previous_mean * (count - 1) + value) / count


def apply_result(
    profile: Profile,
    quiz_id: str,
    category: str,
    difficulty: Difficulty,
    result: QuizResult,
    completed_at: datetime,
) -> None:
    """Fold one result into the profile's stats and history (in place)."""
    stats = profile.stats
    stats.total_quizzes_taken += 1
    stats.total_correct_answers += result.correct_count
    stats.total_questions += result.total_questions
    stats.average_score = incremental_mean(
        stats.average_score, stats.total_quizzes_taken, result.score_percent
    )

    # Continuity is measured against the result's own timestamp, never wall-clock time.
    # A result older than the latest one leaves the streak as it is.
    previous = stats.last_quiz_date
    if previous is None:
        stats.quiz_streak = 1
    elif completed_at >= previous:
        if completed_at - previous <= STREAK_WINDOW:
            stats.quiz_streak += 1
        else:
            stats.quiz_streak = 1
    stats.last_quiz_date = completed_at if previous is None else max(previous, completed_at)

    per_category = stats.category_stats.setdefault(category, CategoryStats())
    per_category.quizzes_taken += 1
    per_category.average_score = incremental_mean(
        per_category.average_score, per_category.quizzes_taken, result.score_percent
    )
    stats.best_category = max(
        stats.category_stats,
        key=lambda name: (
            stats.category_stats[name].average_score,
            stats.category_stats[name].quizzes_taken,
        ),
    )

    profile.history.insert(
        0,
        QuizHistoryEntry(
            quiz_id=quiz_id,
            category=category,
            difficulty=difficulty,
            score=result.score_percent,
            total_questions=result.total_questions,
            correct_answers=result.correct_count,
            time_taken_seconds=result.time_spent_seconds,
            completed_at=completed_at,
        ),
    )


class ProfileStatsEngine:
    """Applies results to profiles, serialising updates per user."""

    def __init__(self, store: ProfileStore) -> None:
        self._store = store
        self._locks_guard = Lock()
        self._user_locks: dict[str, Lock] = {}

    def record(
        self,
        user_id: str,
        quiz_id: str,
        category: str,
        difficulty: Difficulty,
        result: QuizResult,
        completed_at: datetime | None = None,
    ) -> tuple[str, ...]:
        """Update the user's profile and return identifiers of newly earned achievements."""
        timestamp = completed_at or result.completed_at
        with self._lock_for(user_id):
            profile = self._store.get_or_create_profile(user_id)
            apply_result(profile, quiz_id, category, difficulty, result, timestamp)
            newly_earned = evaluate_achievements(
                profile.stats, result, profile.earned_identifiers()
            )
            profile.achievements.extend(
                Achievement(identifier=identifier, earned_at=timestamp) for identifier in newly_earned
            )
            self._store.save(profile)

        if newly_earned:
            logger.info("User %s earned %s", user_id, ", ".join(newly_earned))
        return newly_earned

    def get_profile(self, user_id: str) -> Profile:
        with self._lock_for(user_id):
            return self._store.get_or_create_profile(user_id)

    def _lock_for(self, user_id: str) -> Lock:
        with self._locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = Lock()
                self._user_locks[user_id] = lock
            return lock
