"""Achievement catalogue and unlock rules."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from quiz_ranker.constants.quiz_constants import SPEED_DEMON_LIMIT_SECONDS, STREAK_MASTER_LENGTH
from quiz_ranker.core.models import ProfileStats, QuizResult

FIRST_QUIZ = "first_quiz"
PERFECT_SCORE = "perfect_score"
SPEED_DEMON = "speed_demon"
STREAK_MASTER = "streak_master"


@dataclass(frozen=True, slots=True)
class AchievementInfo:
    identifier: str
    name: str
    description: str
    icon: str


CATALOGUE: dict[str, AchievementInfo] = {
    info.identifier: info
    for info in (
        AchievementInfo(FIRST_QUIZ, "First Steps", "Complete your first quiz", "🎯"),
        AchievementInfo(PERFECT_SCORE, "Perfect Score", "Get 100% on any quiz", "🏆"),
        AchievementInfo(SPEED_DEMON, "Speed Demon", "Complete a quiz in under 5 minutes", "⚡"),
        AchievementInfo(STREAK_MASTER, "Streak Master", "Maintain a 7-day quiz streak", "🔥"),
    )
}


def evaluate_achievements(
    stats: ProfileStats,
    result: QuizResult,
    already_earned: Iterable[str],
) -> tuple[str, ...]:
    """Return identifiers newly unlocked by this result, in catalogue order.

    ``stats`` must already include the result. Identifiers in ``already_earned``
    are never returned again.
    """
    earned = set(already_earned)
    rules = {
        FIRST_QUIZ: stats.total_quizzes_taken == 1,
        PERFECT_SCORE: result.score_percent == 100,
        SPEED_DEMON: result.time_spent_seconds < SPEED_DEMON_LIMIT_SECONDS,
        STREAK_MASTER: stats.quiz_streak >= STREAK_MASTER_LENGTH,
    }
    return tuple(
        identifier
        for identifier in CATALOGUE
        if rules[identifier] and identifier not in earned
    )
