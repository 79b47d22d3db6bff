"""Scoring, streak and achievement constants shared across the core."""

from datetime import timedelta
from pathlib import Path

DIFFICULTY_MULTIPLIERS: dict[str, str] = {
    "Easy": "1.0",
    "Medium": "1.5",
    "Hard": "2.0",
}
POINTS_PER_SCORE_PERCENT: int = 10
TIME_BONUS_PER_SECOND: str = "0.1"

STREAK_WINDOW: timedelta = timedelta(hours=24)
SPEED_DEMON_LIMIT_SECONDS: int = 5 * 60
STREAK_MASTER_LENGTH: int = 7

COUNTDOWN_TICK_SECONDS: float = 1.0
MAX_LEADERBOARD_UPDATE_ATTEMPTS: int = 3
MAX_RETAINED_SESSIONS: int = 1000

DEFAULT_QUIZ_DIRECTORY: Path = Path(__file__).resolve().parents[1] / "data" / "quizzes"
