"""Static metadata describing QuizRanker."""

APP_NAME = "QuizRanker"
APP_VERSION = "0.1.0"
APP_ABOUT_TEXT = (
    "QuizRanker runs timed multiple-choice quizzes and ranks players on "
    "per-category and global leaderboards."
)
