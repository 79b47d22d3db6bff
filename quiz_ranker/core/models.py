"""Domain models for quizzes, play results, profiles and leaderboards."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Difficulty(str, Enum):
    """Difficulty tier of a quiz; drives the point multiplier."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: str | Difficulty) -> Difficulty:
        if isinstance(value, Difficulty):
            return value
        cleaned = value.strip().lower()
        for member in cls:
            if member.value.lower() == cleaned:
                return member
        raise ValueError(f"Unknown difficulty '{value}'.")


@dataclass(frozen=True, slots=True)
class QuizOption:
    text: str
    is_correct: bool = False


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    """Multiple-choice question; one or more options may be correct."""

    text: str
    options: tuple[QuizOption, ...]
    explanation: str | None = None

    @property
    def correct_indices(self) -> tuple[int, ...]:
        return tuple(i for i, option in enumerate(self.options) if option.is_correct)


@dataclass(frozen=True, slots=True)
class Quiz:
    """Read-only quiz definition handed to a play session."""

    id: str
    title: str
    category: str
    difficulty: Difficulty
    duration_minutes: int
    questions: tuple[QuizQuestion, ...]
    description: str = ""

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @property
    def question_count(self) -> int:
        return len(self.questions)


@dataclass(frozen=True, slots=True)
class Answer:
    """A committed choice for one question of a session."""

    question_index: int
    selected_option_index: int
    is_correct: bool
    time_spent_seconds: int


@dataclass(frozen=True, slots=True)
class QuizResult:
    """Immutable outcome of a completed session."""

    score_percent: int
    correct_count: int
    incorrect_count: int
    total_questions: int
    time_spent_seconds: int
    average_time_per_question: int
    points: int
    completed_at: datetime


@dataclass(slots=True)
class QuizHistoryEntry:
    quiz_id: str
    category: str
    difficulty: Difficulty
    score: int
    total_questions: int
    correct_answers: int
    time_taken_seconds: int
    completed_at: datetime


@dataclass(slots=True)
class Achievement:
    """An unlocked achievement. Never modified once stored on a profile."""

    identifier: str
    earned_at: datetime
    earned: bool = True


@dataclass(slots=True)
class CategoryStats:
    quizzes_taken: int = 0
    average_score: float = 0.0


@dataclass(slots=True)
class ProfileStats:
    total_quizzes_taken: int = 0
    average_score: float = 0.0
    total_correct_answers: int = 0
    total_questions: int = 0
    best_category: str | None = None
    quiz_streak: int = 0
    last_quiz_date: datetime | None = None
    category_stats: dict[str, CategoryStats] = field(default_factory=dict)


@dataclass(slots=True)
class Profile:
    """Persistent per-user record: running stats, history and achievements."""

    user_id: str
    stats: ProfileStats = field(default_factory=ProfileStats)
    history: list[QuizHistoryEntry] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)

    def earned_identifiers(self) -> set[str]:
        return {a.identifier for a in self.achievements if a.earned}


@dataclass(slots=True)
class LeaderboardEntry:
    user_id: str
    quizzes_taken: int
    average_score: float
    total_points: int
    joined_seq: int
    last_active: datetime
    rank: int = 0


@dataclass(slots=True)
class Board:
    """Ranked entries for one category, or the global board when category is None."""

    category: str | None
    entries: list[LeaderboardEntry] = field(default_factory=list)
    version: int = 0
    next_seq: int = 1
    last_updated: datetime | None = None

    @property
    def is_global(self) -> bool:
        return self.category is None

    def entry_for(self, user_id: str) -> LeaderboardEntry | None:
        return next((e for e in self.entries if e.user_id == user_id), None)


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    """What a recorded result changed for the user."""

    category_rank: int
    global_rank: int
    newly_earned_achievements: tuple[str, ...]
