"""Storage contracts and thread-safe in-memory implementations.

The core only talks to the ``*Store`` protocols, so a database-backed store can
replace the in-memory ones without touching the engines. Every read returns a
detached copy: callers mutate their copy and hand it back through ``save``.
"""

from __future__ import annotations

from collections.abc import Iterable
import copy
import logging
from pathlib import Path
from threading import Lock
from typing import Protocol

from quiz_ranker.core.errors import NotFound, UpdateConflict
from quiz_ranker.core.models import Board, Profile, Quiz
from quiz_ranker.core.quiz_importer import load_quizzes_from_directory

logger = logging.getLogger(__name__)


class QuizStore(Protocol):
    def get_quiz(self, quiz_id: str) -> Quiz: ...

    def list_quizzes(self) -> list[Quiz]: ...

    def increment_play_count(self, quiz_id: str) -> int: ...


class ProfileStore(Protocol):
    def get_or_create_profile(self, user_id: str) -> Profile: ...

    def save(self, profile: Profile) -> None: ...


class LeaderboardStore(Protocol):
    def get_or_create_board(self, category: str | None) -> Board: ...

    def save(self, board: Board) -> None: ...

    def list_boards(self) -> list[Board]: ...


class InMemoryQuizStore:
    """Holds quiz definitions keyed by id."""

    def __init__(self, quizzes: Iterable[Quiz] = ()) -> None:
        self._lock = Lock()
        self._quizzes: dict[str, Quiz] = {}
        self._play_counts: dict[str, int] = {}
        for quiz in quizzes:
            self.add_quiz(quiz)

    @classmethod
    def from_directory(cls, directory: Path) -> InMemoryQuizStore:
        quizzes = load_quizzes_from_directory(directory)
        logger.info("Loaded %d quiz(zes) from %s", len(quizzes), directory)
        return cls(quizzes)

    def add_quiz(self, quiz: Quiz) -> None:
        with self._lock:
            self._quizzes[quiz.id] = quiz
            self._play_counts.setdefault(quiz.id, 0)

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise NotFound(f"Quiz '{quiz_id}' not found.")
        return quiz

    def list_quizzes(self) -> list[Quiz]:
        with self._lock:
            return list(self._quizzes.values())

    def get_play_count(self, quiz_id: str) -> int:
        with self._lock:
            return self._play_counts.get(quiz_id, 0)

    def increment_play_count(self, quiz_id: str) -> int:
        with self._lock:
            if quiz_id not in self._quizzes:
                raise NotFound(f"Quiz '{quiz_id}' not found.")
            self._play_counts[quiz_id] += 1
            return self._play_counts[quiz_id]


class InMemoryProfileStore:
    """Profiles keyed by user id, created empty on first access."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._profiles: dict[str, Profile] = {}

    def get_or_create_profile(self, user_id: str) -> Profile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                profile = Profile(user_id=user_id)
                self._profiles[user_id] = profile
            return copy.deepcopy(profile)

    def save(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile.user_id] = copy.deepcopy(profile)


class InMemoryLeaderboardStore:
    """Boards keyed by category (``None`` for the global board).

    ``save`` is a compare-and-set on ``Board.version``: a board read before
    another writer saved is rejected with ``UpdateConflict`` and nothing is
    written.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._boards: dict[str | None, Board] = {}

    def get_or_create_board(self, category: str | None) -> Board:
        with self._lock:
            board = self._boards.get(category)
            if board is None:
                board = Board(category=category)
                self._boards[category] = board
            return copy.deepcopy(board)

    def save(self, board: Board) -> None:
        with self._lock:
            current = self._boards.get(board.category)
            current_version = current.version if current is not None else 0
            if board.version != current_version:
                raise UpdateConflict(
                    f"Board {board.category or 'global'!r} changed "
                    f"(expected version {board.version}, found {current_version})."
                )
            stored = copy.deepcopy(board)
            stored.version += 1
            self._boards[board.category] = stored
            board.version = stored.version

    def list_boards(self) -> list[Board]:
        with self._lock:
            return [copy.deepcopy(board) for board in self._boards.values()]
