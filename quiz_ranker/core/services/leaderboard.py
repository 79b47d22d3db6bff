"""Per-category and global leaderboards ranked by cumulative points."""

from __future__ import annotations

from datetime import datetime
import logging
from threading import Lock

from quiz_ranker.constants.quiz_constants import MAX_LEADERBOARD_UPDATE_ATTEMPTS
from quiz_ranker.core.errors import LeaderboardUpdateError, UpdateConflict
from quiz_ranker.core.models import Board, LeaderboardEntry
from quiz_ranker.core.services.profile_stats import incremental_mean
from quiz_ranker.core.services.stores import LeaderboardStore

logger = logging.getLogger(__name__)


def rerank(board: Board) -> None:
    """Sort by points (ties keep join order) and renumber ranks 1..N from scratch."""
    board.entries.sort(key=lambda e: (-e.total_points, e.joined_seq))
    for position, entry in enumerate(board.entries):
        entry.rank = position + 1


def apply_update(
    board: Board,
    user_id: str,
    score_percent: int,
    points: int,
    at: datetime,
) -> LeaderboardEntry:
    """Add one result to the user's entry on ``board`` and rerank it."""
    entry = board.entry_for(user_id)
    if entry is None:
        entry = LeaderboardEntry(
            user_id=user_id,
            quizzes_taken=1,
            average_score=float(score_percent),
            total_points=points,
            joined_seq=board.next_seq,
            last_active=at,
        )
        board.next_seq += 1
        board.entries.append(entry)
    else:
        entry.quizzes_taken += 1
        entry.total_points += points
        entry.average_score = incremental_mean(entry.average_score, entry.quizzes_taken, score_percent)
        entry.last_active = at

    rerank(board)
    board.last_updated = at
    return entry


class LeaderboardAggregator:
    """Applies results to boards with optimistic retries.

    Each board is read, updated and saved as one unit. Writers in this process
    are serialised per board; when the store still reports that another writer
    got there first, the update is replayed on a fresh copy of the board.
    """

    def __init__(
        self,
        store: LeaderboardStore,
        max_attempts: int = MAX_LEADERBOARD_UPDATE_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._store = store
        self._max_attempts = max_attempts
        self._locks_guard = Lock()
        self._board_locks: dict[str | None, Lock] = {}

    def record(
        self,
        user_id: str,
        category: str,
        score_percent: int,
        points: int,
        at: datetime,
    ) -> tuple[int, int]:
        """Return the user's new (category rank, global rank)."""
        category_rank = self.update_board(category, user_id, score_percent, points, at)
        global_rank = self.update_board(None, user_id, score_percent, points, at)
        return category_rank, global_rank

    def get_board(self, category: str | None) -> Board:
        return self._store.get_or_create_board(category)

    def get_user_ranks(self, user_id: str) -> tuple[int, dict[str, int]]:
        """Global rank (0 when unranked) and the rank on every category board the user is on."""
        global_rank = 0
        category_ranks: dict[str, int] = {}
        for board in self._store.list_boards():
            entry = board.entry_for(user_id)
            if entry is None:
                continue
            if board.is_global:
                global_rank = entry.rank
            else:
                category_ranks[board.category] = entry.rank
        return global_rank, category_ranks

    def update_board(
        self,
        category: str | None,
        user_id: str,
        score_percent: int,
        points: int,
        at: datetime,
    ) -> int:
        """Apply one result to a single board and return the user's rank on it."""
        label = category or "global"
        with self._lock_for(category):
            for attempt in range(1, self._max_attempts + 1):
                board = self._store.get_or_create_board(category)
                entry = apply_update(board, user_id, score_percent, points, at)
                try:
                    self._store.save(board)
                except UpdateConflict:
                    logger.warning(
                        "Conflict updating %s board for %s (attempt %d/%d)",
                        label, user_id, attempt, self._max_attempts,
                    )
                    continue
                return entry.rank

        logger.error("Giving up on %s board update for %s", label, user_id)
        raise LeaderboardUpdateError(
            f"Could not update the {label} board after {self._max_attempts} attempts."
        )

    def _lock_for(self, category: str | None) -> Lock:
        with self._locks_guard:
            lock = self._board_locks.get(category)
            if lock is None:
                lock = Lock()
                self._board_locks[category] = lock
            return lock
