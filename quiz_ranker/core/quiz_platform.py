"""Business logic shared by every outward interface (HTTP adapter, scripts, tests)."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
import logging
from threading import Lock

from quiz_ranker.constants.quiz_constants import COUNTDOWN_TICK_SECONDS, MAX_RETAINED_SESSIONS
from quiz_ranker.core.errors import NotFound, SessionCompleted
from quiz_ranker.core.models import Board, Difficulty, Profile, Quiz, QuizResult, RecordOutcome
from quiz_ranker.core.services.leaderboard import LeaderboardAggregator
from quiz_ranker.core.services.profile_stats import ProfileStatsEngine
from quiz_ranker.core.services.session_engine import QuizSession, SessionView
from quiz_ranker.core.services.stores import (
    InMemoryLeaderboardStore,
    InMemoryProfileStore,
    LeaderboardStore,
    ProfileStore,
    QuizStore,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FinishedSession:
    """What is left of a session once it produced its result."""

    user_id: str
    quiz: Quiz
    result: QuizResult
    final_view: SessionView
    achievements: tuple[str, ...] | None = None
    category_rank: int | None = None
    global_rank: int | None = None
    outcome: RecordOutcome | None = None
    lock: Lock = field(default_factory=Lock, repr=False)


@dataclass(frozen=True, slots=True)
class RecordedSession:
    """A finished session whose result is already in the profile and on the boards."""

    user_id: str
    result: QuizResult
    final_view: SessionView
    outcome: RecordOutcome


class QuizPlatform:
    """Facade for quiz services: sessions, ProfileStatsEngine and LeaderboardAggregator."""

    def __init__(
        self,
        quiz_store: QuizStore,
        profile_store: ProfileStore | None = None,
        leaderboard_store: LeaderboardStore | None = None,
        *,
        auto_countdown: bool = True,
        countdown_interval: float = COUNTDOWN_TICK_SECONDS,
        clock: Callable[[], datetime] | None = None,
        retain_limit: int = MAX_RETAINED_SESSIONS,
    ) -> None:
        self._lock = Lock()
        self._quizzes = quiz_store
        self._profiles = ProfileStatsEngine(profile_store or InMemoryProfileStore())
        self._leaderboards = LeaderboardAggregator(leaderboard_store or InMemoryLeaderboardStore())
        self._auto_countdown = auto_countdown
        self._countdown_interval = countdown_interval
        self._clock = clock
        self._retain_limit = retain_limit

        self._sessions: dict[str, QuizSession] = {}
        # Both are trimmed oldest-first once they outgrow retain_limit.
        self._finished: OrderedDict[str, FinishedSession] = OrderedDict()
        self._recorded: OrderedDict[str, RecordedSession] = OrderedDict()

    # --- Sessions ---

    def start_session(self, quiz_id: str, user_id: str) -> str:
        """Create a session for the quiz and return its handle."""
        quiz = self._quizzes.get_quiz(quiz_id)
        session = QuizSession(quiz, user_id, clock=self._clock, on_complete=self._on_session_complete)
        with self._lock:
            self._sessions[session.session_id] = session
        self._quizzes.increment_play_count(quiz_id)
        if self._auto_countdown:
            session.start_countdown(self._countdown_interval)
        logger.info("User %s started quiz %s (session %s)", user_id, quiz_id, session.session_id)
        return session.session_id

    def select_option(self, handle: str, option_index: int, user_id: str | None = None) -> None:
        self._active_session(handle, user_id).select_option(option_index)

    def advance(self, handle: str, user_id: str | None = None) -> QuizResult | None:
        return self._active_session(handle, user_id).advance()

    def retreat(self, handle: str, user_id: str | None = None) -> None:
        self._active_session(handle, user_id).retreat()

    def tick(self, handle: str, seconds: int = 1) -> QuizResult | None:
        """Drive the countdown by hand (used when auto_countdown is off)."""
        return self._active_session(handle, None).tick(seconds)

    def submit_now(self, handle: str, user_id: str | None = None) -> QuizResult:
        with self._lock:
            session = self._sessions.get(handle)
        if session is not None:
            self._check_owner(handle, session.user_id, user_id)
            return session.submit_now()
        return self._completed(handle, user_id).result

    def get_session_view(self, handle: str, user_id: str | None = None) -> SessionView:
        with self._lock:
            session = self._sessions.get(handle)
        if session is not None:
            self._check_owner(handle, session.user_id, user_id)
            return session.view()
        return self._completed(handle, user_id).final_view

    def get_finished_result(self, handle: str, user_id: str | None = None) -> QuizResult:
        return self._completed(handle, user_id).result

    def discard_session(self, handle: str) -> None:
        """Forget a session; an unfinished one is completed first so its countdown stops."""
        with self._lock:
            session = self._sessions.get(handle)
        if session is not None:
            session.submit_now()
        with self._lock:
            self._finished.pop(handle, None)
            self._recorded.pop(handle, None)

    def retained_session_count(self) -> int:
        """Number of sessions still held in memory, whatever their state."""
        with self._lock:
            return len(self._sessions) + len(self._finished) + len(self._recorded)

    # --- Results ---

    def record_result(
        self,
        user_id: str,
        quiz_id: str,
        category: str,
        difficulty: Difficulty | str,
        result: QuizResult,
    ) -> RecordOutcome:
        """Fold a result into the user's profile and into the category and global boards."""
        tier = Difficulty.parse(difficulty)
        newly_earned = self._profiles.record(user_id, quiz_id, category, tier, result)
        category_rank, global_rank = self._leaderboards.record(
            user_id, category, result.score_percent, result.points, result.completed_at
        )
        return RecordOutcome(category_rank, global_rank, newly_earned)

    def record_session_result(self, handle: str, user_id: str | None = None) -> RecordOutcome:
        """Record a finished session exactly once.

        Steps that succeeded on an earlier call are not repeated, so a failed
        board update can be retried without counting the profile or the other
        board twice. Once every step succeeded the session is reduced to its
        outcome, and later calls return that same outcome.
        """
        completed = self._completed(handle, user_id)
        if isinstance(completed, RecordedSession):
            return completed.outcome

        finished = completed
        quiz = finished.quiz
        with finished.lock:
            if finished.outcome is not None:
                return finished.outcome
            if finished.achievements is None:
                finished.achievements = self._profiles.record(
                    finished.user_id, quiz.id, quiz.category, quiz.difficulty, finished.result
                )
            result = finished.result
            if finished.category_rank is None:
                finished.category_rank = self._leaderboards.update_board(
                    quiz.category, finished.user_id, result.score_percent, result.points, result.completed_at
                )
            if finished.global_rank is None:
                finished.global_rank = self._leaderboards.update_board(
                    None, finished.user_id, result.score_percent, result.points, result.completed_at
                )
            finished.outcome = RecordOutcome(
                category_rank=finished.category_rank,
                global_rank=finished.global_rank,
                newly_earned_achievements=finished.achievements,
            )
            recorded = RecordedSession(
                user_id=finished.user_id,
                result=finished.result,
                final_view=finished.final_view,
                outcome=finished.outcome,
            )
            with self._lock:
                self._finished.pop(handle, None)
                self._recorded[handle] = recorded
                self._trim_locked(self._recorded, "recorded")
            return finished.outcome

    # --- Read side ---

    def get_quiz(self, quiz_id: str) -> Quiz:
        return self._quizzes.get_quiz(quiz_id)

    def list_quizzes(
        self,
        category: str | None = None,
        difficulty: Difficulty | str | None = None,
        search: str | None = None,
    ) -> list[Quiz]:
        """Quizzes matching every given filter, sorted by title.

        ``category`` "All" matches everything. ``search`` is a case-insensitive
        substring of the title or description.
        """
        tier = Difficulty.parse(difficulty) if difficulty else None
        needle = search.strip().lower() if search else ""
        matches = []
        for quiz in self._quizzes.list_quizzes():
            if category and category != "All" and quiz.category != category:
                continue
            if tier is not None and quiz.difficulty is not tier:
                continue
            if needle and needle not in quiz.title.lower() and needle not in quiz.description.lower():
                continue
            matches.append(quiz)
        return sorted(matches, key=lambda quiz: quiz.title.lower())

    def get_board(self, category: str | None) -> Board:
        return self._leaderboards.get_board(category)

    def get_user_ranks(self, user_id: str) -> tuple[int, dict[str, int]]:
        return self._leaderboards.get_user_ranks(user_id)

    def get_profile(self, user_id: str) -> Profile:
        return self._profiles.get_profile(user_id)

    # --- Internals ---

    def _on_session_complete(self, session: QuizSession, result: QuizResult) -> None:
        finished = FinishedSession(
            user_id=session.user_id,
            quiz=session.quiz,
            result=result,
            final_view=session.view(),
        )
        with self._lock:
            self._sessions.pop(session.session_id, None)
            self._finished[session.session_id] = finished
            self._trim_locked(self._finished, "unrecorded")
        logger.info(
            "Session %s finished: %d%% (%d points)",
            session.session_id, result.score_percent, result.points,
        )

    def _trim_locked(self, sessions: OrderedDict, label: str) -> None:
        while len(sessions) > self._retain_limit:
            handle, _ = sessions.popitem(last=False)
            logger.info("Dropped %s session %s (limit %d)", label, handle, self._retain_limit)

    def _active_session(self, handle: str, user_id: str | None) -> QuizSession:
        with self._lock:
            session = self._sessions.get(handle)
        if session is None:
            self._completed(handle, user_id)
            raise SessionCompleted(f"Session {handle} is already completed.")
        self._check_owner(handle, session.user_id, user_id)
        return session

    def _completed(self, handle: str, user_id: str | None) -> FinishedSession | RecordedSession:
        with self._lock:
            completed = self._finished.get(handle) or self._recorded.get(handle)
        if completed is None:
            raise NotFound(f"Session '{handle}' not found.")
        self._check_owner(handle, completed.user_id, user_id)
        return completed

    @staticmethod
    def _check_owner(handle: str, owner_id: str, user_id: str | None) -> None:
        if user_id is not None and user_id != owner_id:
            raise NotFound(f"Session '{handle}' not found.")
