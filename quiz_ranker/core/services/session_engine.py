"""Timed quiz session: question sequencing, answer recording and submission."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
import logging
from threading import Event, Lock, Thread, current_thread
from uuid import uuid4

from quiz_ranker.constants.quiz_constants import COUNTDOWN_TICK_SECONDS
from quiz_ranker.core.errors import InvalidQuiz, NoSelection, SessionCompleted
from quiz_ranker.core.models import Answer, Quiz, QuizResult
from quiz_ranker.core.scoring import calculate_result

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_quiz(quiz: Quiz) -> None:
    """Reject quizzes that cannot be played."""
    if not quiz.questions:
        raise InvalidQuiz(f"Quiz '{quiz.id}' has no questions.")
    for index, question in enumerate(quiz.questions):
        if not question.correct_indices:
            raise InvalidQuiz(f"Question {index + 1} of quiz '{quiz.id}' has no correct option.")
    if quiz.duration_minutes <= 0:
        raise InvalidQuiz(f"Quiz '{quiz.id}' must have a positive duration.")


class SessionState(Enum):
    AWAITING_ANSWER = auto()
    COMPLETED = auto()


@dataclass(frozen=True, slots=True)
class SessionView:
    """Snapshot of a session for callers; never exposes option correctness."""

    session_id: str
    quiz_id: str
    quiz_title: str
    completed: bool
    question_index: int
    question_count: int
    question_text: str | None
    options: tuple[str, ...]
    pending_option: int | None
    answered_count: int
    remaining_seconds: int


class CountdownTimer:
    """Calls ``on_tick`` every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(
        self,
        on_tick: Callable[[], object],
        interval: float = COUNTDOWN_TICK_SECONDS,
        name: str = "QuizCountdown",
    ) -> None:
        self._on_tick = on_tick
        self._interval = interval
        self._cancelled = Event()
        self._thread = Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        # Never joins: the owner may hold a lock the timer thread is waiting on.
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive() and current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            self._on_tick()


class QuizSession:
    """State machine for one user's attempt at one quiz.

    The session is either awaiting an answer for ``current_index`` or completed.
    Committed answers are kept per question index, so moving back and forth
    restores earlier choices and a re-answer replaces the previous one. Every
    transition holds the session lock, including timer ticks, so at most one
    transition is ever applied at a time.
    """

    def __init__(
        self,
        quiz: Quiz,
        user_id: str,
        *,
        session_id: str | None = None,
        clock: Callable[[], datetime] | None = None,
        on_complete: Callable[[QuizSession, QuizResult], None] | None = None,
    ) -> None:
        validate_quiz(quiz)
        self.session_id = session_id or uuid4().hex
        self.quiz = quiz
        self.user_id = user_id
        self._clock = clock or _utc_now
        self._on_complete = on_complete
        self._lock = Lock()

        self._state = SessionState.AWAITING_ANSWER
        self._index = 0
        self._remaining = quiz.duration_seconds
        self._pending: int | None = None
        self._answers: dict[int, Answer] = {}
        self._time_by_question: dict[int, int] = {}
        self._shown_at_remaining = self._remaining
        self._result: QuizResult | None = None
        self._timer: CountdownTimer | None = None

    # --- Countdown ---

    def start_countdown(self, interval: float = COUNTDOWN_TICK_SECONDS) -> None:
        """Run the countdown on a background clock; each tick is one second of quiz time."""
        with self._lock:
            if self._state is SessionState.COMPLETED or self._timer is not None:
                return
            self._timer = CountdownTimer(self.tick, interval, name=f"QuizCountdown-{self.session_id[:8]}")
            self._timer.start()

    def tick(self, seconds: int = 1) -> QuizResult | None:
        """Advance the countdown; returns the result if this tick expired the timer."""
        if seconds < 0:
            raise ValueError(f"Countdown cannot move backwards (got {seconds} seconds).")
        with self._lock:
            if self._state is SessionState.COMPLETED:
                return None
            self._remaining = max(0, self._remaining - seconds)
            if self._remaining > 0:
                return None
            logger.info("Session %s timed out; submitting %d answer(s)", self.session_id, len(self._answers))
            result = self._complete_locked()
        self._notify(result)
        return result

    # --- Transitions ---

    def select_option(self, option_index: int) -> None:
        with self._lock:
            self._ensure_active()
            options = self.quiz.questions[self._index].options
            if not 0 <= option_index < len(options):
                raise ValueError(f"Option index {option_index} out of range")
            self._pending = option_index

    def advance(self) -> QuizResult | None:
        """Commit the pending choice; returns the result when the last question is committed."""
        with self._lock:
            self._ensure_active()
            if self._pending is None:
                raise NoSelection("Select an option before moving on.")
            self._leave_current_question()
            question = self.quiz.questions[self._index]
            self._answers[self._index] = Answer(
                question_index=self._index,
                selected_option_index=self._pending,
                is_correct=question.options[self._pending].is_correct,
                time_spent_seconds=self._time_by_question.get(self._index, 0),
            )
            if self._index == self.quiz.question_count - 1:
                result = self._complete_locked()
            else:
                self._show_question(self._index + 1)
                return None
        self._notify(result)
        return result

    def retreat(self) -> None:
        with self._lock:
            self._ensure_active()
            if self._index == 0:
                return
            self._leave_current_question()
            self._show_question(self._index - 1)

    def submit_now(self) -> QuizResult:
        """Finish immediately. Calling it on a completed session returns the same result."""
        with self._lock:
            if self._result is not None:
                return self._result
            result = self._complete_locked()
        self._notify(result)
        return result

    # --- Accessors ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def pending_option(self) -> int | None:
        return self._pending

    @property
    def result(self) -> QuizResult | None:
        return self._result

    @property
    def countdown(self) -> CountdownTimer | None:
        return self._timer

    def is_completed(self) -> bool:
        return self._state is SessionState.COMPLETED

    def get_answers(self) -> list[Answer]:
        with self._lock:
            return [self._answers[i] for i in sorted(self._answers)]

    def view(self) -> SessionView:
        with self._lock:
            completed = self._state is SessionState.COMPLETED
            question = None if completed else self.quiz.questions[self._index]
            return SessionView(
                session_id=self.session_id,
                quiz_id=self.quiz.id,
                quiz_title=self.quiz.title,
                completed=completed,
                question_index=self._index,
                question_count=self.quiz.question_count,
                question_text=question.text if question else None,
                options=tuple(o.text for o in question.options) if question else (),
                pending_option=self._pending,
                answered_count=len(self._answers),
                remaining_seconds=self._remaining,
            )

    # --- Internals (lock held) ---

    def _ensure_active(self) -> None:
        if self._state is SessionState.COMPLETED:
            raise SessionCompleted(f"Session {self.session_id} is already completed.")

    def _show_question(self, index: int) -> None:
        self._index = index
        previous = self._answers.get(index)
        self._pending = previous.selected_option_index if previous else None
        self._shown_at_remaining = self._remaining

    def _leave_current_question(self) -> None:
        elapsed = self._shown_at_remaining - self._remaining
        self._time_by_question[self._index] = self._time_by_question.get(self._index, 0) + elapsed
        self._shown_at_remaining = self._remaining

    def _complete_locked(self) -> QuizResult:
        self._leave_current_question()
        self._state = SessionState.COMPLETED
        self._pending = None
        if self._timer is not None:
            self._timer.cancel()
        answers = [self._answers[i] for i in sorted(self._answers)]
        self._result = calculate_result(
            self.quiz,
            answers,
            time_spent_seconds=self.quiz.duration_seconds - self._remaining,
            completed_at=self._clock(),
        )
        return self._result

    def _notify(self, result: QuizResult) -> None:
        if self._on_complete is not None:
            self._on_complete(self, result)
