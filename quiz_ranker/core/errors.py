"""Exception types raised by the quiz core."""

from __future__ import annotations


class QuizRankerError(Exception):
    """Base class for all errors raised by the quiz core."""


class InvalidQuiz(QuizRankerError):
    """Raised when a quiz cannot be played (no questions, or no correct option)."""


class NoSelection(QuizRankerError):
    """Raised when advancing without a pending option for the current question."""


class NotFound(QuizRankerError):
    """Raised when a quiz or session cannot be located."""


class SessionCompleted(QuizRankerError):
    """Raised when a navigation transition targets a finished session."""


class UpdateConflict(QuizRankerError):
    """Raised by a store when a record was modified since it was read."""


class LeaderboardUpdateError(QuizRankerError):
    """Raised when a board update could not be applied within the retry budget."""
