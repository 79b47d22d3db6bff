"""FastAPI adapter exposing quiz sessions, results, leaderboards and profiles.

The caller's identity is taken from the ``X-User-Id`` header, which the
upstream identity provider is expected to set after authenticating the user.
"""

from __future__ import annotations

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel
import uvicorn

from quiz_ranker.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from quiz_ranker.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, USER_ID_HEADER
from quiz_ranker.core.achievements import CATALOGUE
from quiz_ranker.core.errors import (
    InvalidQuiz,
    LeaderboardUpdateError,
    NoSelection,
    NotFound,
    QuizRankerError,
    SessionCompleted,
)
from quiz_ranker.core.models import Board, LeaderboardEntry, Profile, Quiz, QuizResult, RecordOutcome
from quiz_ranker.core.quiz_platform import QuizPlatform
from quiz_ranker.core.services.session_engine import SessionView


class StartSessionPayload(BaseModel):
    """Payload schema for starting a quiz."""

    quiz_id: str


class SelectPayload(BaseModel):
    """Payload schema for choosing an option on the current question."""

    option_index: int


def _to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidQuiz, ValueError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, (NoSelection, SessionCompleted)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, LeaderboardUpdateError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _quiz_summary_to_dict(quiz: Quiz) -> dict[str, object]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "category": quiz.category,
        "difficulty": quiz.difficulty.value,
        "duration_minutes": quiz.duration_minutes,
        "question_count": quiz.question_count,
    }


def _quiz_to_dict(quiz: Quiz) -> dict[str, object]:
    # Answers stay hidden until the session is played.
    body = _quiz_summary_to_dict(quiz)
    body["questions"] = [
        {"text": question.text, "options": [option.text for option in question.options]}
        for question in quiz.questions
    ]
    return body


def _result_to_dict(result: QuizResult) -> dict[str, object]:
    return {
        "score_percent": result.score_percent,
        "correct_count": result.correct_count,
        "incorrect_count": result.incorrect_count,
        "total_questions": result.total_questions,
        "time_spent_seconds": result.time_spent_seconds,
        "average_time_per_question": result.average_time_per_question,
        "points": result.points,
        "completed_at": result.completed_at.isoformat(),
    }


def _view_to_dict(view: SessionView) -> dict[str, object]:
    return {
        "session_id": view.session_id,
        "quiz_id": view.quiz_id,
        "quiz_title": view.quiz_title,
        "completed": view.completed,
        "question_index": view.question_index,
        "question_count": view.question_count,
        "question_text": view.question_text,
        "options": list(view.options),
        "pending_option": view.pending_option,
        "answered_count": view.answered_count,
        "remaining_seconds": view.remaining_seconds,
    }


def _entry_to_dict(entry: LeaderboardEntry) -> dict[str, object]:
    return {
        "user_id": entry.user_id,
        "rank": entry.rank,
        "quizzes_taken": entry.quizzes_taken,
        "average_score": entry.average_score,
        "total_points": entry.total_points,
        "last_active": entry.last_active.isoformat(),
    }


def _board_to_list(board: Board) -> list[dict[str, object]]:
    return [_entry_to_dict(entry) for entry in board.entries]


def _outcome_to_dict(outcome: RecordOutcome) -> dict[str, object]:
    return {
        "category_rank": outcome.category_rank,
        "global_rank": outcome.global_rank,
        "newly_earned_achievements": list(outcome.newly_earned_achievements),
    }


def _achievements_to_list(profile: Profile) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for achievement in profile.achievements:
        info = CATALOGUE.get(achievement.identifier)
        rows.append({
            "identifier": achievement.identifier,
            "name": info.name if info else achievement.identifier,
            "description": info.description if info else "",
            "icon": info.icon if info else "",
            "earned": achievement.earned,
            "earned_at": achievement.earned_at.isoformat(),
        })
    return rows


def _history_to_list(profile: Profile) -> list[dict[str, object]]:
    return [
        {
            "quiz_id": entry.quiz_id,
            "category": entry.category,
            "difficulty": entry.difficulty.value,
            "score": entry.score,
            "total_questions": entry.total_questions,
            "correct_answers": entry.correct_answers,
            "time_taken_seconds": entry.time_taken_seconds,
            "completed_at": entry.completed_at.isoformat(),
        }
        for entry in profile.history
    ]


def _profile_to_dict(profile: Profile) -> dict[str, object]:
    stats = profile.stats
    return {
        "user_id": profile.user_id,
        "stats": {
            "total_quizzes_taken": stats.total_quizzes_taken,
            "average_score": stats.average_score,
            "total_correct_answers": stats.total_correct_answers,
            "total_questions": stats.total_questions,
            "best_category": stats.best_category,
            "quiz_streak": stats.quiz_streak,
            "last_quiz_date": stats.last_quiz_date.isoformat() if stats.last_quiz_date else None,
        },
        "history": _history_to_list(profile),
        "achievements": _achievements_to_list(profile),
    }


def _get_platform_dependency(platform: QuizPlatform):
    def dependency() -> QuizPlatform:
        return platform

    return dependency


def _current_user(x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()


def create_api_app(platform: QuizPlatform) -> FastAPI:
    """Create a FastAPI application wired to the provided platform."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT)
    platform_dep = _get_platform_dependency(platform)

    @app.get("/quizzes")
    def list_quizzes(
        category: str | None = Query(default=None),
        difficulty: str | None = Query(default=None),
        search: str | None = Query(default=None),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> list[dict[str, object]]:
        try:
            quizzes = manager.list_quizzes(category=category, difficulty=difficulty, search=search)
        except ValueError as exc:
            raise _to_http_error(exc) from exc
        return [_quiz_summary_to_dict(quiz) for quiz in quizzes]

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: str, manager: QuizPlatform = Depends(platform_dep)) -> dict[str, object]:
        try:
            return _quiz_to_dict(manager.get_quiz(quiz_id))
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/sessions", status_code=201)
    def start_session(
        payload: StartSessionPayload,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            handle = manager.start_session(payload.quiz_id, user_id)
            return _view_to_dict(manager.get_session_view(handle, user_id))
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc

    @app.get("/sessions/{session_id}")
    def get_session(
        session_id: str,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            view = manager.get_session_view(session_id, user_id)
            body = _view_to_dict(view)
            if view.completed:
                body["result"] = _result_to_dict(manager.get_finished_result(session_id, user_id))
            return body
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/sessions/{session_id}/select")
    def select_option(
        session_id: str,
        payload: SelectPayload,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            manager.select_option(session_id, payload.option_index, user_id)
            return _view_to_dict(manager.get_session_view(session_id, user_id))
        except (QuizRankerError, ValueError) as exc:
            raise _to_http_error(exc) from exc

    @app.post("/sessions/{session_id}/advance")
    def advance(
        session_id: str,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            result = manager.advance(session_id, user_id)
            body = _view_to_dict(manager.get_session_view(session_id, user_id))
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc
        if result is not None:
            body["result"] = _result_to_dict(result)
        return body

    @app.post("/sessions/{session_id}/retreat")
    def retreat(
        session_id: str,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            manager.retreat(session_id, user_id)
            return _view_to_dict(manager.get_session_view(session_id, user_id))
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/sessions/{session_id}/submit")
    def submit(
        session_id: str,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            return _result_to_dict(manager.submit_now(session_id, user_id))
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/sessions/{session_id}/record")
    def record(
        session_id: str,
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        try:
            return _outcome_to_dict(manager.record_session_result(session_id, user_id))
        except QuizRankerError as exc:
            raise _to_http_error(exc) from exc

    @app.get("/leaderboard/global")
    def global_leaderboard(manager: QuizPlatform = Depends(platform_dep)) -> list[dict[str, object]]:
        return _board_to_list(manager.get_board(None))

    @app.get("/leaderboard/category/{category}")
    def category_leaderboard(
        category: str,
        manager: QuizPlatform = Depends(platform_dep),
    ) -> list[dict[str, object]]:
        return _board_to_list(manager.get_board(category))

    @app.get("/leaderboard/rank")
    def user_rank(
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        global_rank, category_ranks = manager.get_user_ranks(user_id)
        return {"global_rank": global_rank, "category_ranks": category_ranks}

    @app.get("/profile/me")
    def profile(
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> dict[str, object]:
        return _profile_to_dict(manager.get_profile(user_id))

    @app.get("/profile/history")
    def history(
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> list[dict[str, object]]:
        return _history_to_list(manager.get_profile(user_id))

    @app.get("/profile/achievements")
    def achievements(
        user_id: str = Depends(_current_user),
        manager: QuizPlatform = Depends(platform_dep),
    ) -> list[dict[str, object]]:
        return _achievements_to_list(manager.get_profile(user_id))

    return app


def run_api_server(
    platform: QuizPlatform,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(platform)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    uvicorn.Server(config).run()
