from __future__ import annotations

from threading import Event

import pytest

from quiz_ranker.core.errors import InvalidQuiz, NoSelection, SessionCompleted
from quiz_ranker.core.models import Quiz, QuizOption, QuizQuestion
from quiz_ranker.core.services.session_engine import QuizSession, SessionState

RIGHT = 0
WRONG = 1


def _answer(session: QuizSession, option: int):
    session.select_option(option)
    return session.advance()


def test_new_session_awaits_first_question(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(duration_minutes=3), "alice", clock=fixed_clock)

    assert session.state is SessionState.AWAITING_ANSWER
    assert session.current_index == 0
    assert session.remaining_seconds == 180
    assert session.pending_option is None


def test_timeout_before_last_question_scores_remaining_as_incorrect(make_quiz, fixed_clock):
    quiz = make_quiz(question_count=4, duration_minutes=1)
    session = QuizSession(quiz, "alice", clock=fixed_clock)

    _answer(session, RIGHT)
    _answer(session, WRONG)
    _answer(session, RIGHT)
    session.select_option(RIGHT)  # pending only, never committed
    result = session.tick(60)

    assert session.is_completed()
    assert result.correct_count == 2
    assert result.incorrect_count == 2
    assert result.score_percent == 50
    assert result.time_spent_seconds == 60


def test_advance_without_selection_leaves_state_unchanged(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    _answer(session, RIGHT)

    with pytest.raises(NoSelection):
        session.advance()

    assert session.current_index == 1
    assert len(session.get_answers()) == 1


def test_retreat_restores_committed_choice(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    _answer(session, WRONG)

    session.retreat()

    assert session.current_index == 0
    assert session.pending_option == WRONG


def test_retreat_at_first_question_is_noop(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    session.select_option(2)
    session.retreat()

    assert session.current_index == 0
    assert session.pending_option == 2


def test_reanswer_overwrites_instead_of_duplicating(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(question_count=3), "alice", clock=fixed_clock)
    _answer(session, WRONG)
    session.retreat()
    _answer(session, RIGHT)

    answers = session.get_answers()
    assert [a.question_index for a in answers] == [0]
    assert answers[0].is_correct
    assert session.current_index == 1


def test_moving_forward_restores_later_answers(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(question_count=3), "alice", clock=fixed_clock)
    _answer(session, RIGHT)
    _answer(session, WRONG)
    session.retreat()
    session.retreat()

    session.advance()  # question 0 still holds its committed choice

    assert session.current_index == 1
    assert session.pending_option == WRONG


def test_time_spent_accumulates_across_visits(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(question_count=3), "alice", clock=fixed_clock)
    session.tick(10)
    _answer(session, RIGHT)
    session.tick(5)
    session.retreat()
    session.tick(3)
    session.advance()

    first, = session.get_answers()
    assert first.time_spent_seconds == 13


def test_answering_last_question_completes(make_quiz, fixed_clock, base_time):
    session = QuizSession(make_quiz(question_count=2), "alice", clock=fixed_clock)
    assert _answer(session, RIGHT) is None
    session.tick(30)
    result = _answer(session, RIGHT)

    assert session.is_completed()
    assert result.score_percent == 100
    assert result.time_spent_seconds == 30
    assert result.completed_at == base_time
    assert session.submit_now() is result


def test_transitions_after_completion_are_rejected(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    session.submit_now()

    with pytest.raises(SessionCompleted):
        session.select_option(RIGHT)
    with pytest.raises(SessionCompleted):
        session.advance()
    with pytest.raises(SessionCompleted):
        session.retreat()
    assert session.tick() is None


def test_submit_with_no_answers_scores_zero(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    result = session.submit_now()

    assert result.score_percent == 0
    assert result.incorrect_count == 4


def test_countdown_suspended_after_completion(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(duration_minutes=1), "alice", clock=fixed_clock)
    session.tick(20)
    session.submit_now()
    session.tick(20)

    assert session.remaining_seconds == 40


def test_completion_callback_fires_once(make_quiz, fixed_clock):
    calls = []
    session = QuizSession(
        make_quiz(), "alice", clock=fixed_clock, on_complete=lambda s, r: calls.append(r)
    )
    session.submit_now()
    session.submit_now()
    session.tick(9999)

    assert len(calls) == 1


def test_option_out_of_range_is_rejected(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    with pytest.raises(ValueError):
        session.select_option(3)
    assert session.pending_option is None


def test_quiz_without_correct_option_is_invalid(make_quiz):
    quiz = Quiz(
        id="broken", title="Broken", category="Misc", difficulty=make_quiz().difficulty,
        duration_minutes=5,
        questions=(QuizQuestion("Pick one", (QuizOption("a"), QuizOption("b"))),),
    )
    with pytest.raises(InvalidQuiz):
        QuizSession(quiz, "alice")


def test_quiz_without_questions_is_invalid(make_quiz):
    quiz = make_quiz(question_count=0)
    with pytest.raises(InvalidQuiz):
        QuizSession(quiz, "alice")


def test_view_hides_correctness(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(), "alice", clock=fixed_clock)
    view = session.view()

    assert view.question_text == "Question 1"
    assert view.options == ("right", "wrong", "also wrong")
    assert not view.completed


def test_background_countdown_expires_session(make_quiz, fixed_clock):
    done = Event()
    results = []

    def on_complete(session, result):
        results.append(result)
        done.set()

    session = QuizSession(make_quiz(duration_minutes=1), "alice", clock=fixed_clock, on_complete=on_complete)
    _answer(session, RIGHT)
    session.start_countdown(interval=0.001)

    assert done.wait(timeout=10)
    assert session.remaining_seconds == 0
    assert results[0].time_spent_seconds == 60
    assert results[0].correct_count == 1
    assert len(results) == 1


def test_negative_tick_is_rejected(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(duration_minutes=1), "alice", clock=fixed_clock)
    session.tick(10)

    with pytest.raises(ValueError):
        session.tick(-100)
    assert session.remaining_seconds == 50


def test_manual_completion_cancels_running_countdown(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(question_count=1, duration_minutes=60), "alice", clock=fixed_clock)
    session.start_countdown(interval=0.01)
    timer = session.countdown
    assert timer is not None
    assert not timer.is_cancelled()

    _answer(session, RIGHT)
    timer.join(timeout=5)

    assert timer.is_cancelled()
    assert not timer.is_alive()
    assert session.remaining_seconds > 0


def test_submit_now_cancels_running_countdown(make_quiz, fixed_clock):
    session = QuizSession(make_quiz(duration_minutes=60), "alice", clock=fixed_clock)
    session.start_countdown(interval=0.01)

    session.submit_now()
    session.countdown.join(timeout=5)

    assert session.countdown.is_cancelled()
    assert not session.countdown.is_alive()
