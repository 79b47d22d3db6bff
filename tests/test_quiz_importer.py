from __future__ import annotations

from pathlib import Path

import pytest

from quiz_ranker.core.models import Difficulty
from quiz_ranker.core.quiz_importer import (
    QuizImportError,
    load_quiz_from_file,
    load_quizzes_from_directory,
    parse_quiz_text,
)

DATA_DIR = Path(__file__).resolve().parents[1] / "quiz_ranker" / "data" / "quizzes"

HEADER = "TITLE: Capitals\nCATEGORY: Geography\nDIFFICULTY: hard\nDURATION: 3\n"


def test_parses_header_and_questions():
    text = HEADER + (
        "\nQ: Capital of France?\nA: Lyon\nB: Paris\nCORRECT: B\n"
        "EXPLANATION: Paris has been the capital\nsince the 10th century.\n"
        "---\n"
        "Q: Which are in Spain?\nA: Madrid\nB: Porto\nC: Seville\nCORRECT: A, C\n"
    )
    quiz = parse_quiz_text(text, quiz_id="capitals")

    assert quiz.id == "capitals"
    assert quiz.category == "Geography"
    assert quiz.difficulty is Difficulty.HARD
    assert quiz.duration_seconds == 180
    assert quiz.question_count == 2
    assert quiz.questions[0].correct_indices == (1,)
    assert quiz.questions[0].explanation.endswith("since the 10th century.")
    assert quiz.questions[1].correct_indices == (0, 2)
    assert quiz.questions[1].explanation is None


def test_multiline_question_text():
    quiz = parse_quiz_text(HEADER + "\nQ: First line\nsecond line\nA: x\nB: y\nCORRECT: A\n", "q")
    assert quiz.questions[0].text == "First line\nsecond line"


@pytest.mark.parametrize(
    "body, message",
    [
        ("\nQ: No answer key\nA: x\nB: y\n", "no CORRECT"),
        ("\nQ: Lonely\nA: only\nCORRECT: A\n", "at least two"),
        ("\nQ: Skips\nA: x\nC: y\nCORRECT: A\n", "consecutive"),
        ("\nQ: Unknown key\nA: x\nB: y\nCORRECT: D\n", "undefined option"),
    ],
)
def test_rejects_malformed_questions(body, message):
    with pytest.raises(QuizImportError, match=message):
        parse_quiz_text(HEADER + body, "bad")


def test_rejects_bad_header():
    with pytest.raises(QuizImportError, match="DIFFICULTY"):
        parse_quiz_text(HEADER.replace("hard", "brutal") + "\nQ: a\nA: x\nB: y\nCORRECT: A\n", "bad")
    with pytest.raises(QuizImportError, match="DURATION"):
        parse_quiz_text(HEADER.replace("3", "0") + "\nQ: a\nA: x\nB: y\nCORRECT: A\n", "bad")
    with pytest.raises(QuizImportError, match="any questions"):
        parse_quiz_text(HEADER, "bad")


def test_file_errors_name_the_file(tmp_path):
    path = tmp_path / "broken.txt"
    path.write_text("TITLE: Nothing else\n", encoding="utf-8")

    with pytest.raises(QuizImportError, match="broken.txt"):
        load_quiz_from_file(path)


def test_bundled_quizzes_load():
    quizzes = load_quizzes_from_directory(DATA_DIR)

    assert [quiz.id for quiz in quizzes] == ["python_basics", "solar_system"]
    assert all(quiz.questions for quiz in quizzes)


def test_missing_directory_is_reported(tmp_path):
    with pytest.raises(QuizImportError):
        load_quizzes_from_directory(tmp_path / "absent")
