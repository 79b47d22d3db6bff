"""Load quiz definitions from a plain-text file format.

A file starts with a header block, followed by question blocks. Blocks are
separated by blank lines or '---':

    TITLE: Solar System Basics
    CATEGORY: Science
    DIFFICULTY: Easy|Medium|Hard
    DURATION: minutes
    DESCRIPTION: optional one-liner

    Q: Question text. Additional lines until the next marker are treated as
       part of the question.
    A: First option text
    B: Second option text
    C: ... (two to six options, A-F)
    CORRECT: B        (one or more letters, comma separated)
    EXPLANATION: optional text shown after the quiz

The quiz id is the file name without its extension.
"""

from __future__ import annotations

from pathlib import Path

from quiz_ranker.core.models import Difficulty, Quiz, QuizOption, QuizQuestion


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F"]
_HEADER_KEYS = ("TITLE", "CATEGORY", "DIFFICULTY", "DURATION", "DESCRIPTION")
_MIN_OPTIONS = 2


def load_quiz_from_file(file_path: Path) -> Quiz:
    text = file_path.read_text(encoding="utf-8")
    try:
        return parse_quiz_text(text, quiz_id=file_path.stem)
    except QuizImportError as exc:
        raise QuizImportError(f"{file_path.name}: {exc}") from exc


def load_quizzes_from_directory(directory: Path) -> list[Quiz]:
    """Load every ``*.txt`` quiz in a directory, sorted by file name."""
    if not directory.is_dir():
        raise QuizImportError(f"Quiz directory '{directory}' does not exist.")
    return [load_quiz_from_file(path) for path in sorted(directory.glob("*.txt"))]


def parse_quiz_text(text: str, quiz_id: str) -> Quiz:
    blocks = _split_blocks(text)
    if not blocks:
        raise QuizImportError("Quiz file is empty.")

    header = _parse_header(blocks[0])
    questions = tuple(_parse_block(block) for block in blocks[1:])
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")

    for key in ("TITLE", "CATEGORY", "DIFFICULTY", "DURATION"):
        if not header.get(key):
            raise QuizImportError(f"Header is missing {key}.")

    try:
        difficulty = Difficulty.parse(header["DIFFICULTY"])
    except ValueError as exc:
        raise QuizImportError("DIFFICULTY must be one of Easy, Medium or Hard.") from exc

    try:
        duration = int(header["DURATION"])
    except ValueError as exc:
        raise QuizImportError("DURATION must be an integer number of minutes.") from exc
    if duration <= 0:
        raise QuizImportError("DURATION must be a positive integer.")

    return Quiz(
        id=quiz_id,
        title=header["TITLE"],
        category=header["CATEGORY"],
        difficulty=difficulty,
        duration_minutes=duration,
        questions=questions,
        description=header.get("DESCRIPTION", ""),
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block))
    return blocks


def _parse_header(block: str) -> dict[str, str]:
    header: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        key, sep, value = line.partition(":")
        key = key.strip().upper()
        if not sep or key not in _HEADER_KEYS:
            raise QuizImportError(f"Unexpected line in header block: '{line}'.")
        header[key] = value.strip()
    return header


def _parse_block(block: str) -> QuizQuestion:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letters: list[str] = []
    explanation_lines: list[str] = []
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            raw_value = line.split(":", 1)[1]
            correct_letters = [part.strip().upper() for part in raw_value.split(",") if part.strip()]
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    letters = _OPTION_ORDER[: len(options)]
    if len(options) < _MIN_OPTIONS or sorted(options) != letters:
        raise QuizImportError(
            f"Question '{question_text}' must define consecutive options starting at A (at least two)."
        )
    if any(not options[letter].strip() for letter in letters):
        raise QuizImportError("Option text cannot be empty.")

    if not correct_letters:
        raise QuizImportError(f"Question '{question_text}' has no CORRECT option.")
    unknown = [letter for letter in correct_letters if letter not in letters]
    if unknown:
        raise QuizImportError(f"CORRECT refers to undefined option(s): {', '.join(unknown)}.")

    explanation = "\n".join(explanation_lines).strip() or None
    return QuizQuestion(
        text=question_text,
        options=tuple(
            QuizOption(text=options[letter].strip(), is_correct=letter in correct_letters)
            for letter in letters
        ),
        explanation=explanation,
    )
