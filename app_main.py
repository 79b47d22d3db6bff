"""Application entry point for QuizRanker."""

from __future__ import annotations

from pathlib import Path
import sys

from quiz_ranker.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_ranker.constants.quiz_constants import DEFAULT_QUIZ_DIRECTORY
from quiz_ranker.core.quiz_platform import QuizPlatform
from quiz_ranker.core.services.stores import InMemoryQuizStore
from quiz_ranker.server.api_server import run_api_server
from quiz_ranker.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, load quizzes, and serve the API."""
    logger = configure_logging()
    quiz_directory = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_QUIZ_DIRECTORY
    logger.info("Starting QuizRanker with quizzes from %s", quiz_directory)

    platform = QuizPlatform(InMemoryQuizStore.from_directory(quiz_directory))
    run_api_server(platform, host=DEFAULT_HOST, port=DEFAULT_PORT)


if __name__ == "__main__":
    main()
