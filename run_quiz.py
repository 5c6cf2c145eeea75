#!/usr/bin/env python3
"""Generate a math quiz from the terminal.

Generates a quiz for a level, grade and topic, then either prints it as JSON
or lets the learner take it interactively and records the result in the
local history.

Exit Codes:
    0 - Success (full quiz generated)
    1 - Partial failure (some difficulty tiers could not be generated)
    2 - Complete failure (no questions generated)
    3 - Configuration error (missing API key, invalid arguments)
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Callable, List, Optional

from mathquiz.chat import ChatTutor, apology_for
from mathquiz.config import load_provider_config, save_provider_config, settings
from mathquiz.curriculum import CURRICULUM, resolve_topic, topics_for
from mathquiz.exceptions import MissingCredential, QuizServiceError, StoreUnreadable
from mathquiz.generator import QuestionSetGenerator
from mathquiz.history import QuizHistory
from mathquiz.logging_config import setup_logging
from mathquiz.models import EducationLevel, GenerationResult, Question
from mathquiz.session import QuizSession, encouragement, score_band
from mathquiz.storage import JsonFileKeyValueStore, KeyValueStore

# Exit codes
EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_COMPLETE_FAILURE = 2
EXIT_CONFIG_ERROR = 3

BAND_LABELS = {"good": "Tốt", "fair": "Khá", "poor": "Cần cố gắng"}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Generate and take a math quiz",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Save the API key and preferred model
  python run_quiz.py --set-key YOUR_KEY --model gemini-2.5-flash

  # List topics for grade 7
  python run_quiz.py --level middle --grade 7 --list-topics

  # Take a quiz on the first curriculum topic of grade 1
  python run_quiz.py --level primary --grade 1

  # Print a quiz on a custom topic as JSON
  python run_quiz.py --level high --grade 10 --topic "Hàm số bậc hai" --json

  # Ask the tutor a question
  python run_quiz.py --ask "Giải phương trình x² - 5x + 6 = 0"

  # Show or clear past attempts
  python run_quiz.py --history
  python run_quiz.py --clear-history
        """,
    )

    parser.add_argument(
        "--level",
        choices=[lv.value for lv in EducationLevel],
        default=EducationLevel.PRIMARY.value,
        help="Education level (default: primary)",
    )
    parser.add_argument(
        "--grade",
        type=int,
        default=None,
        help="Grade within the level (default: first grade of the level)",
    )
    parser.add_argument(
        "--topic",
        type=str,
        default=None,
        help="Custom topic, 5-100 characters (default: first curriculum topic)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the generated quiz as JSON instead of playing it",
    )
    parser.add_argument(
        "--list-topics",
        action="store_true",
        help="List curriculum topics for the level and grade",
    )
    parser.add_argument(
        "--ask",
        type=str,
        default=None,
        help="Send one message to the chat tutor and print the reply",
    )
    parser.add_argument(
        "--set-key",
        type=str,
        default=None,
        help="Save the Gemini API key to local storage",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"Preferred model to save with --set-key (default: {settings.default_model})",
    )
    parser.add_argument(
        "--history",
        action="store_true",
        help="Show past quiz attempts",
    )
    parser.add_argument(
        "--clear-history",
        action="store_true",
        help="Delete all past quiz attempts",
    )
    parser.add_argument(
        "--store",
        type=str,
        default=settings.storage_path,
        help=f"Path of the local storage file (default: {settings.storage_path})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def print_history(store: KeyValueStore) -> None:
    records = QuizHistory(store).list()
    if not records:
        print("No quiz attempts yet.")
        return
    for record in records:
        print(
            f"{record.date}  {record.level.value:<7}  grade {record.grade:<2}  "
            f"{record.score}/{record.total_questions}  {record.topic}"
        )


def print_question(index: int, total: int, question: Question) -> None:
    print(f"\nCâu {index + 1}/{total} [{question.difficulty_label}]")
    print(question.text)
    for option in question.options:
        print(f"  {option}")


def print_summary(session: QuizSession) -> None:
    """Result screen: score, per-tier breakdown and the missed questions."""
    band = score_band(session.score, session.total_questions)
    print(f"\nKết quả: {session.score}/{session.total_questions} ({BAND_LABELS[band]})")
    print(encouragement(session.score))

    for difficulty, tally in session.score_by_difficulty().items():
        print(f"  {difficulty.label}: {tally['correct']}/{tally['total']}")

    missed = session.review("incorrect")
    if missed:
        print("\nCác câu trả lời sai:")
        for question in missed:
            print(f"  - {question.text} (đáp án đúng: {question.correct_answer})")


def play(
    session: QuizSession,
    read: Optional[Callable[[str], str]] = None,
) -> None:
    """Run the quiz interactively, one question at a time."""
    read = read or input
    total = session.total_questions
    for index in range(total):
        question = session.current_question
        print_question(index, total, question)

        while True:
            choice = read("Đáp án (A/B/C/D): ").strip().upper()
            try:
                correct = session.answer(question.id, choice)
                break
            except ValueError as e:
                print(e)

        if correct:
            print("✔ Chính xác!")
        else:
            print(f"✘ Đáp án đúng: {question.correct_answer}")
        print(question.explanation)

        if index < total - 1:
            session.next()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the quiz CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = parse_arguments(argv)

    setup_logging(
        log_level="DEBUG" if args.verbose else settings.log_level,
        log_file=settings.log_file,
    )
    logger = logging.getLogger("mathquiz.cli")

    store = JsonFileKeyValueStore(args.store)
    try:
        return run(args, store, logger)
    except StoreUnreadable as e:
        logger.error(str(e))
        print(f"Error: {e.user_message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


def run(args: argparse.Namespace, store: KeyValueStore, logger: logging.Logger) -> int:
    """Carry out the action selected on the command line.

    Raises:
        StoreUnreadable: If a write is attempted on an unreadable store file
    """
    if args.set_key is not None:
        save_provider_config(store, args.set_key, args.model or settings.default_model)
        print("Settings saved.")
        return EXIT_SUCCESS

    if args.history:
        print_history(store)
        return EXIT_SUCCESS

    if args.clear_history:
        QuizHistory(store).clear()
        print("History cleared.")
        return EXIT_SUCCESS

    config = load_provider_config(store)

    if args.ask is not None:
        tutor = ChatTutor(
            fallback_models=settings.fallback_models,
            attempt_timeout_seconds=settings.attempt_timeout_seconds,
        )
        try:
            print(asyncio.run(tutor.reply([], args.ask, config)))
        except QuizServiceError as e:
            print(apology_for(e))
            return EXIT_CONFIG_ERROR if isinstance(e, MissingCredential) else EXIT_COMPLETE_FAILURE
        return EXIT_SUCCESS

    level = EducationLevel(args.level)
    grade = args.grade if args.grade is not None else min(CURRICULUM[level])

    try:
        curriculum_topics = topics_for(level, grade)
        if args.list_topics:
            for topic in curriculum_topics:
                print(topic)
            return EXIT_SUCCESS
        topic = resolve_topic(curriculum_topics[0], args.topic)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    generator = QuestionSetGenerator(
        fallback_models=settings.fallback_models,
        temperature=settings.generation_temperature,
        attempt_timeout_seconds=settings.attempt_timeout_seconds,
    )

    logger.info(f"Generating quiz: level={level.value}, grade={grade}, topic='{topic}'")
    try:
        result: GenerationResult = asyncio.run(
            generator.generate_set(level, grade, topic, config)
        )
    except MissingCredential as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except QuizServiceError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        return EXIT_COMPLETE_FAILURE

    exit_code = EXIT_PARTIAL_FAILURE if result.is_partial else EXIT_SUCCESS
    if result.is_partial:
        logger.warning(
            f"Only {len(result.questions)}/{result.distribution.total} questions generated"
        )

    if args.json:
        payload = {
            "level": level.value,
            "grade": grade,
            "topic": topic,
            "failed_tiers": [d.value for d in result.failed_tiers],
            "questions": [
                q.model_dump(mode="json", by_alias=True) for q in result.questions
            ],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return exit_code

    session = QuizSession(level, grade, topic, result.questions)
    try:
        play(session)
    except (EOFError, KeyboardInterrupt):
        print("\nQuiz abandoned.")
        return exit_code

    record = session.finish()
    print_summary(session)
    QuizHistory(store).append(record)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
