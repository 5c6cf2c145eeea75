"""In-memory quiz session: answering, navigation, scoring and completion."""

import logging
import time
from typing import Dict, List, Optional

from .models import (
    OPTION_LABELS,
    Difficulty,
    EducationLevel,
    Question,
    QuizAttemptRecord,
)

logger = logging.getLogger(__name__)

# (minimum score, message) pairs, checked top down
ENCOURAGEMENTS = [
    (18, "🌟 Xuất sắc! Em đã thành thạo kiến thức này rồi!"),
    (15, "👍 Giỏi lắm! Em chỉ cần ôn luyện thêm một chút nữa thôi!"),
    (12, "💪 Tốt đấy! Em đang tiến bộ, hãy cố gắng thêm nhé!"),
    (9, "📚 Em cần ôn tập thêm một số phần. Cùng học tiếp nhé!"),
]
DEFAULT_ENCOURAGEMENT = "🌱 Đây là bước đầu tốt! Hãy xem lại lý thuyết và thử lại nhé!"


def _now_ms() -> int:
    return int(time.time() * 1000)


def encouragement(score: int) -> str:
    """Message shown on the result screen for a score out of 20."""
    for minimum, message in ENCOURAGEMENTS:
        if score >= minimum:
            return message
    return DEFAULT_ENCOURAGEMENT


def score_band(score: int, total: int) -> str:
    """Classify a result as "good" (>= 80%), "fair" (>= 50%) or "poor"."""
    if total <= 0:
        return "poor"
    percentage = score / total * 100
    if percentage >= 80:
        return "good"
    if percentage >= 50:
        return "fair"
    return "poor"


class QuizSession:
    """State of one quiz attempt, from the first question to the result.

    A session starts active and becomes finished once; finishing produces the
    history record. Each question can be answered once.
    """

    def __init__(
        self,
        level: EducationLevel,
        grade: int,
        topic: str,
        questions: List[Question],
        started_at: Optional[int] = None,
    ):
        if not questions:
            raise ValueError("A quiz session needs at least one question")

        self.level = EducationLevel(level)
        self.grade = grade
        self.topic = topic
        self.questions = list(questions)
        self.current_index = 0
        self.answers: Dict[str, str] = {}
        self.score = 0
        self.started_at = started_at if started_at is not None else _now_ms()
        self.ended_at: Optional[int] = None

        self._by_id = {q.id: q for q in self.questions}

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def answer(self, question_id: str, letter: str) -> bool:
        """Record the learner's choice for a question.

        Args:
            question_id: Question being answered
            letter: Chosen option, one of A-D

        Returns:
            Whether the choice was correct

        Raises:
            KeyError: If the question is not part of this quiz
            ValueError: If the letter is not an option, the question was
                already answered, or the session is finished
        """
        if self.is_finished:
            raise ValueError("Quiz is already finished")
        question = self._by_id[question_id]

        letter = letter.strip().upper()
        if letter not in OPTION_LABELS:
            raise ValueError(f"Answer must be one of {OPTION_LABELS}, got '{letter}'")
        if question_id in self.answers:
            raise ValueError(f"Question {question_id} was already answered")

        self.answers[question_id] = letter
        is_correct = letter == question.correct_answer
        if is_correct:
            self.score += 1
        return is_correct

    def next(self) -> Question:
        """Move to the next question, staying on the last one at the end."""
        self.current_index = min(self.current_index + 1, len(self.questions) - 1)
        return self.current_question

    def finish(self, now: Optional[int] = None) -> QuizAttemptRecord:
        """End the attempt and build its history record.

        Args:
            now: Completion time in epoch milliseconds (current time if omitted)

        Raises:
            ValueError: If the session was already finished
        """
        if self.is_finished:
            raise ValueError("Quiz is already finished")

        self.ended_at = now if now is not None else _now_ms()
        record = QuizAttemptRecord(
            id=str(self.ended_at),
            date=self.ended_at,
            grade=self.grade,
            topic=self.topic,
            score=self.score,
            total_questions=self.total_questions,
            level=self.level,
        )
        logger.info(
            f"Quiz finished: {self.score}/{self.total_questions} in "
            f"{self.elapsed_seconds}s"
        )
        return record

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds between start and finish (0 while active)."""
        if self.ended_at is None:
            return 0
        return max(0, (self.ended_at - self.started_at) // 1000)

    def review(self, only: Optional[str] = None) -> List[Question]:
        """Questions for the result screen.

        Args:
            only: "correct", "incorrect", or None for all questions
        """
        if only is None:
            return list(self.questions)
        want_correct = only == "correct"
        return [
            q
            for q in self.questions
            if (self.answers.get(q.id) == q.correct_answer) == want_correct
        ]

    def score_by_difficulty(self) -> Dict[Difficulty, Dict[str, int]]:
        """Correct answers and totals per difficulty tier."""
        breakdown: Dict[Difficulty, Dict[str, int]] = {}
        for q in self.questions:
            tier = breakdown.setdefault(q.difficulty, {"correct": 0, "total": 0})
            tier["total"] += 1
            if self.answers.get(q.id) == q.correct_answer:
                tier["correct"] += 1
        return breakdown
