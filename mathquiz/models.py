"""Data models for quiz generation, chat and attempt history."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Total number of questions in a generated quiz
QUIZ_SIZE = 20

# Bumped whenever the provider output contract below changes shape
QUESTION_CONTRACT_VERSION = "1"

OPTION_LABELS = ("A", "B", "C", "D")


class Difficulty(str, Enum):
    """Difficulty tiers, generated as independent batches."""

    RECOGNITION = "recognition"
    UNDERSTANDING = "understanding"
    APPLICATION = "application"

    @property
    def label(self) -> str:
        """Display label shown next to a question."""
        return DIFFICULTY_LABELS[self]


DIFFICULTY_LABELS: Dict[Difficulty, str] = {
    Difficulty.RECOGNITION: "Nhận biết",
    Difficulty.UNDERSTANDING: "Thông hiểu",
    Difficulty.APPLICATION: "Vận dụng",
}


class EducationLevel(str, Enum):
    """School level, which determines the available grades."""

    PRIMARY = "primary"
    MIDDLE = "middle"
    HIGH = "high"


class ProviderConfig(BaseModel):
    """Credential and model preference passed explicitly to the core services."""

    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    preferred_model: Optional[str] = None


class RawQuestion(BaseModel):
    """One question object as returned by the model.

    This is the provider output contract, mirroring the required fields of
    the declared response schema. It is validated on every response
    regardless of whether the provider honoured that schema.
    ``correctAnswer`` must be present but its wording is loose; it is
    normalized to a single letter afterwards.
    """

    model_config = ConfigDict(extra="ignore")

    text: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    correctAnswer: str
    explanation: str
    difficulty: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("question text is blank")
        return v

    @field_validator("options")
    @classmethod
    def options_are_labelled(cls, v: List[str]) -> List[str]:
        for label, option in zip(OPTION_LABELS, v):
            if not option.lstrip().startswith(f"{label}."):
                raise ValueError(f"option {label} must start with '{label}.', got '{option}'")
        return v


class Question(BaseModel):
    """A generated, normalized multiple-choice question."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    text: str
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_answer: Literal["A", "B", "C", "D"] = Field(..., alias="correctAnswer")
    explanation: str
    difficulty: Difficulty
    difficulty_label: str = Field(..., alias="difficultyLabel")


class DifficultyDistribution(BaseModel):
    """Per-tier question counts for one quiz."""

    model_config = ConfigDict(frozen=True)

    recognition: int = Field(..., ge=0)
    understanding: int = Field(..., ge=0)
    application: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_total(self) -> "DifficultyDistribution":
        if self.total != QUIZ_SIZE:
            raise ValueError(
                f"Distribution must sum to {QUIZ_SIZE}, got {self.total}"
            )
        return self

    @property
    def total(self) -> int:
        return self.recognition + self.understanding + self.application

    def count_for(self, difficulty: Difficulty) -> int:
        """Number of questions requested for a tier."""
        return getattr(self, difficulty.value)

    def items(self) -> List[Tuple[Difficulty, int]]:
        """(difficulty, count) pairs in tier order."""
        return [(d, self.count_for(d)) for d in Difficulty]


class GenerationResult(BaseModel):
    """Outcome of generating one quiz.

    Attributes:
        questions: Shuffled questions from every tier that succeeded
        failed_tiers: Tiers whose whole model chain failed
        distribution: The requested per-tier counts
    """

    questions: List[Question]
    failed_tiers: List[Difficulty] = Field(default_factory=list)
    distribution: DifficultyDistribution

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_tiers)


class ChatMessage(BaseModel):
    """One turn of the tutor conversation."""

    role: Literal["user", "model"]
    text: str = ""
    image: Optional[str] = None  # data URI, kept for display only


class QuizAttemptRecord(BaseModel):
    """A completed quiz attempt kept in the local history."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    date: int  # completion time, epoch milliseconds
    grade: int = Field(..., ge=1, le=12)
    topic: str
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0, alias="totalQuestions")
    level: EducationLevel

    @model_validator(mode="after")
    def score_within_total(self) -> "QuizAttemptRecord":
        if self.score > self.total_questions:
            raise ValueError(
                f"score {self.score} exceeds total questions {self.total_questions}"
            )
        return self

    def to_storage(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in the history store."""
        return self.model_dump(mode="json", by_alias=True)
