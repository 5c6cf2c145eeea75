"""Math quiz generation and tutoring service."""

from mathquiz.chat import ChatTutor
from mathquiz.exceptions import (
    ConnectionFailed,
    MissingCredential,
    ProviderExhausted,
    QuizServiceError,
    SchemaViolation,
    TotalGenerationFailure,
)
from mathquiz.fallback import ModelFallbackInvoker, build_model_chain
from mathquiz.generator import QuestionSetGenerator
from mathquiz.models import (
    Difficulty,
    DifficultyDistribution,
    EducationLevel,
    GenerationResult,
    ProviderConfig,
    Question,
    QuizAttemptRecord,
)

__version__ = "0.1.0"

__all__ = [
    "ChatTutor",
    "ConnectionFailed",
    "Difficulty",
    "DifficultyDistribution",
    "EducationLevel",
    "GenerationResult",
    "MissingCredential",
    "ModelFallbackInvoker",
    "ProviderConfig",
    "ProviderExhausted",
    "Question",
    "QuestionSetGenerator",
    "QuizAttemptRecord",
    "QuizServiceError",
    "SchemaViolation",
    "TotalGenerationFailure",
    "build_model_chain",
]
