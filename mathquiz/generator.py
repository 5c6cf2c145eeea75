"""Question set generation.

This module builds a full quiz by generating each difficulty tier as an
independent batch. Tiers run concurrently, each with its own pass down the
model fallback chain, so an outage that sinks one tier does not sink the
others.
"""

import asyncio
import logging
import random
import re
import uuid
from typing import Any, Dict, List, Optional, Sequence

from .config import FALLBACK_MODELS
from .curriculum import get_distribution, validate_grade
from .exceptions import MissingCredential, TotalGenerationFailure
from .fallback import (
    DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_TEMPERATURE,
    ModelFallbackInvoker,
    StructuredRequest,
    build_model_chain,
)
from .models import (
    Difficulty,
    EducationLevel,
    GenerationResult,
    ProviderConfig,
    Question,
    RawQuestion,
)
from .prompts import build_generation_prompt
from .providers.base import ProviderFactory
from .providers.google_provider import GoogleProvider

logger = logging.getLogger(__name__)

# Response schema declared to the provider (Gemini schema dialect)
_QUESTION_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "text": {
            "type": "STRING",
            "description": "Question text in Vietnamese (Unicode math)",
        },
        "options": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Exactly 4 options labelled A, B, C, D (Unicode math)",
        },
        "correctAnswer": {
            "type": "STRING",
            "description": "Correct option, only the letter 'A', 'B', 'C' or 'D'",
        },
        "explanation": {
            "type": "STRING",
            "description": "Step-by-step explanation with clear line breaks (Unicode math)",
        },
        "difficulty": {
            "type": "STRING",
            "description": "'recognition', 'understanding' or 'application'",
        },
    },
    "required": ["text", "options", "correctAnswer", "explanation", "difficulty"],
}

QUESTION_BATCH_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": _QUESTION_SCHEMA,
}

# A letter A-D not glued to other word characters, e.g. the B in "Answer: B!"
_STANDALONE_ANSWER = re.compile(r"(?<!\w)[ABCD](?!\w)")
_NON_ANSWER_CHARS = re.compile(r"[^ABCD]")


def normalize_correct_answer(raw: Optional[str]) -> str:
    """Reduce a model-supplied answer to a single option letter.

    A standalone A-D letter wins; otherwise every character outside A-D is
    stripped and the first remaining letter is used. Anything else becomes
    "A".

    Examples:
        "Answer: B!" -> "B", "C." -> "C", "???" -> "A", None -> "A"
    """
    if not raw:
        return "A"

    match = _STANDALONE_ANSWER.search(raw)
    if match:
        return match.group(0)

    stripped = _NON_ANSWER_CHARS.sub("", raw).strip()
    return stripped[0] if stripped else "A"


def to_question(raw: RawQuestion, difficulty: Difficulty) -> Question:
    """Turn a contract-valid raw item into a Question of the given tier."""
    return Question(
        id=f"{difficulty.value}-{uuid.uuid4().hex}",
        text=raw.text,
        options=list(raw.options),
        correct_answer=normalize_correct_answer(raw.correctAnswer),
        explanation=raw.explanation,
        difficulty=difficulty,
        difficulty_label=difficulty.label,
    )


class QuestionSetGenerator:
    """Generates a difficulty-stratified quiz from a (level, grade, topic).

    The generator holds no per-quiz state; the credential and preferred model
    are passed in on each call.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory = GoogleProvider,
        fallback_models: Sequence[str] = FALLBACK_MODELS,
        temperature: float = DEFAULT_TEMPERATURE,
        attempt_timeout_seconds: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the generator.

        Args:
            provider_factory: Builds a provider from an API key
            fallback_models: Models tried after the preferred one, in order
            temperature: Sampling temperature for generation
            attempt_timeout_seconds: Deadline for each model call
            rng: Random source for shuffling (a fresh random.Random if omitted)
        """
        self.provider_factory = provider_factory
        self.fallback_models = list(fallback_models)
        self.temperature = temperature
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self._rng = rng or random.Random()

    async def generate(
        self,
        level: EducationLevel,
        grade: int,
        topic: str,
        config: ProviderConfig,
    ) -> List[Question]:
        """Generate a shuffled question set.

        Raises:
            MissingCredential: If no API key is configured
            TotalGenerationFailure: If no tier produced any question
        """
        result = await self.generate_set(level, grade, topic, config)
        return result.questions

    async def generate_set(
        self,
        level: EducationLevel,
        grade: int,
        topic: str,
        config: ProviderConfig,
    ) -> GenerationResult:
        """Generate a question set and report which tiers failed.

        Args:
            level: Education level
            grade: Grade within the level
            topic: Topic to generate questions about
            config: Credential and preferred model

        Returns:
            GenerationResult with the shuffled questions and failed tiers

        Raises:
            MissingCredential: If no API key is configured
            ValueError: If the grade does not belong to the level or the
                topic is blank
            TotalGenerationFailure: If no tier produced any question
        """
        if not config.api_key:
            raise MissingCredential()

        level = EducationLevel(level)
        validate_grade(level, grade)
        topic = topic.strip()
        if not topic:
            raise ValueError("A topic is required")

        distribution = get_distribution(level, grade)
        chain = build_model_chain(config.preferred_model, self.fallback_models)
        invoker = ModelFallbackInvoker(
            provider=self.provider_factory(config.api_key),
            temperature=self.temperature,
            attempt_timeout_seconds=self.attempt_timeout_seconds,
        )

        logger.info(
            f"Generating quiz: level={level.value}, grade={grade}, topic='{topic}', "
            f"distribution={distribution.model_dump()}, chain={chain}"
        )

        tiers = distribution.items()
        results = await asyncio.gather(
            *(
                self._generate_tier(invoker, difficulty, count, grade, topic, list(chain))
                for difficulty, count in tiers
            ),
            return_exceptions=True,
        )

        questions: List[Question] = []
        failed_tiers: List[Difficulty] = []
        tier_errors: List[str] = []
        for (difficulty, _), result in zip(tiers, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                failed_tiers.append(difficulty)
                tier_errors.append(f"{difficulty.value}: {result}")
                logger.error(f"Tier {difficulty.value} failed: {result}")
                continue
            questions.extend(result)

        if not questions:
            raise TotalGenerationFailure(tier_errors)

        if failed_tiers:
            logger.warning(
                f"Partial quiz: {len(questions)}/{distribution.total} questions, "
                f"failed tiers: {[d.value for d in failed_tiers]}"
            )

        self._rng.shuffle(questions)
        logger.info(f"Generated {len(questions)} questions")

        return GenerationResult(
            questions=questions,
            failed_tiers=failed_tiers,
            distribution=distribution,
        )

    async def _generate_tier(
        self,
        invoker: ModelFallbackInvoker,
        difficulty: Difficulty,
        count: int,
        grade: int,
        topic: str,
        chain: List[str],
    ) -> List[Question]:
        """Generate one tier; a zero count never reaches the provider."""
        if count == 0:
            return []

        request = StructuredRequest(
            prompt=build_generation_prompt(difficulty, count, grade, topic),
            response_schema=QUESTION_BATCH_SCHEMA,
            label=difficulty.value,
        )
        raw_questions = await invoker.invoke_structured(request, chain)

        if len(raw_questions) != count:
            logger.info(
                f"Tier {difficulty.value}: requested {count}, got {len(raw_questions)}"
            )
        return [to_question(raw, difficulty) for raw in raw_questions]
