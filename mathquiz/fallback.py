"""Model fallback chain.

A request is tried against each model of an ordered chain, once per model,
until one succeeds. The mechanics of walking the chain live in
``iter_attempts``; the decision of whether a failure is final, and how it is
surfaced, lives in ``ModelFallbackInvoker``.
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .config import FALLBACK_MODELS
from .error_classifier import ErrorClassifier
from .exceptions import ConnectionFailed, ProviderExhausted, SchemaViolation
from .models import QUESTION_CONTRACT_VERSION, ChatMessage, RawQuestion
from .providers.base import BaseLLMProvider, InlineImage, LLMProviderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 60.0


def build_model_chain(
    preferred_model: Optional[str],
    fallback_order: Sequence[str] = FALLBACK_MODELS,
) -> List[str]:
    """Build the ordered, duplicate-free list of models to try.

    Args:
        preferred_model: The user's configured model, tried first when set
        fallback_order: Models tried afterwards, in order

    Returns:
        Model identifiers, first occurrence kept
    """
    candidates = ([preferred_model] if preferred_model else []) + list(fallback_order)
    chain: List[str] = []
    for model in candidates:
        model = model.strip()
        if model and model not in chain:
            chain.append(model)
    return chain


@dataclass(frozen=True)
class StructuredRequest:
    """A JSON generation request constrained by a response schema."""

    prompt: str
    response_schema: Dict[str, Any]
    label: str = "structured"


@dataclass(frozen=True)
class ChatRequest:
    """One new tutor turn with its conversation context."""

    message: str
    system_instruction: str
    history: List[ChatMessage] = field(default_factory=list)
    image: Optional[InlineImage] = None
    label: str = "chat"


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of calling one model of the chain."""

    model: str
    is_last: bool
    result: Any = None
    error: Optional[BaseException] = None
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None


def validate_question_payload(payload: Any, model: str) -> List[RawQuestion]:
    """Check a structured response against the question contract.

    The payload must be a non-empty JSON array. Items that do not satisfy
    RawQuestion are dropped; at least one must remain.

    Raises:
        SchemaViolation: If nothing usable came back
    """
    if not isinstance(payload, list) or not payload:
        raise SchemaViolation(f"Empty or invalid JSON response from {model}")

    questions: List[RawQuestion] = []
    for i, item in enumerate(payload):
        try:
            questions.append(RawQuestion.model_validate(item))
        except ValidationError as e:
            logger.warning(
                f"Dropping question {i + 1}/{len(payload)} from {model}: "
                f"{e.error_count()} violation(s) of question contract "
                f"v{QUESTION_CONTRACT_VERSION}"
            )

    if not questions:
        raise SchemaViolation(
            f"No response item from {model} matched question contract "
            f"v{QUESTION_CONTRACT_VERSION}"
        )
    return questions


class ModelFallbackInvoker:
    """Runs a request down a model chain until one model succeeds.

    Every model is attempted exactly once per invocation and attempts are
    strictly sequential. Nothing is remembered between invocations.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        temperature: float = DEFAULT_TEMPERATURE,
        attempt_timeout_seconds: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    ):
        """Initialize the invoker.

        Args:
            provider: Provider bound to the user's credential
            temperature: Sampling temperature for every call
            attempt_timeout_seconds: Deadline per model call (None disables it)
        """
        self.provider = provider
        self.temperature = temperature
        self.attempt_timeout = attempt_timeout_seconds

    async def iter_attempts(
        self,
        chain: Sequence[str],
        call: Callable[[str], Awaitable[Any]],
    ) -> AsyncIterator[AttemptOutcome]:
        """Call each model in turn, yielding one outcome per model.

        The consumer decides whether to continue; stopping the iteration
        stops the chain. Cancellation is never converted into an outcome.
        """
        for position, model in enumerate(chain):
            is_last = position == len(chain) - 1
            start_time = time.monotonic()
            try:
                result = await asyncio.wait_for(call(model), timeout=self.attempt_timeout)
            except asyncio.TimeoutError:
                error: Optional[BaseException] = TimeoutError(
                    f"Timeout after {self.attempt_timeout}s waiting for {model}"
                )
                result = None
            except Exception as e:
                error = e
                result = None
            else:
                error = None
            yield AttemptOutcome(
                model=model,
                is_last=is_last,
                result=result,
                error=error,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            )

    async def invoke_structured(
        self, request: StructuredRequest, chain: Sequence[str]
    ) -> List[RawQuestion]:
        """Generate questions, falling back across the chain.

        Args:
            request: Prompt and response schema
            chain: Models to try, in order

        Returns:
            Contract-valid raw questions from the first model that produced any

        Raises:
            ProviderExhausted: If the last model was rate limited
            ConnectionFailed: If the last model failed for any other reason
        """

        async def _call(model: str) -> List[RawQuestion]:
            payload = await self.provider.generate_json_async(
                prompt=request.prompt,
                response_schema=request.response_schema,
                model=model,
                temperature=self.temperature,
            )
            return validate_question_payload(payload, model)

        return await self._run(chain, _call, request.label)

    async def invoke_chat(self, request: ChatRequest, chain: Sequence[str]) -> str:
        """Get a tutor reply, falling back across the chain.

        Any text, including an empty string, counts as success.

        Raises:
            ProviderExhausted: If the last model was rate limited
            ConnectionFailed: If the last model failed for any other reason
        """

        async def _call(model: str) -> str:
            return await self.provider.generate_chat_async(
                history=request.history,
                message=request.message,
                system_instruction=request.system_instruction,
                model=model,
                image=request.image,
                temperature=self.temperature,
            )

        return await self._run(chain, _call, request.label)

    async def _run(
        self,
        chain: Sequence[str],
        call: Callable[[str], Awaitable[Any]],
        label: str,
    ) -> Any:
        if not chain:
            raise ValueError("Model chain is empty")

        async with aclosing(self.iter_attempts(chain, call)) as attempts:
            async for outcome in attempts:
                extra_fields: Dict[str, Any] = {
                    "label": label,
                    "model": outcome.model,
                    "duration_ms": outcome.duration_ms,
                }
                if outcome.succeeded:
                    logger.info(f"[{label}] {outcome.model} succeeded", extra=extra_fields)
                    return outcome.result

                if isinstance(outcome.error, LLMProviderError):
                    extra_fields["error"] = outcome.error.classified_error.to_dict()

                if not outcome.is_last:
                    logger.warning(
                        f"[{label}] {outcome.model} failed, trying next model: "
                        f"{outcome.error}",
                        extra=extra_fields,
                    )
                    continue

                logger.error(
                    f"[{label}] {outcome.model} failed and no models remain: "
                    f"{outcome.error}",
                    extra=extra_fields,
                )
                raise self._final_error(outcome.error) from outcome.error

    @staticmethod
    def _final_error(error: Optional[BaseException]) -> Exception:
        """Map the last model's failure onto the caller-facing taxonomy."""
        message = str(error)
        if isinstance(error, LLMProviderError):
            exhausted = error.classified_error.is_exhaustion
        else:
            exhausted = ErrorClassifier.is_rate_limited(message)
        if exhausted:
            return ProviderExhausted()
        return ConnectionFailed(message)
