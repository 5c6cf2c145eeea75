"""Base class for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..error_classifier import ClassifiedError, ErrorClassifier
from ..models import ChatMessage


class LLMProviderError(Exception):
    """Exception raised by LLM providers with classification.

    Attributes:
        classified_error: The classified error with category and severity
        original_exception: The original exception that was raised
    """

    def __init__(
        self,
        classified_error: ClassifiedError,
        original_exception: BaseException,
    ):
        self.classified_error = classified_error
        self.original_exception = original_exception
        # Keep the provider's own wording so status markers like 429 survive
        super().__init__(f"{original_exception} ({classified_error.category.value})")


@dataclass(frozen=True)
class InlineImage:
    """Image attached to a chat turn."""

    data: bytes
    mime_type: str = "image/jpeg"


class BaseLLMProvider(ABC):
    """Abstract base class for LLM provider integrations.

    A provider instance is bound to one credential; the model is chosen per
    call so a single instance can walk a whole fallback chain.
    """

    def __init__(self, api_key: str):
        """
        Initialize the LLM provider.

        Args:
            api_key: API key for the provider
        """
        self.api_key = api_key

    @abstractmethod
    async def generate_json_async(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        model: str,
        temperature: float = 0.7,
    ) -> Any:
        """
        Generate a JSON completion constrained to a schema.

        Args:
            prompt: The prompt to send to the model
            response_schema: JSON schema the response must conform to
            model: Model identifier to call
            temperature: Sampling temperature

        Returns:
            The parsed JSON value

        Raises:
            LLMProviderError: If the API call fails
            SchemaViolation: If the response body is not valid JSON
        """
        pass

    @abstractmethod
    async def generate_chat_async(
        self,
        history: List[ChatMessage],
        message: str,
        system_instruction: str,
        model: str,
        image: Optional[InlineImage] = None,
        temperature: float = 0.7,
    ) -> str:
        """
        Continue a conversation with one new user turn.

        Args:
            history: Prior turns, oldest first
            message: Text of the new user turn
            system_instruction: Fixed instruction framing the conversation
            model: Model identifier to call
            image: Optional image attached to the new turn
            temperature: Sampling temperature

        Returns:
            The model's reply text (possibly empty)

        Raises:
            LLMProviderError: If the API call fails
        """
        pass

    def get_provider_name(self) -> str:
        """
        Get the name of this provider.

        Returns:
            Provider name (e.g., "google")
        """
        return self.__class__.__name__.replace("Provider", "").lower()

    def _handle_api_error(self, error: BaseException) -> LLMProviderError:
        """Classify and wrap an API error.

        Args:
            error: The exception that was raised

        Returns:
            LLMProviderError with classified error
        """
        classified = ErrorClassifier.classify_error(
            error=error,
            provider=self.get_provider_name(),
        )
        return LLMProviderError(
            classified_error=classified,
            original_exception=error,
        )


# Builds a provider bound to one API key
ProviderFactory = Callable[[str], BaseLLMProvider]
