"""Pytest configuration and shared fixtures for math quiz tests."""

from typing import Any, Callable, Dict, List, Optional

import pytest

from mathquiz.models import ChatMessage, Difficulty, EducationLevel, ProviderConfig
from mathquiz.providers.base import BaseLLMProvider, InlineImage
from mathquiz.storage import InMemoryKeyValueStore


def tier_of(prompt: str) -> Difficulty:
    """Recover the difficulty tier a generation prompt was built for."""
    for difficulty in Difficulty:
        if f"[{difficulty.value}]" in prompt:
            return difficulty
    raise AssertionError(f"No tier marker in prompt: {prompt[:80]}")


def make_raw_questions(count: int, answer: str = "B", prefix: str = "Q") -> List[Dict]:
    """Build `count` contract-valid question objects as a model would return them."""
    return [
        {
            "text": f"{prefix}{i + 1}: 2 + {i} = ?",
            "options": [f"A. {i + 1}", f"B. {i + 2}", f"C. {i + 3}", f"D. {i + 4}"],
            "correctAnswer": answer,
            "explanation": f"Bước 1: 2 + {i} = {i + 2}",
            "difficulty": "recognition",
        }
        for i in range(count)
    ]


class FakeProvider(BaseLLMProvider):
    """Scriptable provider that records every call.

    `json_handler(model, prompt)` and `chat_handler(model, message)` may
    return a value, raise, or be coroutines.
    """

    def __init__(self, api_key: str = "test-key"):
        super().__init__(api_key)
        self.json_handler: Optional[Callable[[str, str], Any]] = None
        self.chat_handler: Optional[Callable[[str, str], Any]] = None
        self.json_calls: List[Dict[str, Any]] = []
        self.chat_calls: List[Dict[str, Any]] = []

    async def generate_json_async(self, prompt, response_schema, model, temperature=0.7):
        self.json_calls.append(
            {"model": model, "prompt": prompt, "schema": response_schema}
        )
        result = self.json_handler(model, prompt)
        if hasattr(result, "__await__"):
            result = await result
        return result

    async def generate_chat_async(
        self,
        history: List[ChatMessage],
        message: str,
        system_instruction: str,
        model: str,
        image: Optional[InlineImage] = None,
        temperature: float = 0.7,
    ) -> str:
        self.chat_calls.append(
            {
                "model": model,
                "history": history,
                "message": message,
                "system_instruction": system_instruction,
                "image": image,
            }
        )
        result = self.chat_handler(model, message)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def get_provider_name(self) -> str:
        return "google"

    def models_for(self, difficulty: Difficulty) -> List[str]:
        """Models called for one tier, in call order."""
        return [
            c["model"] for c in self.json_calls if tier_of(c["prompt"]) == difficulty
        ]


@pytest.fixture
def mock_gemini_api_key() -> str:
    """Fixture providing a mock Gemini API key for testing."""
    return "AIza-test-mock-api-key-12345"


@pytest.fixture
def provider_config(mock_gemini_api_key) -> ProviderConfig:
    """Fixture providing a config with a key and the default preferred model."""
    return ProviderConfig(
        api_key=mock_gemini_api_key, preferred_model="gemini-3-flash-preview"
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Fixture providing a scriptable provider."""
    return FakeProvider()


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    """Fixture providing an empty in-memory key-value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def sample_topic() -> str:
    """Fixture providing a grade 1 curriculum topic."""
    return "Phép cộng trong phạm vi 20"


@pytest.fixture
def primary_level() -> EducationLevel:
    return EducationLevel.PRIMARY


@pytest.fixture
def make_questions() -> Callable[..., List[Dict]]:
    """Fixture providing the raw question builder."""
    return make_raw_questions


@pytest.fixture
def prompt_tier() -> Callable[[str], Difficulty]:
    """Fixture providing the prompt-to-tier lookup."""
    return tier_of
