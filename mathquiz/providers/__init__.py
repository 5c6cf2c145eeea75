"""LLM provider integrations."""

from .base import BaseLLMProvider, InlineImage, LLMProviderError, ProviderFactory
from .google_provider import GoogleProvider

__all__ = [
    "BaseLLMProvider",
    "GoogleProvider",
    "InlineImage",
    "LLMProviderError",
    "ProviderFactory",
]
