"""Error classification for Gemini API failures.

Provider errors arrive as arbitrary exceptions whose only reliable signal is
their message (HTTP status codes and gRPC-style status names such as
``RESOURCE_EXHAUSTED``). This module maps those messages onto a small set of
categories so the fallback chain can decide how to surface the final failure.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class ErrorCategory(Enum):
    """Categories of API errors."""

    RATE_LIMIT = "rate_limit"  # 429 / RESOURCE_EXHAUSTED / throttling
    QUOTA = "quota"  # Quota or billing limits reached
    AUTHENTICATION = "authentication"  # API key invalid, expired or lacking permission
    MODEL_ERROR = "model_error"  # Model not found or unavailable for this key
    SERVER_ERROR = "server_error"  # Provider 5xx
    NETWORK_ERROR = "network_error"  # Connection failures and timeouts
    INVALID_REQUEST = "invalid_request"  # Malformed request or parameters
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    CRITICAL = "critical"  # User action required (key, quota)
    HIGH = "high"  # Provider is refusing work for now
    MEDIUM = "medium"
    LOW = "low"  # Usually transient


@dataclass(frozen=True)
class ClassifiedError:
    """A classified API error with category and severity."""

    category: ErrorCategory
    severity: ErrorSeverity
    provider: str
    original_error: str
    message: str
    is_retryable: bool = False

    def __str__(self) -> str:
        return (
            f"[{self.severity.value.upper()}] {self.provider}: "
            f"{self.category.value} - {self.message}"
        )

    @property
    def is_exhaustion(self) -> bool:
        """Whether the provider refused the call for rate or quota reasons."""
        return self.category in (ErrorCategory.RATE_LIMIT, ErrorCategory.QUOTA)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "provider": self.provider,
            "original_error": self.original_error,
            "message": self.message,
            "is_retryable": self.is_retryable,
        }


# Ordered rules: the first matching rule wins. Rate limiting is checked before
# quota because Gemini reports exhausted quota as "429 RESOURCE_EXHAUSTED".
# Status codes are matched as whole numbers so request ids and token counts
# never look like one.
_RULES: List[Tuple[ErrorCategory, ErrorSeverity, bool, List[str]]] = [
    (
        ErrorCategory.RATE_LIMIT,
        ErrorSeverity.HIGH,
        True,
        [
            r"\b429\b",
            r"resource[_ ]exhausted",
            r"\brate[ _-]?limit",
            r"too many requests",
            r"\bthrottl",
        ],
    ),
    (
        ErrorCategory.QUOTA,
        ErrorSeverity.CRITICAL,
        False,
        [
            r"\bquota[ _]exceeded",
            r"exceeded your current quota",
            r"insufficient[ _]quota",
            r"\bbilling\b",
            r"\b402\b",
        ],
    ),
    (
        ErrorCategory.AUTHENTICATION,
        ErrorSeverity.CRITICAL,
        False,
        [
            r"api.*key.*not.*valid",
            r"invalid.*api.*key",
            r"api.*key.*expired",
            r"permission[_ ]denied",
            r"unauthenticated",
            r"unauthorized",
            r"\b401\b",
            r"\b403\b",
        ],
    ),
    (
        ErrorCategory.MODEL_ERROR,
        ErrorSeverity.MEDIUM,
        False,
        [
            r"model.*not.*found",
            r"models/[\w.\-]+ is not found",
            r"not[_ ]found.*model",
            r"model.*unavailable",
            r"\b404\b",
        ],
    ),
    (
        ErrorCategory.SERVER_ERROR,
        ErrorSeverity.MEDIUM,
        True,
        [
            r"internal.*error",
            r"unavailable",
            r"overloaded",
            r"\b50[0-9]\b",
        ],
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        ErrorSeverity.LOW,
        True,
        [
            r"timeout",
            r"timed out",
            r"deadline[_ ]exceeded",
            r"connection",
            r"network",
            r"dns",
        ],
    ),
    (
        ErrorCategory.INVALID_REQUEST,
        ErrorSeverity.MEDIUM,
        False,
        [
            r"invalid[_ ]argument",
            r"bad request",
            r"\b400\b",
        ],
    ),
]

_MESSAGES = {
    ErrorCategory.RATE_LIMIT: "Rate limit exceeded for {provider}. Try again later or use another key.",
    ErrorCategory.QUOTA: "Quota exhausted for {provider}. Check the account's usage limits.",
    ErrorCategory.AUTHENTICATION: "Authentication failed. Verify the {provider} API key.",
    ErrorCategory.MODEL_ERROR: "Model unavailable on {provider}. Verify the model name.",
    ErrorCategory.SERVER_ERROR: "{provider} server error. This may be temporary.",
    ErrorCategory.NETWORK_ERROR: "Network connectivity issue. This may be temporary.",
    ErrorCategory.INVALID_REQUEST: "Invalid request to {provider}. Check request parameters.",
}


class ErrorClassifier:
    """Classifies API errors raised while calling a model provider."""

    @staticmethod
    def classify_error(error: BaseException, provider: str) -> ClassifiedError:
        """Classify an API error.

        Args:
            error: The exception that was raised
            provider: Provider name (e.g. "google")

        Returns:
            ClassifiedError with category and severity
        """
        error_str = str(error)
        error_type = type(error).__name__

        for category, severity, retryable, patterns in _RULES:
            if ErrorClassifier._match_patterns(error_str, patterns):
                return ClassifiedError(
                    category=category,
                    severity=severity,
                    provider=provider,
                    original_error=error_type,
                    message=_MESSAGES[category].format(provider=provider),
                    is_retryable=retryable,
                )

        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            original_error=error_type,
            message=f"Unclassified error from {provider}: {error_str[:100]}",
            is_retryable=False,
        )

    @staticmethod
    def is_rate_limited(message: str) -> bool:
        """Check whether an error message carries a rate-limit or quota marker.

        Args:
            message: Error message text

        Returns:
            True if the message signals provider exhaustion
        """
        for category, _, _, patterns in _RULES:
            if category in (ErrorCategory.RATE_LIMIT, ErrorCategory.QUOTA):
                if ErrorClassifier._match_patterns(message, patterns):
                    return True
        return False

    @staticmethod
    def _match_patterns(text: str, patterns: List[str]) -> bool:
        """Check if text matches any of the given regex patterns."""
        return any(re.search(pattern, text, re.IGNORECASE) for pattern in patterns)
