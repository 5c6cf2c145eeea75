"""Error taxonomy for quiz generation and chat."""

from typing import List, Optional


class QuizServiceError(Exception):
    """Base class for errors surfaced to the caller of the core services."""

    user_message = "Đã có lỗi xảy ra. Vui lòng thử lại."


class MissingCredential(QuizServiceError):
    """No API key is configured."""

    user_message = "API Key not found. Please set it in Settings."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class SchemaViolation(QuizServiceError):
    """Structured output was not JSON, empty, or broke the question contract.

    Raised per model inside the fallback chain; it only reaches the caller
    wrapped in ConnectionFailed when the last model produced it.
    """


class ProviderExhausted(QuizServiceError):
    """Every model failed and the last failure was rate limiting or quota."""

    user_message = (
        "⚠️ Hệ thống đang quá tải (Lỗi 429). "
        "Vui lòng thử lại sau giây lát hoặc đổi API Key."
    )

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "429 RESOURCE_EXHAUSTED")


class ConnectionFailed(QuizServiceError):
    """Every model failed and the last failure was not rate limiting.

    Attributes:
        underlying_message: Message of the final model's error
    """

    def __init__(self, underlying_message: str):
        self.underlying_message = underlying_message
        super().__init__(f"Connection failed: {underlying_message}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return (
            f"⚠️ Lỗi kết nối: {self.underlying_message}. "
            "Vui lòng kiểm tra API Key."
        )


class TotalGenerationFailure(QuizServiceError):
    """No difficulty tier produced any question.

    Attributes:
        tier_errors: Messages of the per-tier failures, if any
    """

    user_message = (
        "Không thể tạo câu hỏi. Tất cả các model đều thất bại. "
        "Vui lòng kiểm tra API Key và Quota."
    )

    def __init__(self, tier_errors: Optional[List[str]] = None):
        self.tier_errors = tier_errors or []
        super().__init__(self.user_message)


class StoreUnreadable(QuizServiceError):
    """The storage file exists but cannot be read as a JSON object.

    Writes refuse to proceed so the unreadable file is never replaced by a
    store holding only the new key.

    Attributes:
        path: Location of the storage file
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read store {path}: {reason}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return (
            f"Không đọc được dữ liệu đã lưu ({self.path}). "
            "Vui lòng kiểm tra hoặc xóa tệp này."
        )
