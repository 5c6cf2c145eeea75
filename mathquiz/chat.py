"""Chat tutor: a single fallback-protected call per learner message."""

import base64
import binascii
import logging
import re
from typing import List, Optional, Sequence

from .config import FALLBACK_MODELS
from .exceptions import (
    ConnectionFailed,
    MissingCredential,
    ProviderExhausted,
)
from .fallback import (
    DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_TEMPERATURE,
    ChatRequest,
    ModelFallbackInvoker,
    build_model_chain,
)
from .models import ChatMessage, ProviderConfig
from .prompts import CHAT_SYSTEM_INSTRUCTION, DEFAULT_CHAT_MESSAGE
from .providers.base import InlineImage, ProviderFactory
from .providers.google_provider import GoogleProvider

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

_DATA_URI_PREFIX = re.compile(r"^data:([^;]+);base64,")

GENERIC_APOLOGY = "Xin lỗi, thầy không thể kết nối ngay lúc này. 😔"
MISSING_KEY_REPLY = "Vui lòng nhập API Key trong Settings để sử dụng Chat."


def decode_image_data(image_data: str) -> InlineImage:
    """Decode a base64 image, optionally wrapped in a data URI.

    The MIME type comes from a ``data:<mime>;base64,`` prefix when present
    and defaults to image/jpeg otherwise.

    Raises:
        ValueError: If the payload is not valid base64
    """
    match = _DATA_URI_PREFIX.match(image_data)
    mime_type = match.group(1) if match else DEFAULT_IMAGE_MIME_TYPE
    payload = image_data[match.end():] if match else image_data

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Image is not valid base64: {e}") from e
    return InlineImage(data=data, mime_type=mime_type)


def apology_for(error: Exception) -> str:
    """Render a chat failure as the tutor's own reply."""
    if isinstance(error, MissingCredential):
        return MISSING_KEY_REPLY
    if isinstance(error, (ProviderExhausted, ConnectionFailed)):
        return error.user_message
    return GENERIC_APOLOGY


class ChatTutor:
    """Answers learner messages, optionally with an attached photo."""

    def __init__(
        self,
        provider_factory: ProviderFactory = GoogleProvider,
        fallback_models: Sequence[str] = FALLBACK_MODELS,
        temperature: float = DEFAULT_TEMPERATURE,
        attempt_timeout_seconds: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    ):
        self.provider_factory = provider_factory
        self.fallback_models = list(fallback_models)
        self.temperature = temperature
        self.attempt_timeout_seconds = attempt_timeout_seconds

    async def reply(
        self,
        history: List[ChatMessage],
        message: str,
        config: ProviderConfig,
        image_data: Optional[str] = None,
    ) -> str:
        """Get the tutor's reply to a new message.

        Args:
            history: Earlier turns of the conversation, oldest first
            message: The learner's new message (may be empty with an image)
            config: Credential and preferred model
            image_data: Optional base64 image, usually a data URI

        Returns:
            Reply text

        Raises:
            MissingCredential: If no API key is configured
            ValueError: If the image cannot be decoded
            ProviderExhausted: If every model failed and the last was rate limited
            ConnectionFailed: If every model failed otherwise
        """
        if not config.api_key:
            raise MissingCredential()

        image = decode_image_data(image_data) if image_data else None
        request = ChatRequest(
            message=message.strip() or DEFAULT_CHAT_MESSAGE,
            system_instruction=CHAT_SYSTEM_INSTRUCTION,
            history=list(history),
            image=image,
        )
        chain = build_model_chain(config.preferred_model, self.fallback_models)
        invoker = ModelFallbackInvoker(
            provider=self.provider_factory(config.api_key),
            temperature=self.temperature,
            attempt_timeout_seconds=self.attempt_timeout_seconds,
        )

        logger.info(
            f"Chat turn: {len(history)} prior turns, image={'yes' if image else 'no'}"
        )
        return await invoker.invoke_chat(request, chain)
