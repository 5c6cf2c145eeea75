"""Google Gemini provider integration."""

import json
import logging
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from ..exceptions import SchemaViolation
from ..models import ChatMessage
from .base import BaseLLMProvider, InlineImage

logger = logging.getLogger(__name__)


class GoogleProvider(BaseLLMProvider):
    """Gemini API integration for question generation and the chat tutor."""

    def __init__(self, api_key: str):
        """
        Initialize Google provider.

        Args:
            api_key: Gemini API key
        """
        super().__init__(api_key)
        self.client = genai.Client(api_key=api_key)

    async def generate_json_async(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        model: str,
        temperature: float = 0.7,
    ) -> Any:
        """
        Generate a structured JSON completion using Gemini's JSON mode.

        Args:
            prompt: The prompt to send to the model
            response_schema: Schema passed as the response schema
            model: Model identifier to call
            temperature: Sampling temperature

        Returns:
            Parsed JSON value

        Raises:
            LLMProviderError: If the API call fails
            SchemaViolation: If the body is empty or not valid JSON
        """
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=response_schema,
            temperature=temperature,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            raise self._handle_api_error(e)

        text = response.text
        if not text:
            raise SchemaViolation(f"Empty response from {model}")

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug(f"Unparseable response from {model}: {text[:200]}")
            raise SchemaViolation(f"Failed to parse JSON response: {str(e)}") from e

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
        Send one chat turn with the prior conversation as context.

        Only the text of earlier turns is replayed; images are sent with the
        turn they were attached to and not again.

        Args:
            history: Prior turns, oldest first
            message: Text of the new user turn
            system_instruction: Tutor persona and formatting rules
            model: Model identifier to call
            image: Optional image for the new turn
            temperature: Sampling temperature

        Returns:
            Reply text, empty string if the model returned no text

        Raises:
            LLMProviderError: If the API call fails
        """
        contents = [
            types.Content(role=turn.role, parts=[types.Part.from_text(text=turn.text)])
            for turn in history
        ]

        parts = []
        if image is not None:
            parts.append(
                types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
            )
        parts.append(types.Part.from_text(text=message))
        contents.append(types.Content(role="user", parts=parts))

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise self._handle_api_error(e)

        return response.text or ""
