"""Tests for the model fallback chain."""

import asyncio
import logging

import pytest

from mathquiz.error_classifier import ErrorClassifier
from mathquiz.exceptions import ConnectionFailed, ProviderExhausted, SchemaViolation
from mathquiz.fallback import (
    ChatRequest,
    ModelFallbackInvoker,
    StructuredRequest,
    build_model_chain,
    validate_question_payload,
)
from mathquiz.models import QUESTION_CONTRACT_VERSION
from mathquiz.providers.base import LLMProviderError

CHAIN = ["m1", "m2", "m3"]


def provider_error(message: str) -> LLMProviderError:
    original = Exception(message)
    return LLMProviderError(
        classified_error=ErrorClassifier.classify_error(original, "google"),
        original_exception=original,
    )


@pytest.fixture
def request_():
    return StructuredRequest(prompt="Generate [recognition]", response_schema={})


class TestBuildModelChain:
    """Tests for chain construction."""

    def test_preferred_model_goes_first(self):
        chain = build_model_chain("custom-model", ["a", "b"])
        assert chain == ["custom-model", "a", "b"]

    def test_preferred_model_in_fallback_list_is_not_repeated(self):
        chain = build_model_chain("gemini-2.5-flash")
        assert chain == [
            "gemini-2.5-flash",
            "gemini-3-flash-preview",
            "gemini-3-pro-preview",
            "gemini-2.5-pro",
        ]

    def test_no_preferred_model_uses_fallback_order(self):
        assert build_model_chain(None, ["a", "b"]) == ["a", "b"]
        assert build_model_chain("", ["a", "b"]) == ["a", "b"]

    def test_blank_and_duplicate_entries_are_dropped(self):
        assert build_model_chain(" a ", ["a", " ", "b", "b"]) == ["a", "b"]


class TestValidateQuestionPayload:
    """Tests for the question output contract."""

    def test_valid_items_pass(self, make_questions):
        questions = validate_question_payload(make_questions(3), "m1")
        assert len(questions) == 3
        assert questions[0].options[1].startswith("B.")

    @pytest.mark.parametrize("payload", [[], {}, "[]", None, {"questions": []}])
    def test_non_list_or_empty_payload_is_violation(self, payload):
        with pytest.raises(SchemaViolation):
            validate_question_payload(payload, "m1")

    def test_invalid_items_are_dropped(self, make_questions):
        payload = make_questions(2)
        payload.append({"text": "Missing options"})
        payload.append({"text": "   ", "options": ["A", "B", "C", "D"]})
        payload.append({"text": "Three options", "options": ["A", "B", "C"]})
        unexplained = make_questions(1)[0]
        del unexplained["explanation"]
        payload.append(unexplained)

        questions = validate_question_payload(payload, "m1")

        assert len(questions) == 2

    def test_all_items_invalid_is_violation(self):
        with pytest.raises(SchemaViolation) as exc_info:
            validate_question_payload([{"text": "x", "options": []}], "m1")
        assert "m1" in str(exc_info.value)
        assert f"question contract v{QUESTION_CONTRACT_VERSION}" in str(exc_info.value)

    def test_extra_fields_are_ignored(self, make_questions):
        payload = make_questions(1)
        payload[0]["hint"] = "unused"
        assert len(validate_question_payload(payload, "m1")) == 1


class TestModelFallbackInvoker:
    """Tests for walking the chain and the final error mapping."""

    @pytest.mark.asyncio
    async def test_first_success_stops_the_chain(self, fake_provider, make_questions, request_):
        fake_provider.json_handler = lambda model, prompt: make_questions(2)
        invoker = ModelFallbackInvoker(fake_provider)

        result = await invoker.invoke_structured(request_, CHAIN)

        assert len(result) == 2
        assert [c["model"] for c in fake_provider.json_calls] == ["m1"]

    @pytest.mark.asyncio
    async def test_falls_through_in_order_until_success(
        self, fake_provider, make_questions, request_
    ):
        def handler(model, prompt):
            if model in ("m1", "m2"):
                raise provider_error("503 UNAVAILABLE")
            return make_questions(1)

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        result = await invoker.invoke_structured(request_, CHAIN)

        assert len(result) == 1
        assert [c["model"] for c in fake_provider.json_calls] == CHAIN

    @pytest.mark.asyncio
    async def test_every_model_attempted_exactly_once(self, fake_provider, request_):
        def handler(model, prompt):
            raise provider_error("500 INTERNAL")

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ConnectionFailed):
            await invoker.invoke_structured(request_, CHAIN)

        assert [c["model"] for c in fake_provider.json_calls] == CHAIN

    @pytest.mark.asyncio
    async def test_last_rate_limit_maps_to_provider_exhausted(self, fake_provider, request_):
        def handler(model, prompt):
            if model == "m3":
                raise provider_error("429 RESOURCE_EXHAUSTED")
            raise provider_error("503 UNAVAILABLE")

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ProviderExhausted) as exc_info:
            await invoker.invoke_structured(request_, CHAIN)

        assert isinstance(exc_info.value.__cause__, LLMProviderError)

    @pytest.mark.asyncio
    async def test_earlier_rate_limit_does_not_decide_the_outcome(
        self, fake_provider, request_
    ):
        """Only the last model's failure determines the surfaced error."""

        def handler(model, prompt):
            if model == "m3":
                raise provider_error("401 API key not valid")
            raise provider_error("429 Too Many Requests")

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ConnectionFailed) as exc_info:
            await invoker.invoke_structured(request_, CHAIN)

        assert "API key not valid" in exc_info.value.underlying_message
        assert str(exc_info.value).startswith("Connection failed: ")

    @pytest.mark.asyncio
    async def test_plain_exception_with_429_marker_is_exhaustion(self, fake_provider, request_):
        def handler(model, prompt):
            raise RuntimeError("got 429 from upstream")

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ProviderExhausted):
            await invoker.invoke_structured(request_, CHAIN)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        [
            "400 INVALID_ARGUMENT: cannot generate content, output token limit reached",
            "500 INTERNAL: request 14021 failed",
        ],
    )
    async def test_words_and_numbers_resembling_markers_are_not_exhaustion(
        self, fake_provider, request_, message
    ):
        """Substrings like "rate ... limit" or "402" inside other words are not markers."""

        def handler(model, prompt):
            raise provider_error(message)

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ConnectionFailed):
            await invoker.invoke_structured(request_, ["m1"])

    @pytest.mark.asyncio
    async def test_plain_exception_with_request_number_is_connection_failure(
        self, fake_provider, request_
    ):
        def handler(model, prompt):
            raise RuntimeError("request 14290 failed upstream")

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ConnectionFailed):
            await invoker.invoke_structured(request_, ["m1"])

    @pytest.mark.asyncio
    async def test_attempts_are_logged_with_structured_fields(
        self, fake_provider, make_questions, request_, caplog
    ):
        def handler(model, prompt):
            if model == "m1":
                raise provider_error("429 RESOURCE_EXHAUSTED")
            return make_questions(1)

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        with caplog.at_level(logging.INFO, logger="mathquiz.fallback"):
            await invoker.invoke_structured(request_, CHAIN)

        failed, succeeded = [r for r in caplog.records if r.name == "mathquiz.fallback"]
        assert failed.levelno == logging.WARNING
        assert failed.model == "m1"
        assert failed.label == "structured"
        assert failed.error["category"] == "rate_limit"
        assert failed.error["severity"] == "high"
        assert failed.error["is_retryable"] is True
        assert succeeded.model == "m2"
        assert succeeded.duration_ms >= 0
        assert not hasattr(succeeded, "error")

    @pytest.mark.asyncio
    async def test_schema_violation_falls_through(self, fake_provider, make_questions, request_):
        def handler(model, prompt):
            if model == "m1":
                return {"not": "a list"}
            return make_questions(4)

        fake_provider.json_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)

        result = await invoker.invoke_structured(request_, CHAIN)

        assert len(result) == 4
        assert [c["model"] for c in fake_provider.json_calls] == ["m1", "m2"]

    @pytest.mark.asyncio
    async def test_schema_violation_on_last_model_is_connection_failure(
        self, fake_provider, request_
    ):
        fake_provider.json_handler = lambda model, prompt: []
        invoker = ModelFallbackInvoker(fake_provider)

        with pytest.raises(ConnectionFailed) as exc_info:
            await invoker.invoke_structured(request_, CHAIN)

        assert isinstance(exc_info.value.__cause__, SchemaViolation)

    @pytest.mark.asyncio
    async def test_timeout_falls_through_to_next_model(
        self, fake_provider, make_questions, request_
    ):
        async def slow(model, prompt):
            if model == "m1":
                await asyncio.sleep(5)
            return make_questions(1)

        fake_provider.json_handler = slow
        invoker = ModelFallbackInvoker(fake_provider, attempt_timeout_seconds=0.05)

        result = await invoker.invoke_structured(request_, CHAIN)

        assert len(result) == 1
        assert [c["model"] for c in fake_provider.json_calls] == ["m1", "m2"]

    @pytest.mark.asyncio
    async def test_timeout_on_last_model_is_connection_failure(self, fake_provider, request_):
        async def slow(model, prompt):
            await asyncio.sleep(5)

        fake_provider.json_handler = slow
        invoker = ModelFallbackInvoker(fake_provider, attempt_timeout_seconds=0.01)

        with pytest.raises(ConnectionFailed) as exc_info:
            await invoker.invoke_structured(request_, ["only"])

        assert "Timeout" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancellation_is_not_converted_into_fallback(self, fake_provider, request_):
        async def hang(model, prompt):
            await asyncio.sleep(60)

        fake_provider.json_handler = hang
        invoker = ModelFallbackInvoker(fake_provider, attempt_timeout_seconds=None)

        task = asyncio.create_task(invoker.invoke_structured(request_, CHAIN))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert [c["model"] for c in fake_provider.json_calls] == ["m1"]

    @pytest.mark.asyncio
    async def test_empty_chain_raises_value_error(self, fake_provider, request_):
        invoker = ModelFallbackInvoker(fake_provider)
        with pytest.raises(ValueError):
            await invoker.invoke_structured(request_, [])

    @pytest.mark.asyncio
    async def test_temperature_is_passed_to_provider(self, fake_provider, make_questions, request_):
        seen = {}

        async def capture(prompt, response_schema, model, temperature=0.7):
            seen["temperature"] = temperature
            return make_questions(1)

        fake_provider.generate_json_async = capture
        invoker = ModelFallbackInvoker(fake_provider, temperature=0.2)

        await invoker.invoke_structured(request_, CHAIN)

        assert seen["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_chat_empty_reply_counts_as_success(self, fake_provider):
        fake_provider.chat_handler = lambda model, message: ""
        invoker = ModelFallbackInvoker(fake_provider)
        request = ChatRequest(message="hi", system_instruction="sys")

        reply = await invoker.invoke_chat(request, CHAIN)

        assert reply == ""
        assert [c["model"] for c in fake_provider.chat_calls] == ["m1"]

    @pytest.mark.asyncio
    async def test_chat_falls_back_across_chain(self, fake_provider):
        def handler(model, message):
            if model != "m3":
                raise provider_error("connection reset")
            return "Chào em!"

        fake_provider.chat_handler = handler
        invoker = ModelFallbackInvoker(fake_provider)
        request = ChatRequest(message="hi", system_instruction="sys")

        assert await invoker.invoke_chat(request, CHAIN) == "Chào em!"
        assert [c["model"] for c in fake_provider.chat_calls] == CHAIN
