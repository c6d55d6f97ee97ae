"""Tests for the AI fallback classifier and the interactive classification flow."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from decision_inbox.classifier.ai_fallback import (
    FALLBACK_REASON,
    SAFE_DEFAULT,
    SKIPPED_DECISION,
    AnthropicCompletion,
    ModelDecision,
    classify_decision,
    classify_via_model,
    parse_model_response,
    request_model_decision,
)
from decision_inbox.config_schema import AIConfig, AppConfig, LLMLoggingConfig
from decision_inbox.core.errors import CompletionError

VALID_REPLY = (
    '{"decision_required": true, "decision_type": "reply_required", '
    '"reason": "Asks for a reply"}'
)


@pytest.fixture
def completion() -> AsyncMock:
    """Completion client fake returning a valid model reply."""
    client = AsyncMock()
    client.model = "test-model"
    client.complete.return_value = VALID_REPLY
    return client


@pytest.fixture
def fast_config() -> AppConfig:
    return AppConfig(ai=AIConfig(timeout_seconds=0.05))


class TestParseModelResponse:
    def test_plain_json(self) -> None:
        decision = parse_model_response(VALID_REPLY)
        assert decision == ModelDecision(True, "reply_required", "Asks for a reply")

    def test_code_fence_and_prose_are_tolerated(self) -> None:
        text = f"Here is the result:\n```json\n{VALID_REPLY}\n```\nHope that helps."
        assert parse_model_response(text).decision_type == "reply_required"

    def test_only_first_object_is_read(self) -> None:
        text = VALID_REPLY + ' {"decision_required": false}'
        assert parse_model_response(text).decision_required is True

    @pytest.mark.parametrize(
        "text",
        [
            None,
            "",
            "I cannot classify this email.",
            '{"decision_required": true, "decision_type": "reply_required"',
            '{"decision_required": true, "decision_type": "urgent", "reason": "x"}',
            '{"decision_type": "deadline", "reason": "x"}',
        ],
    )
    def test_unusable_replies_give_safe_default(self, text) -> None:
        assert parse_model_response(text) == SAFE_DEFAULT

    def test_blank_reason_is_replaced(self) -> None:
        text = '{"decision_required": false, "decision_type": "informational_only", "reason": " "}'
        assert parse_model_response(text).reason == FALLBACK_REASON


class TestModelDecision:
    def test_wire_shape_without_skip(self) -> None:
        assert ModelDecision(True, "deadline", "Due Friday").to_dict() == {
            "decision_required": True,
            "decision_type": "deadline",
            "reason": "Due Friday",
        }

    def test_wire_shape_when_skipped(self) -> None:
        assert SKIPPED_DECISION.to_dict() == {
            "decision_required": False,
            "decision_type": "informational_only",
            "reason": "No action indicators found",
            "skipped_ai": True,
        }

    @pytest.mark.parametrize(
        ("model_type", "decision_type", "urgency"),
        [
            ("reply_required", "reply_required", "optional"),
            ("deadline", "time_sensitive", "decide_soon"),
            ("follow_up", "action_required", "optional"),
        ],
    )
    def test_required_maps_to_level_1(self, model_type, decision_type, urgency) -> None:
        result = ModelDecision(True, model_type, "r").to_classification_result()
        assert result.decision_level == 1
        assert result.decision_type == decision_type
        assert result.urgency_label == urgency
        assert result.confidence == 0.60
        assert result.method == "model"

    def test_informational_is_level_0_even_if_required(self) -> None:
        result = ModelDecision(True, "informational_only", "r").to_classification_result()
        assert result.decision_level == 0
        assert result.decision_type == "none"

    def test_skipped_result_method(self) -> None:
        result = SKIPPED_DECISION.to_classification_result()
        assert result.decision_level == 0
        assert result.method == "precheck"


class TestRequestModelDecision:
    """Tests for the model call and its degradation paths."""

    async def test_success(self, completion) -> None:
        decision = await request_model_decision("Hi", "Can you reply?", completion)
        assert decision.decision_required is True
        prompt = completion.complete.await_args.args[0]
        assert "Subject: Hi\nBody: Can you reply?" in prompt

    async def test_no_client(self) -> None:
        assert await request_model_decision("Hi", "body", None) == SAFE_DEFAULT

    async def test_timeout_gives_safe_default(self, completion, fast_config) -> None:
        async def hang(prompt: str) -> str:
            await asyncio.sleep(5)
            return VALID_REPLY

        completion.complete.side_effect = hang
        decision = await request_model_decision("Hi", "body", completion, config=fast_config)
        assert decision == SAFE_DEFAULT

    async def test_completion_error_gives_safe_default(self, completion) -> None:
        completion.complete.side_effect = CompletionError("API status error 500")
        assert await request_model_decision("Hi", "body", completion) == SAFE_DEFAULT

    async def test_unexpected_error_gives_safe_default(self, completion) -> None:
        completion.complete.side_effect = RuntimeError("socket closed")
        assert await request_model_decision("Hi", "body", completion) == SAFE_DEFAULT

    async def test_logs_request_to_store(self, completion) -> None:
        store = AsyncMock()
        await request_model_decision("Hi", "body", completion, store=store, email_id="m1")

        kwargs = store.log_llm_request.await_args.kwargs
        assert kwargs["task_type"] == "decision"
        assert kwargs["model"] == "test-model"
        assert kwargs["email_id"] == "m1"
        assert kwargs["response"] == {"text": VALID_REPLY}
        assert kwargs["parsed"]["decision_type"] == "reply_required"
        assert kwargs["error"] is None

    async def test_failed_call_is_logged_with_error(self, completion) -> None:
        store = AsyncMock()
        completion.complete.side_effect = CompletionError("API connection error")
        await request_model_decision("Hi", "body", completion, store=store)

        kwargs = store.log_llm_request.await_args.kwargs
        assert kwargs["response"] is None
        assert kwargs["error"] == "API connection error"

    async def test_log_failure_does_not_block(self, completion) -> None:
        store = AsyncMock()
        store.log_llm_request.side_effect = RuntimeError("disk full")
        decision = await request_model_decision("Hi", "body", completion, store=store)
        assert decision.decision_type == "reply_required"

    async def test_logging_disabled(self, completion) -> None:
        store = AsyncMock()
        config = AppConfig(llm_logging=LLMLoggingConfig(enabled=False))
        await request_model_decision("Hi", "body", completion, config=config, store=store)
        store.log_llm_request.assert_not_awaited()

    async def test_prompts_not_logged_when_disabled(self, completion) -> None:
        store = AsyncMock()
        config = AppConfig(llm_logging=LLMLoggingConfig(log_prompts=False))
        await request_model_decision("Hi", "body", completion, config=config, store=store)
        assert store.log_llm_request.await_args.kwargs["prompt"] == {}

    async def test_classify_via_model_returns_result(self, completion) -> None:
        result = await classify_via_model("Hi", "Can you reply?", completion)
        assert result.decision_level == 1
        assert result.decision_type == "reply_required"


class TestClassifyDecision:
    """Tests for the pre-check gate in front of the model."""

    async def test_no_indicators_skips_model(self, completion) -> None:
        decision = await classify_decision("Project Status Update", "All on track.", completion)
        assert decision == SKIPPED_DECISION
        completion.complete.assert_not_awaited()

    async def test_indicators_call_model(self, completion) -> None:
        decision = await classify_decision("Question", "What time works for you?", completion)
        assert decision.skipped_ai is False
        assert decision.decision_type == "reply_required"
        completion.complete.assert_awaited_once()


class TestAnthropicCompletion:
    """Tests for the Anthropic-backed completion client."""

    def _client(self, create: AsyncMock) -> AnthropicCompletion:
        sdk = MagicMock()
        sdk.messages.create = create
        return AnthropicCompletion(sdk, model="test-model", max_tokens=150, temperature=0.3)

    async def test_joins_text_blocks(self) -> None:
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"decision_required": '),
                SimpleNamespace(type="tool_use", name="ignored"),
                SimpleNamespace(type="text", text="true}"),
            ]
        )
        create = AsyncMock(return_value=response)

        text = await self._client(create).complete("prompt")

        assert text == '{"decision_required": true}'
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    async def test_connection_error_is_wrapped(self) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        create = AsyncMock(side_effect=anthropic.APIConnectionError(request=request))

        with pytest.raises(CompletionError):
            await self._client(create).complete("prompt")

    async def test_status_error_is_wrapped(self) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(529, request=request)
        error = anthropic.APIStatusError("overloaded", response=response, body=None)
        create = AsyncMock(side_effect=error)

        with pytest.raises(CompletionError, match="529"):
            await self._client(create).complete("prompt")
