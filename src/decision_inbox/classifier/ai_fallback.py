"""AI fallback classifier for the interactive classification endpoint.

Flow (`classify_decision`):
1. Pre-check gate; if it says no, return informational_only with
   skipped_ai=True and never call the model
2. Build the fixed decision prompt
3. Call the completion client under asyncio.wait_for (abandoned on timeout)
4. Parse the first JSON object in the reply (code fences tolerated)

Error handling strategy:
- Transient errors (429, 5xx, network): Handled by Anthropic SDK (max_retries=3)
- Timeout, API failure, missing or malformed JSON: the safe default
  {decision_required: false, decision_type: informational_only,
  reason: "Could not analyze email"}
- Nothing in this module raises to its callers

Usage:
    from decision_inbox.classifier.ai_fallback import AnthropicCompletion, classify_decision

    client = AnthropicCompletion(anthropic.AsyncAnthropic(max_retries=3), model=config.ai.model)
    decision = await classify_decision(subject, body, client, config=config)
    payload = decision.to_dict()
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

import anthropic
from pydantic import BaseModel, ValidationError

from decision_inbox.classifier.models import ClassificationResult
from decision_inbox.classifier.precheck import should_escalate_to_ai
from decision_inbox.classifier.prompts import build_decision_prompt
from decision_inbox.config_schema import AppConfig
from decision_inbox.core.errors import CompletionError
from decision_inbox.core.logging import get_logger

if TYPE_CHECKING:
    from datetime import datetime

    from decision_inbox.classifier.models import DecisionType, UrgencyLabel
    from decision_inbox.classifier.precheck import EscalationMeta, ReplyCounter
    from decision_inbox.db.store import DatabaseStore

logger = get_logger(__name__)

ModelDecisionType = Literal["reply_required", "deadline", "follow_up", "informational_only"]

FALLBACK_REASON = "Could not analyze email"
SKIPPED_REASON = "No action indicators found"

# Wire decision type -> rule-engine decision type
MODEL_TYPE_MAP: dict[str, DecisionType] = {
    "reply_required": "reply_required",
    "deadline": "time_sensitive",
    "follow_up": "action_required",
    "informational_only": "none",
}

# Confidence attached to a model "decision required" answer (lands on Level 1)
MODEL_DECISION_CONFIDENCE = 0.60


# ---------------------------------------------------------------------------
# Completion clients
# ---------------------------------------------------------------------------


class CompletionClient(Protocol):
    """Single-shot text completion. May raise on network failure."""

    model: str

    async def complete(self, prompt: str) -> str: ...


class AnthropicCompletion:
    """CompletionClient backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str,
        max_tokens: int = 150,
        temperature: float = 0.3,
    ):
        self._client = client
        self.model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @classmethod
    def from_config(cls, config: AppConfig) -> AnthropicCompletion:
        """Build a client from the `ai` config section (reads ANTHROPIC_API_KEY)."""
        return cls(
            anthropic.AsyncAnthropic(max_retries=3),
            model=config.ai.model,
            max_tokens=config.ai.max_tokens,
            temperature=config.ai.temperature,
        )

    async def complete(self, prompt: str) -> str:
        """Send one user message and return the concatenated text blocks.

        Raises:
            CompletionError: After the SDK's own retries are exhausted
        """
        try:
            # SDK handles transient retries (429, 5xx, connection errors)
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            raise CompletionError(f"API status error {e.status_code}: {e.message}") from e
        except anthropic.APIConnectionError as e:
            raise CompletionError(f"API connection error after SDK retries: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )


# ---------------------------------------------------------------------------
# Model decision
# ---------------------------------------------------------------------------


class _ModelPayload(BaseModel):
    """Shape the model must return."""

    decision_required: bool
    decision_type: ModelDecisionType
    reason: str


@dataclass(frozen=True, slots=True)
class ModelDecision:
    """Coarse decision produced by the interactive (model) path.

    Attributes:
        decision_required: Whether the email needs a reply or action
        decision_type: reply_required, deadline, follow_up, informational_only
        reason: Short human-readable reason
        skipped_ai: True when the pre-check gate short-circuited the model
    """

    decision_required: bool
    decision_type: ModelDecisionType
    reason: str
    skipped_ai: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Wire shape; `skipped_ai` is only present when the model was skipped."""
        data: dict[str, Any] = {
            "decision_required": self.decision_required,
            "decision_type": self.decision_type,
            "reason": self.reason,
        }
        if self.skipped_ai:
            data["skipped_ai"] = True
        return data

    def to_classification_result(self) -> ClassificationResult:
        """Map onto the rule engine's result type (Level 0 or 1 only)."""
        decision_type = MODEL_TYPE_MAP[self.decision_type]
        required = self.decision_required and decision_type != "none"
        method = "precheck" if self.skipped_ai else "model"

        if not required:
            return ClassificationResult(
                decision_level=0,
                decision_type="none",
                confidence=0.0,
                reason=self.reason,
                explanation=(self.reason,),
                method=method,
            )

        urgency: UrgencyLabel = "decide_soon" if self.decision_type == "deadline" else "optional"
        return ClassificationResult(
            decision_level=1,
            decision_type=decision_type,
            confidence=MODEL_DECISION_CONFIDENCE,
            reason=self.reason,
            urgency_label=urgency,
            explanation=(self.reason,),
            method=method,
        )


SAFE_DEFAULT = ModelDecision(
    decision_required=False,
    decision_type="informational_only",
    reason=FALLBACK_REASON,
)

SKIPPED_DECISION = ModelDecision(
    decision_required=False,
    decision_type="informational_only",
    reason=SKIPPED_REASON,
    skipped_ai=True,
)


def parse_model_response(text: str | None) -> ModelDecision:
    """Parse the first JSON object in a model reply.

    Leading prose and markdown code fences are tolerated because decoding
    starts at the first '{' and stops at the end of that object.

    Returns:
        ModelDecision, or SAFE_DEFAULT when no valid object is found
    """
    if not text:
        return SAFE_DEFAULT

    start = text.find("{")
    if start == -1:
        logger.warning("model_response_no_json", response_chars=len(text))
        return SAFE_DEFAULT

    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
        payload = _ModelPayload.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("model_response_invalid", error=str(e)[:200])
        return SAFE_DEFAULT

    return ModelDecision(
        decision_required=payload.decision_required,
        decision_type=payload.decision_type,
        reason=payload.reason.strip() or FALLBACK_REASON,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def request_model_decision(
    subject: str | None,
    body: str | None,
    client: CompletionClient | None,
    config: AppConfig | None = None,
    store: DatabaseStore | None = None,
    email_id: str | None = None,
) -> ModelDecision:
    """Ask the model for a decision; never raises.

    Args:
        subject: Email subject
        body: Email body text
        client: Completion client; SAFE_DEFAULT when None
        config: App config (ai and llm_logging sections)
        store: Optional store for LLM request logging
        email_id: Email being classified (for logs)

    Returns:
        ModelDecision
    """
    config = config or AppConfig()

    if client is None:
        logger.warning("model_client_unavailable", email_id=email_id)
        return SAFE_DEFAULT

    prompt = build_decision_prompt(subject, body, body_chars=config.ai.body_chars)

    start_time = time.monotonic()
    response_text: str | None = None
    error: str | None = None
    try:
        response_text = await _complete_with_timeout(client, prompt, config.ai.timeout_seconds)
    except CompletionError as e:
        error = str(e)
        logger.warning(
            "model_call_failed", email_id=email_id, error=error, timed_out=e.timed_out
        )
    except Exception as e:
        error = f"{type(e).__name__}: {e}"
        logger.warning("model_call_failed", email_id=email_id, error=error)

    duration_ms = int((time.monotonic() - start_time) * 1000)
    decision = SAFE_DEFAULT if response_text is None else parse_model_response(response_text)

    await _log_request(
        store,
        config,
        model=getattr(client, "model", "unknown"),
        prompt=prompt,
        response_text=response_text,
        decision=decision,
        duration_ms=duration_ms,
        email_id=email_id,
        error=error,
    )

    logger.info(
        "model_decision",
        email_id=email_id,
        decision_required=decision.decision_required,
        decision_type=decision.decision_type,
        duration_ms=duration_ms,
    )
    return decision


async def classify_via_model(
    subject: str | None,
    body: str | None,
    client: CompletionClient | None,
    config: AppConfig | None = None,
    store: DatabaseStore | None = None,
    email_id: str | None = None,
) -> ClassificationResult:
    """Classify with the remote model only; never raises."""
    decision = await request_model_decision(
        subject, body, client, config=config, store=store, email_id=email_id
    )
    return decision.to_classification_result()


async def classify_decision(
    subject: str | None,
    body: str | None,
    client: CompletionClient | None,
    meta: EscalationMeta | None = None,
    reply_counter: ReplyCounter | None = None,
    config: AppConfig | None = None,
    store: DatabaseStore | None = None,
    email_id: str | None = None,
    now: datetime | None = None,
) -> ModelDecision:
    """Interactive path: pre-check gate first, model only when it escalates."""
    config = config or AppConfig()

    escalate = await should_escalate_to_ai(
        subject,
        body,
        meta,
        reply_counter=reply_counter,
        settings=config.precheck,
        now=now,
    )
    if not escalate:
        logger.info("model_call_skipped", email_id=email_id)
        return SKIPPED_DECISION

    return await request_model_decision(
        subject, body, client, config=config, store=store, email_id=email_id
    )


async def _log_request(
    store: DatabaseStore | None,
    config: AppConfig,
    model: str,
    prompt: str,
    response_text: str | None,
    decision: ModelDecision,
    duration_ms: int,
    email_id: str | None,
    error: str | None,
) -> None:
    """Record the call in llm_request_log; failures never block classification."""
    if store is None or not config.llm_logging.enabled:
        return

    try:
        await store.log_llm_request(
            task_type="decision",
            model=model,
            prompt={"prompt": prompt} if config.llm_logging.log_prompts else {},
            response=(
                {"text": response_text}
                if response_text is not None and config.llm_logging.log_responses
                else None
            ),
            parsed=decision.to_dict(),
            duration_ms=duration_ms,
            email_id=email_id,
            error=error,
        )
    except Exception as e:
        logger.warning("llm_log_failed", error=str(e), email_id=email_id)


async def _complete_with_timeout(client: CompletionClient, prompt: str, timeout: float) -> str:
    """Run one completion, abandoning it after `timeout` seconds."""
    try:
        return await asyncio.wait_for(client.complete(prompt), timeout=timeout)
    except TimeoutError as e:
        raise CompletionError(f"Completion timed out after {timeout}s", timed_out=True) from e
