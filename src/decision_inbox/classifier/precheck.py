"""AI pre-check gate.

Decides whether an email is worth a remote model call before the
interactive classification endpoint pays for one. Checks, cheapest first:

1. A '?' anywhere in subject + body
2. Any action keyword (patterns.ESCALATION_KEYWORDS)
3. The user has replied to this sender more than N times (needs metadata)
4. The email is unread and older than N days (needs metadata)

If nothing fires the caller skips the model. This is a cost control, not a
correctness mechanism: any failure while reading metadata escalates.

Usage:
    from decision_inbox.classifier.precheck import EscalationMeta, should_escalate_to_ai

    meta = EscalationMeta(user_id=1, sender_address="bob@example.com", is_read=False,
                          received_at=received)
    if await should_escalate_to_ai(subject, body, meta, reply_counter=store.count_replies_to_sender):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from decision_inbox.classifier.patterns import ESCALATION_KEYWORDS
from decision_inbox.config_schema import PrecheckConfig
from decision_inbox.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    ReplyCounter = Callable[[int | str, str], Awaitable[int]]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class EscalationMeta:
    """Optional message metadata for the pre-check gate.

    Attributes:
        user_id: Mailbox owner (needed for the reply-count check)
        sender_address: Sender of the email being checked
        is_read: Whether the user has opened it
        received_at: When it arrived
    """

    user_id: int | str | None = None
    sender_address: str | None = None
    is_read: bool = True
    received_at: datetime | None = None


def has_escalation_signals(subject: str | None, body: str | None) -> bool:
    """Text-only part of the gate: a question mark or an action keyword."""
    text = f"{(subject or '').lower()} {(body or '').lower()}"
    if "?" in text:
        return True
    return any(keyword in text for keyword in ESCALATION_KEYWORDS)


async def should_escalate_to_ai(
    subject: str | None,
    body: str | None,
    meta: EscalationMeta | None = None,
    reply_counter: ReplyCounter | None = None,
    settings: PrecheckConfig | None = None,
    now: datetime | None = None,
) -> bool:
    """Decide whether an email should be sent to the remote model.

    Args:
        subject: Email subject
        body: Email body text
        meta: Optional metadata enabling the reply-count and staleness checks
        reply_counter: Async callable (user_id, sender_address) -> reply count
        settings: Gate thresholds; schema defaults when None
        now: Current time (injectable for tests)

    Returns:
        True to call the model, False to short-circuit to informational_only
    """
    if has_escalation_signals(subject, body):
        logger.debug("precheck_escalate", check="text")
        return True

    if meta is None:
        logger.debug("precheck_skip_ai")
        return False

    settings = settings or PrecheckConfig()

    try:
        if reply_counter is not None and meta.user_id is not None and meta.sender_address:
            replies = await reply_counter(meta.user_id, meta.sender_address)
            if replies > settings.reply_count_threshold:
                logger.debug("precheck_escalate", check="reply_count", replies=replies)
                return True

        if not meta.is_read and meta.received_at is not None:
            current = now or datetime.now(UTC)
            received = meta.received_at
            if received.tzinfo is None:
                received = received.replace(tzinfo=UTC)
            if current - received > timedelta(days=settings.stale_unread_days):
                logger.debug("precheck_escalate", check="stale_unread")
                return True
    except Exception as e:
        # Unknown state escalates rather than under-classifying
        logger.warning(
            "precheck_metadata_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        return True

    logger.debug("precheck_skip_ai")
    return False
