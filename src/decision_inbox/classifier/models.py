"""Value types shared by the decision classification engine.

All types are frozen dataclasses: a classification run builds them once and
never mutates them, so results can be shared across workers safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

DecisionLevel = Literal[0, 1, 2]

DecisionType = Literal[
    "approval_required",
    "action_required",
    "rsvp_required",
    "interest_check",
    "feedback_request",
    "reply_required",
    "question",
    "time_sensitive",
    "none",
]

UrgencyLabel = Literal["decide_now", "decide_soon", "expires_soon", "optional"]

SignalCategory = Literal[
    "explicit_choice",
    "mandatory_action",
    "personal_question",
    "rsvp",
    "interest_check",
    "feedback_request",
    "time_boxed",
    "question",
    "deadline",
    "real_person",
]

VALID_DECISION_TYPES: frozenset[str] = frozenset(
    {
        "approval_required",
        "action_required",
        "rsvp_required",
        "interest_check",
        "feedback_request",
        "reply_required",
        "question",
        "time_sensitive",
        "none",
    }
)

VALID_URGENCY_LABELS: frozenset[str] = frozenset(
    {"decide_now", "decide_soon", "expires_soon", "optional"}
)


@dataclass(frozen=True, slots=True)
class Email:
    """Normalized email record handed to the classifier.

    Text fields may be None when the sync layer had nothing to store; every
    consumer goes through the accessors below, which return lowercase
    strings and never None.

    Attributes:
        id: Provider message ID (Gmail ID)
        subject: Subject line
        from_address: Sender email address
        from_display_name: Sender display name
        body_text: Plain-text body (may be empty)
        received_at: When the message arrived
        is_read: Whether the user has opened it
        user_id: Owner of the mailbox
        to_address: Recipient list (used for reply counting on sent mail)
    """

    id: str
    subject: str | None = None
    from_address: str | None = None
    from_display_name: str | None = None
    body_text: str | None = None
    received_at: datetime | None = None
    is_read: bool = False
    user_id: int | str | None = None
    to_address: str | None = None

    @property
    def subject_lower(self) -> str:
        return (self.subject or "").lower()

    @property
    def body_lower(self) -> str:
        return (self.body_text or "").lower()

    @property
    def sender_lower(self) -> str:
        return (self.from_address or "").strip().lower()

    @property
    def sender_local_part(self) -> str:
        """Part of the sender address before '@' (whole address if no '@')."""
        return self.sender_lower.split("@", 1)[0]

    @property
    def sender_domain(self) -> str | None:
        """Lowercased sender domain, or None when the address has no '@'."""
        sender = self.sender_lower
        if "@" not in sender:
            return None
        domain = sender.rsplit("@", 1)[1].strip(" >")
        return domain or None

    def combined_text(self, body_limit: int | None = None) -> str:
        """Lowercased `subject + " " + body`, optionally truncating the body."""
        body = self.body_lower
        if body_limit is not None:
            body = body[:body_limit]
        return f"{self.subject_lower} {body}"


@dataclass(frozen=True, slots=True)
class SignalMatch:
    """A single piece of evidence that fired during classification.

    Attributes:
        category: Which signal family fired
        description: Short human-readable label (used in explanations)
    """

    category: SignalCategory
    description: str


@dataclass(frozen=True, slots=True)
class DeadlineInfo:
    """Deadline detected in an email.

    Attributes:
        found: Whether any deadline expression matched
        raw_text: The matched deadline text (lowercased)
        hours_remaining: Estimated hours until the deadline, or None when the
            expression could not be resolved to a concrete offset
    """

    found: bool
    raw_text: str | None = None
    hours_remaining: float | None = None


NO_DEADLINE = DeadlineInfo(found=False)


@dataclass(frozen=True, slots=True)
class LearnedExclusion:
    """Coarse deny-list entry derived from a "Not a Decision" feedback event.

    Attributes:
        sender_domain: Lowercased sender domain of the corrected email
        subject_pattern: First three words of the corrected email's subject
    """

    sender_domain: str | None = None
    subject_pattern: str | None = None


@dataclass(frozen=True, slots=True)
class ExclusionResult:
    """Outcome of a hard or learned exclusion check."""

    excluded: bool
    reason: str = ""


NOT_EXCLUDED = ExclusionResult(excluded=False)


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Result of classifying one email.

    Attributes:
        decision_level: 0 (not a decision), 1 (soft) or 2 (hard)
        decision_type: Which kind of decision; 'none' exactly when level is 0
        confidence: Score in [0, 1]
        reason: Semicolon-joined signal descriptions or the exclusion reason
        urgency_label: Deadline-driven bucket; 'optional' at level 0
        deadline: Raw deadline text, if any
        signals: Signals that fired, in fire order (empty at level 0)
        explanation: "Why this is here" bullets for the decision inbox UI
        method: How the result was produced ('rules', 'hard_exclusion',
            'learned_exclusion', 'model', 'precheck', 'error')
    """

    decision_level: DecisionLevel
    decision_type: DecisionType
    confidence: float
    reason: str
    urgency_label: UrgencyLabel = "optional"
    deadline: str | None = None
    signals: tuple[SignalMatch, ...] = field(default_factory=tuple)
    explanation: tuple[str, ...] = field(default_factory=tuple)
    method: str = "rules"

    @property
    def decision_required(self) -> bool:
        return self.decision_level > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict (API responses, storage)."""
        return {
            "decision_level": self.decision_level,
            "decision_type": self.decision_type,
            "decision_required": self.decision_required,
            "confidence": self.confidence,
            "reason": self.reason,
            "urgency_label": self.urgency_label,
            "deadline": self.deadline,
            "signals": [
                {"category": s.category, "description": s.description} for s in self.signals
            ],
            "explanation": list(self.explanation),
            "method": self.method,
        }


def not_a_decision(reason: str, method: str, confidence: float = 0.0) -> ClassificationResult:
    """Build a terminal Level 0 result (exclusions, errors, fallbacks)."""
    return ClassificationResult(
        decision_level=0,
        decision_type="none",
        confidence=confidence,
        reason=reason,
        urgency_label="optional",
        deadline=None,
        signals=(),
        explanation=(reason,),
        method=method,
    )
