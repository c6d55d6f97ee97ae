"""Confidence scoring, level assignment, and explanations.

Scoring is additive over the signal categories that fired:

    confidence = base_score
               + sum(SIGNAL_WEIGHTS[category] for each fired category)
               + deadline boost (by urgency bucket)

capped at 1.0. The real-person bonus counts only next to another signal: a
phrase signal (see signals.py) or a found deadline. A human sender alone
never moves the score.

Levels come purely from the thresholds:

    confidence >= hard_threshold  -> Level 2 (hard decision)
    confidence >= soft_threshold  -> Level 1 (soft decision)
    otherwise                     -> Level 0

A Level 0 score is a hard override: type 'none', urgency 'optional', no
signals and no deadline in the output, whatever fired underneath.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from decision_inbox.classifier.models import SignalMatch
from decision_inbox.classifier.patterns import (
    DEADLINE_BOOST_LATER,
    DEADLINE_BOOST_NOW,
    DEADLINE_BOOST_SOON,
    DEADLINE_BOOST_UNKNOWN,
    DEADLINE_NOW_HOURS,
    DEADLINE_SOON_HOURS,
    DECISION_TYPE_PRIORITY,
    SIGNAL_DESCRIPTIONS,
    SIGNAL_WEIGHTS,
)
from decision_inbox.config_schema import ClassifierConfig

if TYPE_CHECKING:
    from collections.abc import Sequence

    from decision_inbox.classifier.models import (
        DeadlineInfo,
        DecisionLevel,
        DecisionType,
        UrgencyLabel,
    )

MAX_EXPLANATION_BULLETS = 3
NO_SIGNALS_EXPLANATION = "No decision signals detected"
HIGH_CONFIDENCE_EXPLANATION = "High confidence classification"

_HARD_CATEGORIES = frozenset({"explicit_choice", "mandatory_action"})
_REPLY_CATEGORIES = frozenset({"personal_question", "rsvp"})
_OPPORTUNITY_CATEGORIES = frozenset({"interest_check", "time_boxed"})


@dataclass(frozen=True, slots=True)
class ScoreResult:
    """Output of the scorer.

    Attributes:
        confidence: Score in [0, 1], rounded to 4 places
        level: 0, 1 or 2
        decision_type: 'none' exactly when level is 0
        urgency_label: 'optional' at level 0
        signals: Signals that count toward the result, deadline included
            (empty at level 0)
        deadline: Raw deadline text carried into the result (None at level 0)
    """

    confidence: float
    level: DecisionLevel
    decision_type: DecisionType
    urgency_label: UrgencyLabel
    signals: tuple[SignalMatch, ...] = field(default_factory=tuple)
    deadline: str | None = None


def assign_level(
    confidence: float,
    soft_threshold: float = 0.60,
    hard_threshold: float = 0.75,
) -> DecisionLevel:
    """Map a confidence score onto a decision level (thresholds inclusive)."""
    if confidence >= hard_threshold:
        return 2
    if confidence >= soft_threshold:
        return 1
    return 0


def deadline_boost(deadline: DeadlineInfo) -> tuple[float, UrgencyLabel | None]:
    """Return the score boost and urgency label for a deadline.

    Returns (0.0, None) when no deadline was found.
    """
    if not deadline.found:
        return 0.0, None

    hours = deadline.hours_remaining
    if hours is None:
        return DEADLINE_BOOST_UNKNOWN, "decide_soon"
    if hours <= DEADLINE_NOW_HOURS:
        return DEADLINE_BOOST_NOW, "decide_now"
    if hours <= DEADLINE_SOON_HOURS:
        return DEADLINE_BOOST_SOON, "decide_soon"
    return DEADLINE_BOOST_LATER, "expires_soon"


def score(
    signals: Sequence[SignalMatch],
    deadline: DeadlineInfo,
    settings: ClassifierConfig | None = None,
    real_person: bool = False,
) -> ScoreResult:
    """Score an email's signals and assign level, type, and urgency.

    Args:
        signals: Output of extract_signals (content signals, then real_person)
        deadline: Output of extract_deadline
        settings: Thresholds and base score; schema defaults when None
        real_person: Sender is a human; earns the real-person bonus when a
            deadline is the only other signal

    Returns:
        ScoreResult
    """
    settings = settings or ClassifierConfig()

    boost, deadline_label = deadline_boost(deadline)

    counted = [s for s in signals if s.category != "real_person"]
    person = [s for s in signals if s.category == "real_person"]
    if deadline.found:
        counted.append(SignalMatch("deadline", f"Deadline: {deadline.raw_text}"))
        if real_person and not person:
            person.append(SignalMatch("real_person", SIGNAL_DESCRIPTIONS["real_person"]))
    counted.extend(person)

    raw = settings.base_score + boost
    seen: set[str] = set()
    for signal in counted:
        if signal.category in seen:
            continue
        seen.add(signal.category)
        raw += SIGNAL_WEIGHTS.get(signal.category, 0.0)

    confidence = round(min(raw, 1.0), 4)
    level = assign_level(confidence, settings.soft_threshold, settings.hard_threshold)

    if level == 0:
        return ScoreResult(
            confidence=confidence,
            level=0,
            decision_type="none",
            urgency_label="optional",
        )

    return ScoreResult(
        confidence=confidence,
        level=level,
        decision_type=_decision_type(seen),
        urgency_label=_urgency_label(seen, deadline_label),
        signals=tuple(counted),
        deadline=deadline.raw_text if deadline.found else None,
    )


def _decision_type(categories: set[str]) -> DecisionType:
    for category, decision_type in DECISION_TYPE_PRIORITY:
        if category in categories:
            return decision_type
    return "none"


def _urgency_label(categories: set[str], deadline_label: UrgencyLabel | None) -> UrgencyLabel:
    """Pick the urgency bucket; a deadline's bucket beats signal-derived ones."""
    if deadline_label is not None:
        return deadline_label
    if categories & _HARD_CATEGORIES:
        return "decide_now"
    if categories & _REPLY_CATEGORIES:
        return "decide_soon"
    if categories & _OPPORTUNITY_CATEGORIES:
        return "expires_soon"
    return "optional"


def explain(
    signals: Sequence[SignalMatch],
    confidence: float,
    hard_threshold: float = 0.75,
) -> tuple[str, ...]:
    """Build the "why this is here" bullets for a result.

    One bullet per distinct category in fire order, at most three, followed
    by a high-confidence note when the score reaches the hard threshold.
    """
    if not signals:
        return (NO_SIGNALS_EXPLANATION,)

    bullets: list[str] = []
    seen: set[str] = set()
    for signal in signals:
        if signal.category in seen:
            continue
        seen.add(signal.category)
        bullets.append(signal.description)
        if len(bullets) == MAX_EXPLANATION_BULLETS:
            break

    if confidence >= hard_threshold:
        bullets.append(HIGH_CONFIDENCE_EXPLANATION)

    return tuple(bullets)
