"""Decision signal extraction.

Scans the lowercased subject and body for each named phrase category in
patterns.SIGNAL_PHRASES. A category fires at most once no matter how many
of its phrases appear. Two heuristics complete the picture:

- question: a question opener ("can you", "have you", ...) plus a '?'
- real_person: the sender is not an automated address; only reported when
  some other phrase signal fired. The scorer adds it for a deadline-only
  email, since a human sender alone is not evidence of a decision
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from decision_inbox.classifier.models import SignalMatch
from decision_inbox.classifier.patterns import (
    AUTOMATED_SENDER_MARKERS,
    QUESTION_INDICATORS,
    SIGNAL_DESCRIPTIONS,
    SIGNAL_PHRASES,
)

if TYPE_CHECKING:
    from decision_inbox.classifier.models import Email


def extract_signals(email: Email) -> tuple[SignalMatch, ...]:
    """Extract decision signals from an email.

    Args:
        email: Email to scan

    Returns:
        Signals in fire order (SIGNAL_PHRASES order, then question, then
        real_person)
    """
    text = email.combined_text()
    signals: list[SignalMatch] = []

    for category, phrases in SIGNAL_PHRASES.items():
        if any(phrase in text for phrase in phrases):
            signals.append(SignalMatch(category, SIGNAL_DESCRIPTIONS[category]))

    if "?" in text and any(opener in text for opener in QUESTION_INDICATORS):
        signals.append(SignalMatch("question", SIGNAL_DESCRIPTIONS["question"]))

    if signals and is_real_person(email):
        signals.append(SignalMatch("real_person", SIGNAL_DESCRIPTIONS["real_person"]))

    return tuple(signals)


def is_real_person(email: Email) -> bool:
    """Return True unless the sender address carries an automated marker."""
    sender = email.sender_lower
    return not any(marker in sender for marker in AUTOMATED_SENDER_MARKERS)
