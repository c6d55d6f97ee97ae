"""Hard and learned exclusion filters.

Both filters run before any scoring and short-circuit the pipeline with a
Level 0 result. They differ in where their knowledge comes from:

- Hard exclusions are fixed tables (patterns.py): bulk senders, platform
  domains, newsletter subjects, FYI and marketing language, receipts, and
  long-form bodies. Pure and deterministic.
- Learned exclusions come from the user's own "Not a Decision" feedback,
  reduced to a sender domain and a three-word subject prefix. The caller
  supplies them; this module never touches the store.

Usage:
    from decision_inbox.classifier.exclusions import (
        check_learned_exclusions,
        is_hard_excluded,
    )

    result = is_hard_excluded(email)
    if not result.excluded:
        result = check_learned_exclusions(email, learned)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from decision_inbox.classifier.models import NOT_EXCLUDED, ExclusionResult
from decision_inbox.classifier.patterns import (
    AUTOMATED_SENDER_PREFIXES,
    BULK_SENDER_DOMAINS,
    FYI_PHRASES,
    MARKETING_PHRASES,
    NEWSLETTER_SUBJECT_MARKERS,
    RECEIPT_OVERRIDE_PHRASE,
    RECEIPT_SUBJECT_MARKERS,
)
from decision_inbox.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from decision_inbox.classifier.models import Email, LearnedExclusion

logger = get_logger(__name__)

DEFAULT_LONG_FORM_CHARS = 8000

# Characters that may follow an automated prefix in a local-part
_PREFIX_SEPARATORS = frozenset("-_.+0123456789")


def is_hard_excluded(
    email: Email,
    long_form_chars: int = DEFAULT_LONG_FORM_CHARS,
) -> ExclusionResult:
    """Check an email against the fixed "never a decision" tables.

    Checks run in a fixed order and the first match wins:
    automated sender local-part, bulk/platform domain, newsletter subject,
    FYI phrasing, marketing phrasing, receipt subject, long-form body.

    Args:
        email: Email to check
        long_form_chars: Body length above which the email is treated as
            newsletter-like

    Returns:
        ExclusionResult with a one-line reason when excluded
    """
    local_part = email.sender_local_part
    if local_part and _matches_automated_prefix(local_part):
        return ExclusionResult(excluded=True, reason="Automated bulk sender")

    domain = email.sender_domain
    if domain and _matches_domain(domain, BULK_SENDER_DOMAINS):
        return ExclusionResult(excluded=True, reason="Platform-generated notification")

    subject = email.subject_lower
    if any(marker in subject for marker in NEWSLETTER_SUBJECT_MARKERS):
        return ExclusionResult(excluded=True, reason="Newsletter/bulletin/digest")

    text = email.combined_text()
    if any(phrase in text for phrase in FYI_PHRASES):
        return ExclusionResult(excluded=True, reason="Informational only (FYI)")

    if any(phrase in text for phrase in MARKETING_PHRASES):
        return ExclusionResult(excluded=True, reason="Pure marketing/promotional")

    if (
        any(marker in subject for marker in RECEIPT_SUBJECT_MARKERS)
        and RECEIPT_OVERRIDE_PHRASE not in text
    ):
        return ExclusionResult(excluded=True, reason="Receipt/order confirmation")

    if len(email.body_text or "") > long_form_chars:
        return ExclusionResult(excluded=True, reason="Long-form content (likely newsletter)")

    return NOT_EXCLUDED


def subject_prefix(subject: str | None, words: int = 3) -> str:
    """Return the first `words` whitespace-separated words of a subject, lowercased."""
    return " ".join((subject or "").lower().split()[:words])


def check_learned_exclusions(
    email: Email,
    learned: Iterable[LearnedExclusion],
) -> ExclusionResult:
    """Check an email against the user's learned "Not a Decision" patterns.

    A learned entry matches when its sender domain is contained in the
    email's sender domain, or its subject pattern is contained in the
    email's three-word subject prefix. Empty patterns never match.

    Args:
        email: Email to check
        learned: The user's most recent learned exclusions

    Returns:
        ExclusionResult with a one-line reason when excluded
    """
    domain = email.sender_domain
    prefix = subject_prefix(email.subject)

    subject_hit = False
    for entry in learned:
        learned_domain = (entry.sender_domain or "").strip().lower()
        if domain and learned_domain and learned_domain in domain:
            logger.debug("learned_exclusion_matched", match_type="sender_domain", domain=domain)
            return ExclusionResult(
                excluded=True,
                reason='Sender previously marked as "Not a Decision"',
            )

        learned_subject = (entry.subject_pattern or "").strip().lower()
        if prefix and learned_subject and learned_subject in prefix:
            subject_hit = True

    # Domain matches take precedence over subject matches across all entries
    if subject_hit:
        logger.debug("learned_exclusion_matched", match_type="subject_prefix")
        return ExclusionResult(
            excluded=True,
            reason='Similar subject previously marked as "Not a Decision"',
        )

    return NOT_EXCLUDED


def _matches_automated_prefix(local_part: str) -> bool:
    """Check if a sender local-part is (or starts with) an automated prefix."""
    for prefix in AUTOMATED_SENDER_PREFIXES:
        if local_part == prefix:
            return True
        if local_part.startswith(prefix) and local_part[len(prefix)] in _PREFIX_SEPARATORS:
            return True
    return False


def _matches_domain(domain: str, domains: Iterable[str]) -> bool:
    """Check if a domain equals, or is a subdomain of, any listed domain."""
    return any(domain == d or domain.endswith("." + d) for d in domains)
