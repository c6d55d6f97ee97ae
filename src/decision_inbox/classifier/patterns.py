"""Phrase tables that drive the rule-based decision classifier.

The tables are data, not logic: each is an immutable tuple of lowercase
phrases (or a read-only mapping of named tuples) so they can be tuned and
unit-tested independently of the scoring code. Matching is always
case-insensitive substring search against lowercased text; no regex is
used here, so there is no ReDoS exposure from email content.

Ordering matters only where noted: signal categories fire in the order of
SIGNAL_PHRASES, which is also the order explanations are listed in.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from decision_inbox.classifier.models import DecisionType, SignalCategory

# =============================================================================
# Hard exclusions ("never a decision")
# =============================================================================

# Sender local-parts that identify bulk or automated mail. A local-part
# matches when it equals the prefix or continues with a separator/digit
# (newsletter-team@, noreply2@), so real names like "newsom@" do not match.
AUTOMATED_SENDER_PREFIXES: tuple[str, ...] = (
    "noreply",
    "no-reply",
    "no_reply",
    "donotreply",
    "do-not-reply",
    "newsletter",
    "newsletters",
    "news",
    "notifications",
    "notification",
    "notify",
    "updates",
    "marketing",
    "mailer",
    "mailer-daemon",
    "bounce",
    "bounces",
    "digest",
    "bulletin",
    "announce",
    "announcements",
    "promotions",
    "campaigns",
    "automated",
)

# Bulk-mail infrastructure and social platforms whose mail is never personal.
# Matches the exact domain or any subdomain of it.
BULK_SENDER_DOMAINS: tuple[str, ...] = (
    "mailchimp.com",
    "mcsv.net",
    "mcdlv.net",
    "sendgrid.net",
    "mailgun.org",
    "amazonses.com",
    "constantcontact.com",
    "hubspotemail.net",
    "substack.com",
    "beehiiv.com",
    "medium.com",
    "linkedin.com",
    "facebookmail.com",
    "quora.com",
)

NEWSLETTER_SUBJECT_MARKERS: tuple[str, ...] = (
    "newsletter",
    "bulletin",
    "digest",
    "[announcement]",
    "weekly update",
    "monthly update",
    "weekly roundup",
    "monthly roundup",
    "fyi:",
    "what's new",
    "member benefits",
    "new features",
)

FYI_PHRASES: tuple[str, ...] = (
    "for your information",
    "fyi",
    "just letting you know",
    "just a heads up",
    "heads up:",
    "thought you should know",
    "no action required",
    "no action needed",
    "no response needed",
    "no reply needed",
    "for your records",
)

MARKETING_PHRASES: tuple[str, ...] = (
    "limited time offer",
    "exclusive deal",
    "shop now",
    "buy now",
    "free shipping",
    "sale ends",
    "discount code",
)

RECEIPT_SUBJECT_MARKERS: tuple[str, ...] = (
    "order confirmation",
    "purchase receipt",
    "payment received",
    "transaction complete",
    "order receipt",
    "your receipt",
)

# A receipt that still asks for something is not excluded.
RECEIPT_OVERRIDE_PHRASE = "action required"

# =============================================================================
# Decision signals
# =============================================================================

SIGNAL_PHRASES: Mapping[SignalCategory, tuple[str, ...]] = MappingProxyType(
    {
        "explicit_choice": (
            "yes or no",
            "approve or reject",
            "accept or decline",
            "please approve",
            "need your approval",
            "awaiting your decision",
            "requires your approval",
            "pending your approval",
            "do you approve",
            "please choose",
            "please select",
            "choose option",
            "select one",
            "make a choice",
            "decide whether",
        ),
        "mandatory_action": (
            "must respond by",
            "must submit by",
            "must respond",
            "must submit",
            "must approve",
            "must confirm",
            "required by",
            "urgent action needed",
            "immediate response required",
            "action required by",
            "deadline:",
        ),
        "personal_question": (
            "can you please reply",
            "need your feedback by",
            "what do you think",
            "which option do you prefer",
            "what is your decision",
            "have you decided",
            "when can you",
        ),
        "rsvp": (
            "rsvp",
            "please confirm",
            "confirm your attendance",
            "will you attend",
            "can you attend",
            "are you coming",
            "save the date",
        ),
        "interest_check": (
            "interested in",
            "would you like",
            "are you available",
            "let us know",
            "register now",
            "sign up",
        ),
        "feedback_request": (
            "share your thoughts",
            "tell us what you think",
            "your feedback",
            "feedback requested",
            "take our survey",
            "rate your experience",
        ),
        "time_boxed": (
            "register by",
            "sign up before",
            "limited spots",
            "ends soon",
            "closing soon",
            "last chance",
        ),
    }
)

SIGNAL_DESCRIPTIONS: Mapping[SignalCategory, str] = MappingProxyType(
    {
        "explicit_choice": "Explicit choice required",
        "mandatory_action": "Mandatory action with deadline",
        "personal_question": "Personal reply requested",
        "rsvp": "RSVP/Confirmation requested",
        "interest_check": "Interest check",
        "feedback_request": "Feedback requested",
        "time_boxed": "Time-sensitive opportunity",
        "question": "Contains question",
        "real_person": "From real person",
    }
)

# A bare question needs one of these openers AND a '?' somewhere in the text.
QUESTION_INDICATORS: tuple[str, ...] = (
    "can you",
    "could you",
    "would you",
    "will you",
    "are you able",
    "do you want",
    "have you",
)

# Address fragments that mark a sender as a machine rather than a person.
AUTOMATED_SENDER_MARKERS: tuple[str, ...] = (
    "noreply",
    "no-reply",
    "donotreply",
    "automated",
    "notifications",
)

# =============================================================================
# Scoring tables
# =============================================================================

SIGNAL_WEIGHTS: Mapping[SignalCategory, float] = MappingProxyType(
    {
        "explicit_choice": 0.35,
        "mandatory_action": 0.30,
        "personal_question": 0.20,
        "rsvp": 0.25,
        "interest_check": 0.15,
        "feedback_request": 0.15,
        "time_boxed": 0.10,
        "question": 0.15,
        "real_person": 0.10,
    }
)

# Deadline boosts by urgency bucket.
DEADLINE_BOOST_NOW = 0.25  # <= 48h
DEADLINE_BOOST_SOON = 0.15  # <= 7 days
DEADLINE_BOOST_LATER = 0.10  # further out
DEADLINE_BOOST_UNKNOWN = 0.15  # found, offset unknown
DEADLINE_NOW_HOURS = 48
DEADLINE_SOON_HOURS = 168

# Which decision type each category implies, highest priority first.
DECISION_TYPE_PRIORITY: tuple[tuple[SignalCategory, DecisionType], ...] = (
    ("explicit_choice", "approval_required"),
    ("mandatory_action", "action_required"),
    ("rsvp", "rsvp_required"),
    ("interest_check", "interest_check"),
    ("feedback_request", "feedback_request"),
    ("personal_question", "reply_required"),
    ("question", "question"),
    ("time_boxed", "time_sensitive"),
    ("deadline", "time_sensitive"),
)

# =============================================================================
# AI pre-check gate
# =============================================================================

ESCALATION_KEYWORDS: tuple[str, ...] = (
    "please confirm",
    "let me know",
    "deadline",
    "due",
    "submit",
    "reply",
    "respond",
    "urgent",
    "asap",
    "action required",
    "your response",
    "waiting for",
    "need your",
)
