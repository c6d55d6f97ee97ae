"""Prompt template and text cleaning for the AI fallback classifier.

The model is asked for a single strict JSON object:

    {"decision_required": bool,
     "decision_type": "reply_required|deadline|follow_up|informational_only",
     "reason": "string"}

Subject and body are cleaned before they go into the prompt: HTML tags
and entities, quoted replies, "On ... wrote:" headers, mobile footers, and
runs of whitespace are removed so the body budget is spent on content.

CRITICAL SECURITY NOTE:
All regex operations use the `regex` library with timeout parameter to
prevent ReDoS attacks from malicious email content.
"""

from __future__ import annotations

import html

import regex

from decision_inbox.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BODY_CHARS = 2000

# Regex timeout in seconds (CRITICAL: all operations MUST use this)
REGEX_TIMEOUT = 1.0

DECISION_TYPES_FOR_MODEL: tuple[str, ...] = (
    "reply_required",
    "deadline",
    "follow_up",
    "informational_only",
)

DECISION_PROMPT = """You are an email decision classifier for a productivity email app.

Analyze the email and return ONLY valid JSON.

Rules:
- decision_required = true if the email needs a reply, confirmation, action, or has a deadline.
- decision_required = false if it is purely informational, promotional, or a newsletter.

Decision types (choose ONE):
- reply_required: Email explicitly asks for a response or answer
- deadline: Email contains a time-sensitive deadline or due date
- follow_up: Email needs follow-up action but not urgent
- informational_only: No action needed, purely informational

Also provide a short human-readable reason (max 12 words).

Email:
Subject: {subject}
Body: {body}

Output format (MUST be valid JSON):
{{
  "decision_required": boolean,
  "decision_type": "reply_required | deadline | follow_up | informational_only",
  "reason": "string"
}}"""


# =============================================================================
# Compiled Regex Patterns
# Note: timeout is passed at match time (search, sub, etc.), not compile time
# =============================================================================

STYLE_SCRIPT_PATTERN = regex.compile(
    r"<(style|script)[^>]*>.*?</\1>",
    regex.IGNORECASE | regex.DOTALL,
)
HTML_TAG_PATTERN = regex.compile(r"<[^>]+>")
QUOTED_LINE_PATTERN = regex.compile(r"^>.*$", regex.MULTILINE)
REPLY_HEADER_PATTERN = regex.compile(r"On\s[^\n]{1,200}?wrote:", regex.IGNORECASE)
MOBILE_FOOTER_PATTERN = regex.compile(
    r"(?:Sent from my (?:iPhone|iPad|Android|Samsung|Mobile)|Get Outlook for (?:iOS|Android))",
    regex.IGNORECASE,
)
WHITESPACE_PATTERN = regex.compile(r"\s+")


def _safe_sub(pattern: regex.Pattern, repl: str, text: str) -> str:
    """Substitute with timeout; on timeout return the text unchanged."""
    try:
        return pattern.sub(repl, text, timeout=REGEX_TIMEOUT)
    except TimeoutError:
        logger.warning("prompt_clean_regex_timeout", pattern=pattern.pattern[:50])
        return text


def clean_prompt_text(text: str | None) -> str:
    """Strip markup and reply noise from text headed for the prompt."""
    if not text:
        return ""

    cleaned = _safe_sub(STYLE_SCRIPT_PATTERN, " ", text)
    cleaned = _safe_sub(HTML_TAG_PATTERN, " ", cleaned)
    cleaned = _safe_sub(QUOTED_LINE_PATTERN, "", cleaned)
    cleaned = _safe_sub(REPLY_HEADER_PATTERN, "", cleaned)
    cleaned = _safe_sub(MOBILE_FOOTER_PATTERN, "", cleaned)
    cleaned = html.unescape(cleaned)
    cleaned = _safe_sub(WHITESPACE_PATTERN, " ", cleaned)
    return cleaned.strip()


def build_decision_prompt(
    subject: str | None,
    body: str | None,
    body_chars: int = DEFAULT_BODY_CHARS,
) -> str:
    """Fill the decision prompt with a cleaned subject and truncated body."""
    return DECISION_PROMPT.format(
        subject=clean_prompt_text(subject),
        body=clean_prompt_text(body)[:body_chars],
    )
