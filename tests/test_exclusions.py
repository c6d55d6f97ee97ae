"""Tests for the hard and learned exclusion filters."""

import pytest

from decision_inbox.classifier.exclusions import (
    check_learned_exclusions,
    is_hard_excluded,
    subject_prefix,
)
from decision_inbox.classifier.models import LearnedExclusion


class TestHardExclusions:
    """Tests for the fixed "never a decision" tables."""

    @pytest.mark.parametrize(
        "sender",
        [
            "noreply@acme.com",
            "no-reply@acme.com",
            "newsletter-team@acme.com",
            "notifications2@acme.com",
            "NoReply@Acme.com",
        ],
    )
    def test_automated_sender_prefixes(self, make_email, sender: str) -> None:
        result = is_hard_excluded(make_email(sender=sender))
        assert result.excluded
        assert result.reason == "Automated bulk sender"

    def test_real_name_sharing_a_prefix_is_not_automated(self, make_email) -> None:
        """'newsom' starts with 'news' but continues with a letter."""
        assert not is_hard_excluded(make_email(sender="newsom@acme.com")).excluded

    @pytest.mark.parametrize(
        "sender",
        ["team@substack.com", "digest@em.linkedin.com", "a@mail.mailchimp.com"],
    )
    def test_bulk_platform_domains(self, make_email, sender: str) -> None:
        result = is_hard_excluded(make_email(sender=sender))
        assert result.excluded
        assert result.reason in ("Platform-generated notification", "Automated bulk sender")

    def test_platform_subdomain_matches(self, make_email) -> None:
        result = is_hard_excluded(make_email(sender="alerts@news.substack.com"))
        assert result.reason == "Platform-generated notification"

    def test_lookalike_domain_does_not_match(self, make_email) -> None:
        assert not is_hard_excluded(make_email(sender="bob@notmedium.company")).excluded

    def test_newsletter_subject(self, make_email) -> None:
        result = is_hard_excluded(make_email(subject="Weekly Newsletter - March"))
        assert result.reason == "Newsletter/bulletin/digest"

    def test_fyi_phrase_in_body(self, make_email) -> None:
        result = is_hard_excluded(make_email(body="FYI the office is closed on Friday."))
        assert result.reason == "Informational only (FYI)"

    def test_marketing_phrase(self, make_email) -> None:
        result = is_hard_excluded(make_email(subject="Spring collection", body="Shop now and save"))
        assert result.reason == "Pure marketing/promotional"

    def test_receipt_subject(self, make_email) -> None:
        result = is_hard_excluded(make_email(subject="Your receipt from Acme"))
        assert result.reason == "Receipt/order confirmation"

    def test_receipt_with_action_required_is_not_excluded(self, make_email) -> None:
        email = make_email(
            subject="Your receipt from Acme",
            body="Action required: your card on file has expired.",
        )
        assert not is_hard_excluded(email).excluded

    def test_long_form_body(self, make_email) -> None:
        result = is_hard_excluded(make_email(body="x" * 8001))
        assert result.reason == "Long-form content (likely newsletter)"

    def test_long_form_threshold_is_configurable(self, make_email) -> None:
        email = make_email(body="x" * 500)
        assert not is_hard_excluded(email).excluded
        assert is_hard_excluded(email, long_form_chars=400).excluded

    def test_first_matching_check_wins(self, make_email) -> None:
        """An automated sender with a newsletter subject reports the sender check."""
        email = make_email(sender="noreply@acme.com", subject="Monthly digest")
        assert is_hard_excluded(email).reason == "Automated bulk sender"

    def test_ordinary_email_not_excluded(self, make_email) -> None:
        email = make_email(subject="Budget question", body="Can you approve the Q3 budget?")
        result = is_hard_excluded(email)
        assert not result.excluded
        assert result.reason == ""

    def test_missing_fields_are_tolerated(self, make_email) -> None:
        email = make_email(subject=None, body=None, sender=None)
        assert not is_hard_excluded(email).excluded


class TestSubjectPrefix:
    def test_first_three_words_lowercased(self) -> None:
        assert subject_prefix("  Re:  Budget   Review Q3") == "re: budget review"

    def test_short_and_empty_subjects(self) -> None:
        assert subject_prefix("Hello") == "hello"
        assert subject_prefix("") == ""
        assert subject_prefix(None) == ""


class TestLearnedExclusions:
    """Tests for exclusions learned from "Not a Decision" feedback."""

    def test_sender_domain_match(self, make_email) -> None:
        learned = [LearnedExclusion(sender_domain="acme.com")]
        result = check_learned_exclusions(make_email(sender="bob@mail.acme.com"), learned)
        assert result.excluded
        assert result.reason == 'Sender previously marked as "Not a Decision"'

    def test_subject_pattern_match(self, make_email) -> None:
        learned = [LearnedExclusion(subject_pattern="weekly sync notes")]
        email = make_email(subject="Weekly sync notes for March", sender="bob@other.org")
        result = check_learned_exclusions(email, learned)
        assert result.excluded
        assert result.reason == 'Similar subject previously marked as "Not a Decision"'

    def test_domain_match_beats_earlier_subject_match(self, make_email) -> None:
        learned = [
            LearnedExclusion(subject_pattern="weekly sync notes"),
            LearnedExclusion(sender_domain="acme.com"),
        ]
        email = make_email(subject="Weekly sync notes", sender="bob@acme.com")
        result = check_learned_exclusions(email, learned)
        assert result.reason == 'Sender previously marked as "Not a Decision"'

    def test_empty_patterns_never_match(self, make_email) -> None:
        learned = [LearnedExclusion(sender_domain="", subject_pattern=None)]
        assert not check_learned_exclusions(make_email(), learned).excluded

    def test_no_learned_entries(self, make_email) -> None:
        assert not check_learned_exclusions(make_email(), []).excluded

    def test_unrelated_entries_do_not_match(self, make_email) -> None:
        learned = [LearnedExclusion(sender_domain="example.org", subject_pattern="lunch order")]
        assert not check_learned_exclusions(make_email(), learned).excluded
