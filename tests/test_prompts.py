"""Tests for decision prompt building and text cleaning."""

from decision_inbox.classifier.prompts import (
    DECISION_PROMPT,
    build_decision_prompt,
    clean_prompt_text,
)


class TestCleanPromptText:
    def test_strips_html_and_entities(self) -> None:
        text = "<p>Hello&nbsp;<b>team</b> &amp; friends</p><style>p {color: red}</style>"
        assert clean_prompt_text(text) == "Hello team & friends"

    def test_removes_quoted_reply_and_header(self) -> None:
        text = (
            "Sounds good to me.\n\n"
            "On Mon, Mar 9, 2026 at 9:00 AM Bob wrote:\n"
            "> Can we meet?\n> Thanks"
        )
        assert clean_prompt_text(text) == "Sounds good to me."

    def test_removes_mobile_footer(self) -> None:
        assert clean_prompt_text("Approved.\n\nSent from my iPhone") == "Approved."

    def test_collapses_whitespace(self) -> None:
        assert clean_prompt_text("one\n\n\ttwo    three") == "one two three"

    def test_empty(self) -> None:
        assert clean_prompt_text(None) == ""
        assert clean_prompt_text("") == ""


class TestBuildDecisionPrompt:
    def test_fills_subject_and_body(self) -> None:
        prompt = build_decision_prompt("Budget", "Please approve the budget.")
        assert "Subject: Budget\nBody: Please approve the budget." in prompt
        assert prompt.startswith("You are an email decision classifier")

    def test_output_format_braces_survive_formatting(self) -> None:
        prompt = build_decision_prompt("s", "b")
        assert '{\n  "decision_required": boolean,' in prompt
        assert prompt.rstrip().endswith("}")

    def test_body_is_truncated(self) -> None:
        prompt = build_decision_prompt("s", "a" * 5000, body_chars=100)
        assert "a" * 100 in prompt
        assert "a" * 101 not in prompt

    def test_missing_subject_and_body(self) -> None:
        prompt = build_decision_prompt(None, None)
        assert "Subject: \nBody: \n" in prompt

    def test_template_lists_all_model_types(self) -> None:
        for decision_type in ("reply_required", "deadline", "follow_up", "informational_only"):
            assert f"- {decision_type}:" in DECISION_PROMPT
