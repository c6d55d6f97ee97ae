"""Email decision classification components.

This package decides whether an incoming email needs a human decision:
- Hard and learned exclusion filters (never-a-decision mail, user feedback)
- Signal extraction over fixed phrase tables
- Deadline extraction with urgency buckets
- Confidence scoring, level assignment, and explanations
- AI pre-check gate and model fallback for the interactive endpoint
"""

from decision_inbox.classifier.ai_fallback import (
    AnthropicCompletion,
    CompletionClient,
    ModelDecision,
    classify_decision,
    classify_via_model,
    parse_model_response,
)
from decision_inbox.classifier.deadline import extract_deadline
from decision_inbox.classifier.engine import DecisionClassifier, evaluate
from decision_inbox.classifier.exclusions import check_learned_exclusions, is_hard_excluded
from decision_inbox.classifier.models import (
    ClassificationResult,
    DeadlineInfo,
    Email,
    LearnedExclusion,
    SignalMatch,
)
from decision_inbox.classifier.precheck import EscalationMeta, should_escalate_to_ai
from decision_inbox.classifier.scoring import assign_level, explain, score
from decision_inbox.classifier.signals import extract_signals

__all__ = [
    # Models
    "ClassificationResult",
    "DeadlineInfo",
    "Email",
    "LearnedExclusion",
    "SignalMatch",
    # Rule engine
    "DecisionClassifier",
    "assign_level",
    "check_learned_exclusions",
    "evaluate",
    "explain",
    "extract_deadline",
    "extract_signals",
    "is_hard_excluded",
    "score",
    # Interactive path
    "AnthropicCompletion",
    "CompletionClient",
    "EscalationMeta",
    "ModelDecision",
    "classify_decision",
    "classify_via_model",
    "parse_model_response",
    "should_escalate_to_ai",
]
