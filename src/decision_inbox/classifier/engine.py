"""Rule-engine entry point for decision classification.

Pipeline per email:
1. Hard exclusion -> Level 0 terminal
2. Learned exclusion (user's "Not a Decision" history) -> Level 0 terminal
3. Signal extraction + deadline extraction
4. Scoring and level assignment
5. Explanation

`evaluate()` runs steps 1-5 as a pure function over the email and an
already-loaded list of learned exclusions. `DecisionClassifier` adds the one
I/O step: reading the learned exclusions from the store. That read fails
open, so a broken feedback store never blocks classification.

Usage:
    from decision_inbox.classifier.engine import DecisionClassifier

    classifier = DecisionClassifier(exclusion_source=store, config=config)
    result = await classifier.classify(email, user_id=42)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from decision_inbox.classifier.deadline import extract_deadline
from decision_inbox.classifier.exclusions import check_learned_exclusions, is_hard_excluded
from decision_inbox.classifier.models import ClassificationResult, not_a_decision
from decision_inbox.classifier.scoring import NO_SIGNALS_EXPLANATION, explain, score
from decision_inbox.classifier.signals import extract_signals, is_real_person
from decision_inbox.config_schema import AppConfig, ClassifierConfig
from decision_inbox.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from decision_inbox.classifier.models import Email, LearnedExclusion

logger = get_logger(__name__)

CLASSIFICATION_ERROR_REASON = "Classification error"


class ExclusionSource(Protocol):
    """Anything that can list a user's learned exclusions (DatabaseStore)."""

    async def get_learned_exclusions(
        self, user_id: int | str, limit: int = 100
    ) -> list[LearnedExclusion]: ...


def evaluate(
    email: Email,
    learned: Iterable[LearnedExclusion] = (),
    settings: ClassifierConfig | None = None,
    reference_time: datetime | None = None,
) -> ClassificationResult:
    """Classify one email with the rule engine.

    Deterministic for a fixed (email, learned, settings, reference_time).

    Args:
        email: Email to classify
        learned: The user's learned exclusions, most recent first
        settings: Scoring parameters; schema defaults when None
        reference_time: Anchor for absolute deadline dates; defaults to the
            email's received time

    Returns:
        ClassificationResult
    """
    settings = settings or ClassifierConfig()

    hard = is_hard_excluded(email, long_form_chars=settings.long_form_chars)
    if hard.excluded:
        logger.debug(
            "hard_exclusion_matched",
            email_id=email.id,
            reason=hard.reason,
            sender_domain=email.sender_domain,
        )
        return not_a_decision(hard.reason, method="hard_exclusion")

    learned_hit = check_learned_exclusions(email, learned)
    if learned_hit.excluded:
        logger.debug(
            "learned_exclusion_applied",
            email_id=email.id,
            reason=learned_hit.reason,
            sender_domain=email.sender_domain,
        )
        return not_a_decision(learned_hit.reason, method="learned_exclusion")

    signals = extract_signals(email)
    deadline = extract_deadline(
        email,
        reference_time=reference_time or email.received_at,
        scan_chars=settings.deadline_scan_chars,
    )
    scored = score(signals, deadline, settings, real_person=is_real_person(email))

    if scored.level == 0:
        reason = (
            NO_SIGNALS_EXPLANATION
            if not signals and not deadline.found
            else "Signals below decision threshold"
        )
        return ClassificationResult(
            decision_level=0,
            decision_type="none",
            confidence=scored.confidence,
            reason=reason,
            urgency_label="optional",
            explanation=(reason,),
            method="rules",
        )

    return ClassificationResult(
        decision_level=scored.level,
        decision_type=scored.decision_type,
        confidence=scored.confidence,
        reason="; ".join(s.description for s in scored.signals),
        urgency_label=scored.urgency_label,
        deadline=scored.deadline,
        signals=scored.signals,
        explanation=explain(scored.signals, scored.confidence, settings.hard_threshold),
        method="rules",
    )


async def load_learned_exclusions(
    source: ExclusionSource | None,
    user_id: int | str | None,
    limit: int = 100,
) -> list[LearnedExclusion]:
    """Read a user's learned exclusions, failing open on any store error.

    Returns an empty list when there is no source, no user, or the read fails.
    """
    if source is None or user_id is None:
        return []

    try:
        return list(await source.get_learned_exclusions(user_id, limit=limit))
    except Exception as e:
        logger.warning(
            "learned_exclusions_unavailable",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return []


class DecisionClassifier:
    """Rule-engine classifier bound to a learned-exclusion source.

    Holds only configuration and the source; all per-email state is passed
    in, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        exclusion_source: ExclusionSource | None = None,
        config: AppConfig | None = None,
    ):
        self._source = exclusion_source
        self._config = config or AppConfig()

    async def _learned_for(self, user_id: int | str | None) -> list[LearnedExclusion]:
        if not self._config.learning.enabled:
            return []
        return await load_learned_exclusions(
            self._source,
            user_id,
            limit=self._config.learning.max_learned_exclusions,
        )

    async def classify(
        self,
        email: Email,
        user_id: int | str | None = None,
        reference_time: datetime | None = None,
    ) -> ClassificationResult:
        """Classify one email; never raises.

        Args:
            email: Email to classify
            user_id: Whose learned exclusions apply (defaults to email.user_id)
            reference_time: Anchor for absolute deadline dates

        Returns:
            ClassificationResult (Level 0 "Classification error" on failure)
        """
        user_id = user_id if user_id is not None else email.user_id
        learned = await self._learned_for(user_id)
        return self._evaluate_safely(email, learned, reference_time)

    async def batch_classify(
        self,
        emails: Sequence[Email],
        user_id: int | str | None = None,
        reference_time: datetime | None = None,
    ) -> list[ClassificationResult]:
        """Classify a list of emails, reading learned exclusions once.

        Results are returned in input order. An email whose classification
        fails gets a Level 0 "Classification error" result; the rest of the
        batch continues.
        """
        if not emails:
            return []

        if user_id is None:
            user_id = emails[0].user_id
        learned = await self._learned_for(user_id)
        return [self._evaluate_safely(email, learned, reference_time) for email in emails]

    def _evaluate_safely(
        self,
        email: Email,
        learned: Sequence[LearnedExclusion],
        reference_time: datetime | None,
    ) -> ClassificationResult:
        try:
            result = evaluate(
                email,
                learned,
                settings=self._config.classifier,
                reference_time=reference_time,
            )
        except Exception as e:
            logger.error(
                "classification_failed",
                email_id=email.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return not_a_decision(CLASSIFICATION_ERROR_REASON, method="error")

        logger.info(
            "email_classified",
            email_id=email.id,
            level=result.decision_level,
            decision_type=result.decision_type,
            confidence=result.confidence,
            method=result.method,
        )
        return result
