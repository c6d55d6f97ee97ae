"""Batch (re)classification of stored emails.

Loads a user's stored messages, classifies them in batches, and upserts
one decision record per email. Two modes:

- rules: the rule engine (hard/learned exclusions, signals, deadline,
  scoring). Learned exclusions are read once per batch.
- model: the interactive path (pre-check gate, then the remote model only
  when the gate escalates).

Batches are separated by an explicit delay so the remote model provider's
rate limits are respected; there is no delay after the last batch. An
email whose classification or save fails is counted as an error and the
run continues.

Each run generates a UUID4 classification_run_id for log correlation.

Usage:
    from decision_inbox.engine.backfill import BackfillEngine

    engine = BackfillEngine(store=store, config=config)
    result = await engine.run(user_id=1, mode="rules")
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from decision_inbox.classifier.ai_fallback import classify_decision
from decision_inbox.classifier.engine import DecisionClassifier
from decision_inbox.classifier.precheck import EscalationMeta
from decision_inbox.config_schema import AppConfig
from decision_inbox.core.errors import DatabaseError
from decision_inbox.core.logging import get_logger, set_correlation_id

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from decision_inbox.classifier.ai_fallback import CompletionClient
    from decision_inbox.classifier.models import ClassificationResult, Email
    from decision_inbox.db.store import DatabaseStore

logger = get_logger(__name__)

BackfillMode = Literal["rules", "model"]


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class BackfillResult:
    """Result of a backfill run."""

    run_id: str
    processed: int = 0
    decisions: int = 0
    level_counts: dict[int, int] = field(default_factory=lambda: {0: 0, 1: 0, 2: 0})
    errors: int = 0
    skipped_ai: int = 0
    batches: int = 0
    logs_pruned: int = 0
    duration_ms: int = 0


class BackfillEngine:
    """Classifies a user's stored emails in rate-limited batches.

    Attributes:
        _store: DatabaseStore for messages and decision records
        _config: Application configuration
        _classifier: Rule-engine classifier bound to the store
        _completion: Completion client for model mode (None disables the model)
    """

    def __init__(
        self,
        store: DatabaseStore,
        config: AppConfig | None = None,
        completion: CompletionClient | None = None,
        classifier: DecisionClassifier | None = None,
    ):
        self._store = store
        self._config = config or AppConfig()
        self._completion = completion
        self._classifier = classifier or DecisionClassifier(
            exclusion_source=store, config=self._config
        )

    async def run(
        self,
        user_id: int | str,
        mode: BackfillMode = "rules",
        batch_size: int | None = None,
        delay_seconds: float | None = None,
        limit: int | None = None,
        reclassify: bool = False,
        reference_time: datetime | None = None,
    ) -> BackfillResult:
        """Classify a user's stored emails.

        Args:
            user_id: Mailbox owner
            mode: 'rules' for the rule engine, 'model' for pre-check + model
            batch_size: Emails per batch (config default when None)
            delay_seconds: Pause between batches (config default when None)
            limit: Maximum number of emails to process
            reclassify: Also overwrite emails that already have a record
            reference_time: Anchor for absolute deadline dates (rules mode)

        Returns:
            BackfillResult with counts and timing
        """
        run_id = str(uuid.uuid4())
        set_correlation_id(run_id)
        start_time = time.monotonic()

        batch_size = batch_size or self._config.backfill.batch_size
        if delay_seconds is None:
            delay_seconds = self._config.backfill.delay_seconds

        result = BackfillResult(run_id=run_id)

        try:
            emails = await self._store.get_emails_for_user(
                user_id, limit=limit, unclassified_only=not reclassify
            )
            logger.info(
                "backfill_start",
                user_id=user_id,
                mode=mode,
                emails=len(emails),
                batch_size=batch_size,
            )

            for offset in range(0, len(emails), batch_size):
                if offset:
                    await asyncio.sleep(delay_seconds)

                batch = emails[offset : offset + batch_size]
                await self._process_batch(batch, user_id, mode, result, reference_time)
                result.batches += 1

                logger.info(
                    "backfill_batch_complete",
                    batch=result.batches,
                    processed=result.processed,
                    decisions=result.decisions,
                )

            # Maintenance
            if self._config.llm_logging.enabled:
                try:
                    result.logs_pruned = await self._store.prune_llm_logs(
                        self._config.llm_logging.retention_days
                    )
                except DatabaseError as e:
                    logger.warning("log_pruning_failed", error=str(e))

        except DatabaseError as e:
            logger.error("backfill_error", error=str(e), error_type=type(e).__name__)
        finally:
            result.duration_ms = int((time.monotonic() - start_time) * 1000)

            logger.info(
                "backfill_complete",
                duration_ms=result.duration_ms,
                processed=result.processed,
                decisions=result.decisions,
                level_counts=result.level_counts,
                errors=result.errors,
                skipped_ai=result.skipped_ai,
                logs_pruned=result.logs_pruned,
            )

            set_correlation_id(None)

        return result

    async def _process_batch(
        self,
        batch: Sequence[Email],
        user_id: int | str,
        mode: BackfillMode,
        result: BackfillResult,
        reference_time: datetime | None,
    ) -> None:
        if mode == "rules":
            outcomes = await self._classifier.batch_classify(
                batch, user_id=user_id, reference_time=reference_time
            )
        else:
            outcomes = [await self._classify_with_model(email, user_id, result) for email in batch]

        for email, outcome in zip(batch, outcomes, strict=True):
            await self._save(email, user_id, outcome, result)

    async def _classify_with_model(
        self,
        email: Email,
        user_id: int | str,
        result: BackfillResult,
    ) -> ClassificationResult:
        meta = EscalationMeta(
            user_id=user_id,
            sender_address=email.from_address,
            is_read=email.is_read,
            received_at=email.received_at,
        )
        decision = await classify_decision(
            email.subject,
            email.body_text,
            self._completion,
            meta=meta,
            reply_counter=self._store.count_replies_to_sender,
            config=self._config,
            store=self._store,
            email_id=email.id,
        )
        if decision.skipped_ai:
            result.skipped_ai += 1
        return decision.to_classification_result()

    async def _save(
        self,
        email: Email,
        user_id: int | str,
        outcome: ClassificationResult,
        result: BackfillResult,
    ) -> None:
        """Upsert one outcome; a failed save is counted and the run continues."""
        result.processed += 1
        if outcome.method == "error":
            result.errors += 1

        status = "pending" if outcome.decision_required else "completed"
        try:
            await self._store.upsert_decision(email.id, user_id, outcome, status=status)
        except DatabaseError as e:
            logger.error("backfill_save_failed", email_id=email.id, error=str(e))
            result.errors += 1
            return

        result.level_counts[outcome.decision_level] += 1
        if outcome.decision_required:
            result.decisions += 1
