"""Database store with CRUD operations for all tables.

This module provides the DatabaseStore class that encapsulates all database
operations for the decision inbox. It uses aiosqlite for async access and
provides type-safe operations with dataclasses.

Usage:
    from decision_inbox.db.store import DatabaseStore

    store = DatabaseStore("data/decision_inbox.db")
    await store.initialize()

    # Decision records
    await store.upsert_decision(email.id, user_id, result)
    pending = await store.list_decisions(user_id, min_level=1, status="pending")

    # Feedback loop
    await store.mark_not_decision(email.id, user_id)
    learned = await store.get_learned_exclusions(user_id)
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, get_args

import aiosqlite

from decision_inbox.classifier.exclusions import subject_prefix
from decision_inbox.classifier.models import Email, LearnedExclusion
from decision_inbox.core.errors import DatabaseError, ExclusionLookupError
from decision_inbox.core.logging import get_correlation_id, get_logger
from decision_inbox.db.models import init_database

if TYPE_CHECKING:
    from decision_inbox.classifier.models import ClassificationResult

logger = get_logger(__name__)

# Bodies above this are truncated on save; the classifier never reads further
MAX_BODY_LENGTH = 20000

# Type aliases
DecisionStatus = Literal["pending", "completed", "ignored", "snoozed"]
FeedbackType = Literal["not_decision", "helpful", "unhelpful"]

VALID_STATUSES: frozenset[str] = frozenset(get_args(DecisionStatus))
VALID_FEEDBACK_TYPES: frozenset[str] = frozenset(get_args(FeedbackType))


@dataclass
class DecisionRecord:
    """Decision record from the database."""

    id: int
    email_id: str
    user_id: str
    decision_required: bool
    decision_level: int
    decision_type: str
    confidence: float
    reason: str | None = None
    urgency_label: str = "optional"
    deadline: str | None = None
    signals: list[dict[str, str]] = field(default_factory=list)
    explanation: list[str] = field(default_factory=list)
    method: str | None = None
    status: DecisionStatus = "pending"
    snoozed_until: datetime | None = None
    detected_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict for API responses."""
        return {
            "id": self.id,
            "email_id": self.email_id,
            "user_id": self.user_id,
            "decision_required": self.decision_required,
            "decision_level": self.decision_level,
            "decision_type": self.decision_type,
            "confidence": self.confidence,
            "reason": self.reason,
            "urgency_label": self.urgency_label,
            "deadline": self.deadline,
            "signals": self.signals,
            "explanation": self.explanation,
            "method": self.method,
            "status": self.status,
            "snoozed_until": self.snoozed_until.isoformat() if self.snoozed_until else None,
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class LLMLogEntry:
    """LLM request log entry from the database."""

    id: int
    timestamp: datetime
    task_type: str | None = None
    model: str | None = None
    email_id: str | None = None
    run_id: str | None = None
    prompt_json: dict[str, Any] | None = None
    response_json: dict[str, Any] | None = None
    parsed_json: dict[str, Any] | None = None
    duration_ms: int | None = None
    error: str | None = None


def _uid(user_id: int | str) -> str:
    """User IDs are stored as text so int and str callers hit the same rows."""
    return str(user_id)


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _load_json(value: str | None) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseStore:
    """Database store for all decision inbox data.

    Attributes:
        db_path: Path to the SQLite database file
        _initialized: Whether the database has been initialized
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the database, creating tables if needed.

        This must be called before any other operations.
        """
        await init_database(self.db_path)
        self._initialized = True

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[aiosqlite.Connection]:
        """Get a configured database connection.

        Sets all required PRAGMAs for reliability and performance:
        - busy_timeout: 10s to handle concurrent access from backfill + web
        - synchronous: NORMAL (safe with WAL, faster writes)
        - temp_store: MEMORY for faster temp operations

        Usage:
            async with self._db() as db:
                await db.execute(...)
        """
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA busy_timeout = 10000")
            await db.execute("PRAGMA synchronous = NORMAL")
            await db.execute("PRAGMA temp_store = MEMORY")

            db.row_factory = aiosqlite.Row
            yield db

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def save_email(self, email: Email, is_sent: bool = False) -> None:
        """Save or update a message record.

        Args:
            email: Email to save (email.user_id is required)
            is_sent: True for mail the user sent (counted for reply frequency)

        Raises:
            DatabaseError: If the operation fails or the email has no user_id
        """
        if email.user_id is None:
            raise DatabaseError(f"Cannot save email {email.id}: user_id is required")

        body = email.body_text
        if body and len(body) > MAX_BODY_LENGTH:
            body = body[:MAX_BODY_LENGTH]
            logger.warning(
                "body_truncated",
                email_id=email.id,
                original_length=len(email.body_text),
            )

        try:
            async with self._db() as db:
                await db.execute(
                    """
                    INSERT INTO messages (
                        id, user_id, subject, from_email, from_name, to_email,
                        body_text, received_at, is_read, is_sent
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id, user_id) DO UPDATE SET
                        subject = excluded.subject,
                        from_email = excluded.from_email,
                        from_name = excluded.from_name,
                        to_email = excluded.to_email,
                        body_text = excluded.body_text,
                        received_at = excluded.received_at,
                        is_read = excluded.is_read,
                        is_sent = excluded.is_sent,
                        synced_at = CURRENT_TIMESTAMP
                    """,
                    (
                        email.id,
                        _uid(email.user_id),
                        email.subject,
                        email.from_address,
                        email.from_display_name,
                        email.to_address,
                        body,
                        email.received_at.isoformat() if email.received_at else None,
                        1 if email.is_read else 0,
                        1 if is_sent else 0,
                    ),
                )
                await db.commit()
                logger.debug("email_saved", email_id=email.id)

        except aiosqlite.Error as e:
            logger.error("email_save_failed", email_id=email.id, error=str(e))
            raise DatabaseError(f"Failed to save email {email.id}: {e}") from e

    async def get_email(self, email_id: str, user_id: int | str) -> Email | None:
        """Get a message by ID for one user.

        Returns:
            Email or None if not found
        """
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    "SELECT * FROM messages WHERE id = ? AND user_id = ? AND is_deleted = 0",
                    (email_id, _uid(user_id)),
                )
                row = await cursor.fetchone()
                return self._row_to_email(row) if row else None

        except aiosqlite.Error as e:
            logger.error("email_get_failed", email_id=email_id, error=str(e))
            raise DatabaseError(f"Failed to get email {email_id}: {e}") from e

    async def get_emails_for_user(
        self,
        user_id: int | str,
        limit: int | None = None,
        unclassified_only: bool = False,
    ) -> list[Email]:
        """Get a user's received messages, newest first.

        Args:
            user_id: Mailbox owner
            limit: Maximum number of messages (None for all)
            unclassified_only: Only messages without a decision record

        Returns:
            List of Email
        """
        query = """
            SELECT m.* FROM messages m
            LEFT JOIN email_decisions d ON d.email_id = m.id AND d.user_id = m.user_id
            WHERE m.user_id = ? AND m.is_sent = 0 AND m.is_deleted = 0
        """
        params: list[Any] = [_uid(user_id)]
        if unclassified_only:
            query += " AND d.id IS NULL"
        query += " ORDER BY m.received_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            async with self._db() as db:
                cursor = await db.execute(query, params)
                rows = await cursor.fetchall()
                return [self._row_to_email(row) for row in rows]

        except aiosqlite.Error as e:
            logger.error("emails_get_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to get emails for user {user_id}: {e}") from e

    async def count_replies_to_sender(self, user_id: int | str, sender_address: str) -> int:
        """Count messages the user sent whose recipients include the sender.

        Args:
            user_id: Mailbox owner
            sender_address: Address of the sender being checked

        Returns:
            Number of matching sent messages
        """
        pattern = f"%{_escape_like(sender_address.strip().lower())}%"
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    """
                    SELECT COUNT(*) FROM messages
                    WHERE user_id = ? AND is_sent = 1 AND is_deleted = 0
                      AND LOWER(to_email) LIKE ? ESCAPE '\\'
                    """,
                    (_uid(user_id), pattern),
                )
                row = await cursor.fetchone()
                return row[0] if row else 0

        except aiosqlite.Error as e:
            logger.error("reply_count_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to count replies for user {user_id}: {e}") from e

    def _row_to_email(self, row: aiosqlite.Row) -> Email:
        """Convert a database row to an Email."""
        return Email(
            id=row["id"],
            subject=row["subject"],
            from_address=row["from_email"],
            from_display_name=row["from_name"],
            body_text=row["body_text"],
            received_at=_parse_dt(row["received_at"]),
            is_read=bool(row["is_read"]),
            user_id=row["user_id"],
            to_address=row["to_email"],
        )

    # =========================================================================
    # Decision Operations
    # =========================================================================

    async def upsert_decision(
        self,
        email_id: str,
        user_id: int | str,
        result: ClassificationResult,
        status: DecisionStatus = "pending",
    ) -> None:
        """Insert or replace the decision record for (email_id, user_id).

        Exactly one row exists per (email_id, user_id); reclassifying
        overwrites it with the latest result.

        Raises:
            DatabaseError: If the operation fails
        """
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status '{status}'. Must be one of: {sorted(VALID_STATUSES)}")

        signals = [{"category": s.category, "description": s.description} for s in result.signals]
        try:
            async with self._db() as db:
                await db.execute(
                    """
                    INSERT INTO email_decisions (
                        email_id, user_id, decision_required, decision_level,
                        decision_type, decision_score, decision_reason, urgency_label,
                        deadline, signals_json, explanation_json, method, status,
                        detected_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(email_id, user_id) DO UPDATE SET
                        decision_required = excluded.decision_required,
                        decision_level = excluded.decision_level,
                        decision_type = excluded.decision_type,
                        decision_score = excluded.decision_score,
                        decision_reason = excluded.decision_reason,
                        urgency_label = excluded.urgency_label,
                        deadline = excluded.deadline,
                        signals_json = excluded.signals_json,
                        explanation_json = excluded.explanation_json,
                        method = excluded.method,
                        status = excluded.status,
                        snoozed_until = NULL,
                        detected_at = excluded.detected_at,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (
                        email_id,
                        _uid(user_id),
                        1 if result.decision_level > 0 else 0,
                        result.decision_level,
                        result.decision_type,
                        result.confidence,
                        result.reason,
                        result.urgency_label,
                        result.deadline,
                        json.dumps(signals),
                        json.dumps(list(result.explanation)),
                        result.method,
                        status,
                        datetime.now().isoformat(),
                    ),
                )
                await db.commit()
                logger.debug(
                    "decision_upserted",
                    email_id=email_id,
                    level=result.decision_level,
                )

        except aiosqlite.Error as e:
            logger.error("decision_upsert_failed", email_id=email_id, error=str(e))
            raise DatabaseError(f"Failed to upsert decision for email {email_id}: {e}") from e

    async def get_decision(self, email_id: str, user_id: int | str) -> DecisionRecord | None:
        """Get the decision record for one email."""
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    "SELECT * FROM email_decisions WHERE email_id = ? AND user_id = ?",
                    (email_id, _uid(user_id)),
                )
                row = await cursor.fetchone()
                return self._row_to_decision(row) if row else None

        except aiosqlite.Error as e:
            logger.error("decision_get_failed", email_id=email_id, error=str(e))
            raise DatabaseError(f"Failed to get decision for email {email_id}: {e}") from e

    async def list_decisions(
        self,
        user_id: int | str,
        min_level: int = 1,
        status: DecisionStatus | None = None,
        limit: int = 100,
    ) -> list[DecisionRecord]:
        """List a user's decisions, most important first.

        Snoozed records whose snooze has not expired are hidden unless
        status="snoozed" is requested explicitly.

        Args:
            user_id: Mailbox owner
            min_level: Lowest decision level to include
            status: Filter by status
            limit: Maximum number of records

        Returns:
            Records ordered by level, then confidence, then detection time
        """
        query = "SELECT * FROM email_decisions WHERE user_id = ? AND decision_level >= ?"
        params: list[Any] = [_uid(user_id), min_level]

        if status:
            query += " AND status = ?"
            params.append(status)
        if status != "snoozed":
            query += " AND (snoozed_until IS NULL OR snoozed_until <= ?)"
            params.append(datetime.now().isoformat())

        query += " ORDER BY decision_level DESC, decision_score DESC, detected_at DESC LIMIT ?"
        params.append(limit)

        try:
            async with self._db() as db:
                cursor = await db.execute(query, params)
                rows = await cursor.fetchall()
                return [self._row_to_decision(row) for row in rows]

        except aiosqlite.Error as e:
            logger.error("decisions_list_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to list decisions for user {user_id}: {e}") from e

    async def update_decision_status(
        self,
        email_id: str,
        user_id: int | str,
        status: DecisionStatus,
        snoozed_until: datetime | None = None,
    ) -> bool:
        """Update a decision's status.

        Returns:
            True if a record was updated, False if none exists

        Raises:
            ValueError: If status is not a valid decision status
            DatabaseError: If the operation fails
        """
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status '{status}'. Must be one of: {sorted(VALID_STATUSES)}")

        try:
            async with self._db() as db:
                cursor = await db.execute(
                    """
                    UPDATE email_decisions
                    SET status = ?, snoozed_until = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE email_id = ? AND user_id = ?
                    """,
                    (
                        status,
                        snoozed_until.isoformat() if snoozed_until and status == "snoozed" else None,
                        email_id,
                        _uid(user_id),
                    ),
                )
                await db.commit()
                updated = cursor.rowcount > 0

            if updated:
                logger.info("decision_status_updated", email_id=email_id, status=status)
            return updated

        except aiosqlite.Error as e:
            logger.error("decision_status_update_failed", email_id=email_id, error=str(e))
            raise DatabaseError(f"Failed to update decision status for {email_id}: {e}") from e

    async def get_decision_stats(self, user_id: int | str) -> dict[str, Any]:
        """Summarize a user's decision records.

        Returns:
            Dict with total, decisions (level > 0), by_level, by_status, by_type
        """
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    """
                    SELECT decision_level, status, decision_type, COUNT(*) AS n
                    FROM email_decisions WHERE user_id = ?
                    GROUP BY decision_level, status, decision_type
                    """,
                    (_uid(user_id),),
                )
                rows = await cursor.fetchall()

        except aiosqlite.Error as e:
            logger.error("decision_stats_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to get decision stats for user {user_id}: {e}") from e

        by_level = {0: 0, 1: 0, 2: 0}
        by_status: dict[str, int] = {s: 0 for s in sorted(VALID_STATUSES)}
        by_type: dict[str, int] = {}
        for row in rows:
            count = row["n"]
            by_level[row["decision_level"]] = by_level.get(row["decision_level"], 0) + count
            by_status[row["status"]] = by_status.get(row["status"], 0) + count
            by_type[row["decision_type"]] = by_type.get(row["decision_type"], 0) + count

        total = sum(by_level.values())
        return {
            "total": total,
            "decisions": total - by_level[0],
            "by_level": by_level,
            "by_status": by_status,
            "by_type": by_type,
        }

    def _row_to_decision(self, row: aiosqlite.Row) -> DecisionRecord:
        """Convert a database row to a DecisionRecord."""
        return DecisionRecord(
            id=row["id"],
            email_id=row["email_id"],
            user_id=row["user_id"],
            decision_required=bool(row["decision_required"]),
            decision_level=row["decision_level"],
            decision_type=row["decision_type"],
            confidence=row["decision_score"] or 0.0,
            reason=row["decision_reason"],
            urgency_label=row["urgency_label"] or "optional",
            deadline=row["deadline"],
            signals=_load_json(row["signals_json"]) or [],
            explanation=_load_json(row["explanation_json"]) or [],
            method=row["method"],
            status=row["status"],
            snoozed_until=_parse_dt(row["snoozed_until"]),
            detected_at=_parse_dt(row["detected_at"]),
            updated_at=_parse_dt(row["updated_at"]),
        )

    # =========================================================================
    # Feedback Operations
    # =========================================================================

    async def store_feedback(
        self,
        email_id: str,
        user_id: int | str,
        feedback_type: FeedbackType = "not_decision",
        comment: str | None = None,
    ) -> int | None:
        """Record a feedback event for an email.

        The sender domain and three-word subject pattern are derived from the
        stored message; the original score and type from the current
        decision record.

        Returns:
            The feedback row ID, or None if the message is not in the store

        Raises:
            ValueError: If feedback_type is not valid
            DatabaseError: If the operation fails
        """
        if feedback_type not in VALID_FEEDBACK_TYPES:
            raise ValueError(
                f"Invalid feedback type '{feedback_type}'. "
                f"Must be one of: {sorted(VALID_FEEDBACK_TYPES)}"
            )

        uid = _uid(user_id)
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    "SELECT from_email, subject FROM messages WHERE id = ? AND user_id = ?",
                    (email_id, uid),
                )
                message = await cursor.fetchone()
                if not message:
                    logger.warning("feedback_message_not_found", email_id=email_id)
                    return None

                cursor = await db.execute(
                    """
                    SELECT decision_score, decision_type FROM email_decisions
                    WHERE email_id = ? AND user_id = ?
                    """,
                    (email_id, uid),
                )
                decision = await cursor.fetchone()

                sender = Email(id=email_id, from_address=message["from_email"])
                pattern = subject_prefix(message["subject"]) or None

                cursor = await db.execute(
                    """
                    INSERT INTO decision_feedback (
                        user_id, email_id, feedback_type, original_score,
                        original_type, comment, sender_domain, subject_pattern
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        uid,
                        email_id,
                        feedback_type,
                        decision["decision_score"] if decision else None,
                        decision["decision_type"] if decision else None,
                        comment,
                        sender.sender_domain,
                        pattern,
                    ),
                )
                await db.commit()

                logger.info(
                    "feedback_stored",
                    email_id=email_id,
                    feedback_type=feedback_type,
                    sender_domain=sender.sender_domain,
                )
                return cursor.lastrowid

        except aiosqlite.Error as e:
            logger.error("feedback_store_failed", email_id=email_id, error=str(e))
            raise DatabaseError(f"Failed to store feedback for email {email_id}: {e}") from e

    async def mark_not_decision(
        self,
        email_id: str,
        user_id: int | str,
        comment: str | None = None,
    ) -> bool:
        """Record "Not a Decision" feedback and demote the decision record.

        The record becomes Level 0 / 'none' with status 'ignored'; the
        feedback row feeds future learned exclusions.

        Returns:
            True if the email exists (feedback stored) or a decision record
            was demoted
        """
        feedback_id = await self.store_feedback(email_id, user_id, "not_decision", comment)

        try:
            async with self._db() as db:
                cursor = await db.execute(
                    """
                    UPDATE email_decisions
                    SET decision_required = 0, decision_level = 0, decision_type = 'none',
                        urgency_label = 'optional', status = 'ignored',
                        updated_at = CURRENT_TIMESTAMP
                    WHERE email_id = ? AND user_id = ?
                    """,
                    (email_id, _uid(user_id)),
                )
                await db.commit()
                return feedback_id is not None or cursor.rowcount > 0

        except aiosqlite.Error as e:
            logger.error("mark_not_decision_failed", email_id=email_id, error=str(e))
            raise DatabaseError(f"Failed to mark email {email_id} as not a decision: {e}") from e

    async def get_learned_exclusions(
        self,
        user_id: int | str,
        limit: int = 100,
    ) -> list[LearnedExclusion]:
        """Get the user's most recent "Not a Decision" patterns.

        Returns:
            LearnedExclusion values, most recent first

        Raises:
            ExclusionLookupError: If the read fails (the classifier fails open)
        """
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    """
                    SELECT sender_domain, subject_pattern FROM decision_feedback
                    WHERE user_id = ? AND feedback_type = 'not_decision'
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (_uid(user_id), limit),
                )
                rows = await cursor.fetchall()
                return [
                    LearnedExclusion(
                        sender_domain=row["sender_domain"],
                        subject_pattern=row["subject_pattern"],
                    )
                    for row in rows
                ]

        except aiosqlite.Error as e:
            logger.error("learned_exclusions_get_failed", user_id=user_id, error=str(e))
            raise ExclusionLookupError(
                f"Failed to get learned exclusions for user {user_id}: {e}", user_id=user_id
            ) from e

    # =========================================================================
    # LLM Request Log Operations
    # =========================================================================

    async def log_llm_request(
        self,
        task_type: str,
        model: str,
        prompt: dict[str, Any],
        response: dict[str, Any] | None = None,
        parsed: dict[str, Any] | None = None,
        duration_ms: int | None = None,
        email_id: str | None = None,
        error: str | None = None,
    ) -> int:
        """Log an LLM request for debugging.

        Args:
            task_type: Type of task ('decision')
            model: Model string used
            prompt: The prompt sent
            response: The raw response
            parsed: Decision parsed from the response
            duration_ms: Request duration in milliseconds
            email_id: Associated email ID (if applicable)
            error: Error message (if failed)

        Returns:
            The log entry ID
        """
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    """
                    INSERT INTO llm_request_log (
                        task_type, model, email_id, run_id, prompt_json,
                        response_json, parsed_json, duration_ms, error
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task_type,
                        model,
                        email_id,
                        get_correlation_id(),
                        json.dumps(prompt),
                        json.dumps(response) if response else None,
                        json.dumps(parsed) if parsed else None,
                        duration_ms,
                        error,
                    ),
                )
                await db.commit()
                return cursor.lastrowid

        except aiosqlite.Error as e:
            logger.error("llm_log_write_failed", task_type=task_type, error=str(e))
            raise DatabaseError(f"Failed to log LLM request: {e}") from e

    async def get_llm_logs(
        self,
        limit: int = 100,
        email_id: str | None = None,
        run_id: str | None = None,
    ) -> list[LLMLogEntry]:
        """Get LLM request logs with optional filters, newest first."""
        query = "SELECT * FROM llm_request_log WHERE 1=1"
        params: list[Any] = []

        if email_id:
            query += " AND email_id = ?"
            params.append(email_id)
        if run_id:
            query += " AND run_id = ?"
            params.append(run_id)

        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        try:
            async with self._db() as db:
                cursor = await db.execute(query, params)
                rows = await cursor.fetchall()
                return [self._row_to_llm_log(row) for row in rows]

        except aiosqlite.Error as e:
            logger.error("llm_logs_get_failed", error=str(e))
            raise DatabaseError(f"Failed to get LLM logs: {e}") from e

    async def prune_llm_logs(self, retention_days: int) -> int:
        """Delete LLM logs older than the retention period.

        Returns:
            Number of entries deleted
        """
        # Stored by CURRENT_TIMESTAMP, i.e. UTC "YYYY-MM-DD HH:MM:SS"
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)
        try:
            async with self._db() as db:
                cursor = await db.execute(
                    "DELETE FROM llm_request_log WHERE timestamp < ?",
                    (cutoff.strftime("%Y-%m-%d %H:%M:%S"),),
                )
                await db.commit()

                deleted = cursor.rowcount
                if deleted:
                    logger.info("llm_logs_pruned", deleted=deleted, retention_days=retention_days)
                return deleted

        except aiosqlite.Error as e:
            logger.error("llm_logs_prune_failed", error=str(e))
            raise DatabaseError(f"Failed to prune LLM logs: {e}") from e

    def _row_to_llm_log(self, row: aiosqlite.Row) -> LLMLogEntry:
        """Convert a database row to an LLMLogEntry."""
        return LLMLogEntry(
            id=row["id"],
            timestamp=_parse_dt(row["timestamp"]) or datetime.now(),
            task_type=row["task_type"],
            model=row["model"],
            email_id=row["email_id"],
            run_id=row["run_id"],
            prompt_json=_load_json(row["prompt_json"]),
            response_json=_load_json(row["response_json"]),
            parsed_json=_load_json(row["parsed_json"]),
            duration_ms=row["duration_ms"],
            error=row["error"],
        )
