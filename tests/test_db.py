"""Tests for the database layer.

Tests all operations on the 4 database tables:
- messages
- email_decisions
- decision_feedback
- llm_request_log
"""

from datetime import datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest

from decision_inbox.classifier.engine import evaluate
from decision_inbox.classifier.models import ClassificationResult, LearnedExclusion
from decision_inbox.core.errors import DatabaseError, ExclusionLookupError
from decision_inbox.core.logging import set_correlation_id
from decision_inbox.db import (
    DatabaseStore,
    init_database,
    verify_schema,
)

USER = "user-1"


@pytest.fixture
async def db_path(data_dir: Path) -> Path:
    """Create a test database path."""
    return data_dir / "schema.db"


async def _seed(store: DatabaseStore, make_email, email_id: str = "msg-001", **kwargs):
    email = make_email(id=email_id, user_id=USER, **kwargs)
    await store.save_email(email)
    return email


def _decision(level: int = 2, decision_type: str = "approval_required") -> ClassificationResult:
    return ClassificationResult(
        decision_level=level,
        decision_type=decision_type if level else "none",
        confidence=0.9 if level == 2 else (0.65 if level == 1 else 0.3),
        reason="Explicit choice required",
        urgency_label="decide_now" if level else "optional",
        explanation=("Explicit choice required",),
    )


class TestDatabaseInitialization:
    """Tests for database initialization."""

    async def test_init_database_creates_file(self, db_path: Path) -> None:
        assert not db_path.exists()
        await init_database(db_path)
        assert db_path.exists()

    async def test_init_database_enables_wal_mode(self, db_path: Path) -> None:
        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("PRAGMA journal_mode")
            row = await cursor.fetchone()
            assert row[0].lower() == "wal"

    async def test_init_database_is_idempotent(self, db_path: Path) -> None:
        await init_database(db_path)
        await init_database(db_path)
        assert await verify_schema(db_path)

    async def test_verify_schema_detects_missing_tables(self, db_path: Path) -> None:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("CREATE TABLE messages (id TEXT)")
            await db.commit()
        assert not await verify_schema(db_path)

    async def test_file_permissions_are_owner_only(self, db_path: Path) -> None:
        await init_database(db_path)
        assert db_path.stat().st_mode & 0o777 == 0o600


class TestMessages:
    """Tests for message storage."""

    async def test_save_and_get(self, store: DatabaseStore, make_email, reference_time) -> None:
        await _seed(store, make_email, subject="Budget", body="Please approve")

        email = await store.get_email("msg-001", USER)

        assert email is not None
        assert email.subject == "Budget"
        assert email.body_text == "Please approve"
        assert email.from_address == "alice@acme.com"
        assert email.received_at == reference_time
        assert email.user_id == USER

    async def test_user_id_types_hit_same_rows(self, store: DatabaseStore, make_email) -> None:
        await store.save_email(make_email(user_id=7))
        assert await store.get_email("msg-001", "7") is not None
        assert await store.get_email("msg-001", 7) is not None

    async def test_messages_are_scoped_to_user(self, store: DatabaseStore, make_email) -> None:
        await _seed(store, make_email)
        assert await store.get_email("msg-001", "someone-else") is None

    async def test_save_requires_user(self, store: DatabaseStore, make_email) -> None:
        with pytest.raises(DatabaseError):
            await store.save_email(make_email())

    async def test_save_is_upsert(self, store: DatabaseStore, make_email) -> None:
        await _seed(store, make_email, subject="First")
        await _seed(store, make_email, subject="Second")
        emails = await store.get_emails_for_user(USER)
        assert [e.subject for e in emails] == ["Second"]

    async def test_long_body_is_truncated(self, store: DatabaseStore, make_email) -> None:
        await _seed(store, make_email, body="x" * 25000)
        email = await store.get_email("msg-001", USER)
        assert len(email.body_text) == 20000

    async def test_emails_for_user_newest_first_without_sent(
        self, store: DatabaseStore, make_email, reference_time
    ) -> None:
        await _seed(store, make_email, "old", received_at=reference_time - timedelta(days=2))
        await _seed(store, make_email, "new", received_at=reference_time)
        await store.save_email(make_email(id="sent", user_id=USER), is_sent=True)

        emails = await store.get_emails_for_user(USER)

        assert [e.id for e in emails] == ["new", "old"]

    async def test_unclassified_only(self, store: DatabaseStore, make_email) -> None:
        await _seed(store, make_email, "a")
        await _seed(store, make_email, "b")
        await store.upsert_decision("a", USER, _decision())

        emails = await store.get_emails_for_user(USER, unclassified_only=True)

        assert [e.id for e in emails] == ["b"]

    async def test_limit(self, store: DatabaseStore, make_email) -> None:
        for i in range(3):
            await _seed(store, make_email, f"m{i}")
        assert len(await store.get_emails_for_user(USER, limit=2)) == 2


class TestReplyCount:
    async def test_counts_only_sent_mail_to_sender(self, store: DatabaseStore, make_email) -> None:
        for i in range(2):
            await store.save_email(
                make_email(id=f"s{i}", user_id=USER, to_address="Bob@Acme.com, carol@acme.com"),
                is_sent=True,
            )
        await store.save_email(
            make_email(id="s9", user_id=USER, to_address="dave@acme.com"), is_sent=True
        )
        # Received mail addressed to bob does not count
        await _seed(store, make_email, "r1", to_address="bob@acme.com")

        assert await store.count_replies_to_sender(USER, "bob@acme.com") == 2
        assert await store.count_replies_to_sender(USER, "erin@acme.com") == 0

    async def test_like_wildcards_are_escaped(self, store: DatabaseStore, make_email) -> None:
        await store.save_email(
            make_email(id="s1", user_id=USER, to_address="bob@acme.com"), is_sent=True
        )
        assert await store.count_replies_to_sender(USER, "%") == 0


class TestDecisions:
    """Tests for decision record upserts and queries."""

    async def test_upsert_is_idempotent(self, store: DatabaseStore) -> None:
        await store.upsert_decision("msg-001", USER, _decision(2))
        await store.upsert_decision("msg-001", USER, _decision(1, "rsvp_required"))

        stats = await store.get_decision_stats(USER)
        record = await store.get_decision("msg-001", USER)

        assert stats["total"] == 1
        assert record.decision_level == 1
        assert record.decision_type == "rsvp_required"
        assert record.decision_required is True

    async def test_record_round_trips_result(
        self, store: DatabaseStore, make_email
    ) -> None:
        result = evaluate(
            make_email(subject="Please approve the Q3 budget", body="Can you approve it by tomorrow?")
        )
        await store.upsert_decision("msg-001", USER, result)

        record = await store.get_decision("msg-001", USER)

        assert record.confidence == result.confidence
        assert record.deadline == "tomorrow"
        assert record.method == "rules"
        assert record.signals[0] == {
            "category": "explicit_choice",
            "description": "Explicit choice required",
        }
        assert record.explanation == list(result.explanation)
        assert record.status == "pending"

    async def test_level_0_is_not_required(self, store: DatabaseStore) -> None:
        await store.upsert_decision("msg-001", USER, _decision(0), status="completed")
        record = await store.get_decision("msg-001", USER)
        assert record.decision_required is False
        assert record.status == "completed"

    async def test_invalid_status_rejected(self, store: DatabaseStore) -> None:
        with pytest.raises(ValueError):
            await store.upsert_decision("msg-001", USER, _decision(), status="archived")
        with pytest.raises(ValueError):
            await store.update_decision_status("msg-001", USER, "archived")

    async def test_list_orders_by_level_then_confidence(self, store: DatabaseStore) -> None:
        await store.upsert_decision("soft", USER, _decision(1, "rsvp_required"))
        await store.upsert_decision("none", USER, _decision(0))
        await store.upsert_decision("hard", USER, _decision(2))

        records = await store.list_decisions(USER)
        assert [r.email_id for r in records] == ["hard", "soft"]

        everything = await store.list_decisions(USER, min_level=0)
        assert [r.email_id for r in everything] == ["hard", "soft", "none"]

    async def test_list_filters_by_status(self, store: DatabaseStore) -> None:
        await store.upsert_decision("a", USER, _decision())
        await store.upsert_decision("b", USER, _decision())
        await store.update_decision_status("b", USER, "completed")

        pending = await store.list_decisions(USER, status="pending")
        assert [r.email_id for r in pending] == ["a"]

    async def test_snoozed_records_are_hidden_until_expiry(self, store: DatabaseStore) -> None:
        await store.upsert_decision("a", USER, _decision())
        await store.update_decision_status(
            "a", USER, "snoozed", snoozed_until=datetime.now() + timedelta(days=1)
        )

        assert await store.list_decisions(USER) == []
        snoozed = await store.list_decisions(USER, status="snoozed")
        assert snoozed[0].snoozed_until is not None

    async def test_reclassify_clears_snooze(self, store: DatabaseStore) -> None:
        await store.upsert_decision("a", USER, _decision())
        await store.update_decision_status(
            "a", USER, "snoozed", snoozed_until=datetime.now() + timedelta(days=1)
        )
        await store.upsert_decision("a", USER, _decision())

        record = await store.get_decision("a", USER)
        assert record.status == "pending"
        assert record.snoozed_until is None

    async def test_update_missing_record(self, store: DatabaseStore) -> None:
        assert await store.update_decision_status("nope", USER, "completed") is False

    async def test_stats(self, store: DatabaseStore) -> None:
        await store.upsert_decision("a", USER, _decision(2))
        await store.upsert_decision("b", USER, _decision(1, "rsvp_required"))
        await store.upsert_decision("c", USER, _decision(0), status="completed")

        stats = await store.get_decision_stats(USER)

        assert stats["total"] == 3
        assert stats["decisions"] == 2
        assert stats["by_level"] == {0: 1, 1: 1, 2: 1}
        assert stats["by_status"]["pending"] == 2
        assert stats["by_status"]["completed"] == 1
        assert stats["by_type"] == {"approval_required": 1, "rsvp_required": 1, "none": 1}

    async def test_record_to_dict(self, store: DatabaseStore) -> None:
        await store.upsert_decision("a", USER, _decision())
        data = (await store.get_decision("a", USER)).to_dict()
        assert data["email_id"] == "a"
        assert data["decision_level"] == 2
        assert isinstance(data["detected_at"], str)


class TestFeedback:
    """Tests for feedback and learned exclusions."""

    async def test_feedback_derives_domain_and_subject_pattern(
        self, store: DatabaseStore, make_email
    ) -> None:
        await _seed(
            store, make_email, subject="Weekly Sync Notes for March", sender="Bob@Mail.Acme.com"
        )
        await store.upsert_decision("msg-001", USER, _decision())

        feedback_id = await store.store_feedback("msg-001", USER, comment="Just notes")

        assert feedback_id is not None
        async with aiosqlite.connect(store.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM decision_feedback WHERE id = ?", (feedback_id,))
            row = await cursor.fetchone()
        assert row["sender_domain"] == "mail.acme.com"
        assert row["subject_pattern"] == "weekly sync notes"
        assert row["original_score"] == 0.9
        assert row["original_type"] == "approval_required"
        assert row["comment"] == "Just notes"

    async def test_feedback_for_missing_message(self, store: DatabaseStore) -> None:
        assert await store.store_feedback("nope", USER) is None

    async def test_invalid_feedback_type(self, store: DatabaseStore, make_email) -> None:
        await _seed(store, make_email)
        with pytest.raises(ValueError):
            await store.store_feedback("msg-001", USER, "spam")

    async def test_mark_not_decision_demotes_record(self, store: DatabaseStore, make_email) -> None:
        await _seed(store, make_email)
        await store.upsert_decision("msg-001", USER, _decision())

        assert await store.mark_not_decision("msg-001", USER) is True

        record = await store.get_decision("msg-001", USER)
        assert record.decision_level == 0
        assert record.decision_required is False
        assert record.decision_type == "none"
        assert record.urgency_label == "optional"
        assert record.status == "ignored"

    async def test_mark_not_decision_without_record_stores_feedback(
        self, store: DatabaseStore, make_email
    ) -> None:
        await _seed(store, make_email, subject="Lunch order today", sender="x@first.com")

        assert await store.mark_not_decision("msg-001", USER) is True

        assert await store.get_decision("msg-001", USER) is None
        assert await store.get_learned_exclusions(USER) == [
            LearnedExclusion(sender_domain="first.com", subject_pattern="lunch order today")
        ]

    async def test_mark_not_decision_missing_message(self, store: DatabaseStore) -> None:
        assert await store.mark_not_decision("nope", USER) is False

    async def test_learned_exclusions_most_recent_first(
        self, store: DatabaseStore, make_email
    ) -> None:
        await _seed(store, make_email, "a", subject="Lunch order today", sender="x@first.com")
        await _seed(store, make_email, "b", subject="Team social event", sender="y@second.com")
        await store.mark_not_decision("a", USER)
        await store.mark_not_decision("b", USER)
        await store.store_feedback("a", USER, "helpful")

        learned = await store.get_learned_exclusions(USER)

        assert learned == [
            LearnedExclusion(sender_domain="second.com", subject_pattern="team social event"),
            LearnedExclusion(sender_domain="first.com", subject_pattern="lunch order today"),
        ]
        assert len(await store.get_learned_exclusions(USER, limit=1)) == 1
        assert await store.get_learned_exclusions("someone-else") == []

    async def test_learned_exclusion_read_failure(self, data_dir: Path) -> None:
        # Never initialized: the feedback table does not exist
        store = DatabaseStore(data_dir / "empty.db")
        with pytest.raises(ExclusionLookupError) as exc_info:
            await store.get_learned_exclusions(USER)
        assert exc_info.value.user_id == USER


class TestLLMLog:
    async def test_log_and_read(self, store: DatabaseStore) -> None:
        set_correlation_id("run-123")
        try:
            log_id = await store.log_llm_request(
                task_type="decision",
                model="test-model",
                prompt={"prompt": "..."},
                response={"text": "{}"},
                parsed={"decision_required": False},
                duration_ms=12,
                email_id="msg-001",
            )
        finally:
            set_correlation_id(None)

        logs = await store.get_llm_logs(email_id="msg-001")

        assert logs[0].id == log_id
        assert logs[0].run_id == "run-123"
        assert logs[0].parsed_json == {"decision_required": False}
        assert await store.get_llm_logs(run_id="other") == []

    async def test_prune_keeps_recent_entries(self, store: DatabaseStore) -> None:
        await store.log_llm_request(task_type="decision", model="m", prompt={})
        async with aiosqlite.connect(store.db_path) as db:
            await db.execute(
                "INSERT INTO llm_request_log (timestamp, task_type) VALUES (?, 'decision')",
                ("2020-01-01 00:00:00",),
            )
            await db.commit()

        assert await store.prune_llm_logs(retention_days=30) == 1
        assert len(await store.get_llm_logs()) == 1
