"""SQLite database schema and initialization for the decision inbox.

This module defines the database schema with 4 tables:
- messages: Synced email records the classifier reads (and sent mail for reply counts)
- email_decisions: One classification record per (email, user), upserted
- decision_feedback: User feedback events; "not_decision" rows drive learned exclusions
- llm_request_log: Model call logging for debugging the AI fallback

Usage:
    from decision_inbox.db.models import init_database

    # Initialize database (creates tables if not exist)
    await init_database("data/decision_inbox.db")
"""

import stat
from pathlib import Path

import aiosqlite

from decision_inbox.core.errors import DatabaseError
from decision_inbox.core.logging import get_logger

logger = get_logger(__name__)

# Schema version for migrations (increment when schema changes)
SCHEMA_VERSION = 1

REQUIRED_TABLES = (
    "messages",
    "email_decisions",
    "decision_feedback",
    "llm_request_log",
)

# SQL schema definition
SCHEMA_SQL = """
-- MUST be set before creating tables. Persists across connections.
PRAGMA journal_mode=WAL;

-- Synced messages, one row per (provider message ID, mailbox owner)
CREATE TABLE IF NOT EXISTS messages (
    id TEXT NOT NULL,                       -- Provider message ID (Gmail ID)
    user_id TEXT NOT NULL,
    subject TEXT,
    from_email TEXT,
    from_name TEXT,
    to_email TEXT,                          -- Recipient list; matched for reply counts
    body_text TEXT,
    received_at DATETIME,
    is_read INTEGER DEFAULT 0,
    is_sent INTEGER DEFAULT 0,              -- 1 for mail the user sent
    is_deleted INTEGER DEFAULT 0,
    synced_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_messages_user ON messages(user_id, received_at DESC);

-- Latest classification per (email, user)
CREATE TABLE IF NOT EXISTS email_decisions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    decision_required INTEGER NOT NULL DEFAULT 0,
    decision_level INTEGER NOT NULL DEFAULT 0,  -- 0 none, 1 soft, 2 hard
    decision_type TEXT NOT NULL DEFAULT 'none',
    decision_score REAL DEFAULT 0.0,            -- Confidence 0.0 to 1.0
    decision_reason TEXT,
    urgency_label TEXT DEFAULT 'optional',
    deadline TEXT,                              -- Raw deadline text, if any
    signals_json TEXT,
    explanation_json TEXT,
    method TEXT,                                -- 'rules', 'model', 'precheck', ...
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK(status IN ('pending', 'completed', 'ignored', 'snoozed')),
    snoozed_until DATETIME,
    detected_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(email_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_decisions_user_level ON email_decisions(user_id, decision_level, status);

-- Feedback events; not_decision rows become learned exclusions
CREATE TABLE IF NOT EXISTS decision_feedback (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    email_id TEXT NOT NULL,
    feedback_type TEXT NOT NULL CHECK(feedback_type IN ('not_decision', 'helpful', 'unhelpful')),
    original_score REAL,
    original_type TEXT,
    comment TEXT,
    sender_domain TEXT,                     -- Lowercased sender domain
    subject_pattern TEXT,                   -- First three subject words, lowercased
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_feedback_user_type ON decision_feedback(user_id, feedback_type, id DESC);

-- LLM request/response log for debugging the AI fallback
CREATE TABLE IF NOT EXISTS llm_request_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    task_type TEXT,                         -- 'decision'
    model TEXT,
    email_id TEXT,
    run_id TEXT,                            -- classification_run_id correlation ID
    prompt_json TEXT,
    response_json TEXT,
    parsed_json TEXT,                       -- Decision parsed from the response
    duration_ms INTEGER,
    error TEXT                              -- NULL on success, error message on failure
);

CREATE INDEX IF NOT EXISTS idx_llm_log_timestamp ON llm_request_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_llm_log_email ON llm_request_log(email_id);
"""


async def init_database(db_path: str | Path) -> None:
    """Initialize the SQLite database with schema and WAL mode.

    Args:
        db_path: Path to the SQLite database file

    Raises:
        DatabaseError: If database initialization fails
    """
    db_path = Path(db_path)

    # Ensure parent directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            journal_mode = await db.execute("PRAGMA journal_mode")
            mode = await journal_mode.fetchone()
            if mode and mode[0].lower() != "wal":
                logger.warning(
                    "wal_mode_not_enabled",
                    requested="wal",
                    actual=mode[0],
                    db_path=str(db_path),
                )

            await db.executescript(SCHEMA_SQL)
            await db.commit()

            cursor = await db.execute("SELECT COUNT(*) FROM sqlite_master WHERE type='table'")
            table_count = (await cursor.fetchone())[0]

        # Owner read/write only; the database holds email content
        db_path.chmod(stat.S_IRUSR | stat.S_IWUSR)
        for suffix in ["-wal", "-shm"]:
            wal_file = db_path.with_suffix(db_path.suffix + suffix)
            if wal_file.exists():
                wal_file.chmod(stat.S_IRUSR | stat.S_IWUSR)

        logger.info(
            "database_initialized",
            db_path=str(db_path),
            schema_version=SCHEMA_VERSION,
            tables=table_count,
        )

    except aiosqlite.Error as e:
        logger.error("database_init_failed", db_path=str(db_path), error=str(e))
        raise DatabaseError(
            f"Failed to initialize database at {db_path}: {e}. "
            "Check that the directory is writable and the database file is not corrupted."
        ) from e


async def verify_schema(db_path: str | Path) -> bool:
    """Check that all required tables exist.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        True if all tables exist, False otherwise
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table'")
            existing_tables = {row[0] for row in await cursor.fetchall()}
    except aiosqlite.Error as e:
        logger.error("schema_verification_failed", db_path=str(db_path), error=str(e))
        return False

    missing = set(REQUIRED_TABLES) - existing_tables
    if missing:
        logger.warning("missing_database_tables", missing=sorted(missing), db_path=str(db_path))
        return False
    return True
