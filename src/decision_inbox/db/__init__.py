"""Database layer for the decision inbox.

This module provides SQLite database access with async operations.

Usage:
    from decision_inbox.db import DatabaseStore

    store = DatabaseStore("data/decision_inbox.db")
    await store.initialize()

    await store.save_email(email)
    await store.upsert_decision(email.id, email.user_id, result)
"""

from decision_inbox.db.models import (
    SCHEMA_VERSION,
    init_database,
    verify_schema,
)
from decision_inbox.db.store import (
    DatabaseStore,
    DecisionRecord,
    LLMLogEntry,
)

__all__ = [
    # Models
    "SCHEMA_VERSION",
    "init_database",
    "verify_schema",
    # Store
    "DatabaseStore",
    # Dataclasses
    "DecisionRecord",
    "LLMLogEntry",
]
