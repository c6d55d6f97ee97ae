"""Email processing engines.

This package provides:
- Backfill engine for batch (re)classification of stored emails
"""

from decision_inbox.engine.backfill import BackfillEngine, BackfillMode, BackfillResult

__all__ = [
    "BackfillEngine",
    "BackfillMode",
    "BackfillResult",
]
