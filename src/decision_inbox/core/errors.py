"""Custom exception types for the decision inbox.

Error messages state what failed, where, and how to fix it when there is an
actionable fix. The classification engine itself never raises these to its
callers: exclusion lookups fail open and model calls degrade to a safe
default (see classifier.engine and classifier.ai_fallback).
"""


class DecisionInboxError(Exception):
    """Base exception for all decision inbox errors."""

    pass


class ConfigValidationError(DecisionInboxError):
    """Raised when config.yaml fails Pydantic validation.

    Includes specific field errors with actionable messages.
    """

    pass


class ConfigLoadError(DecisionInboxError):
    """Raised when config.yaml cannot be loaded (file not found, YAML parse error)."""

    pass


class DatabaseError(DecisionInboxError):
    """Raised when SQLite operations fail."""

    pass


class ExclusionLookupError(DecisionInboxError):
    """Raised when the learned-exclusion store cannot be read.

    The classifier treats this as "not excluded" and keeps going.

    Attributes:
        user_id: The user whose feedback history was being read
    """

    def __init__(self, message: str, user_id: int | str | None = None):
        super().__init__(message)
        self.user_id = user_id


class CompletionError(DecisionInboxError):
    """Raised when the remote completion call fails or times out.

    Attributes:
        timed_out: True when the call was abandoned after the configured timeout
    """

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out
