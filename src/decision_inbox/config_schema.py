"""Pydantic configuration schema for the decision inbox.

This module defines the configuration schema that mirrors config.yaml structure.
All configuration is validated against these models on startup and hot-reload.

Every section has complete defaults, so the classification engine can run
with `AppConfig()` when no config file exists.

Usage:
    from decision_inbox.config_schema import AppConfig

    # Validate a config dict
    config = AppConfig(**yaml_data)
"""

from pydantic import BaseModel, Field, field_validator, model_validator

# Current schema version - increment when adding new required fields
CURRENT_SCHEMA_VERSION = 1


class ClassifierConfig(BaseModel):
    """Rule-engine scoring and exclusion parameters."""

    base_score: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Confidence floor every scored email starts from",
    )
    hard_threshold: float = Field(
        default=0.75,
        gt=0.0,
        le=1.0,
        description="Confidence at or above which an email is a Level 2 (hard) decision",
    )
    soft_threshold: float = Field(
        default=0.60,
        gt=0.0,
        le=1.0,
        description="Confidence at or above which an email is a Level 1 (soft) decision",
    )
    long_form_chars: int = Field(
        default=8000,
        ge=500,
        description="Bodies longer than this are treated as newsletter-like and excluded",
    )
    deadline_scan_chars: int = Field(
        default=2000,
        ge=100,
        le=20000,
        description="How much of the body the deadline extractor scans",
    )

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "ClassifierConfig":
        """Ensure the soft threshold sits below the hard threshold."""
        if self.soft_threshold >= self.hard_threshold:
            raise ValueError(
                f"soft_threshold ({self.soft_threshold}) must be lower than "
                f"hard_threshold ({self.hard_threshold})"
            )
        return self


class LearningConfig(BaseModel):
    """Learned-exclusion (user feedback) configuration."""

    enabled: bool = Field(
        default=True,
        description="Suppress emails similar to ones the user marked 'Not a Decision'",
    )
    max_learned_exclusions: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Most recent feedback entries considered per user",
    )


class PrecheckConfig(BaseModel):
    """AI pre-check gate configuration."""

    reply_count_threshold: int = Field(
        default=3,
        ge=0,
        description="Escalate when the user replied to the sender more than this many times",
    )
    stale_unread_days: int = Field(
        default=3,
        ge=1,
        description="Escalate unread emails older than this many days",
    )


class AIConfig(BaseModel):
    """Remote model configuration for the AI fallback classifier."""

    model: str = Field(
        default="claude-haiku-4-5-20251001",
        description="Model used for decision classification",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Abandon the completion call after this many seconds",
    )
    max_tokens: int = Field(
        default=150,
        ge=16,
        le=4096,
        description="Maximum tokens in the model response",
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Sampling temperature (low for consistent classification)",
    )
    body_chars: int = Field(
        default=2000,
        ge=100,
        le=20000,
        description="How much of the body is included in the prompt",
    )


class BackfillConfig(BaseModel):
    """Batch (re)classification job configuration."""

    batch_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Emails classified per batch",
    )
    delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Pause between batches to respect the AI provider's rate limits",
    )


class LLMLoggingConfig(BaseModel):
    """LLM request logging configuration."""

    enabled: bool = Field(default=True, description="Enable LLM request logging")
    retention_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Days to retain LLM request logs",
    )
    log_prompts: bool = Field(
        default=True,
        description="Store full prompts (disable to save disk space)",
    )
    log_responses: bool = Field(
        default=True,
        description="Store full responses",
    )


class AppConfig(BaseModel):
    """Root configuration schema for the decision inbox.

    This model validates the entire config.yaml structure. On startup and
    hot-reload, the YAML is parsed and validated against this schema.

    If validation fails on startup, the application exits with a clear error.
    If validation fails on hot-reload, the previous valid config is kept.
    """

    schema_version: int = Field(
        default=CURRENT_SCHEMA_VERSION,
        ge=1,
        description="Config schema version for migration tracking",
    )

    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    precheck: PrecheckConfig = Field(default_factory=PrecheckConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    backfill: BackfillConfig = Field(default_factory=BackfillConfig)
    llm_logging: LLMLoggingConfig = Field(default_factory=LLMLoggingConfig)

    database_path: str = Field(
        default="data/decision_inbox.db",
        description="Path to the SQLite database file",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: str) -> str:
        """Ensure database path doesn't contain path traversal."""
        if not v or not v.strip():
            raise ValueError("Database path cannot be empty")
        if ".." in v:
            raise ValueError("Database path cannot contain '..' (path traversal)")
        return v
