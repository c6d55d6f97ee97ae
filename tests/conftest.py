"""Pytest fixtures and configuration for decision inbox tests.

Provides common fixtures for configuration, database, emails, and a fixed
reference time so deadline and staleness checks are deterministic.
"""

import os
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from decision_inbox.classifier.models import Email
from decision_inbox.config import reset_config
from decision_inbox.config_schema import AppConfig
from decision_inbox.db.store import DatabaseStore

# Every test that touches deadlines or staleness anchors on this instant
REFERENCE_TIME = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the config singleton before each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def reference_time() -> datetime:
    return REFERENCE_TIME


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a minimal valid config.yaml content."""
    return """
schema_version: 1

classifier:
  soft_threshold: 0.60
  hard_threshold: 0.75

backfill:
  batch_size: 2
  delay_seconds: 0.5
"""


@pytest.fixture
def sample_config_dict(data_dir: Path) -> dict[str, Any]:
    """Return a minimal valid config as a dictionary."""
    return {
        "schema_version": 1,
        "backfill": {"batch_size": 2, "delay_seconds": 0.5},
        "database_path": str(data_dir / "test.db"),
    }


@pytest.fixture
def sample_config(sample_config_dict: dict[str, Any]) -> AppConfig:
    """Return a minimal valid AppConfig instance."""
    return AppConfig(**sample_config_dict)


@pytest.fixture
def config_file(temp_config_dir: Path, sample_config_yaml: str) -> Path:
    """Create a temporary config file with valid content."""
    config_path = temp_config_dir / "config.yaml"
    config_path.write_text(sample_config_yaml)
    return config_path


@pytest.fixture
def set_config_env(config_file: Path) -> Generator[None, None, None]:
    """Set the DECISION_INBOX_CONFIG_PATH environment variable."""
    old_value = os.environ.get("DECISION_INBOX_CONFIG_PATH")
    os.environ["DECISION_INBOX_CONFIG_PATH"] = str(config_file)
    yield
    if old_value is None:
        del os.environ["DECISION_INBOX_CONFIG_PATH"]
    else:
        os.environ["DECISION_INBOX_CONFIG_PATH"] = old_value


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Create a temporary data directory."""
    data = tmp_path / "data"
    data.mkdir()
    return data


@pytest.fixture
async def store(data_dir: Path) -> DatabaseStore:
    """Create and initialize a DatabaseStore."""
    s = DatabaseStore(data_dir / "test.db")
    await s.initialize()
    return s


@pytest.fixture
def make_email() -> Callable[..., Email]:
    """Factory for emails from a real person, received at REFERENCE_TIME."""

    def _make(
        subject: str = "Quarterly planning",
        body: str = "",
        sender: str = "alice@acme.com",
        **kwargs: Any,
    ) -> Email:
        kwargs.setdefault("id", "msg-001")
        kwargs.setdefault("received_at", REFERENCE_TIME)
        kwargs.setdefault("from_display_name", "Alice Smith")
        return Email(subject=subject, body_text=body, from_address=sender, **kwargs)

    return _make
