"""FastAPI dependency injection helpers.

Extracts shared dependencies from app.state for use in route handlers.
All dependencies are initialized during the FastAPI lifespan and stored
on app.state for concurrent access by the web routes.

Usage:
    from decision_inbox.web.dependencies import get_store

    @api_router.get("/decisions")
    async def list_decisions(store: DatabaseStore = Depends(get_store)):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from decision_inbox.classifier.ai_fallback import CompletionClient
    from decision_inbox.classifier.engine import DecisionClassifier
    from decision_inbox.config_schema import AppConfig
    from decision_inbox.db.store import DatabaseStore


def get_store(request: Request) -> DatabaseStore:
    """Get the shared DatabaseStore from app state."""
    return request.app.state.store


def get_config(request: Request) -> AppConfig:
    """Get the current AppConfig from app state."""
    return request.app.state.config


def get_classifier(request: Request) -> DecisionClassifier:
    """Get the rule-engine DecisionClassifier from app state."""
    return request.app.state.classifier


def get_completion(request: Request) -> CompletionClient | None:
    """Get the completion client from app state (None when no API key is set)."""
    return request.app.state.completion
