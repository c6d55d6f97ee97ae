"""FastAPI application for the decision inbox.

Creates the FastAPI app with:
- Lifespan context manager for dependency initialization
- Per-request correlation IDs for structured logs
- The API router (interactive classification, decision inbox, feedback)

Usage:
    from decision_inbox.web.app import create_app

    app = create_app()
    # Run with: uvicorn.run(app, host="127.0.0.1", port=8000)
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from decision_inbox.core.logging import get_logger, set_correlation_id

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize dependencies on startup.

    On startup:
    1. Load config (schema defaults when the file is missing or invalid)
    2. Initialize database
    3. Initialize the rule-engine classifier
    4. Initialize the completion client (None without an API key)
    """
    import anthropic

    from decision_inbox.classifier.ai_fallback import AnthropicCompletion
    from decision_inbox.classifier.engine import DecisionClassifier
    from decision_inbox.config import get_config
    from decision_inbox.config_schema import AppConfig
    from decision_inbox.core.errors import ConfigLoadError, ConfigValidationError
    from decision_inbox.db.store import DatabaseStore

    # 1. Load config
    try:
        config = get_config()
    except (ConfigLoadError, ConfigValidationError) as e:
        logger.error("config_load_failed", error=str(e))
        config = AppConfig()

    app.state.config = config

    # 2. Initialize database
    store = DatabaseStore(config.database_path)
    await store.initialize()
    app.state.store = store

    # 3. Rule engine, reading learned exclusions from the store
    app.state.classifier = DecisionClassifier(exclusion_source=store, config=config)

    # 4. Completion client for the interactive endpoint
    try:
        app.state.completion = AnthropicCompletion.from_config(config)
    except anthropic.AnthropicError as e:
        logger.warning("completion_client_unavailable", error=str(e))
        app.state.completion = None

    logger.info(
        "app_started",
        database_path=config.database_path,
        model_enabled=app.state.completion is not None,
    )

    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    from decision_inbox.web.routes import api_router, health_router

    app = FastAPI(
        title="Decision Inbox",
        description="Email decision classification API",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        set_correlation_id(request.headers.get("x-request-id") or str(uuid.uuid4()))
        try:
            return await call_next(request)
        finally:
            set_correlation_id(None)

    app.include_router(health_router)
    app.include_router(api_router)

    return app
