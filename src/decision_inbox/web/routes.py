"""Web routes for the decision inbox.

api_router (prefix /api):
- POST /ai/classify-decision: interactive path (pre-check gate, then model)
- POST /decisions/{email_id}/classify: rule engine over a stored email
- GET  /decisions, /decisions/stats, /decisions/{email_id}: inbox reads
- POST /decisions/{email_id}/status: pending/completed/ignored/snoozed
- POST /decisions/{email_id}/not-decision: feedback that feeds learned exclusions

health_router:
- GET /health

All routes use FastAPI dependency injection to access shared state.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from decision_inbox.classifier.ai_fallback import CompletionClient, classify_decision
from decision_inbox.classifier.engine import DecisionClassifier
from decision_inbox.classifier.precheck import EscalationMeta
from decision_inbox.config_schema import AppConfig
from decision_inbox.core.errors import DatabaseError
from decision_inbox.core.logging import get_logger
from decision_inbox.db.store import VALID_STATUSES, DatabaseStore
from decision_inbox.web.dependencies import (
    get_classifier,
    get_completion,
    get_config,
    get_store,
)

logger = get_logger(__name__)

health_router = APIRouter()
api_router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Pydantic models for API input validation
# ---------------------------------------------------------------------------


class ClassifyDecisionRequest(BaseModel):
    """Request body for the interactive classification endpoint."""

    subject: str | None = None
    content: str | None = None
    email_id: str | None = None
    user_id: str | None = None


class StatusUpdateRequest(BaseModel):
    """Request body for changing a decision record's status."""

    status: str
    snoozed_until: datetime | None = None


class NotDecisionRequest(BaseModel):
    """Request body for "Not a Decision" feedback."""

    comment: str | None = None


# ---------------------------------------------------------------------------
# Interactive classification
# ---------------------------------------------------------------------------


@api_router.post("/ai/classify-decision")
async def classify_decision_endpoint(
    body: ClassifyDecisionRequest,
    store: DatabaseStore = Depends(get_store),
    config: AppConfig = Depends(get_config),
    completion: CompletionClient | None = Depends(get_completion),
):
    """Classify one email through the pre-check gate and the remote model.

    When email_id and user_id are given, the stored message's subject, body
    and metadata are used and the result is saved as the decision record.
    """
    if not (body.subject or body.content or body.email_id):
        raise HTTPException(status_code=400, detail="Subject, content or email_id is required")

    subject, content = body.subject, body.content
    meta = None
    if body.email_id and body.user_id:
        email = await store.get_email(body.email_id, body.user_id)
        if email is None:
            raise HTTPException(status_code=404, detail="Email not found")
        subject = email.subject
        content = email.body_text
        meta = EscalationMeta(
            user_id=body.user_id,
            sender_address=email.from_address,
            is_read=email.is_read,
            received_at=email.received_at,
        )

    try:
        decision = await classify_decision(
            subject,
            content,
            completion,
            meta=meta,
            reply_counter=store.count_replies_to_sender,
            config=config,
            store=store,
            email_id=body.email_id,
        )
    except Exception as e:
        logger.error("classify_decision_failed", email_id=body.email_id, error=str(e))
        return {
            "success": False,
            "decision_required": False,
            "decision_type": "informational_only",
            "reason": "Unable to classify email",
        }

    if body.email_id and body.user_id:
        result = decision.to_classification_result()
        status = "pending" if result.decision_required else "completed"
        try:
            await store.upsert_decision(body.email_id, body.user_id, result, status=status)
        except DatabaseError as e:
            # The caller still gets the classification
            logger.error("decision_save_failed", email_id=body.email_id, error=str(e))

    return {
        "success": True,
        **decision.to_dict(),
        "skipped_ai": decision.skipped_ai,
    }


# ---------------------------------------------------------------------------
# Decision inbox
# ---------------------------------------------------------------------------


@api_router.post("/decisions/{email_id}/classify")
async def classify_stored_email(
    email_id: str,
    user_id: str = Query(...),
    store: DatabaseStore = Depends(get_store),
    classifier: DecisionClassifier = Depends(get_classifier),
):
    """Run the rule engine over a stored email and save the record."""
    email = await store.get_email(email_id, user_id)
    if email is None:
        raise HTTPException(status_code=404, detail="Email not found")

    result = await classifier.classify(email, user_id=user_id)
    status = "pending" if result.decision_required else "completed"
    try:
        await store.upsert_decision(email_id, user_id, result, status=status)
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e)) from None

    return result.to_dict()


@api_router.get("/decisions/stats")
async def decision_stats(
    user_id: str = Query(...),
    store: DatabaseStore = Depends(get_store),
):
    """Counts by level, status and type for the decision inbox header."""
    return await store.get_decision_stats(user_id)


@api_router.get("/decisions")
async def list_decisions(
    user_id: str = Query(...),
    min_level: int = Query(1, ge=0, le=2),
    status: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    store: DatabaseStore = Depends(get_store),
):
    """List decision records, most urgent and most confident first."""
    if status is not None and status not in VALID_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status '{status}'")
    records = await store.list_decisions(user_id, min_level=min_level, status=status, limit=limit)
    return {"decisions": [r.to_dict() for r in records]}


@api_router.get("/decisions/{email_id}")
async def get_decision(
    email_id: str,
    user_id: str = Query(...),
    store: DatabaseStore = Depends(get_store),
):
    record = await store.get_decision(email_id, user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Decision not found")
    return record.to_dict()


@api_router.post("/decisions/{email_id}/status")
async def update_decision_status(
    email_id: str,
    body: StatusUpdateRequest,
    user_id: str = Query(...),
    store: DatabaseStore = Depends(get_store),
):
    """Move a decision record to pending, completed, ignored or snoozed."""
    try:
        updated = await store.update_decision_status(
            email_id, user_id, body.status, snoozed_until=body.snoozed_until
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    if not updated:
        raise HTTPException(status_code=404, detail="Decision not found")
    return {"success": True, "status": body.status}


@api_router.post("/decisions/{email_id}/not-decision")
async def mark_not_decision(
    email_id: str,
    user_id: str = Query(...),
    body: NotDecisionRequest | None = None,
    store: DatabaseStore = Depends(get_store),
):
    """Record "Not a Decision" feedback; future similar mail is excluded."""
    comment = body.comment if body else None
    if not await store.mark_not_decision(email_id, user_id, comment=comment):
        raise HTTPException(status_code=404, detail="Email not found")
    return {"success": True}


@health_router.get("/health")
async def health_check(
    store: DatabaseStore = Depends(get_store),
    completion: CompletionClient | None = Depends(get_completion),
):
    """Health check endpoint for Docker and monitoring."""
    from decision_inbox.db.models import verify_schema

    schema_ok = await verify_schema(store.db_path)
    return {
        "status": "healthy" if schema_ok else "degraded",
        "database": schema_ok,
        "model_enabled": completion is not None,
        "version": "0.1.0",
    }
