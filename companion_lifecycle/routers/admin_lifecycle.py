# companion_lifecycle/routers/admin_lifecycle.py
"""
Admin endpoints for the conversation retention lifecycle.

GET  /v1/admin/lifecycle/status                      - Pending work and last pass
POST /v1/admin/lifecycle/run                         - Trigger a lifecycle pass
POST /v1/admin/lifecycle/erasure-requests/{id}       - Process an erasure request
PUT  /v1/admin/lifecycle/subjects/{id}/retention     - Apply a new retention preference
POST /v1/admin/lifecycle/classify                    - Classify a transcript (no writes)
"""

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from companion_lifecycle.auth import require_admin_key
from companion_lifecycle.database import get_db
from companion_lifecycle.errors import StoreIOError, ValidationError
from companion_lifecycle.services.lifecycle import LifecycleEngine, build_engine, classify_conversation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/lifecycle", tags=["admin-lifecycle"])


def get_engine(db: Session = Depends(get_db)) -> LifecycleEngine:
    return build_engine(db)


# -----------------------------------------------------------------------------
# Request / Response Models
# -----------------------------------------------------------------------------


class LifecycleStatusResponse(BaseModel):
    """Pending lifecycle work."""

    totals: dict[str, int]
    pending: dict[str, int]
    protected_by_hold: int
    last_run: dict[str, Any] | None = None


class RunResponse(BaseModel):
    """Lifecycle pass result."""

    run_id: str
    status: str
    success: bool
    archived: int
    anonymized: int
    deleted: int
    notified: int
    notifications_failed: int
    protected_by_hold: int
    duration_ms: int
    errors: list[str]


class ErasureRequestBody(BaseModel):
    """Subject the erasure request is for."""

    subject_id: str | None = Field(None, description="Subject UUID; must match the request")


class ErasureResponse(BaseModel):
    """Erasure outcome."""

    request_id: str
    deleted_count: int
    retained_count: int
    retention_reason: str | None = None


class RetentionPreferenceBody(BaseModel):
    """New family monitoring retention preference."""

    retention_months: int = Field(..., description="Retention preference in months (12-84)")


class RescheduleResponse(BaseModel):
    """Rescheduling outcome."""

    subject_id: str
    retention_months: int
    rescheduled: int


class ClassifyRequest(BaseModel):
    """Transcript to classify."""

    transcript: str = Field(..., description="Conversation transcript")
    sentiment: Literal["pos", "neu", "neg"] = Field("neu", description="Upstream sentiment")


class ClassifyResponse(BaseModel):
    """Classification result."""

    retention_category: str
    flagged_for_safeguarding: bool
    contains_health_data: bool
    safeguarding_notes: str | None = None


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.get("/status", response_model=LifecycleStatusResponse)
def get_lifecycle_status(
    engine: LifecycleEngine = Depends(get_engine),
    _: None = Depends(require_admin_key),
) -> LifecycleStatusResponse:
    """
    Get counts of records pending each transition, records retained under
    legal hold past their delete date, and the last recorded pass.
    """
    try:
        stats = engine.status()
    except StoreIOError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return LifecycleStatusResponse(**stats)


@router.post("/run", response_model=RunResponse)
def trigger_lifecycle_run(
    engine: LifecycleEngine = Depends(get_engine),
    _: None = Depends(require_admin_key),
) -> RunResponse:
    """
    Run one lifecycle pass (archive, anonymize, delete, notify).

    Always returns 200; step failures are reported in `errors`.
    """
    result = engine.run_lifecycle(trigger="api")
    return RunResponse(
        run_id=result.run_id,
        status=result.status.value,
        success=result.success,
        archived=result.archived,
        anonymized=result.anonymized,
        deleted=result.deleted,
        notified=result.notified,
        notifications_failed=result.notifications_failed,
        protected_by_hold=result.protected_by_hold,
        duration_ms=result.duration_ms,
        errors=result.errors,
    )


@router.post("/erasure-requests/{request_id}", response_model=ErasureResponse)
def process_erasure(
    request_id: str,
    body: ErasureRequestBody,
    engine: LifecycleEngine = Depends(get_engine),
    _: None = Depends(require_admin_key),
) -> ErasureResponse:
    """
    Process a pending right-to-erasure request.

    Legal-hold safeguarding records are retained; everything else for the
    subject is deleted immediately.
    """
    try:
        result = engine.process_erasure_request(body.subject_id, request_id, initiated_by="admin_api")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreIOError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return ErasureResponse(
        request_id=str(result.request_id),
        deleted_count=result.deleted_count,
        retained_count=result.retained_count,
        retention_reason=result.retention_reason,
    )


@router.put("/subjects/{subject_id}/retention", response_model=RescheduleResponse)
def update_retention_preference(
    subject_id: str,
    body: RetentionPreferenceBody,
    engine: LifecycleEngine = Depends(get_engine),
    _: None = Depends(require_admin_key),
) -> RescheduleResponse:
    """
    Recompute retention dates after a subject changes their preference.

    Archived, safeguarding and analytics records keep their dates.
    """
    try:
        result = engine.reschedule_subject(subject_id, body.retention_months, initiated_by="admin_api")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreIOError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return RescheduleResponse(
        subject_id=str(result.subject_id),
        retention_months=result.retention_months,
        rescheduled=result.rescheduled,
    )


@router.post("/classify", response_model=ClassifyResponse)
def classify(
    request: ClassifyRequest,
    _: None = Depends(require_admin_key),
) -> ClassifyResponse:
    """Classify a transcript without storing anything."""
    return ClassifyResponse(**classify_conversation(request.transcript, request.sentiment).as_dict())
