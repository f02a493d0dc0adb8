# companion_lifecycle/services/lifecycle/erasure_service.py
"""
Right-to-erasure processing (GDPR Article 17).

Erasure is balanced against the legal obligation to keep safeguarding
records (Article 17(3)(b)): flagged records held under legal_obligation or
vital_interest are retained untouched, live or archived; every other record
for the subject is hard deleted immediately, together with its archive copy,
regardless of category, archive state or timers. Deletion and request
completion commit together.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from companion_lifecycle.constants import LEGAL_HOLD_REASON
from companion_lifecycle.errors import ValidationError
from companion_lifecycle.models import ErasureStatus
from companion_lifecycle.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ErasureResult:
    """Outcome of an erasure request."""
    request_id: uuid.UUID
    deleted_count: int = 0
    retained_count: int = 0
    archives_deleted: int = 0
    retention_reason: Optional[str] = None


def _parse_uuid(value, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    try:
        return uuid.UUID(str(value).strip())
    except ValueError as e:
        raise ValidationError(f"{field_name} is not a valid UUID: {value}") from e


def process_erasure_request(
    store: RecordStore,
    subject_id,
    request_id,
    now: datetime,
    initiated_by: str = "erasure_request",
) -> ErasureResult:
    """
    Resolve one pending erasure request.

    Raises:
        ValidationError: missing or blank subject, unknown request, subject
            mismatch, or a request that is already completed. The request
            stays pending in every case.
    """
    subject_id = _parse_uuid(subject_id, "subject_id")
    request_id = _parse_uuid(request_id, "request_id")

    request = store.get_erasure_request(request_id)
    if request is None:
        raise ValidationError(f"Erasure request {request_id} not found")
    if request.status == ErasureStatus.COMPLETED.value:
        raise ValidationError(f"Erasure request {request_id} is already completed")
    if request.subject_id is None:
        raise ValidationError(f"Erasure request {request_id} has no subject")
    if request.subject_id != subject_id:
        raise ValidationError(f"Erasure request {request_id} does not belong to subject {subject_id}")

    conversations = store.find_subject_conversations(subject_id)
    retained = [c for c in conversations if c.is_under_legal_hold]
    to_delete = [c for c in conversations if not c.is_under_legal_hold]

    # Archive copies follow their original; copies of retained records stay,
    # and so does any copy that is itself under legal hold
    retained_ids = {c.id for c in retained}
    archives = []
    held_copies = 0
    for archive in store.find_subject_archives(subject_id):
        if archive.original_id in retained_ids:
            continue
        if archive.is_under_legal_hold:
            held_copies += 1
            continue
        archives.append(archive)

    retained_count = len(retained) + held_copies
    result = ErasureResult(
        request_id=request_id,
        deleted_count=len(to_delete),
        retained_count=retained_count,
        archives_deleted=len(archives),
        retention_reason=LEGAL_HOLD_REASON if retained_count else None,
    )

    notes = f"Deleted {result.deleted_count} conversations."
    if retained_count:
        notes += (
            f" Retained {result.retained_count} conversations for safeguarding legal obligations."
            f" {result.retention_reason}."
        )

    store.complete_erasure(
        request,
        conversations_to_delete=to_delete,
        archives_to_delete=archives,
        retained_count=result.retained_count,
        resolution_notes=notes,
        completed_at=now,
        initiated_by=initiated_by,
    )

    logger.info(
        f"Erasure request {request_id} completed: "
        f"deleted {result.deleted_count}, retained {result.retained_count}",
        extra={"request_id": str(request_id), "records_processed": result.deleted_count},
    )
    return result
