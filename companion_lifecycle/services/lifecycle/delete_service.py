# companion_lifecycle/services/lifecycle/delete_service.py
"""
Delete service for permanent removal of expired conversations.

Handles:
- Hard delete of archive copies past delete_after
- Best-effort removal of the matching live record
- Safety sweep of archived live records past delete_after
- Legal-hold protection (flagged safeguarding under legal_obligation or
  vital_interest is never selected)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from companion_lifecycle.errors import StoreIOError
from companion_lifecycle.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    """Result of a delete step."""
    archives_deleted: int = 0
    conversations_deleted: int = 0  # Safety sweep only
    originals_deleted: int = 0      # Live records removed alongside their archive copy
    protected_by_hold: int = 0

    @property
    def deleted(self) -> int:
        return self.archives_deleted + self.conversations_deleted


def _delete_original(store: RecordStore, original_id, initiated_by: str) -> bool:
    """Remove the live record behind an expired archive copy, if still present."""
    try:
        conversation = store.get_conversation(original_id)
        if conversation is None:
            return False
        if conversation.anonymized_at is not None or conversation.is_under_legal_hold:
            return False
        store.delete_conversation(conversation, initiated_by=initiated_by, reason="archive_expired")
        return True
    except StoreIOError as e:
        logger.warning(f"Could not remove live record {original_id} after archive deletion: {e}")
        return False


def delete_expired_conversations(
    store: RecordStore,
    now: datetime,
    limit: Optional[int] = None,
    initiated_by: str = "scheduler",
) -> DeleteResult:
    """
    Hard delete everything past delete_after that is not under legal hold.

    Re-running after a partial failure is safe: deleted rows no longer match.
    """
    result = DeleteResult()

    # 1. Archive copies
    archives = store.find_expired_archives(now, limit=limit)
    for archive in archives:
        archive_id = archive.id
        original_id = archive.original_id
        store.delete_archive(archive, initiated_by=initiated_by)
        result.archives_deleted += 1
        if _delete_original(store, original_id, initiated_by):
            result.originals_deleted += 1
        logger.debug(
            f"Deleted archive {archive_id}",
            extra={"archive_id": str(archive_id), "conversation_id": str(original_id)},
        )

    # 2. Safety sweep of the live table
    leftovers = store.find_expired_archived_conversations(now, limit=limit)
    if leftovers:
        logger.warning(f"Safety sweep found {len(leftovers)} archived conversations past delete_after")
    for conversation in leftovers:
        store.delete_conversation(conversation, initiated_by=initiated_by, reason="safety_sweep")
        result.conversations_deleted += 1

    result.protected_by_hold = store.count_held_past_expiry(now)
    if result.protected_by_hold:
        logger.info(
            f"{result.protected_by_hold} expired records retained under legal hold",
            extra={"protected_by_hold": result.protected_by_hold},
        )

    logger.info(
        f"Deleted {result.deleted} records "
        f"({result.archives_deleted} archives, {result.conversations_deleted} swept)",
        extra={"records_processed": result.deleted},
    )
    return result
