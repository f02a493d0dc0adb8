# companion_lifecycle/services/lifecycle/archive_service.py
"""
Archive service: moves conversations past archive_after into the archive.

Per record, in order:
1. Write (or reuse) the archive copy and commit
2. Flag the source conversation as archived and commit

A crash between the two steps leaves an unflagged source with an existing
copy; the next pass reuses that copy and only writes the flag.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from companion_lifecycle.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ArchiveResult:
    """Result of an archive step."""
    records_selected: int = 0
    archived: int = 0


def archive_conversations(
    store: RecordStore,
    now: datetime,
    limit: Optional[int] = None,
    initiated_by: str = "scheduler",
) -> ArchiveResult:
    """
    Archive every eligible conversation.

    Store failures propagate as StoreIOError and abort the step; records
    already handled stay handled.
    """
    result = ArchiveResult()

    conversations = store.find_archivable_conversations(now, limit=limit)
    result.records_selected = len(conversations)
    if not conversations:
        logger.info("No conversations ready for archiving")
        return result

    for conversation in conversations:
        archive = store.insert_archive_copy(conversation, archived_at=now)
        store.mark_archived(conversation, archive, initiated_by=initiated_by)
        result.archived += 1
        logger.debug(
            f"Archived conversation {conversation.id}",
            extra={"conversation_id": str(conversation.id), "archive_id": str(archive.id)},
        )

    logger.info(
        f"Archived {result.archived} conversations",
        extra={"records_selected": result.records_selected, "records_processed": result.archived},
    )
    return result
