# companion_lifecycle/store/base.py
"""
Record store interface for the lifecycle engine.

Design principles:
- The engine never opens sessions itself; a store handle is injected
- Each selection mirrors exactly one lifecycle predicate
- Every mutation is scoped to one record (or one erasure request) and
  commits on its own, so a failed pass leaves no half-applied transition
- Failures surface as StoreIOError, never as driver exceptions
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from companion_lifecycle.models import (
    ArchivedConversation,
    Conversation,
    ErasureRequest,
    LifecycleRun,
)


@dataclass(frozen=True)
class Recipient:
    """A phone number that should receive a deletion warning for a subject."""
    phone_number: str
    name: str
    subject_name: Optional[str]
    is_contact: bool  # False = the subject themselves


class RecordStore(ABC):
    """
    Abstract interface over the conversations and archived_conversations
    collections, plus the read-only subject -> contacts relationship.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name (e.g., 'sqlalchemy')."""
        pass

    # -------------------------------------------------------------------------
    # Selections
    # -------------------------------------------------------------------------

    @abstractmethod
    def find_archivable_conversations(self, now: datetime, limit: Optional[int] = None) -> list[Conversation]:
        """
        Live conversations ready for the archive envelope.

        is_archived = false, archive_after <= now, anonymized_at IS NULL,
        retention_category != service_improvement.
        """
        pass

    @abstractmethod
    def find_anonymizable_conversations(self, now: datetime, limit: Optional[int] = None) -> list[Conversation]:
        """retention_category = service_improvement, archive_after <= now, anonymized_at IS NULL."""
        pass

    @abstractmethod
    def find_expired_archives(self, now: datetime, limit: Optional[int] = None) -> list[ArchivedConversation]:
        """Archive copies with delete_after <= now, excluding legal-hold records."""
        pass

    @abstractmethod
    def find_expired_archived_conversations(self, now: datetime, limit: Optional[int] = None) -> list[Conversation]:
        """
        Safety sweep: is_archived = true, delete_after <= now, not anonymized,
        excluding legal-hold records.
        """
        pass

    @abstractmethod
    def count_held_past_expiry(self, now: datetime) -> int:
        """Legal-hold records (live or archived) carrying an expired delete_after."""
        pass

    @abstractmethod
    def find_archives_due_between(self, start: datetime, end: datetime) -> list[ArchivedConversation]:
        """
        Archive copies with start <= delete_after < end that have not been
        warned about yet, excluding legal-hold records.
        """
        pass

    @abstractmethod
    def get_conversation(self, conversation_id: uuid.UUID) -> Optional[Conversation]:
        pass

    @abstractmethod
    def find_subject_conversations(self, subject_id: uuid.UUID) -> list[Conversation]:
        pass

    @abstractmethod
    def find_subject_archives(self, subject_id: uuid.UUID) -> list[ArchivedConversation]:
        pass

    @abstractmethod
    def find_reschedulable_conversations(self, subject_id: uuid.UUID) -> list[Conversation]:
        """
        A subject's records whose dates follow the retention preference.

        is_archived = false, retention_category = family_monitoring,
        flagged_for_safeguarding = false.
        """
        pass

    @abstractmethod
    def get_erasure_request(self, request_id: uuid.UUID) -> Optional[ErasureRequest]:
        pass

    @abstractmethod
    def get_notification_recipients(self, subject_id: uuid.UUID) -> list[Recipient]:
        """The subject's own phone (if any) followed by every linked contact's phone."""
        pass

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_archive_copy(
        self,
        conversation: Conversation,
        archived_at: datetime,
    ) -> ArchivedConversation:
        """
        Write the archive envelope for a conversation and commit.

        If a copy for this conversation already exists (crash between copy and
        flag on a previous pass), the existing copy is returned unchanged.
        """
        pass

    @abstractmethod
    def mark_archived(
        self,
        conversation: Conversation,
        archive: ArchivedConversation,
        initiated_by: str,
    ) -> None:
        """Set is_archived on the source conversation and commit."""
        pass

    @abstractmethod
    def apply_anonymization(
        self,
        conversation: Conversation,
        redacted_transcript: str,
        subject_sentinel: uuid.UUID,
        anonymized_at: datetime,
        initiated_by: str,
    ) -> None:
        """Replace subject and transcript, clear notes and stamp anonymized_at in one commit."""
        pass

    @abstractmethod
    def delete_archive(self, archive: ArchivedConversation, initiated_by: str) -> None:
        pass

    @abstractmethod
    def delete_conversation(self, conversation: Conversation, initiated_by: str, reason: str) -> None:
        pass

    @abstractmethod
    def mark_notified(
        self,
        archives: list[ArchivedConversation],
        notified_at: datetime,
        initiated_by: str,
        recipients_notified: int,
    ) -> None:
        """Stamp last_notified_at on a subject's archive copies and commit."""
        pass

    @abstractmethod
    def apply_retention_dates(
        self,
        updates: list[tuple[Conversation, datetime, Optional[datetime]]],
        initiated_by: str,
        retention_months: int,
    ) -> None:
        """Set (archive_after, delete_after) on each record in one commit."""
        pass

    @abstractmethod
    def complete_erasure(
        self,
        request: ErasureRequest,
        conversations_to_delete: list[Conversation],
        archives_to_delete: list[ArchivedConversation],
        retained_count: int,
        resolution_notes: str,
        completed_at: datetime,
        initiated_by: str,
    ) -> None:
        """Delete the given records and complete the request in one commit."""
        pass

    # -------------------------------------------------------------------------
    # Job bookkeeping
    # -------------------------------------------------------------------------

    @abstractmethod
    def acquire_lease(self, name: str, owner: str, now: datetime, ttl_seconds: int) -> bool:
        """Take the named lease unless another owner holds an unexpired one."""
        pass

    @abstractmethod
    def release_lease(self, name: str, owner: str) -> None:
        pass

    @abstractmethod
    def record_run(self, run: LifecycleRun) -> None:
        pass

    @abstractmethod
    def get_last_run(self) -> Optional[LifecycleRun]:
        pass

    @abstractmethod
    def get_lifecycle_stats(self, now: datetime, notify_start: datetime, notify_end: datetime) -> dict:
        """Counts of records pending each transition, for status surfaces."""
        pass
