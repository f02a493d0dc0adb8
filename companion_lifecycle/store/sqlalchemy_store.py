# companion_lifecycle/store/sqlalchemy_store.py
"""
SQLAlchemy-backed record store.

Wraps a Session. Each mutation commits its own transaction and writes a
lifecycle audit event alongside the change; driver errors are rolled back
and re-raised as StoreIOError.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, func, not_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from companion_lifecycle.constants import LEGAL_HOLD_BASES
from companion_lifecycle.errors import StoreIOError
from companion_lifecycle.models import (
    ArchivedConversation,
    Conversation,
    ErasureRequest,
    ErasureStatus,
    JobLease,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleRun,
    Person,
    RetentionCategory,
    SubjectContact,
)
from companion_lifecycle.store.base import Recipient, RecordStore

logger = logging.getLogger(__name__)


def _legal_hold(model):
    """SQL expression: flagged for safeguarding under a legal-hold basis."""
    return and_(
        model.flagged_for_safeguarding == True,  # noqa: E712
        model.legal_basis.in_(LEGAL_HOLD_BASES),
    )


class SqlAlchemyRecordStore(RecordStore):
    """
    Record store over the conversations schema.

    Usage:
        db = SessionLocal()
        store = SqlAlchemyRecordStore(db)
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    def name(self) -> str:
        return "sqlalchemy"

    @property
    def session(self) -> Session:
        return self._db

    # -------------------------------------------------------------------------
    # Transaction helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _read(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"[STORE] {action} failed: {e}")
            raise StoreIOError(f"{action} failed: {e}") from e

    @contextmanager
    def _write(self, action: str):
        try:
            yield
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"[STORE] {action} failed: {e}")
            raise StoreIOError(f"{action} failed: {e}") from e
        except Exception:
            self._db.rollback()
            raise

    def _add_event(
        self,
        event_type: LifecycleEventType,
        initiated_by: str,
        conversation_id: Optional[uuid.UUID] = None,
        subject_id: Optional[uuid.UUID] = None,
        event_metadata: Optional[dict] = None,
    ) -> LifecycleEvent:
        event = LifecycleEvent(
            conversation_id=conversation_id,
            subject_id=subject_id,
            event_type=event_type.value,
            initiated_by=initiated_by,
            event_metadata=event_metadata,
        )
        self._db.add(event)
        return event

    # -------------------------------------------------------------------------
    # Selections
    # -------------------------------------------------------------------------

    def find_archivable_conversations(self, now: datetime, limit: Optional[int] = None) -> list[Conversation]:
        with self._read("select archivable conversations"):
            return (
                self._db.query(Conversation)
                .filter(
                    and_(
                        Conversation.is_archived == False,  # noqa: E712
                        Conversation.archive_after <= now,
                        Conversation.anonymized_at.is_(None),
                        # Opted-in records are anonymized in place, never archived
                        Conversation.retention_category != RetentionCategory.SERVICE_IMPROVEMENT.value,
                    )
                )
                .order_by(Conversation.archive_after.asc())  # Oldest first
                .limit(limit)
                .all()
            )

    def find_anonymizable_conversations(self, now: datetime, limit: Optional[int] = None) -> list[Conversation]:
        with self._read("select anonymizable conversations"):
            return (
                self._db.query(Conversation)
                .filter(
                    and_(
                        Conversation.retention_category == RetentionCategory.SERVICE_IMPROVEMENT.value,
                        Conversation.archive_after <= now,
                        Conversation.anonymized_at.is_(None),
                    )
                )
                .order_by(Conversation.archive_after.asc())
                .limit(limit)
                .all()
            )

    def find_expired_archives(self, now: datetime, limit: Optional[int] = None) -> list[ArchivedConversation]:
        with self._read("select expired archives"):
            return (
                self._db.query(ArchivedConversation)
                .filter(
                    and_(
                        ArchivedConversation.delete_after.isnot(None),
                        ArchivedConversation.delete_after <= now,
                        not_(_legal_hold(ArchivedConversation)),
                    )
                )
                .order_by(ArchivedConversation.delete_after.asc())
                .limit(limit)
                .all()
            )

    def find_expired_archived_conversations(self, now: datetime, limit: Optional[int] = None) -> list[Conversation]:
        with self._read("select expired archived conversations"):
            return (
                self._db.query(Conversation)
                .filter(
                    and_(
                        Conversation.is_archived == True,  # noqa: E712
                        Conversation.delete_after.isnot(None),
                        Conversation.delete_after <= now,
                        Conversation.anonymized_at.is_(None),
                        not_(_legal_hold(Conversation)),
                    )
                )
                .order_by(Conversation.delete_after.asc())
                .limit(limit)
                .all()
            )

    def count_held_past_expiry(self, now: datetime) -> int:
        with self._read("count held records"):
            live = (
                self._db.query(func.count(Conversation.id))
                .filter(
                    Conversation.delete_after.isnot(None),
                    Conversation.delete_after <= now,
                    _legal_hold(Conversation),
                )
                .scalar()
            ) or 0
            archived = (
                self._db.query(func.count(ArchivedConversation.id))
                .filter(
                    ArchivedConversation.delete_after.isnot(None),
                    ArchivedConversation.delete_after <= now,
                    _legal_hold(ArchivedConversation),
                )
                .scalar()
            ) or 0
        return live + archived

    def find_archives_due_between(self, start: datetime, end: datetime) -> list[ArchivedConversation]:
        with self._read("select archives due for warning"):
            return (
                self._db.query(ArchivedConversation)
                .filter(
                    and_(
                        ArchivedConversation.delete_after.isnot(None),
                        ArchivedConversation.delete_after >= start,
                        ArchivedConversation.delete_after < end,
                        ArchivedConversation.last_notified_at.is_(None),
                        not_(_legal_hold(ArchivedConversation)),
                    )
                )
                .order_by(ArchivedConversation.delete_after.asc())
                .all()
            )

    def get_conversation(self, conversation_id: uuid.UUID) -> Optional[Conversation]:
        with self._read("get conversation"):
            return self._db.get(Conversation, conversation_id)

    def find_subject_conversations(self, subject_id: uuid.UUID) -> list[Conversation]:
        with self._read("select subject conversations"):
            return (
                self._db.query(Conversation)
                .filter(Conversation.subject_id == subject_id)
                .order_by(Conversation.created_at.asc())
                .all()
            )

    def find_subject_archives(self, subject_id: uuid.UUID) -> list[ArchivedConversation]:
        with self._read("select subject archives"):
            return (
                self._db.query(ArchivedConversation)
                .filter(ArchivedConversation.subject_id == subject_id)
                .all()
            )

    def find_reschedulable_conversations(self, subject_id: uuid.UUID) -> list[Conversation]:
        with self._read("select reschedulable conversations"):
            return (
                self._db.query(Conversation)
                .filter(
                    and_(
                        Conversation.subject_id == subject_id,
                        Conversation.is_archived == False,  # noqa: E712
                        Conversation.retention_category == RetentionCategory.FAMILY_MONITORING.value,
                        Conversation.flagged_for_safeguarding == False,  # noqa: E712
                    )
                )
                .order_by(Conversation.created_at.asc())
                .all()
            )

    def get_erasure_request(self, request_id: uuid.UUID) -> Optional[ErasureRequest]:
        with self._read("get erasure request"):
            return self._db.get(ErasureRequest, request_id)

    def get_notification_recipients(self, subject_id: uuid.UUID) -> list[Recipient]:
        with self._read("resolve notification recipients"):
            subject = self._db.get(Person, subject_id)
            contacts = (
                self._db.query(Person)
                .join(SubjectContact, SubjectContact.contact_id == Person.id)
                .filter(SubjectContact.subject_id == subject_id)
                .order_by(Person.name.asc())
                .all()
            )

        subject_name = subject.name if subject else None
        recipients = []
        if subject and subject.phone_number:
            recipients.append(
                Recipient(
                    phone_number=subject.phone_number,
                    name=subject.name,
                    subject_name=subject_name,
                    is_contact=False,
                )
            )
        for contact in contacts:
            if contact.phone_number:
                recipients.append(
                    Recipient(
                        phone_number=contact.phone_number,
                        name=contact.name,
                        subject_name=subject_name,
                        is_contact=True,
                    )
                )
        return recipients

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def insert_archive_copy(self, conversation: Conversation, archived_at: datetime) -> ArchivedConversation:
        with self._write(f"archive copy of conversation {conversation.id}"):
            existing = (
                self._db.query(ArchivedConversation)
                .filter(ArchivedConversation.original_id == conversation.id)
                .first()
            )
            if existing:
                logger.debug(f"Archive copy for conversation {conversation.id} already exists")
                return existing

            archive = ArchivedConversation(
                original_id=conversation.id,
                subject_id=conversation.subject_id,
                transcript=conversation.transcript,
                sentiment=conversation.sentiment,
                legal_basis=conversation.legal_basis,
                retention_category=conversation.retention_category,
                flagged_for_safeguarding=conversation.flagged_for_safeguarding,
                safeguarding_notes=conversation.safeguarding_notes,
                contains_health_data=conversation.contains_health_data,
                original_created_at=conversation.created_at,
                archived_at=archived_at,
                delete_after=conversation.delete_after,
            )
            self._db.add(archive)
        return archive

    def mark_archived(self, conversation: Conversation, archive: ArchivedConversation, initiated_by: str) -> None:
        with self._write(f"flag conversation {conversation.id} archived"):
            conversation.is_archived = True
            self._db.add(conversation)
            self._add_event(
                LifecycleEventType.ARCHIVED,
                initiated_by,
                conversation_id=conversation.id,
                subject_id=conversation.subject_id,
                event_metadata={"archive_id": str(archive.id)},
            )

    def apply_anonymization(
        self,
        conversation: Conversation,
        redacted_transcript: str,
        subject_sentinel: uuid.UUID,
        anonymized_at: datetime,
        initiated_by: str,
    ) -> None:
        with self._write(f"anonymize conversation {conversation.id}"):
            conversation.subject_id = subject_sentinel
            conversation.transcript = redacted_transcript
            conversation.safeguarding_notes = None
            conversation.anonymized_at = anonymized_at
            self._db.add(conversation)
            # No subject_id on the event: anonymized records keep no subject link
            self._add_event(
                LifecycleEventType.ANONYMIZED,
                initiated_by,
                conversation_id=conversation.id,
            )

    def delete_archive(self, archive: ArchivedConversation, initiated_by: str) -> None:
        with self._write(f"delete archive {archive.id}"):
            self._add_event(
                LifecycleEventType.HARD_DELETED,
                initiated_by,
                conversation_id=archive.original_id,
                subject_id=archive.subject_id,
                event_metadata={"collection": "archived_conversations", "archive_id": str(archive.id)},
            )
            self._db.query(ArchivedConversation).filter(
                ArchivedConversation.id == archive.id
            ).delete(synchronize_session=False)

    def delete_conversation(self, conversation: Conversation, initiated_by: str, reason: str) -> None:
        with self._write(f"delete conversation {conversation.id}"):
            self._add_event(
                LifecycleEventType.HARD_DELETED,
                initiated_by,
                conversation_id=conversation.id,
                subject_id=conversation.subject_id,
                event_metadata={"collection": "conversations", "reason": reason},
            )
            self._db.query(Conversation).filter(
                Conversation.id == conversation.id
            ).delete(synchronize_session=False)

    def mark_notified(
        self,
        archives: list[ArchivedConversation],
        notified_at: datetime,
        initiated_by: str,
        recipients_notified: int,
    ) -> None:
        if not archives:
            return
        subject_id = archives[0].subject_id
        with self._write(f"stamp deletion warnings for subject {subject_id}"):
            for archive in archives:
                archive.last_notified_at = notified_at
                self._db.add(archive)
            self._add_event(
                LifecycleEventType.DELETION_WARNING_SENT,
                initiated_by,
                subject_id=subject_id,
                event_metadata={
                    "archive_ids": [str(a.id) for a in archives],
                    "recipients_notified": recipients_notified,
                },
            )

    def apply_retention_dates(
        self,
        updates: list[tuple[Conversation, datetime, Optional[datetime]]],
        initiated_by: str,
        retention_months: int,
    ) -> None:
        if not updates:
            return
        subject_id = updates[0][0].subject_id
        with self._write(f"reschedule conversations for subject {subject_id}"):
            for conversation, archive_after, delete_after in updates:
                conversation.archive_after = archive_after
                conversation.delete_after = delete_after
                self._db.add(conversation)
            self._add_event(
                LifecycleEventType.RESCHEDULED,
                initiated_by,
                subject_id=subject_id,
                event_metadata={
                    "conversation_ids": [str(c.id) for c, _, _ in updates],
                    "retention_months": retention_months,
                },
            )

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
        conversation_ids = [c.id for c in conversations_to_delete]
        archive_ids = [a.id for a in archives_to_delete]

        with self._write(f"complete erasure request {request.id}"):
            if archive_ids:
                self._db.query(ArchivedConversation).filter(
                    ArchivedConversation.id.in_(archive_ids)
                ).delete(synchronize_session=False)
            if conversation_ids:
                self._db.query(Conversation).filter(
                    Conversation.id.in_(conversation_ids)
                ).delete(synchronize_session=False)

            request.status = ErasureStatus.COMPLETED.value
            request.completed_at = completed_at
            request.deleted_count = len(conversation_ids)
            request.retained_count = retained_count
            request.resolution_notes = resolution_notes
            self._db.add(request)

            self._add_event(
                LifecycleEventType.ERASURE_COMPLETED,
                initiated_by,
                subject_id=request.subject_id,
                event_metadata={
                    "request_id": str(request.id),
                    "conversation_ids": [str(i) for i in conversation_ids],
                    "archive_ids": [str(i) for i in archive_ids],
                    "retained_count": retained_count,
                },
            )

    # -------------------------------------------------------------------------
    # Job bookkeeping
    # -------------------------------------------------------------------------

    def acquire_lease(self, name: str, owner: str, now: datetime, ttl_seconds: int) -> bool:
        expires_at = now + timedelta(seconds=ttl_seconds)
        try:
            lease = self._db.get(JobLease, name)
            if lease is None:
                self._db.add(JobLease(name=name, owner=owner, acquired_at=now, expires_at=expires_at))
            elif lease.owner == owner or lease.expires_at <= now:
                lease.owner = owner
                lease.acquired_at = now
                lease.expires_at = expires_at
                self._db.add(lease)
            else:
                logger.warning(f"Lease {name} held by {lease.owner} until {lease.expires_at.isoformat()}")
                return False
            self._db.commit()
            return True
        except IntegrityError:
            # Another runner inserted the lease between our read and write
            self._db.rollback()
            return False
        except SQLAlchemyError as e:
            self._db.rollback()
            raise StoreIOError(f"acquire lease {name} failed: {e}") from e

    def release_lease(self, name: str, owner: str) -> None:
        with self._write(f"release lease {name}"):
            self._db.query(JobLease).filter(
                JobLease.name == name,
                JobLease.owner == owner,
            ).delete(synchronize_session=False)

    def record_run(self, run: LifecycleRun) -> None:
        with self._write(f"record lifecycle run {run.run_id}"):
            self._db.add(run)

    def get_last_run(self) -> Optional[LifecycleRun]:
        with self._read("get last lifecycle run"):
            return (
                self._db.query(LifecycleRun)
                .order_by(LifecycleRun.finished_at.desc())
                .first()
            )

    def get_lifecycle_stats(self, now: datetime, notify_start: datetime, notify_end: datetime) -> dict:
        with self._read("lifecycle stats"):
            total = self._db.query(func.count(Conversation.id)).scalar() or 0
            archived_total = self._db.query(func.count(ArchivedConversation.id)).scalar() or 0
            anonymized_total = (
                self._db.query(func.count(Conversation.id))
                .filter(Conversation.anonymized_at.isnot(None))
                .scalar()
            ) or 0
            pending_erasure = (
                self._db.query(func.count(ErasureRequest.id))
                .filter(ErasureRequest.status == ErasureStatus.PENDING.value)
                .scalar()
            ) or 0

        pending_archive = len(self.find_archivable_conversations(now))
        pending_anonymize = len(self.find_anonymizable_conversations(now))
        pending_delete = len(self.find_expired_archives(now)) + len(self.find_expired_archived_conversations(now))
        upcoming_warnings = len(self.find_archives_due_between(notify_start, notify_end))

        return {
            "totals": {
                "conversations": total,
                "archived_conversations": archived_total,
                "anonymized": anonymized_total,
            },
            "pending": {
                "archive": pending_archive,
                "anonymize": pending_anonymize,
                "delete": pending_delete,
                "deletion_warnings": upcoming_warnings,
                "erasure_requests": pending_erasure,
            },
            "protected_by_hold": self.count_held_past_expiry(now),
        }
