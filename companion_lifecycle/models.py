# companion_lifecycle/models.py
"""
Conversation retention database models

Tables:
- Person: subjects and their contacts (read-only here)
- SubjectContact: subject -> linked contact relationship (read-only here)
- Conversation: live conversation transcripts with retention metadata
- ArchivedConversation: archive envelope written once by the archiver
- ErasureRequest: right-to-erasure requests, pending -> completed
- LifecycleEvent: immutable audit trail of lifecycle transitions
- LifecycleRun: summary of each scheduled lifecycle pass
- JobLease: advisory lease preventing overlapping passes
"""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)

from companion_lifecycle.database import Base
from companion_lifecycle.utils.time_utils import utcnow


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class Sentiment(str, Enum):
    """Sentiment assigned by the upstream conversational pipeline."""
    POSITIVE = "pos"
    NEUTRAL = "neu"
    NEGATIVE = "neg"


class LegalBasis(str, Enum):
    """Lawful ground for processing (GDPR Article 6)."""
    CONSENT = "consent"
    LEGAL_OBLIGATION = "legal_obligation"
    VITAL_INTEREST = "vital_interest"
    LEGITIMATE_INTEREST = "legitimate_interest"


class RetentionCategory(str, Enum):
    """Policy bucket governing retention windows and anonymization."""
    ESSENTIAL_SAFEGUARDING = "essential_safeguarding"
    FAMILY_MONITORING = "family_monitoring"
    SERVICE_IMPROVEMENT = "service_improvement"  # Explicit analytics consent only


class ErasureStatus(str, Enum):
    """Erasure request status."""
    PENDING = "pending"
    COMPLETED = "completed"


class LifecycleEventType(str, Enum):
    """Audit event types."""
    ARCHIVED = "archived"
    ANONYMIZED = "anonymized"
    HARD_DELETED = "hard_deleted"
    DELETION_WARNING_SENT = "deletion_warning_sent"
    ERASURE_COMPLETED = "erasure_completed"
    RESCHEDULED = "rescheduled"


class RunStatus(str, Enum):
    """Outcome of a lifecycle pass."""
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# -----------------------------------------------------------------------------
# People
# -----------------------------------------------------------------------------

class Person(Base):
    """Subject or contact. Owned by the account system; read-only here."""
    __tablename__ = "people"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(32), nullable=True)  # E.164
    created_at = Column(DateTime, default=utcnow, nullable=False)


class SubjectContact(Base):
    """Links a subject to a secondary contact (e.g. next of kin)."""
    __tablename__ = "subject_contacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("people.id"), nullable=False)
    contact_id = Column(Uuid(as_uuid=True), ForeignKey("people.id"), nullable=False)

    __table_args__ = (
        Index("ix_subject_contacts_subject_id", "subject_id"),
    )


# -----------------------------------------------------------------------------
# Conversation
# -----------------------------------------------------------------------------

class Conversation(Base):
    """
    Live conversation transcript with retention metadata.

    Lifecycle:
    - archive_after reached -> copied to archived_conversations, is_archived set
    - service_improvement + archive_after reached -> anonymized in place (terminal)
    - delete_after reached (archived only) -> hard deleted
    - delete_after NULL -> retained indefinitely
    """
    __tablename__ = "conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_id = Column(Uuid(as_uuid=True), nullable=False)  # Sentinel once anonymized
    transcript = Column(Text, nullable=False)
    sentiment = Column(String(8), nullable=False, default=Sentiment.NEUTRAL.value)

    # Retention classification
    legal_basis = Column(String(32), nullable=False, default=LegalBasis.LEGITIMATE_INTEREST.value)
    retention_category = Column(String(32), nullable=False, default=RetentionCategory.FAMILY_MONITORING.value)
    flagged_for_safeguarding = Column(Boolean, default=False, nullable=False)
    safeguarding_notes = Column(Text, nullable=True)
    contains_health_data = Column(Boolean, default=False, nullable=False)

    # Lifecycle
    created_at = Column(DateTime, default=utcnow, nullable=False)
    archive_after = Column(DateTime, nullable=False)
    delete_after = Column(DateTime, nullable=True)  # NULL = retain indefinitely
    is_archived = Column(Boolean, default=False, nullable=False)
    anonymized_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_conversations_subject_id", "subject_id"),
        Index("ix_conversations_archive_after", "archive_after"),
        Index("ix_conversations_delete_after", "delete_after"),
        Index("ix_conversations_retention_category", "retention_category", "created_at"),
        Index("ix_conversations_flagged", "subject_id", "flagged_for_safeguarding"),
        CheckConstraint("sentiment IN ('pos', 'neu', 'neg')", name="ck_conversations_sentiment"),
        CheckConstraint(
            "legal_basis IN ('consent', 'legal_obligation', 'vital_interest', 'legitimate_interest')",
            name="ck_conversations_legal_basis",
        ),
        CheckConstraint(
            "retention_category IN ('essential_safeguarding', 'family_monitoring', 'service_improvement')",
            name="ck_conversations_retention_category",
        ),
        CheckConstraint(
            "delete_after IS NULL OR delete_after >= archive_after",
            name="ck_conversations_delete_after_archive",
        ),
    )

    @property
    def is_under_legal_hold(self) -> bool:
        return bool(self.flagged_for_safeguarding) and self.legal_basis in (
            LegalBasis.LEGAL_OBLIGATION.value,
            LegalBasis.VITAL_INTEREST.value,
        )


# -----------------------------------------------------------------------------
# ArchivedConversation
# -----------------------------------------------------------------------------

class ArchivedConversation(Base):
    """Archive envelope. Written once by the archiver, then only deleted."""
    __tablename__ = "archived_conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    original_id = Column(Uuid(as_uuid=True), nullable=False, unique=True)  # Back-reference only
    subject_id = Column(Uuid(as_uuid=True), nullable=False)
    transcript = Column(Text, nullable=False)
    sentiment = Column(String(8), nullable=False, default=Sentiment.NEUTRAL.value)
    legal_basis = Column(String(32), nullable=False)
    retention_category = Column(String(32), nullable=False)
    flagged_for_safeguarding = Column(Boolean, default=False, nullable=False)
    safeguarding_notes = Column(Text, nullable=True)
    contains_health_data = Column(Boolean, default=False, nullable=False)
    original_created_at = Column(DateTime, nullable=False)
    archived_at = Column(DateTime, default=utcnow, nullable=False)
    delete_after = Column(DateTime, nullable=True)
    last_notified_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_archived_conversations_subject", "subject_id", "archived_at"),
        Index("ix_archived_conversations_delete_after", "delete_after"),
    )

    @property
    def is_under_legal_hold(self) -> bool:
        return bool(self.flagged_for_safeguarding) and self.legal_basis in (
            LegalBasis.LEGAL_OBLIGATION.value,
            LegalBasis.VITAL_INTEREST.value,
        )


# -----------------------------------------------------------------------------
# ErasureRequest
# -----------------------------------------------------------------------------

class ErasureRequest(Base):
    """Right-to-erasure request created by the subject-rights workflow."""
    __tablename__ = "erasure_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_id = Column(Uuid(as_uuid=True), nullable=True)
    status = Column(String(16), nullable=False, default=ErasureStatus.PENDING.value)
    requested_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    deleted_count = Column(Integer, nullable=True)
    retained_count = Column(Integer, nullable=True)
    resolution_notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_erasure_requests_subject_status", "subject_id", "status"),
    )


# -----------------------------------------------------------------------------
# Audit and job bookkeeping
# -----------------------------------------------------------------------------

class LifecycleEvent(Base):
    """
    Immutable audit trail of lifecycle transitions.

    Carries record ids and counts only; never transcript text or phone numbers.
    """
    __tablename__ = "lifecycle_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid(as_uuid=True), nullable=True)  # No FK: outlives the record
    subject_id = Column(Uuid(as_uuid=True), nullable=True)
    event_type = Column(String(32), nullable=False)
    event_timestamp = Column(DateTime, default=utcnow, nullable=False)
    initiated_by = Column(String(32), nullable=False)
    event_metadata = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_lifecycle_events_conversation_id", "conversation_id"),
        Index("ix_lifecycle_events_timestamp", "event_timestamp"),
    )


class LifecycleRun(Base):
    """Summary of a lifecycle pass (archive -> anonymize -> delete -> notify)."""
    __tablename__ = "lifecycle_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_id = Column(String(36), nullable=False, unique=True, index=True)
    started_at = Column(DateTime, nullable=False)
    finished_at = Column(DateTime, nullable=False)
    duration_ms = Column(Integer, nullable=False)

    archived = Column(Integer, default=0, nullable=False)
    anonymized = Column(Integer, default=0, nullable=False)
    deleted = Column(Integer, default=0, nullable=False)
    notified = Column(Integer, default=0, nullable=False)
    notifications_failed = Column(Integer, default=0, nullable=False)

    status = Column(String(20), nullable=False)  # RunStatus
    errors = Column(JSON, default=list, nullable=False)
    trigger = Column(String(20), nullable=False)  # "scheduled", "manual", "api"

    __table_args__ = (
        Index("ix_lifecycle_runs_finished_at", "finished_at"),
    )


class JobLease(Base):
    """Advisory lease keyed by job name. Expired leases may be taken over."""
    __tablename__ = "job_leases"

    name = Column(String(64), primary_key=True)
    owner = Column(String(64), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
