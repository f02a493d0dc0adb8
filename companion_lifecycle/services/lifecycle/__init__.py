# companion_lifecycle/services/lifecycle/__init__.py
"""
Conversation retention lifecycle services.

Steps of a pass (in order):
- archive_service: copy expired live records into the archive
- anonymize_service: irreversibly de-identify analytics-opt-in records
- delete_service: hard delete expired records outside legal hold
- notify_service: warn subjects and contacts 60 days before deletion

Also:
- classifier / schedule: categorize and schedule new conversations, and
  reschedule them when a retention preference changes
- redaction: pattern-based PII redaction ruleset
- erasure_service: right-to-erasure reconciliation against legal hold
- runner: LifecycleEngine orchestrating a pass
"""

from companion_lifecycle.services.lifecycle.anonymize_service import (
    AnonymizeResult,
    anonymize_conversation,
    anonymize_conversations,
)
from companion_lifecycle.services.lifecycle.archive_service import (
    ArchiveResult,
    archive_conversations,
)
from companion_lifecycle.services.lifecycle.classifier import (
    Classification,
    classify_conversation,
)
from companion_lifecycle.services.lifecycle.delete_service import (
    DeleteResult,
    delete_expired_conversations,
)
from companion_lifecycle.services.lifecycle.erasure_service import (
    ErasureResult,
    process_erasure_request,
)
from companion_lifecycle.services.lifecycle.notify_service import (
    NotifyResult,
    notification_window,
    notify_upcoming_deletions,
)
from companion_lifecycle.services.lifecycle.redaction import (
    DEFAULT_RULES,
    RedactionRule,
    redact,
)
from companion_lifecycle.services.lifecycle.runner import (
    LifecycleEngine,
    LifecycleResult,
    build_engine,
)
from companion_lifecycle.services.lifecycle.schedule import (
    RescheduleResult,
    RetentionDates,
    build_conversation,
    compute_retention_dates,
    reschedule_subject_conversations,
)

__all__ = [
    # Classification and scheduling
    "classify_conversation",
    "Classification",
    "compute_retention_dates",
    "build_conversation",
    "RetentionDates",
    "reschedule_subject_conversations",
    "RescheduleResult",
    # Redaction
    "redact",
    "RedactionRule",
    "DEFAULT_RULES",
    # Steps
    "archive_conversations",
    "ArchiveResult",
    "anonymize_conversations",
    "anonymize_conversation",
    "AnonymizeResult",
    "delete_expired_conversations",
    "DeleteResult",
    "notify_upcoming_deletions",
    "notification_window",
    "NotifyResult",
    # Erasure
    "process_erasure_request",
    "ErasureResult",
    # Runner
    "LifecycleEngine",
    "LifecycleResult",
    "build_engine",
]
