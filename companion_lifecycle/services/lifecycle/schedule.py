# companion_lifecycle/services/lifecycle/schedule.py
"""
Retention schedule for new conversations, and rescheduling when a
subject changes their retention preference.

- essential_safeguarding: archive +2 years, delete +7 years
  (no delete date at all when under legal hold)
- family_monitoring: archive +N months (12..84), delete +N+12 months
- service_improvement: anonymize at +6 months, never deleted
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from companion_lifecycle.constants import LEGAL_HOLD_BASES, RetentionWindows
from companion_lifecycle.errors import ValidationError
from companion_lifecycle.models import Conversation, LegalBasis, RetentionCategory, Sentiment
from companion_lifecycle.services.lifecycle.classifier import classify_conversation
from companion_lifecycle.store.base import RecordStore
from companion_lifecycle.utils.time_utils import add_months, add_years, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionDates:
    archive_after: datetime
    delete_after: Optional[datetime]  # None = retain indefinitely


@dataclass
class RescheduleResult:
    """Result of applying a new retention preference to a subject."""
    subject_id: uuid.UUID
    retention_months: int
    rescheduled: int = 0


def _check_retention_months(retention_months: int) -> None:
    if not (
        RetentionWindows.MONITORING_MIN_MONTHS
        <= retention_months
        <= RetentionWindows.MONITORING_MAX_MONTHS
    ):
        raise ValidationError(
            f"retention_months must be between {RetentionWindows.MONITORING_MIN_MONTHS} "
            f"and {RetentionWindows.MONITORING_MAX_MONTHS}, got {retention_months}"
        )


def compute_retention_dates(
    created_at: datetime,
    category: RetentionCategory | str,
    legal_basis: LegalBasis | str = LegalBasis.LEGITIMATE_INTEREST,
    flagged_for_safeguarding: bool = False,
    retention_months: int = RetentionWindows.MONITORING_DEFAULT_MONTHS,
) -> RetentionDates:
    """
    Compute archive_after / delete_after for a conversation.

    Args:
        created_at: Conversation creation time (naive UTC)
        category: Retention category
        legal_basis: Lawful ground for processing
        flagged_for_safeguarding: Safeguarding flag from classification
        retention_months: Family monitoring window chosen by the account

    Raises:
        ValidationError: If retention_months is outside 12..84
    """
    category = RetentionCategory(category)
    legal_basis = LegalBasis(legal_basis)

    if category == RetentionCategory.ESSENTIAL_SAFEGUARDING:
        archive_after = add_years(created_at, RetentionWindows.SAFEGUARDING_ARCHIVE_YEARS)
        if flagged_for_safeguarding and legal_basis.value in LEGAL_HOLD_BASES:
            return RetentionDates(archive_after=archive_after, delete_after=None)
        return RetentionDates(
            archive_after=archive_after,
            delete_after=add_years(created_at, RetentionWindows.SAFEGUARDING_DELETE_YEARS),
        )

    if category == RetentionCategory.FAMILY_MONITORING:
        _check_retention_months(retention_months)
        return RetentionDates(
            archive_after=add_months(created_at, retention_months),
            delete_after=add_months(
                created_at, retention_months + RetentionWindows.MONITORING_DELETE_GRACE_MONTHS
            ),
        )

    return RetentionDates(
        archive_after=add_months(created_at, RetentionWindows.IMPROVEMENT_ANONYMIZE_MONTHS),
        delete_after=None,
    )


def build_conversation(
    subject_id: uuid.UUID,
    transcript: str,
    sentiment: Sentiment | str,
    legal_basis: LegalBasis | str = LegalBasis.LEGITIMATE_INTEREST,
    created_at: Optional[datetime] = None,
    retention_months: int = RetentionWindows.MONITORING_DEFAULT_MONTHS,
    analytics_consent: bool = False,
) -> Conversation:
    """
    Classify and schedule a new conversation for the upstream pipeline.

    Safeguarding classification always wins over analytics consent: a
    flagged transcript is never routed to anonymization.
    """
    created_at = created_at or utcnow()
    legal_basis = LegalBasis(legal_basis)
    classification = classify_conversation(transcript, sentiment)

    category = classification.retention_category
    if analytics_consent and not classification.flagged_for_safeguarding:
        category = RetentionCategory.SERVICE_IMPROVEMENT

    dates = compute_retention_dates(
        created_at,
        category,
        legal_basis=legal_basis,
        flagged_for_safeguarding=classification.flagged_for_safeguarding,
        retention_months=retention_months,
    )

    return Conversation(
        subject_id=subject_id,
        transcript=transcript,
        sentiment=Sentiment(sentiment).value,
        legal_basis=legal_basis.value,
        retention_category=category.value,
        flagged_for_safeguarding=classification.flagged_for_safeguarding,
        safeguarding_notes=classification.safeguarding_notes,
        contains_health_data=classification.contains_health_data,
        created_at=created_at,
        archive_after=dates.archive_after,
        delete_after=dates.delete_after,
        is_archived=False,
    )


def reschedule_subject_conversations(
    store: RecordStore,
    subject_id: uuid.UUID,
    retention_months: int,
    initiated_by: str = "preference_change",
) -> RescheduleResult:
    """
    Apply a subject's new family-monitoring retention preference.

    Only live, unflagged family_monitoring records follow the preference;
    archived, safeguarding and analytics records keep their dates. Dates are
    recomputed from each record's created_at, so a shorter window can make
    records due on the next pass.

    Raises:
        ValidationError: If retention_months is outside 12..84 or subject_id
            is not a UUID
    """
    _check_retention_months(retention_months)
    if not isinstance(subject_id, uuid.UUID):
        try:
            subject_id = uuid.UUID(str(subject_id).strip())
        except ValueError as e:
            raise ValidationError(f"subject_id is not a valid UUID: {subject_id}") from e

    result = RescheduleResult(subject_id=subject_id, retention_months=retention_months)
    conversations = store.find_reschedulable_conversations(subject_id)
    if not conversations:
        logger.info(f"No conversations to reschedule for subject {subject_id}")
        return result

    updates = []
    for conversation in conversations:
        dates = compute_retention_dates(
            conversation.created_at,
            RetentionCategory.FAMILY_MONITORING,
            legal_basis=conversation.legal_basis,
            retention_months=retention_months,
        )
        updates.append((conversation, dates.archive_after, dates.delete_after))

    store.apply_retention_dates(updates, initiated_by=initiated_by, retention_months=retention_months)
    result.rescheduled = len(updates)

    logger.info(
        f"Rescheduled {result.rescheduled} conversations for subject {subject_id} "
        f"to {retention_months} months",
        extra={"records_processed": result.rescheduled},
    )
    return result
