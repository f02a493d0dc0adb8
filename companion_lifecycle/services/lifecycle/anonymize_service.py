# companion_lifecycle/services/lifecycle/anonymize_service.py
"""
Anonymize service for analytics-opt-in conversations.

Irreversible (GDPR Recital 26): the subject link is replaced with a fixed
sentinel and the transcript with its redacted form. Sentiment and created_at
are kept for analytics. There is no un-anonymize path.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from companion_lifecycle.constants import Anonymization
from companion_lifecycle.models import Conversation
from companion_lifecycle.services.lifecycle.redaction import RedactionRule, redact
from companion_lifecycle.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class AnonymizeResult:
    """Result of an anonymize step."""
    records_selected: int = 0
    anonymized: int = 0


def anonymize_conversation(
    store: RecordStore,
    conversation: Conversation,
    now: datetime,
    rules: Optional[Iterable[RedactionRule]] = None,
    initiated_by: str = "scheduler",
) -> None:
    """Redact and de-identify one conversation in a single commit."""
    store.apply_anonymization(
        conversation,
        redacted_transcript=redact(conversation.transcript, rules=rules),
        subject_sentinel=Anonymization.SUBJECT_SENTINEL,
        anonymized_at=now,
        initiated_by=initiated_by,
    )


def anonymize_conversations(
    store: RecordStore,
    now: datetime,
    limit: Optional[int] = None,
    rules: Optional[Iterable[RedactionRule]] = None,
    initiated_by: str = "scheduler",
) -> AnonymizeResult:
    """Anonymize every service_improvement conversation past archive_after."""
    result = AnonymizeResult()
    rules = list(rules) if rules is not None else None

    conversations = store.find_anonymizable_conversations(now, limit=limit)
    result.records_selected = len(conversations)
    if not conversations:
        logger.info("No conversations ready for anonymization")
        return result

    for conversation in conversations:
        anonymize_conversation(store, conversation, now, rules=rules, initiated_by=initiated_by)
        result.anonymized += 1

    logger.info(
        f"Anonymized {result.anonymized} conversations",
        extra={"records_selected": result.records_selected, "records_processed": result.anonymized},
    )
    return result
