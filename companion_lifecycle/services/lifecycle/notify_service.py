# companion_lifecycle/services/lifecycle/notify_service.py
"""
Notify service: warns subjects and their contacts ahead of deletion.

Selection is archive copies with delete_after in [now+60d, now+61d) that
have not been warned about. Warnings are grouped per subject and sent once
per phone number. A failed send is logged and never blocks other sends.
A subject's copies are stamped as notified once at least one send for that
subject succeeds, so a subject with no reachable numbers is retried.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta

from companion_lifecycle.channels.base import DEFAULT_BRAND, DeletionWarning, NotificationChannel
from companion_lifecycle.constants import NotifyWindow
from companion_lifecycle.errors import ChannelDeliveryError
from companion_lifecycle.logging_config import mask_phone
from companion_lifecycle.models import ArchivedConversation
from companion_lifecycle.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class NotifyResult:
    """Result of a notify step."""
    records_selected: int = 0
    subjects: int = 0
    sent: int = 0
    failed: int = 0
    subjects_without_recipients: int = 0


def notification_window(now: datetime) -> tuple[datetime, datetime]:
    """Half-open [start, end) window of delete_after values to warn about."""
    start = now + timedelta(days=NotifyWindow.LEAD_DAYS)
    return start, start + timedelta(days=NotifyWindow.WINDOW_DAYS)


def _group_by_subject(archives: list[ArchivedConversation]) -> dict[uuid.UUID, list[ArchivedConversation]]:
    grouped = defaultdict(list)
    for archive in archives:
        grouped[archive.subject_id].append(archive)
    return grouped


def notify_upcoming_deletions(
    store: RecordStore,
    channel: NotificationChannel,
    now: datetime,
    brand: str = DEFAULT_BRAND,
    initiated_by: str = "scheduler",
) -> NotifyResult:
    """
    Send deletion warnings for every subject with archives due in the window.

    ChannelDeliveryError is caught per recipient. Store failures propagate.
    """
    result = NotifyResult()
    start, end = notification_window(now)

    archives = store.find_archives_due_between(start, end)
    result.records_selected = len(archives)
    if not archives:
        logger.info("No upcoming deletions to warn about")
        return result

    for subject_id, subject_archives in _group_by_subject(archives).items():
        result.subjects += 1
        deletion_date = min(a.delete_after for a in subject_archives)

        recipients = store.get_notification_recipients(subject_id)
        if not recipients:
            result.subjects_without_recipients += 1
            logger.warning(f"No phone numbers on file for subject {subject_id}; deletion warning not sent")
            continue

        delivered = 0
        seen = set()
        for recipient in recipients:
            if recipient.phone_number in seen:
                continue
            seen.add(recipient.phone_number)

            warning = DeletionWarning(
                deletion_date=deletion_date,
                subject_name=recipient.subject_name,
                recipient_name=recipient.name,
                is_contact=recipient.is_contact,
                brand=brand,
            )
            try:
                channel.send(recipient.phone_number, warning)
                delivered += 1
                result.sent += 1
            except ChannelDeliveryError as e:
                result.failed += 1
                logger.warning(
                    f"Deletion warning to {mask_phone(recipient.phone_number)} failed: {e}",
                    extra={"channel": channel.name, "recipient": mask_phone(recipient.phone_number)},
                )

        if delivered:
            store.mark_notified(
                subject_archives,
                notified_at=now,
                initiated_by=initiated_by,
                recipients_notified=delivered,
            )

    logger.info(
        f"Sent {result.sent} deletion warnings for {result.subjects} subjects ({result.failed} failed)",
        extra={"records_selected": result.records_selected, "records_processed": result.sent},
    )
    return result
