# companion_lifecycle/channels/log_channel.py
"""
Logging channel for development.

Renders each warning and logs it instead of sending it. Sent messages are
kept in memory so callers can inspect them.
"""

import logging
from typing import Optional

from companion_lifecycle.channels.base import DeletionWarning, NotificationChannel
from companion_lifecycle.logging_config import mask_phone

logger = logging.getLogger(__name__)


class LogNotificationChannel(NotificationChannel):
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "log"

    def send(self, phone_number: str, warning: DeletionWarning) -> Optional[str]:
        body = warning.render()
        self.sent.append((phone_number, body))
        logger.info(
            f"[SMS] to={mask_phone(phone_number)} body={body}",
            extra={"channel": self.name, "recipient": mask_phone(phone_number)},
        )
        return None
