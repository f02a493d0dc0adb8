# companion_lifecycle/channels/factory.py
"""
Factory function for creating notification channels.
"""

import logging
from typing import Optional

from companion_lifecycle.channels.base import NotificationChannel
from companion_lifecycle.config import get_settings

logger = logging.getLogger(__name__)

# Global singleton instance
_notification_channel: Optional[NotificationChannel] = None


def get_notification_channel(channel_name: Optional[str] = None) -> NotificationChannel:
    """
    Get or create the notification channel instance.

    Args:
        channel_name: 'twilio' or 'log' (default from NOTIFICATION_CHANNEL)

    Returns:
        NotificationChannel instance (singleton)
    """
    global _notification_channel

    if _notification_channel is not None:
        return _notification_channel

    settings = get_settings()
    name = (channel_name or settings.NOTIFICATION_CHANNEL).lower().strip()

    if name == "twilio":
        from companion_lifecycle.channels.twilio_channel import TwilioSmsChannel
        _notification_channel = TwilioSmsChannel(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
            api_base=settings.TWILIO_API_BASE,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
        if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
            logger.warning("Twilio channel selected but credentials are missing; sends will fail")
    elif name == "log":
        from companion_lifecycle.channels.log_channel import LogNotificationChannel
        _notification_channel = LogNotificationChannel()
    else:
        raise ValueError(f"Unknown notification channel: {name}. Available: twilio, log")

    logger.info(f"Notification channel initialized: {_notification_channel.name}")
    return _notification_channel


def set_notification_channel(channel: NotificationChannel) -> None:
    """
    Set a custom notification channel (useful for testing).
    """
    global _notification_channel
    _notification_channel = channel


def reset_notification_channel() -> None:
    """
    Reset the notification channel singleton (for testing).
    """
    global _notification_channel
    _notification_channel = None
