"""
Notification channels for deletion warnings.

SMS via Twilio in production; a logging channel for development and tests.
"""

from companion_lifecycle.channels.base import DeletionWarning, NotificationChannel
from companion_lifecycle.channels.factory import (
    get_notification_channel,
    reset_notification_channel,
    set_notification_channel,
)
from companion_lifecycle.channels.log_channel import LogNotificationChannel
from companion_lifecycle.channels.twilio_channel import TwilioSmsChannel

__all__ = [
    "NotificationChannel",
    "DeletionWarning",
    "TwilioSmsChannel",
    "LogNotificationChannel",
    "get_notification_channel",
    "set_notification_channel",
    "reset_notification_channel",
]
