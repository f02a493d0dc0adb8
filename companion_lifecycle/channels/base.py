# companion_lifecycle/channels/base.py
"""
Abstract base class for deletion warning channels.

Design principles:
- One call sends one message to one phone number
- Failures raise ChannelDeliveryError; the caller decides whether to continue
- Message wording lives with the warning, not the transport
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from companion_lifecycle.utils.time_utils import format_deletion_date

DEFAULT_BRAND = "Grace Companion"


@dataclass(frozen=True)
class DeletionWarning:
    """A single upcoming-deletion warning addressed to one recipient."""
    deletion_date: datetime
    subject_name: Optional[str] = None
    recipient_name: Optional[str] = None
    is_contact: bool = False
    brand: str = DEFAULT_BRAND

    def render(self) -> str:
        """Render the SMS body for this recipient."""
        date = format_deletion_date(self.deletion_date)
        if self.is_contact:
            return (
                f"{self.brand}: Conversation data for your loved one will be automatically "
                f"deleted on {date}. If you need to keep this data longer, please contact "
                f"support or adjust retention settings in your dashboard."
            )
        name = self.subject_name or self.recipient_name or "there"
        return (
            f"{self.brand}: Hello {name}, your conversation data will be automatically "
            f"deleted on {date} as part of our privacy policy. If you need to keep this "
            f"data longer, please contact support or adjust settings in your account."
        )


class NotificationChannel(ABC):
    """
    Abstract interface for outbound deletion warnings.

    Implementations:
    - TwilioSmsChannel: Twilio Messages REST API over httpx
    - LogNotificationChannel: logs the rendered message (development/tests)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name (e.g., 'twilio', 'log')."""
        pass

    @abstractmethod
    def send(self, phone_number: str, warning: DeletionWarning) -> Optional[str]:
        """
        Deliver one warning.

        Args:
            phone_number: Recipient in E.164 format
            warning: Warning to render and send

        Returns:
            Provider message id, if the channel has one

        Raises:
            ChannelDeliveryError: If the message could not be delivered
        """
        pass
