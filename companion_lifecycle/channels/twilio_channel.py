# companion_lifecycle/channels/twilio_channel.py
"""
Twilio SMS channel.

Posts to the Twilio Messages REST API with basic auth. Numbers are validated
as E.164 before any request is made.
"""

import logging
import re
from typing import Optional

import httpx

from companion_lifecycle.channels.base import DeletionWarning, NotificationChannel
from companion_lifecycle.errors import ChannelDeliveryError
from companion_lifecycle.logging_config import mask_phone

logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


def is_valid_e164(phone_number: Optional[str]) -> bool:
    return bool(phone_number) and bool(E164_PATTERN.match(phone_number))


class TwilioSmsChannel(NotificationChannel):
    """
    Twilio Messages API channel.

    Usage:
        channel = TwilioSmsChannel(account_sid="AC...", auth_token="...", from_number="+44...")
        channel.send("+447700900123", warning)
    """

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        api_base: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 10.0,
    ):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "twilio"

    @property
    def messages_url(self) -> str:
        return f"{self._api_base}/Accounts/{self._account_sid}/Messages.json"

    def send(self, phone_number: str, warning: DeletionWarning) -> Optional[str]:
        if not (self._account_sid and self._auth_token and self._from_number):
            raise ChannelDeliveryError("Twilio credentials not configured", phone_number=phone_number)

        if not is_valid_e164(phone_number):
            raise ChannelDeliveryError(
                "Invalid phone number format. Must be E.164 format (e.g., +447700900123)",
                phone_number=phone_number,
            )

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(
                    self.messages_url,
                    auth=(self._account_sid, self._auth_token),
                    data={
                        "To": phone_number,
                        "From": self._from_number,
                        "Body": warning.render(),
                    },
                )
        except httpx.TimeoutException as e:
            raise ChannelDeliveryError(f"Twilio request timed out: {e}", phone_number=phone_number) from e
        except httpx.HTTPError as e:
            raise ChannelDeliveryError(f"Twilio request failed: {e}", phone_number=phone_number) from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            raise ChannelDeliveryError(
                f"Twilio error {response.status_code}: {detail}",
                phone_number=phone_number,
            )

        message_sid = None
        try:
            message_sid = response.json().get("sid")
        except ValueError:
            logger.debug("[TWILIO] Response body was not JSON")

        logger.info(
            f"[TWILIO] Deletion warning sent to {mask_phone(phone_number)}",
            extra={"channel": self.name, "recipient": mask_phone(phone_number)},
        )
        return message_sid
