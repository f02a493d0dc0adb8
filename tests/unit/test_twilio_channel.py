# tests/unit/test_twilio_channel.py
"""
Unit tests for deletion warning channels.

Covers:
- Warning message templates for subjects and contacts
- Twilio request shape and provider message id
- E.164 validation and missing credentials
- HTTP error and timeout handling
- Channel factory selection
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from companion_lifecycle.channels.base import DeletionWarning
from companion_lifecycle.channels.twilio_channel import TwilioSmsChannel, is_valid_e164
from companion_lifecycle.errors import ChannelDeliveryError

DELETION_DATE = datetime(2026, 7, 31, 12, 0, 0)


def _channel(**overrides):
    kwargs = {
        "account_sid": "AC123",
        "auth_token": "secret",
        "from_number": "+447700900999",
        "api_base": "https://api.example.test/2010-04-01",
    }
    kwargs.update(overrides)
    return TwilioSmsChannel(**kwargs)


def _mock_client(mock_client_cls, status_code=201, json_body=None):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = json_body if json_body is not None else {"sid": "SM42"}
    mock_response.text = "body"

    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.post.return_value = mock_response
    mock_client_cls.return_value = mock_client
    return mock_client


# ---------------------------------------------------------------------------
# DeletionWarning
# ---------------------------------------------------------------------------


class TestDeletionWarning:
    def test_subject_message(self):
        body = DeletionWarning(deletion_date=DELETION_DATE, subject_name="Edith").render()

        assert body == (
            "Grace Companion: Hello Edith, your conversation data will be automatically "
            "deleted on 31 July 2026 as part of our privacy policy. If you need to keep this "
            "data longer, please contact support or adjust settings in your account."
        )

    def test_contact_message_omits_subject_name(self):
        body = DeletionWarning(
            deletion_date=DELETION_DATE, subject_name="Edith", recipient_name="Alice", is_contact=True
        ).render()

        assert body.startswith("Grace Companion: Conversation data for your loved one")
        assert "31 July 2026" in body
        assert "Edith" not in body

    def test_custom_brand(self):
        body = DeletionWarning(deletion_date=DELETION_DATE, subject_name="Edith", brand="Acme Care").render()

        assert body.startswith("Acme Care: Hello Edith")


# ---------------------------------------------------------------------------
# TwilioSmsChannel
# ---------------------------------------------------------------------------


class TestE164:
    @pytest.mark.parametrize("number", ["+447700900123", "+14155550100"])
    def test_valid(self, number):
        assert is_valid_e164(number) is True

    @pytest.mark.parametrize("number", [None, "", "07700900123", "+0447700900123", "+44 7700 900123"])
    def test_invalid(self, number):
        assert is_valid_e164(number) is False


class TestTwilioSend:
    @patch("companion_lifecycle.channels.twilio_channel.httpx.Client")
    def test_success_returns_message_sid(self, mock_client_cls):
        mock_client = _mock_client(mock_client_cls)
        warning = DeletionWarning(deletion_date=DELETION_DATE, subject_name="Edith")

        sid = _channel().send("+447700900123", warning)

        assert sid == "SM42"
        url = mock_client.post.call_args.args[0]
        assert url == "https://api.example.test/2010-04-01/Accounts/AC123/Messages.json"
        kwargs = mock_client.post.call_args.kwargs
        assert kwargs["auth"] == ("AC123", "secret")
        assert kwargs["data"]["To"] == "+447700900123"
        assert kwargs["data"]["From"] == "+447700900999"
        assert kwargs["data"]["Body"] == warning.render()

    @patch("companion_lifecycle.channels.twilio_channel.httpx.Client")
    def test_invalid_number_not_sent(self, mock_client_cls):
        with pytest.raises(ChannelDeliveryError) as exc_info:
            _channel().send("07700900123", DeletionWarning(deletion_date=DELETION_DATE))

        assert exc_info.value.phone_number == "07700900123"
        mock_client_cls.assert_not_called()

    @patch("companion_lifecycle.channels.twilio_channel.httpx.Client")
    def test_missing_credentials(self, mock_client_cls):
        with pytest.raises(ChannelDeliveryError, match="credentials"):
            _channel(auth_token=None).send("+447700900123", DeletionWarning(deletion_date=DELETION_DATE))

        mock_client_cls.assert_not_called()

    @patch("companion_lifecycle.channels.twilio_channel.httpx.Client")
    def test_provider_error(self, mock_client_cls):
        _mock_client(mock_client_cls, status_code=400, json_body={"message": "Unsubscribed recipient"})

        with pytest.raises(ChannelDeliveryError, match="Unsubscribed recipient"):
            _channel().send("+447700900123", DeletionWarning(deletion_date=DELETION_DATE))

    @patch("companion_lifecycle.channels.twilio_channel.httpx.Client")
    def test_timeout(self, mock_client_cls):
        mock_client = _mock_client(mock_client_cls)
        mock_client.post.side_effect = httpx.TimeoutException("timed out")

        with pytest.raises(ChannelDeliveryError, match="timed out"):
            _channel().send("+447700900123", DeletionWarning(deletion_date=DELETION_DATE))

    @patch("companion_lifecycle.channels.twilio_channel.httpx.Client")
    def test_connection_error(self, mock_client_cls):
        mock_client = _mock_client(mock_client_cls)
        mock_client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ChannelDeliveryError, match="request failed"):
            _channel().send("+447700900123", DeletionWarning(deletion_date=DELETION_DATE))


# ---------------------------------------------------------------------------
# LogNotificationChannel
# ---------------------------------------------------------------------------


class TestLogChannel:
    def test_records_rendered_message(self):
        from companion_lifecycle.channels.log_channel import LogNotificationChannel

        channel = LogNotificationChannel()
        warning = DeletionWarning(deletion_date=DELETION_DATE, subject_name="Edith")

        assert channel.send("+447700900123", warning) is None
        assert channel.sent == [("+447700900123", warning.render())]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestChannelFactory:
    @pytest.fixture(autouse=True)
    def _reset(self):
        from companion_lifecycle.channels.factory import reset_notification_channel

        reset_notification_channel()
        yield
        reset_notification_channel()

    @patch("companion_lifecycle.channels.factory.get_settings")
    def test_log_channel_from_settings(self, mock_settings):
        from companion_lifecycle.channels.factory import get_notification_channel

        mock_settings.return_value = MagicMock(NOTIFICATION_CHANNEL="log")

        channel = get_notification_channel()

        assert channel.name == "log"
        assert get_notification_channel() is channel

    @patch("companion_lifecycle.channels.factory.get_settings")
    def test_twilio_channel_from_settings(self, mock_settings):
        from companion_lifecycle.channels.factory import get_notification_channel

        mock_settings.return_value = MagicMock(
            NOTIFICATION_CHANNEL="twilio",
            TWILIO_ACCOUNT_SID="AC123",
            TWILIO_AUTH_TOKEN="secret",
            TWILIO_PHONE_NUMBER="+447700900999",
            TWILIO_API_BASE="https://api.example.test/2010-04-01",
            SMS_TIMEOUT_SECONDS=5.0,
        )

        assert isinstance(get_notification_channel(), TwilioSmsChannel)

    @patch("companion_lifecycle.channels.factory.get_settings")
    def test_unknown_channel(self, mock_settings):
        from companion_lifecycle.channels.factory import get_notification_channel

        mock_settings.return_value = MagicMock(NOTIFICATION_CHANNEL="pigeon")

        with pytest.raises(ValueError, match="Unknown notification channel"):
            get_notification_channel()

    def test_set_channel_overrides_settings(self):
        from companion_lifecycle.channels.factory import get_notification_channel, set_notification_channel

        custom = MagicMock()
        set_notification_channel(custom)

        assert get_notification_channel() is custom
