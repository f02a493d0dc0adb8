"""Unit tests for the deletion warning step."""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock


def _failing_for(*phone_numbers):
    """Channel mock that fails for the given numbers and succeeds otherwise."""
    from companion_lifecycle.errors import ChannelDeliveryError

    channel = MagicMock()
    channel.name = "mock"

    def _send(phone_number, warning):
        if phone_number in phone_numbers:
            raise ChannelDeliveryError("provider rejected message", phone_number=phone_number)
        return "SM123"

    channel.send.side_effect = _send
    return channel


class TestNotificationWindow:
    """Only archives due 60 to 61 days out are warned about."""

    def test_window_boundaries(self, store, make_archive, make_person, now):
        from companion_lifecycle.channels.log_channel import LogNotificationChannel
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        phones = {}
        for i, offset in enumerate((59.9, 60.5, 61.1)):
            subject = make_person(name="Edith", phone_number=f"+44770090000{i}")
            make_archive(subject_id=subject.id, delete_after=now + timedelta(days=offset))
            phones[offset] = subject.phone_number

        channel = LogNotificationChannel()
        result = notify_upcoming_deletions(store, channel, now)

        assert result.records_selected == 1
        assert result.sent == 1
        assert [phone for phone, _ in channel.sent] == [phones[60.5]]

    def test_exact_start_included_and_end_excluded(self, store, make_archive, make_person, now):
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        start_subject = make_person(phone_number="+447700900001")
        end_subject = make_person(phone_number="+447700900002")
        make_archive(subject_id=start_subject.id, delete_after=now + timedelta(days=60))
        make_archive(subject_id=end_subject.id, delete_after=now + timedelta(days=61))

        channel = _failing_for()
        notify_upcoming_deletions(store, channel, now)

        assert [c.args[0] for c in channel.send.call_args_list] == ["+447700900001"]

    def test_notification_window_helper(self, now):
        from companion_lifecycle.services.lifecycle.notify_service import notification_window

        start, end = notification_window(now)

        assert start == now + timedelta(days=60)
        assert end == now + timedelta(days=61)


class TestRecipients:
    def test_subject_and_every_contact_warned(self, store, make_archive, make_person, now):
        from companion_lifecycle.channels.log_channel import LogNotificationChannel
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        subject = make_person(name="Edith", phone_number="+447700900001")
        make_person(name="Alice", phone_number="+447700900002", contact_of=subject.id)
        make_person(name="Bob", phone_number="+447700900003", contact_of=subject.id)
        make_archive(subject_id=subject.id, delete_after=now + timedelta(days=60, hours=12))
        make_archive(subject_id=subject.id, delete_after=now + timedelta(days=60, hours=18))

        channel = LogNotificationChannel()
        result = notify_upcoming_deletions(store, channel, now, brand="Grace Companion")

        assert result.subjects == 1
        assert result.sent == 3
        bodies = dict(channel.sent)
        assert bodies["+447700900001"].startswith("Grace Companion: Hello Edith, your conversation data")
        assert "31 July 2026" in bodies["+447700900001"]
        assert bodies["+447700900002"].startswith("Grace Companion: Conversation data for your loved one")
        assert "Edith" not in bodies["+447700900002"]

    def test_duplicate_numbers_warned_once(self, store, make_archive, make_person, now):
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        subject = make_person(name="Edith", phone_number="+447700900001")
        make_person(name="Alice", phone_number="+447700900001", contact_of=subject.id)
        make_archive(subject_id=subject.id, delete_after=now + timedelta(days=60, hours=12))

        channel = _failing_for()
        result = notify_upcoming_deletions(store, channel, now)

        assert result.sent == 1
        assert channel.send.call_count == 1

    def test_subject_without_numbers_is_retried_later(self, store, make_archive, now):
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        archive = make_archive(subject_id=uuid.uuid4(), delete_after=now + timedelta(days=60, hours=12))

        result = notify_upcoming_deletions(store, _failing_for(), now)

        assert result.subjects_without_recipients == 1
        assert archive.last_notified_at is None


class TestDeliveryFailures:
    def test_one_failure_does_not_block_others(self, store, make_archive, make_person, now):
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        subject = make_person(name="Edith", phone_number="+447700900001")
        make_person(name="Alice", phone_number="+447700900002", contact_of=subject.id)
        make_person(name="Bob", phone_number="+447700900003", contact_of=subject.id)
        archive = make_archive(subject_id=subject.id, delete_after=now + timedelta(days=60, hours=12))

        channel = _failing_for("+447700900002")
        result = notify_upcoming_deletions(store, channel, now)

        assert channel.send.call_count == 3
        assert result.sent == 2
        assert result.failed == 1
        assert archive.last_notified_at == now

    def test_all_failures_leave_archives_unstamped(self, store, make_archive, make_person, now):
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        subject = make_person(name="Edith", phone_number="+447700900001")
        archive = make_archive(subject_id=subject.id, delete_after=now + timedelta(days=60, hours=12))

        result = notify_upcoming_deletions(store, _failing_for("+447700900001"), now)

        assert result.failed == 1
        assert archive.last_notified_at is None
        # Retried on the next pass
        assert notify_upcoming_deletions(store, _failing_for(), now + timedelta(hours=1)).sent == 1


class TestDeduplication:
    def test_already_warned_archives_skipped(self, store, make_archive, make_person, now):
        from companion_lifecycle.models import LifecycleEvent
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        subject = make_person(name="Edith", phone_number="+447700900001")
        make_archive(subject_id=subject.id, delete_after=now + timedelta(days=60, hours=23))

        first = notify_upcoming_deletions(store, _failing_for(), now)
        second = notify_upcoming_deletions(store, _failing_for(), now + timedelta(hours=12))

        assert first.sent == 1
        assert second.sent == 0
        event = store.session.query(LifecycleEvent).one()
        assert event.event_type == "deletion_warning_sent"
        assert event.event_metadata["recipients_notified"] == 1

    def test_legal_hold_archives_not_warned(self, store, make_archive, make_person, now):
        from companion_lifecycle.services.lifecycle.notify_service import notify_upcoming_deletions

        subject = make_person(name="Edith", phone_number="+447700900001")
        make_archive(
            subject_id=subject.id,
            delete_after=now + timedelta(days=60, hours=12),
            flagged_for_safeguarding=True,
            legal_basis="legal_obligation",
        )

        assert notify_upcoming_deletions(store, _failing_for(), now).records_selected == 0
