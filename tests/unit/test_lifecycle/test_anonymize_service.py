"""Unit tests for the anonymize step."""

import uuid
from datetime import timedelta


class TestAnonymizeConversations:
    """Tests for anonymize_conversations()."""

    def test_anonymizes_in_place(self, store, make_conversation, now):
        from companion_lifecycle.constants import Anonymization
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        subject_id = uuid.uuid4()
        conversation = make_conversation(
            subject_id=subject_id,
            transcript="Margaret called from 07700 900123 about 12 oak road",
            sentiment="pos",
            retention_category="service_improvement",
            legal_basis="consent",
        )
        created_at = conversation.created_at

        result = anonymize_conversations(store, now)

        assert result.anonymized == 1
        assert conversation.subject_id == Anonymization.SUBJECT_SENTINEL
        assert conversation.transcript == "[NAME] called from [PHONE] about [ADDRESS]"
        assert conversation.anonymized_at == now
        assert conversation.sentiment == "pos"
        assert conversation.created_at == created_at
        assert conversation.is_archived is False

    def test_free_text_notes_cleared(self, store, make_conversation, now):
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        conversation = make_conversation(retention_category="service_improvement", legal_basis="consent")
        conversation.safeguarding_notes = "Margaret's daughter rang on 07700 900123"
        store.session.commit()

        anonymize_conversations(store, now)

        store.session.refresh(conversation)
        assert conversation.safeguarding_notes is None
        assert conversation.anonymized_at == now

    def test_second_pass_is_noop(self, store, make_conversation, now):
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        conversation = make_conversation(
            transcript="Margaret says hello", retention_category="service_improvement", legal_basis="consent"
        )

        anonymize_conversations(store, now)
        second = anonymize_conversations(store, now + timedelta(days=1))

        assert second.anonymized == 0
        assert conversation.transcript == "[NAME] says hello"
        assert conversation.anonymized_at == now

    def test_anonymized_record_never_archived(self, store, make_conversation, now):
        """Scenario: opted-in record past archive_after is anonymized, never archived."""
        from companion_lifecycle.constants import Anonymization
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations
        from companion_lifecycle.services.lifecycle.archive_service import archive_conversations

        conversation = make_conversation(retention_category="service_improvement", legal_basis="consent")

        anonymize_conversations(store, now)

        assert store.find_archivable_conversations(now + timedelta(days=3650)) == []
        assert archive_conversations(store, now + timedelta(days=3650)).archived == 0
        assert conversation.subject_id == Anonymization.SUBJECT_SENTINEL

    def test_anonymized_record_ignores_delete_after(self, store, make_conversation, now):
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        make_conversation(
            retention_category="service_improvement",
            legal_basis="consent",
            is_archived=True,
            delete_after=now + timedelta(days=1),
        )
        anonymize_conversations(store, now)

        assert store.find_expired_archived_conversations(now + timedelta(days=30)) == []

    def test_audit_event_drops_subject_link(self, store, make_conversation, now):
        from companion_lifecycle.models import LifecycleEvent
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        conversation = make_conversation(retention_category="service_improvement", legal_basis="consent")

        anonymize_conversations(store, now)

        event = store.session.query(LifecycleEvent).one()
        assert event.event_type == "anonymized"
        assert event.conversation_id == conversation.id
        assert event.subject_id is None

    def test_other_categories_untouched(self, store, make_conversation, now):
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        subject_id = uuid.uuid4()
        conversation = make_conversation(subject_id=subject_id, transcript="Margaret says hello")

        assert anonymize_conversations(store, now).anonymized == 0
        assert conversation.subject_id == subject_id
        assert conversation.transcript == "Margaret says hello"

    def test_not_yet_due(self, store, make_conversation, now):
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations

        make_conversation(
            retention_category="service_improvement",
            legal_basis="consent",
            archive_after=now + timedelta(days=1),
        )

        assert anonymize_conversations(store, now).anonymized == 0

    def test_custom_rules(self, store, make_conversation, now):
        from companion_lifecycle.services.lifecycle.anonymize_service import anonymize_conversations
        from companion_lifecycle.services.lifecycle.redaction import EMAIL_RULE

        conversation = make_conversation(
            transcript="Margaret wrote to jo@example.com",
            retention_category="service_improvement",
            legal_basis="consent",
        )

        anonymize_conversations(store, now, rules=[EMAIL_RULE])

        assert conversation.transcript == "Margaret wrote to [EMAIL]"
