"""Unit tests for retention classification."""

import pytest


class TestSafeguardingClassification:
    """Tests for classify_conversation() safeguarding detection."""

    def test_fall_and_pain_with_negative_sentiment(self):
        """A fall with pain and negative sentiment is essential safeguarding."""
        from companion_lifecycle.models import RetentionCategory
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("I fell and I'm in a lot of pain", "neg")

        assert result.retention_category == RetentionCategory.ESSENTIAL_SAFEGUARDING
        assert result.flagged_for_safeguarding is True
        assert result.contains_health_data is True  # "pain" is clinical too
        assert result.safeguarding_notes == "Auto-flagged: Found keywords [fell, pain]. Sentiment: neg"

    def test_negative_sentiment_alone_flags(self):
        """Negative sentiment flags even without keywords."""
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("we talked about the garden", "neg")

        assert result.flagged_for_safeguarding is True
        assert result.safeguarding_notes == "Auto-flagged: Found keywords []. Sentiment: neg"

    def test_keywords_flag_with_positive_sentiment(self):
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("I haven't eaten since yesterday", "pos")

        assert result.flagged_for_safeguarding is True
        assert "haven't eaten" in result.safeguarding_notes
        assert result.safeguarding_notes.endswith("Sentiment: pos")

    def test_matching_is_case_insensitive(self):
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("HELP ME please", "neu")

        assert result.flagged_for_safeguarding is True
        assert result.matched_keywords == ["help me"]

    def test_substring_matching(self):
        """Keywords match inside longer words."""
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("the waterfall was lovely", "pos")

        assert result.flagged_for_safeguarding is True
        assert result.matched_keywords == ["fall"]


class TestRoutineClassification:
    """Tests for unflagged transcripts."""

    def test_benign_transcript_is_family_monitoring(self):
        from companion_lifecycle.models import RetentionCategory
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("we talked about the garden and the birds", "pos")

        assert result.retention_category == RetentionCategory.FAMILY_MONITORING
        assert result.flagged_for_safeguarding is False
        assert result.contains_health_data is False
        assert result.safeguarding_notes is None

    def test_health_terms_without_distress(self):
        """Clinical vocabulary sets the health flag without safeguarding."""
        from companion_lifecycle.models import RetentionCategory
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        result = classify_conversation("the doctor changed my medication", "neu")

        assert result.retention_category == RetentionCategory.FAMILY_MONITORING
        assert result.flagged_for_safeguarding is False
        assert result.contains_health_data is True

    @pytest.mark.parametrize("sentiment", ["pos", "neu", "neg"])
    def test_never_produces_service_improvement(self, sentiment):
        from companion_lifecycle.models import RetentionCategory
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        for transcript in ["", "hello", "I fell over", "my heart medication"]:
            result = classify_conversation(transcript, sentiment)
            assert result.retention_category != RetentionCategory.SERVICE_IMPROVEMENT

    def test_unknown_sentiment_rejected(self):
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        with pytest.raises(ValueError):
            classify_conversation("hello", "angry")

    def test_as_dict_uses_string_values(self):
        from companion_lifecycle.services.lifecycle.classifier import classify_conversation

        data = classify_conversation("hello", "neu").as_dict()

        assert data == {
            "retention_category": "family_monitoring",
            "flagged_for_safeguarding": False,
            "contains_health_data": False,
            "safeguarding_notes": None,
        }
