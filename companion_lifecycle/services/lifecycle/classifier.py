# companion_lifecycle/services/lifecycle/classifier.py
"""
Retention classification using simple keyword heuristics.

Categories produced:
1. essential_safeguarding (distress/harm/neglect terms or negative sentiment)
2. family_monitoring (everything else)

service_improvement is an explicit consent choice made elsewhere and is
never produced here.
"""

from dataclasses import dataclass, field
from typing import Optional

from companion_lifecycle.models import RetentionCategory, Sentiment


# Distress, harm and neglect vocabulary
SAFEGUARDING_KEYWORDS = [
    "fall", "fell", "hurt", "pain", "injury", "accident",
    "confused", "lost", "scared", "afraid", "frightened",
    "help me", "emergency", "urgent", "danger",
    "abuse", "neglect", "harm",
    "can't remember", "don't know where",
    "haven't eaten", "no food", "hungry",
    "cold", "freezing", "heating",
]

# Clinical vocabulary (GDPR Article 9 special category data)
HEALTH_KEYWORDS = [
    "medication", "medicine", "pill", "prescription", "doctor", "hospital",
    "diagnosis", "treatment", "symptom", "pain", "disease", "illness",
    "blood pressure", "diabetes", "heart", "cancer",
    "dementia", "alzheimer", "memory loss",
]


@dataclass
class Classification:
    """Result of classifying one transcript."""
    retention_category: RetentionCategory
    flagged_for_safeguarding: bool
    contains_health_data: bool
    safeguarding_notes: Optional[str] = None
    matched_keywords: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "retention_category": self.retention_category.value,
            "flagged_for_safeguarding": self.flagged_for_safeguarding,
            "contains_health_data": self.contains_health_data,
            "safeguarding_notes": self.safeguarding_notes,
        }


def _match(text: str, vocabulary: list[str]) -> list[str]:
    return [keyword for keyword in vocabulary if keyword in text]


def classify_conversation(transcript: str, sentiment: Sentiment | str) -> Classification:
    """
    Classify a transcript for retention.

    Matching is case-insensitive substring matching, so "fall" also
    matches "fallen" and "waterfall".
    """
    sentiment = Sentiment(sentiment)
    text = (transcript or "").lower()

    detected = _match(text, SAFEGUARDING_KEYWORDS)
    contains_health_data = bool(_match(text, HEALTH_KEYWORDS))

    if detected or sentiment == Sentiment.NEGATIVE:
        return Classification(
            retention_category=RetentionCategory.ESSENTIAL_SAFEGUARDING,
            flagged_for_safeguarding=True,
            contains_health_data=contains_health_data,
            safeguarding_notes=f"Auto-flagged: Found keywords [{', '.join(detected)}]. Sentiment: {sentiment.value}",
            matched_keywords=detected,
        )

    return Classification(
        retention_category=RetentionCategory.FAMILY_MONITORING,
        flagged_for_safeguarding=False,
        contains_health_data=contains_health_data,
    )
