# companion_lifecycle/constants.py
"""
Centralized retention constants organized by domain.

Windows and vocabularies are fixed policy, not per-deployment configuration.
"""

import uuid


class RetentionWindows:
    """Archive/delete offsets applied to a conversation's created_at."""

    SAFEGUARDING_ARCHIVE_YEARS = 2          # essential_safeguarding -> archive
    SAFEGUARDING_DELETE_YEARS = 7           # essential_safeguarding -> delete (no legal hold)
    MONITORING_DEFAULT_MONTHS = 12          # family_monitoring -> archive
    MONITORING_MIN_MONTHS = 12
    MONITORING_MAX_MONTHS = 84
    MONITORING_DELETE_GRACE_MONTHS = 12     # archive + 12 months -> delete
    IMPROVEMENT_ANONYMIZE_MONTHS = 6        # service_improvement -> anonymize


class NotifyWindow:
    """Deletion warning window relative to now."""

    LEAD_DAYS = 60                          # warn this many days ahead
    WINDOW_DAYS = 1                         # [now+60d, now+61d)


class Anonymization:
    """Anonymization constants."""

    SUBJECT_SENTINEL = uuid.UUID("00000000-0000-0000-0000-000000000000")


class Jobs:
    """Job names used for leases and run summaries."""

    DATA_LIFECYCLE = "data_lifecycle"


# Legal bases that put a flagged safeguarding record under legal hold
LEGAL_HOLD_BASES = ("legal_obligation", "vital_interest")

LEGAL_HOLD_REASON = "Safeguarding data retained under legal obligation (GDPR Article 6(1)(c))"
