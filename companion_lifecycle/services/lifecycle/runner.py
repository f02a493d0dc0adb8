# companion_lifecycle/services/lifecycle/runner.py
"""
Lifecycle runner: one pass of Archive -> Anonymize -> Delete -> Notify.

The pass is guarded by a DB lease so overlapping triggers do nothing. Any
exception aborts the remaining steps and is recorded in the result's
errors instead of being raised; every step's selection is idempotent, so
the next pass picks up where this one stopped.

Usage:
    engine = build_engine(db)
    result = engine.run_lifecycle()
    engine.process_erasure_request(subject_id, request_id)
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from companion_lifecycle.channels.base import DEFAULT_BRAND, NotificationChannel
from companion_lifecycle.config import get_settings
from companion_lifecycle.constants import Jobs
from companion_lifecycle.logging_config import log_run, log_step
from companion_lifecycle.models import LifecycleRun, RunStatus
from companion_lifecycle.services.lifecycle.anonymize_service import AnonymizeResult, anonymize_conversations
from companion_lifecycle.services.lifecycle.archive_service import ArchiveResult, archive_conversations
from companion_lifecycle.services.lifecycle.delete_service import DeleteResult, delete_expired_conversations
from companion_lifecycle.services.lifecycle.erasure_service import ErasureResult, process_erasure_request
from companion_lifecycle.services.lifecycle.notify_service import (
    NotifyResult,
    notification_window,
    notify_upcoming_deletions,
)
from companion_lifecycle.services.lifecycle.redaction import RedactionRule
from companion_lifecycle.services.lifecycle.schedule import RescheduleResult, reschedule_subject_conversations
from companion_lifecycle.store.base import RecordStore
from companion_lifecycle.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_LEASE_SECONDS = 3600


@dataclass
class LifecycleResult:
    """Aggregated outcome of one lifecycle pass."""
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    archived: int = 0
    anonymized: int = 0
    deleted: int = 0
    notified: int = 0
    notifications_failed: int = 0
    protected_by_hold: int = 0
    skipped: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def status(self) -> RunStatus:
        if self.skipped:
            return RunStatus.SKIPPED
        return RunStatus.COMPLETED if self.success else RunStatus.FAILED

    @property
    def duration_ms(self) -> int:
        if self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def as_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "archived": self.archived,
            "anonymized": self.anonymized,
            "deleted": self.deleted,
            "notified": self.notified,
            "notifications_failed": self.notifications_failed,
            "protected_by_hold": self.protected_by_hold,
            "errors": list(self.errors),
        }


class LifecycleEngine:
    """
    Orchestrates the retention lifecycle over an injected store and channel.

    Args:
        store: Record store handle
        channel: Deletion warning channel
        clock: Returns the current naive-UTC time (injectable for tests)
        batch_size: Max records per step per pass (None = all eligible)
        lease_seconds: TTL of the overlapping-run lease
        brand: Brand prefix for warning messages
        redaction_rules: Override the default redaction ruleset
    """

    def __init__(
        self,
        store: RecordStore,
        channel: NotificationChannel,
        clock: Callable[[], datetime] = utcnow,
        batch_size: Optional[int] = None,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        brand: str = DEFAULT_BRAND,
        redaction_rules: Optional[Iterable[RedactionRule]] = None,
    ):
        self._store = store
        self._channel = channel
        self._clock = clock
        self._batch_size = batch_size
        self._lease_seconds = lease_seconds
        self._brand = brand
        self._rules = list(redaction_rules) if redaction_rules is not None else None

    @property
    def store(self) -> RecordStore:
        return self._store

    # -------------------------------------------------------------------------
    # Individual steps
    # -------------------------------------------------------------------------

    def archive(self, now: Optional[datetime] = None, initiated_by: str = "scheduler") -> ArchiveResult:
        return archive_conversations(
            self._store, now or self._clock(), limit=self._batch_size, initiated_by=initiated_by
        )

    def anonymize(self, now: Optional[datetime] = None, initiated_by: str = "scheduler") -> AnonymizeResult:
        return anonymize_conversations(
            self._store,
            now or self._clock(),
            limit=self._batch_size,
            rules=self._rules,
            initiated_by=initiated_by,
        )

    def delete(self, now: Optional[datetime] = None, initiated_by: str = "scheduler") -> DeleteResult:
        return delete_expired_conversations(
            self._store, now or self._clock(), limit=self._batch_size, initiated_by=initiated_by
        )

    def notify(self, now: Optional[datetime] = None, initiated_by: str = "scheduler") -> NotifyResult:
        return notify_upcoming_deletions(
            self._store,
            self._channel,
            now or self._clock(),
            brand=self._brand,
            initiated_by=initiated_by,
        )

    # -------------------------------------------------------------------------
    # Full pass
    # -------------------------------------------------------------------------

    def _apply_archive(self, now: datetime, result: LifecycleResult, initiated_by: str) -> None:
        result.archived = self.archive(now, initiated_by).archived

    def _apply_anonymize(self, now: datetime, result: LifecycleResult, initiated_by: str) -> None:
        result.anonymized = self.anonymize(now, initiated_by).anonymized

    def _apply_delete(self, now: datetime, result: LifecycleResult, initiated_by: str) -> None:
        deleted = self.delete(now, initiated_by)
        result.deleted = deleted.deleted
        result.protected_by_hold = deleted.protected_by_hold

    def _apply_notify(self, now: datetime, result: LifecycleResult, initiated_by: str) -> None:
        notified = self.notify(now, initiated_by)
        result.notified = notified.sent
        result.notifications_failed = notified.failed

    def _run_steps(self, now: datetime, result: LifecycleResult, initiated_by: str) -> None:
        """Run the steps in order; the first failure stops the pass."""
        steps = (
            ("archive", self._apply_archive),
            ("anonymize", self._apply_anonymize),
            ("delete", self._apply_delete),
            ("notify", self._apply_notify),
        )
        for step, apply in steps:
            try:
                with log_step(step):
                    apply(now, result, initiated_by)
            except Exception as e:
                result.errors.append(f"{step} step failed: {e}")
                return

    def run_lifecycle(self, trigger: str = "scheduled") -> LifecycleResult:
        """
        Run one full lifecycle pass.

        Never raises: failures are recorded in the returned result's errors.
        """
        run_id = str(uuid.uuid4())
        now = self._clock()
        result = LifecycleResult(run_id=run_id, started_at=now)
        initiated_by = "scheduler" if trigger == "scheduled" else trigger

        with log_run(run_id):
            logger.info(f"Lifecycle pass started (trigger={trigger})", extra={"event": "run_start"})

            acquired = False
            try:
                acquired = self._store.acquire_lease(Jobs.DATA_LIFECYCLE, run_id, now, self._lease_seconds)
            except Exception as e:
                result.errors.append(f"Could not acquire lease {Jobs.DATA_LIFECYCLE}: {e}")

            if not acquired and not result.errors:
                result.skipped = True
                result.errors.append(f"Skipped: another lifecycle pass holds lease {Jobs.DATA_LIFECYCLE}")
                logger.warning("Lifecycle pass skipped: lease held by another runner")

            if acquired:
                try:
                    self._run_steps(now, result, initiated_by)
                finally:
                    try:
                        self._store.release_lease(Jobs.DATA_LIFECYCLE, run_id)
                    except Exception as e:
                        logger.warning(f"Failed to release lease {Jobs.DATA_LIFECYCLE}: {e}")

            result.finished_at = self._clock()
            self._record_run(result, trigger)

            logger.info(
                f"Lifecycle pass {result.status.value}: archived={result.archived} "
                f"anonymized={result.anonymized} deleted={result.deleted} notified={result.notified}",
                extra={"event": "run_complete", "duration_ms": result.duration_ms},
            )

        return result

    def _record_run(self, result: LifecycleResult, trigger: str) -> None:
        try:
            self._store.record_run(
                LifecycleRun(
                    run_id=result.run_id,
                    started_at=result.started_at,
                    finished_at=result.finished_at,
                    duration_ms=result.duration_ms,
                    archived=result.archived,
                    anonymized=result.anonymized,
                    deleted=result.deleted,
                    notified=result.notified,
                    notifications_failed=result.notifications_failed,
                    status=result.status.value,
                    errors=list(result.errors),
                    trigger=trigger,
                )
            )
        except Exception as e:
            logger.error(f"Failed to record lifecycle run {result.run_id}: {e}")

    # -------------------------------------------------------------------------
    # Erasure and status
    # -------------------------------------------------------------------------

    def process_erasure_request(self, subject_id, request_id, initiated_by: str = "erasure_request") -> ErasureResult:
        """Resolve an erasure request. ValidationError propagates to the caller."""
        return process_erasure_request(
            self._store, subject_id, request_id, now=self._clock(), initiated_by=initiated_by
        )

    def reschedule_subject(
        self, subject_id, retention_months: int, initiated_by: str = "preference_change"
    ) -> RescheduleResult:
        """Apply a new retention preference. ValidationError propagates to the caller."""
        return reschedule_subject_conversations(
            self._store, subject_id, retention_months, initiated_by=initiated_by
        )

    def status(self) -> dict:
        """Pending work, legal-hold counts and the last recorded pass."""
        now = self._clock()
        start, end = notification_window(now)
        stats = self._store.get_lifecycle_stats(now, start, end)

        last_run = self._store.get_last_run()
        stats["last_run"] = None
        if last_run:
            stats["last_run"] = {
                "run_id": last_run.run_id,
                "status": last_run.status,
                "trigger": last_run.trigger,
                "started_at": last_run.started_at.isoformat(),
                "finished_at": last_run.finished_at.isoformat(),
                "duration_ms": last_run.duration_ms,
                "archived": last_run.archived,
                "anonymized": last_run.anonymized,
                "deleted": last_run.deleted,
                "notified": last_run.notified,
                "notifications_failed": last_run.notifications_failed,
                "errors": last_run.errors or [],
            }
        return stats


def build_engine(db: Session, channel: Optional[NotificationChannel] = None) -> LifecycleEngine:
    """Wire an engine from settings for a database session."""
    from companion_lifecycle.channels.factory import get_notification_channel
    from companion_lifecycle.store.sqlalchemy_store import SqlAlchemyRecordStore

    settings = get_settings()
    return LifecycleEngine(
        store=SqlAlchemyRecordStore(db),
        channel=channel or get_notification_channel(),
        batch_size=settings.LIFECYCLE_BATCH_SIZE,
        lease_seconds=settings.LIFECYCLE_LEASE_SECONDS,
        brand=settings.SMS_BRAND_NAME,
    )
