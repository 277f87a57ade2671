"""ScheduledSweep: daily reminders, overdue escalation, lockout notices, retries.

Invoked by an external scheduler. The sweep reads records but never writes
them, so it holds no record lock while notifying. Re-running it only
re-sends messages.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from qmsguard.core.config import WorkflowConfig
from qmsguard.core.exceptions import NotFoundError, NotificationFailure, QMSGuardError
from qmsguard.core.protocols import (
    IActivityRecorder,
    IActorDirectory,
    INotificationFailureLog,
    INotifier,
    IRecordStore,
)
from qmsguard.core.types import Clock
from qmsguard.models.activity import ActivityEvent
from qmsguard.models.actor import Role
from qmsguard.models.policy import (
    EscalationTier,
    NotificationRequest,
    NotificationType,
    SweepResult,
)
from qmsguard.models.record import HistoryAction, NonConformanceRecord
from qmsguard.workflow.escalation import EscalationPolicy
from qmsguard.workflow.lockout import LockoutPolicy

logger = structlog.get_logger(__name__)

SYSTEM_ACTOR = "system:scheduled-sweep"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScheduledSweep:
    """Batch pass over open records, run independently of user transitions."""

    def __init__(
        self,
        *,
        store: IRecordStore,
        recorder: IActivityRecorder,
        notifier: INotifier,
        directory: IActorDirectory,
        lockout: LockoutPolicy,
        failures: INotificationFailureLog | None = None,
        config: WorkflowConfig | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        config = config or WorkflowConfig()
        self._store = store
        self._recorder = recorder
        self._notifier = notifier
        self._directory = directory
        self._lockout = lockout
        self._failures = failures
        self._escalation = EscalationPolicy(config)
        self._max_attempts = config.max_notification_attempts
        self._clock = clock

    def run(self) -> SweepResult:
        now = self._clock()
        result = SweepResult()
        logger.info("sweep_started")

        result.notifications_retried = self._retry_failed()

        oldest_overdue: dict[str, NonConformanceRecord] = {}
        for record in self._store.list_open_records():
            if not record.responsible_person_id or record.due_date is None:
                continue
            days_overdue = (now.date() - record.due_date).days
            if days_overdue > 0:
                oldest = oldest_overdue.get(record.responsible_person_id)
                if oldest is None or record.due_date < oldest.due_date:
                    oldest_overdue[record.responsible_person_id] = record

            if self._send(
                NotificationType.REMINDER,
                record,
                [record.responsible_person_id],
                days_overdue=days_overdue,
            ):
                result.reminders_sent += 1

            tier = self._escalation.overdue_tier(days_overdue)
            if tier is EscalationTier.REMINDER:
                continue
            result.escalations_triggered += 1
            recipients = self._managers_for(record) + [
                actor.id for actor in self._directory.users_with_role(Role.ADMIN)
            ]
            self._send(
                NotificationType.OVERDUE_ESCALATION,
                record,
                recipients,
                days_overdue=days_overdue,
                tier=tier.value,
            )
            if tier is EscalationTier.SENIOR:
                self._record_senior_escalation(record, days_overdue, now)

        for user_id, oldest in oldest_overdue.items():
            try:
                decision = self._lockout.evaluate(user_id, use_cache=False)
            except NotFoundError:
                logger.warning("lockout_unknown_user", user_id=user_id)
                continue
            if not decision.locked:
                continue
            result.lockouts_triggered += 1
            self._send(
                NotificationType.LOCKOUT_NOTICE,
                oldest,
                [user_id],
                overdue_count=decision.overdue_count,
                threshold=decision.threshold,
            )

        logger.info("sweep_finished", **result.model_dump())
        return result

    # ---- helpers ----

    def _send(
        self,
        event_type: NotificationType,
        record: NonConformanceRecord,
        recipients: list[str],
        **context: object,
    ) -> bool:
        recipients = list(dict.fromkeys(r for r in recipients if r))
        if not recipients:
            return False
        try:
            self._notifier.notify(event_type, record, recipients, dict(context))
        except NotificationFailure as exc:
            # Next run re-sends; no retry entry needed.
            logger.warning("sweep_notification_failed", record_id=record.id, error=exc.reason)
            return False
        return True

    def _managers_for(self, record: NonConformanceRecord) -> list[str]:
        if record.department_id:
            manager_id = self._directory.department_manager(record.department_id)
            if manager_id:
                return [manager_id]
        return []

    def _record_senior_escalation(
        self, record: NonConformanceRecord, days_overdue: int, now: datetime
    ) -> None:
        try:
            self._recorder.append(
                record.id,
                ActivityEvent(
                    record_id=record.id,
                    action=HistoryAction.OVERDUE_ESCALATION_SENIOR,
                    actor_id=SYSTEM_ACTOR,
                    timestamp=now,
                    tenant_id=record.tenant_id,
                    details={"days_overdue": days_overdue, "tier": EscalationTier.SENIOR.value},
                ),
            )
        except QMSGuardError:
            logger.error("senior_escalation_not_recorded", record_id=record.id, exc_info=True)

    def _retry_failed(self) -> int:
        if self._failures is None:
            return 0
        retried = 0
        for request in self._failures.pending():
            try:
                record = self._store.get_record(request.record_id)
            except NotFoundError:
                self._failures.remove(request.id)
                continue
            try:
                self._notifier.notify(request.event_type, record, request.recipients, request.context)
            except NotificationFailure as exc:
                self._requeue(request, exc.reason)
                continue
            self._failures.remove(request.id)
            retried += 1
        return retried

    def _requeue(self, request: NotificationRequest, error: str) -> None:
        attempts = request.attempts + 1
        try:
            if attempts >= self._max_attempts:
                self._failures.remove(request.id)
                logger.error(
                    "notification_abandoned",
                    event_type=request.event_type.value,
                    record_id=request.record_id,
                    attempts=attempts,
                    error=error,
                )
                return
            # Same id, so this overwrites the pending entry in place.
            self._failures.record_failure(
                request.model_copy(update={"attempts": attempts, "last_error": error})
            )
        except QMSGuardError:
            logger.error("notification_requeue_failed", request_id=request.id, exc_info=True)
