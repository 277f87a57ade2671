"""WorkflowEngine: validates and applies NC state transitions.

Every transition is a compare-and-swap against the version that was read, so
of two concurrent actions on one record exactly one commits. Notifications
are sent after the commit and never undo it.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any

import structlog
from structlog.contextvars import bound_contextvars

from qmsguard.core.config import WorkflowConfig
from qmsguard.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    NotificationFailure,
    QMSGuardError,
    ValidationError,
)
from qmsguard.core.protocols import (
    IActivityRecorder,
    IActorDirectory,
    INotificationFailureLog,
    INotifier,
    IRecordStore,
)
from qmsguard.core.types import Clock
from qmsguard.models.activity import ActivityEvent
from qmsguard.models.actor import Actor, RequestContext, Role
from qmsguard.models.policy import (
    EscalationState,
    FieldPolicy,
    NotificationRequest,
    NotificationType,
)
from qmsguard.models.record import (
    CorrectiveActionSubmission,
    HistoryAction,
    HistoryEvent,
    NonConformanceRecord,
    Severity,
    Status,
)
from qmsguard.workflow.capabilities import DENIAL_REASONS, Capability, has_capability
from qmsguard.workflow.due_dates import DueDatePolicy
from qmsguard.workflow.escalation import EscalationPolicy
from qmsguard.workflow.field_matrix import editable_fields
from qmsguard.workflow.lockout import LockoutPolicy
from qmsguard.workflow.payloads import (
    ClassifyPayload,
    CreatePayload,
    OverridePayload,
    RemediationPayload,
    ReviewPayload,
    VerificationPayload,
    parse_payload,
    touched_fields,
)
from qmsguard.workflow.transitions import Action, Transition, find_transition, is_valid_state

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unique(ids: list[str | None]) -> list[str]:
    seen: list[str] = []
    for user_id in ids:
        if user_id and user_id not in seen:
            seen.append(user_id)
    return seen


class WorkflowEngine:
    """Orchestrates the due-date, field, and escalation policies over a record store."""

    def __init__(
        self,
        *,
        store: IRecordStore | None,
        recorder: IActivityRecorder | None,
        notifier: INotifier | None,
        directory: IActorDirectory | None,
        failures: INotificationFailureLog | None = None,
        lockout: LockoutPolicy | None = None,
        config: WorkflowConfig | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        wiring = {"store": store, "recorder": recorder, "notifier": notifier, "directory": directory}
        missing = [name for name, dep in wiring.items() if dep is None]
        if missing:
            raise ConfigurationError(f"WorkflowEngine is missing collaborators: {', '.join(missing)}")

        config = config or WorkflowConfig()
        self._store = store
        self._recorder = recorder
        self._notifier = notifier
        self._directory = directory
        self._failures = failures
        self._lockout = lockout
        self._clock = clock
        self._due_dates = DueDatePolicy(config)
        self._escalation = EscalationPolicy(config)

    # ---- read operations ----

    def get_record(self, record_id: str) -> NonConformanceRecord:
        return self._store.get_record(record_id)

    def editable_fields(self, record_id: str, actor: Actor) -> FieldPolicy:
        return editable_fields(actor, self._store.get_record(record_id))

    def escalation_state(self, record_id: str) -> EscalationState:
        return self._escalation.evaluate(self._store.get_record(record_id))

    def compute_due_date(self, severity: Severity | str, reference_date: date) -> date:
        return self._due_dates.compute_due_date(severity, reference_date)

    # ---- create ----

    def create_record(self, context: RequestContext, payload: dict[str, Any]) -> NonConformanceRecord:
        """Log a new NC at open/1 on behalf of the reporting actor."""
        data = parse_payload(CreatePayload, payload)
        now = self._clock()
        record_id = uuid.uuid4().hex
        reported_on = data.reported_on or now.date()
        due_date = (
            self._due_dates.compute_due_date(data.severity, reported_on) if data.severity else None
        )
        record = NonConformanceRecord(
            id=record_id,
            nc_number=data.nc_number or f"NC-{reported_on:%Y%m%d}-{record_id[:6].upper()}",
            tenant_id=context.tenant_id,
            reporter_id=context.actor.id,
            responsible_person_id=data.responsible_person_id,
            department_id=data.department_id,
            severity=data.severity,
            reported_on=reported_on,
            due_date=due_date,
            created_at=now,
            description=data.description,
            site_location=data.site_location,
            shift=data.shift,
            category=data.category,
            immediate_action=data.immediate_action,
            history=[
                HistoryEvent(
                    action=HistoryAction.CREATED, actor_id=context.actor.id, timestamp=now, step=1
                )
            ],
        )
        with bound_contextvars(record_id=record_id, actor_id=context.actor.id, tenant_id=context.tenant_id):
            stored = self._store.insert_record(record)
            self._recorder.append(
                stored.id,
                ActivityEvent(
                    record_id=stored.id,
                    action=HistoryAction.CREATED,
                    actor_id=context.actor.id,
                    timestamp=now,
                    tenant_id=context.tenant_id,
                    to_status=stored.status,
                    to_step=stored.step,
                    details={"nc_number": stored.nc_number},
                ),
            )
            logger.info("record_created", nc_number=stored.nc_number)
        return stored

    # ---- transition ----

    def transition(
        self,
        record_id: str,
        action: Action | str,
        context: RequestContext,
        payload: dict[str, Any] | None = None,
    ) -> NonConformanceRecord:
        """Apply ``action`` to the record, or raise without changing it."""
        actor = context.actor
        with bound_contextvars(
            record_id=record_id, actor_id=actor.id, tenant_id=context.tenant_id, action=str(action)
        ):
            try:
                action = Action(action)
            except ValueError as exc:
                raise ValidationError(f"Unknown action {action!r}") from exc

            current = self._store.get_record(record_id)
            if current.is_terminal and not actor.is_admin:
                logger.info("transition_denied_terminal", status=current.status.value)
                raise AuthorizationError(
                    f"Record {current.nc_number or current.id} is {current.status.value}; "
                    "only an administrator may change it"
                )

            if action is Action.ADMIN_OVERRIDE:
                updated, requests = self._apply_override(current, context, payload)
            else:
                row = self._authorize(action, current, actor)
                updated, requests = self._apply(row, current, context, payload)

            committed = self._commit(current, updated, context)
            logger.info(
                "transition_applied",
                from_status=current.status.value,
                from_step=current.step,
                to_status=committed.status.value,
                to_step=committed.step,
                version=committed.version,
            )
            self._invalidate_lockout(current, committed)
            self._dispatch(committed, requests)
            return committed

    def _authorize(self, action: Action, record: NonConformanceRecord, actor: Actor) -> Transition:
        row = find_transition(action, record.status, record.step)
        if row is None:
            raise ValidationError(
                f"Action '{action.value}' is not permitted while the record is "
                f"{record.status.value} (step {record.step})"
            )
        if not has_capability(row.capability, actor, record):
            logger.info("transition_denied", capability=row.capability.value)
            raise AuthorizationError(DENIAL_REASONS[row.capability])
        return row

    def _check_fields(self, payload: Any, record: NonConformanceRecord, actor: Actor) -> None:
        policy = editable_fields(actor, record)
        for name in touched_fields(payload):
            permission = policy.fields[name]
            if not permission.editable:
                raise AuthorizationError(permission.reason or f"{name.value} is locked")

    def _apply(
        self,
        row: Transition,
        current: NonConformanceRecord,
        context: RequestContext,
        payload: dict[str, Any] | None,
    ) -> tuple[NonConformanceRecord, list[NotificationRequest]]:
        now = self._clock()
        actor = context.actor
        update: dict[str, Any] = {"status": row.to_status, "step": row.to_step}
        history = list(current.history)
        requests: list[NotificationRequest] = []

        def event(action: HistoryAction, comment: str | None = None, **details: Any) -> HistoryEvent:
            return HistoryEvent(
                action=action,
                actor_id=actor.id,
                timestamp=now,
                step=row.to_step,
                comment=comment or None,
                details=details,
            )

        def notify(event_type: NotificationType, recipients: list[str | None], **ctx: Any) -> None:
            requests.append(
                NotificationRequest(
                    event_type=event_type,
                    record_id=current.id,
                    recipients=_unique(recipients),
                    context=ctx,
                )
            )

        if row.action is Action.CLASSIFY:
            data = parse_payload(ClassifyPayload, payload)
            self._check_fields(data, current, actor)
            self._directory.resolve(data.responsible_person_id)
            reference = data.reference_date or current.reported_on
            due_date = data.due_date or self._due_dates.compute_due_date(data.severity, reference)
            update.update(
                severity=data.severity,
                due_date=due_date,
                responsible_person_id=data.responsible_person_id,
                qa_comment=data.comment or current.qa_comment,
            )
            history.append(
                event(
                    row.history_action,
                    data.comment,
                    severity=data.severity.value,
                    due_date=due_date.isoformat(),
                    responsible_person_id=data.responsible_person_id,
                )
            )
            ctx = {"severity": data.severity.value, "due_date": due_date.isoformat()}
            notify(row.notification, [data.responsible_person_id], **ctx)
            notify(NotificationType.MANAGER_NOTICE, self._reviewers(current.department_id), **ctx)

        elif row.action is Action.SUBMIT_REMEDIATION:
            data = parse_payload(RemediationPayload, payload)
            self._check_fields(data, current, actor)
            rework = current.step == 3
            submissions = [
                s.model_copy(update={"superseded": True}) for s in current.submissions
            ]
            submissions.append(
                CorrectiveActionSubmission(
                    root_cause=data.root_cause,
                    corrective_action=data.corrective_action,
                    preventive_action=data.preventive_action,
                    immediate_action=data.immediate_action,
                    completion_date=data.completion_date,
                    submitted_by=actor.id,
                    submitted_at=now,
                )
            )
            update["submissions"] = submissions
            if data.immediate_action:
                update["immediate_action"] = data.immediate_action
            history.append(
                event(
                    HistoryAction.REWORK_SUBMITTED if rework else row.history_action,
                    completion_date=data.completion_date.isoformat(),
                )
            )
            notify(
                NotificationType.REWORK_SUBMITTED if rework else row.notification,
                self._reviewers(current.department_id),
            )

        elif row.action is Action.APPROVE:
            data = parse_payload(ReviewPayload, payload)
            self._check_fields(data, current, actor)
            update["manager_comment"] = data.comment or current.manager_comment
            history.append(event(row.history_action, data.comment, approval_round=self._round(current)))
            if row.to_status is Status.CLOSED:
                update["closed_at"] = now
                notify(row.notification, [current.reporter_id, current.responsible_person_id])
            else:
                notify(
                    row.notification,
                    self._ids_with_role(Role.QA) + self._ids_with_role(Role.VERIFIER),
                )

        elif row.action is Action.DECLINE:
            data = parse_payload(ReviewPayload, payload)
            if not data.comment:
                raise ValidationError("A comment explaining the required rework is needed to decline")
            self._check_fields(data, current, actor)
            update["manager_comment"] = data.comment
            history.append(event(row.history_action, data.comment, approval_round=self._round(current)))
            notify(row.notification, [current.responsible_person_id], comment=data.comment)

            declined = current.model_copy(update={"history": history})
            if self._escalation.needs_notification(declined):
                state = self._escalation.evaluate(declined)
                update["escalation_notified"] = True
                history.append(event(HistoryAction.ESCALATED, decline_count=state.decline_count))
                notify(
                    NotificationType.NC_ESCALATED,
                    self._ids_with_role(Role.ADMIN),
                    decline_count=state.decline_count,
                )
                logger.warning("record_escalated", decline_count=state.decline_count)

        elif row.action is Action.VERIFY_APPROVE:
            data = parse_payload(VerificationPayload, payload)
            self._check_fields(data, current, actor)
            update.update(verifier_comment=data.comment or current.verifier_comment, closed_at=now)
            history.append(event(row.history_action, data.comment))
            notify(row.notification, [current.reporter_id, current.responsible_person_id])

        elif row.action is Action.VERIFY_REJECT:
            data = parse_payload(VerificationPayload, payload)
            self._check_fields(data, current, actor)
            update["verifier_comment"] = data.comment or current.verifier_comment
            history.append(event(row.history_action, data.comment))
            notify(row.notification, self._ids_with_role(Role.ADMIN), comment=data.comment)

        update["history"] = history
        return current.model_copy(update=update), requests

    def _apply_override(
        self,
        current: NonConformanceRecord,
        context: RequestContext,
        payload: dict[str, Any] | None,
    ) -> tuple[NonConformanceRecord, list[NotificationRequest]]:
        actor = context.actor
        if not has_capability(Capability.OVERRIDE, actor, current):
            raise AuthorizationError(DENIAL_REASONS[Capability.OVERRIDE])
        data = parse_payload(OverridePayload, payload)
        if not is_valid_state(data.status, data.step):
            raise ValidationError(
                f"{data.status.value} (step {data.step}) is not a workflow state"
            )

        now = self._clock()
        update: dict[str, Any] = {"status": data.status, "step": data.step}
        changed: dict[str, Any] = {}
        if data.responsible_person_id is not None:
            self._directory.resolve(data.responsible_person_id)
            update["responsible_person_id"] = changed["responsible_person_id"] = data.responsible_person_id
        if data.department_id is not None:
            update["department_id"] = changed["department_id"] = data.department_id
        if data.severity is not None:
            update["severity"] = data.severity
            changed["severity"] = data.severity.value
        if data.due_date is not None:
            update["due_date"] = data.due_date
        elif data.severity is not None and data.severity != current.severity:
            update["due_date"] = self._due_dates.compute_due_date(data.severity, current.reported_on)
        if "due_date" in update:
            changed["due_date"] = update["due_date"].isoformat()

        if data.status is Status.CLOSED:
            update["closed_at"] = current.closed_at or now
        else:
            update["closed_at"] = None

        history = list(current.history)
        history.append(
            HistoryEvent(
                action=HistoryAction.ADMIN_OVERRIDE,
                actor_id=actor.id,
                timestamp=now,
                step=data.step,
                comment=data.comment or None,
                details={
                    "from_status": current.status.value,
                    "from_step": current.step,
                    "to_status": data.status.value,
                    "to_step": data.step,
                    "changed": changed,
                },
            )
        )
        update["history"] = history
        logger.warning(
            "admin_override_applied",
            from_status=current.status.value,
            to_status=data.status.value,
            to_step=data.step,
            changed=sorted(changed),
        )
        return current.model_copy(update=update), []

    # ---- commit and side effects ----

    def _commit(
        self,
        current: NonConformanceRecord,
        updated: NonConformanceRecord,
        context: RequestContext,
    ) -> NonConformanceRecord:
        committed = self._store.compare_and_swap(current.id, current.version, updated)
        # The first event appended by this transition names it in the audit trail.
        primary = committed.history[len(current.history)]
        event = ActivityEvent(
            record_id=committed.id,
            action=primary.action,
            actor_id=context.actor.id,
            timestamp=primary.timestamp,
            tenant_id=context.tenant_id,
            from_status=current.status,
            from_step=current.step,
            to_status=committed.status,
            to_step=committed.step,
            details={"comment": primary.comment, **primary.details} if primary.comment else dict(primary.details),
        )
        try:
            self._recorder.append(committed.id, event)
        except QMSGuardError:
            logger.error("audit_append_failed", exc_info=True)
            self._rollback(current, committed)
            raise
        return committed

    def _rollback(self, previous: NonConformanceRecord, committed: NonConformanceRecord) -> None:
        try:
            self._store.compare_and_swap(committed.id, committed.version, previous)
        except QMSGuardError:
            logger.error("rollback_failed", version=committed.version, exc_info=True)

    def _dispatch(self, record: NonConformanceRecord, requests: list[NotificationRequest]) -> None:
        for request in requests:
            if not request.recipients:
                logger.warning("notification_skipped_no_recipients", event_type=request.event_type.value)
                continue
            try:
                self._notifier.notify(request.event_type, record, request.recipients, request.context)
            except NotificationFailure as exc:
                logger.warning(
                    "notification_failed", event_type=request.event_type.value, error=exc.reason
                )
                self._queue_retry(request, exc.reason)

    def _queue_retry(self, request: NotificationRequest, error: str) -> None:
        if self._failures is None:
            return
        try:
            self._failures.record_failure(
                request.model_copy(
                    update={
                        "id": uuid.uuid4().hex,
                        "attempts": 1,
                        "last_error": error,
                        "created_at": self._clock(),
                    }
                )
            )
        except QMSGuardError:
            logger.error("notification_retry_not_recorded", event_type=request.event_type.value, exc_info=True)

    def _invalidate_lockout(self, before: NonConformanceRecord, after: NonConformanceRecord) -> None:
        if self._lockout is None:
            return
        for user_id in _unique([before.responsible_person_id, after.responsible_person_id]):
            try:
                self._lockout.invalidate(user_id)
            except QMSGuardError:
                # Stale entry expires with the cache TTL.
                logger.warning("lockout_invalidate_failed", user_id=user_id, exc_info=True)

    # ---- recipients ----

    def _ids_with_role(self, role: Role) -> list[str]:
        return [actor.id for actor in self._directory.users_with_role(role)]

    def _reviewers(self, department_id: str | None) -> list[str]:
        """Department manager, or managers without a department when none is mapped."""
        manager_id = self._directory.department_manager(department_id) if department_id else None
        if manager_id:
            return [manager_id]
        return [
            actor.id
            for actor in self._directory.users_with_role(Role.MANAGER)
            if actor.department_id is None
        ]

    @staticmethod
    def _round(record: NonConformanceRecord) -> int:
        return 2 if record.step == 6 else 1
