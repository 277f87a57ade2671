"""Policy outputs: field permissions, escalation and lockout decisions, sweep results."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class FieldName(StrEnum):
    # --- Reported fields ---
    DEPARTMENT_ID = "department_id"
    SITE_LOCATION = "site_location"
    SHIFT = "shift"
    CATEGORY = "category"
    DESCRIPTION = "description"
    IMMEDIATE_ACTION = "immediate_action"
    # --- Classification fields ---
    SEVERITY = "severity"
    RESPONSIBLE_PERSON = "responsible_person"
    DUE_DATE = "due_date"
    # --- Corrective action fields ---
    ROOT_CAUSE = "root_cause"
    CORRECTIVE_ACTION = "corrective_action"
    PREVENTIVE_ACTION = "preventive_action"
    COMPLETION_DATE = "completion_date"
    # --- Workflow comments ---
    MANAGER_COMMENT = "manager_comment"
    QA_COMMENT = "qa_comment"
    VERIFIER_COMMENT = "verifier_comment"


class FieldPermission(BaseModel):
    editable: bool
    reason: Optional[str] = None

    model_config = {"frozen": True}


class FieldPolicy(BaseModel):
    """Per-field editability for one actor on one record."""

    fields: dict[FieldName, FieldPermission]
    can_submit: bool = False
    acting_as: str = "viewer"

    def editable(self) -> frozenset[FieldName]:
        return frozenset(name for name, perm in self.fields.items() if perm.editable)

    def is_editable(self, name: FieldName) -> bool:
        return self.fields[name].editable


class EscalationTier(StrEnum):
    REMINDER = "reminder"
    MANAGER = "manager"
    SENIOR = "senior"


class EscalationState(BaseModel):
    decline_count: int = 0
    escalated: bool = False

    model_config = {"frozen": True}


class LockoutDecision(BaseModel):
    user_id: str
    locked: bool
    overdue_count: int
    threshold: int
    exempt: bool = False


class NotificationType(StrEnum):
    QA_CLASSIFIED = "qa_classified"
    MANAGER_NOTICE = "manager_notice"
    RESPONSE_SUBMITTED = "response_submitted"
    REWORK_SUBMITTED = "rework_submitted"
    AWAITING_VERIFICATION = "awaiting_verification"
    NC_CLOSED = "nc_closed"
    NC_DECLINED = "nc_declined"
    NC_ESCALATED = "nc_escalated"
    NC_REJECTED = "nc_rejected"
    REMINDER = "reminder"
    OVERDUE_ESCALATION = "overdue_escalation"
    LOCKOUT_NOTICE = "lockout_notice"


class NotificationRequest(BaseModel):
    """A notify call the engine wants made, or one that failed and awaits retry."""

    id: str = ""
    event_type: NotificationType
    record_id: str
    recipients: list[str]
    context: dict[str, Any] = Field(default_factory=dict)
    attempts: int = 0
    last_error: str = ""
    created_at: Optional[datetime] = None


class SweepResult(BaseModel):
    reminders_sent: int = 0
    escalations_triggered: int = 0
    lockouts_triggered: int = 0
    notifications_retried: int = 0
