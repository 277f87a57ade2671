"""Non-conformance record, its append-only history, and remediation submissions."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Status(StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    PENDING_VERIFICATION = "pending_verification"
    CLOSED = "closed"
    REJECTED = "rejected"


TERMINAL_STATUSES: frozenset[Status] = frozenset({Status.CLOSED, Status.REJECTED})


class Severity(StrEnum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class HistoryAction(StrEnum):
    CREATED = "created"
    QA_CLASSIFIED = "qa_classified"
    REMEDIATION_SUBMITTED = "remediation_submitted"
    REWORK_SUBMITTED = "rework_submitted"
    MANAGER_APPROVED = "manager_approved"
    MANAGER_DECLINED = "manager_declined"
    VERIFICATION_APPROVED = "verification_approved"
    VERIFICATION_REJECTED = "verification_rejected"
    ADMIN_OVERRIDE = "admin_override"
    ESCALATED = "escalated"
    OVERDUE_ESCALATION_SENIOR = "overdue_escalation_senior"


class HistoryEvent(BaseModel):
    """One entry in a record's append-only workflow history."""

    action: HistoryAction
    actor_id: str
    timestamp: datetime
    step: int
    comment: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class CorrectiveActionSubmission(BaseModel):
    """Root-cause analysis and corrective action from the responsible person."""

    root_cause: str
    corrective_action: str
    preventive_action: str = ""
    immediate_action: str = ""
    completion_date: date
    submitted_by: str
    submitted_at: datetime
    superseded: bool = False


class NonConformanceRecord(BaseModel):
    """A non-conformance moving through the remediation workflow."""

    id: str
    nc_number: str = ""
    tenant_id: Optional[str] = None
    status: Status = Status.OPEN
    step: int = Field(default=1, ge=1, le=6)
    severity: Optional[Severity] = None

    # --- Parties ---
    reporter_id: str
    responsible_person_id: Optional[str] = None
    department_id: Optional[str] = None

    # --- Dates ---
    reported_on: date
    due_date: Optional[date] = None
    created_at: datetime
    closed_at: Optional[datetime] = None

    # --- Reported content (locked after submission) ---
    description: str = ""
    site_location: str = ""
    shift: str = ""
    category: str = ""
    immediate_action: str = ""

    # --- Workflow comments ---
    qa_comment: str = ""
    manager_comment: str = ""
    verifier_comment: str = ""

    history: list[HistoryEvent] = Field(default_factory=list)
    submissions: list[CorrectiveActionSubmission] = Field(default_factory=list)
    escalation_notified: bool = False
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def active_submission(self) -> Optional[CorrectiveActionSubmission]:
        for submission in reversed(self.submissions):
            if not submission.superseded:
                return submission
        return None

    def is_overdue(self, today: date) -> bool:
        return (
            not self.is_terminal
            and self.due_date is not None
            and self.due_date < today
        )
