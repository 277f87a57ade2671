"""FieldAuthorizationMatrix: which fields an actor may edit on a record.

Step layout:

    1  QA classification              QA edits severity, due date, assignment
    2  Responsible person action      RP edits corrective action fields
    3  Responsible person rework      RP edits corrective action fields again
    4  Manager review, round 1        manager edits manager comment
    5  Verification                   verifier/QA edits verifier comment
    6  Manager review, final round    manager edits manager comment

Everything not whitelisted for the active stage stays locked with a reason.
Admins unlock every field, whatever the status.
"""

from __future__ import annotations

from qmsguard.models.actor import Actor
from qmsguard.models.policy import FieldName, FieldPermission, FieldPolicy
from qmsguard.models.record import NonConformanceRecord, Status
from qmsguard.workflow.capabilities import (
    can_approve,
    can_classify,
    can_verify,
    is_responsible_person,
)

_SUBMITTED = "This field cannot be changed after submission"

LOCK_REASONS: dict[FieldName, str] = {
    FieldName.DEPARTMENT_ID: _SUBMITTED,
    FieldName.SITE_LOCATION: _SUBMITTED,
    FieldName.SHIFT: _SUBMITTED,
    FieldName.CATEGORY: _SUBMITTED,
    FieldName.DESCRIPTION: _SUBMITTED,
    FieldName.IMMEDIATE_ACTION: "Only the responsible person can modify this during the action step",
    FieldName.SEVERITY: "Only QA can modify severity during the classification step",
    FieldName.RESPONSIBLE_PERSON: "Only QA can reassign the responsible person during the classification step",
    FieldName.DUE_DATE: "Only QA can modify the due date during the classification step",
    FieldName.ROOT_CAUSE: "Only the responsible person can modify this during the action step",
    FieldName.CORRECTIVE_ACTION: "Only the responsible person can modify this during the action step",
    FieldName.PREVENTIVE_ACTION: "Only the responsible person can modify this during the action step",
    FieldName.COMPLETION_DATE: "Only the responsible person can set the completion date during the action step",
    FieldName.MANAGER_COMMENT: "Only the department manager can comment during the review step",
    FieldName.QA_COMMENT: "Only QA can comment during the classification step",
    FieldName.VERIFIER_COMMENT: "Only a verifier or QA can comment during the verification step",
}

CLASSIFICATION_FIELDS = frozenset({
    FieldName.SEVERITY,
    FieldName.DUE_DATE,
    FieldName.RESPONSIBLE_PERSON,
    FieldName.QA_COMMENT,
})

REMEDIATION_FIELDS = frozenset({
    FieldName.IMMEDIATE_ACTION,
    FieldName.ROOT_CAUSE,
    FieldName.CORRECTIVE_ACTION,
    FieldName.PREVENTIVE_ACTION,
    FieldName.COMPLETION_DATE,
})

REVIEW_FIELDS = frozenset({FieldName.MANAGER_COMMENT})

VERIFICATION_FIELDS = frozenset({FieldName.VERIFIER_COMMENT})


def _locked(reasons: dict[FieldName, str]) -> dict[FieldName, FieldPermission]:
    return {name: FieldPermission(editable=False, reason=reasons[name]) for name in FieldName}


def _unlock(whitelist: frozenset[FieldName], acting_as: str) -> FieldPolicy:
    fields = _locked(LOCK_REASONS)
    for name in whitelist:
        fields[name] = FieldPermission(editable=True)
    return FieldPolicy(fields=fields, can_submit=True, acting_as=acting_as)


def _active_stage(actor: Actor, record: NonConformanceRecord) -> tuple[frozenset[FieldName], str] | None:
    """Whitelist and acting role for the single stage the actor may act in, if any."""
    if record.status is Status.OPEN and record.step == 1 and can_classify(actor):
        return CLASSIFICATION_FIELDS, "qa"
    if (
        record.status is Status.IN_PROGRESS
        and record.step in (2, 3)
        and is_responsible_person(actor, record)
    ):
        return REMEDIATION_FIELDS, "responsible_person"
    if record.status is Status.PENDING_REVIEW and can_approve(actor, record):
        return REVIEW_FIELDS, "manager"
    if record.status is Status.PENDING_VERIFICATION and can_verify(actor):
        return VERIFICATION_FIELDS, "verifier"
    return None


def editable_fields(actor: Actor, record: NonConformanceRecord) -> FieldPolicy:
    """Return the per-field editability of ``record`` for ``actor``."""
    if actor.is_admin:
        return FieldPolicy(
            fields={name: FieldPermission(editable=True) for name in FieldName},
            can_submit=True,
            acting_as="admin",
        )

    if record.is_terminal:
        terminal_reason = f"This record is {record.status.value}; only an administrator can modify it"
        return FieldPolicy(fields=_locked({name: terminal_reason for name in FieldName}))

    stage = _active_stage(actor, record)
    if stage is None:
        return FieldPolicy(fields=_locked(LOCK_REASONS))
    whitelist, acting_as = stage
    return _unlock(whitelist, acting_as)
