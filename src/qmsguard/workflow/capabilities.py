"""Role capability predicates.

Each predicate answers one question about one actor (and, where authority
depends on relationship, one record). Admins satisfy every predicate.
"""

from __future__ import annotations

from enum import StrEnum

from qmsguard.models.actor import Actor, Role
from qmsguard.models.record import NonConformanceRecord


class Capability(StrEnum):
    CLASSIFY = "classify"
    SUBMIT_REMEDIATION = "submit_remediation"
    REVIEW = "review"
    VERIFY = "verify"
    OVERRIDE = "override"


# ---- relationships ----

def is_reporter(actor: Actor, record: NonConformanceRecord) -> bool:
    return actor.id == record.reporter_id


def is_responsible_person(actor: Actor, record: NonConformanceRecord) -> bool:
    return record.responsible_person_id is not None and actor.id == record.responsible_person_id


def is_department_manager(actor: Actor, record: NonConformanceRecord) -> bool:
    return (
        actor.has_role(Role.MANAGER)
        and actor.department_id is not None
        and actor.department_id == record.department_id
    )


def is_elevated_manager(actor: Actor) -> bool:
    """A manager not tied to a single department reviews across all of them."""
    return actor.has_role(Role.MANAGER) and actor.department_id is None


# ---- capabilities ----

def can_classify(actor: Actor) -> bool:
    return actor.is_admin or actor.has_role(Role.QA)


def can_submit_remediation(actor: Actor, record: NonConformanceRecord) -> bool:
    return actor.is_admin or is_responsible_person(actor, record)


def can_approve(actor: Actor, record: NonConformanceRecord) -> bool:
    return actor.is_admin or is_department_manager(actor, record) or is_elevated_manager(actor)


def can_verify(actor: Actor) -> bool:
    return actor.is_admin or actor.has_role(Role.VERIFIER) or actor.has_role(Role.QA)


def can_override(actor: Actor) -> bool:
    return actor.is_admin


def has_capability(capability: Capability, actor: Actor, record: NonConformanceRecord) -> bool:
    if capability is Capability.CLASSIFY:
        return can_classify(actor)
    if capability is Capability.SUBMIT_REMEDIATION:
        return can_submit_remediation(actor, record)
    if capability is Capability.REVIEW:
        return can_approve(actor, record)
    if capability is Capability.VERIFY:
        return can_verify(actor)
    return can_override(actor)


DENIAL_REASONS: dict[Capability, str] = {
    Capability.CLASSIFY: "Only QA may classify a record during the classification step",
    Capability.SUBMIT_REMEDIATION: "Only the responsible person may submit remediation during this step",
    Capability.REVIEW: "Only the department manager may approve or decline during the review step",
    Capability.VERIFY: "Only a verifier or QA may verify during the verification step",
    Capability.OVERRIDE: "Only an administrator may override the workflow",
}
