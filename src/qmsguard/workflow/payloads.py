"""Typed payloads accepted by ``WorkflowEngine`` operations."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, TypeVar

import pydantic
from pydantic import BaseModel, Field

from qmsguard.core.exceptions import ValidationError
from qmsguard.models.policy import FieldName
from qmsguard.models.record import Severity, Status

P = TypeVar("P", bound=BaseModel)


class CreatePayload(BaseModel):
    """Initial report of a non-conformance."""

    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    description: str = Field(min_length=1)
    department_id: Optional[str] = None
    site_location: str = ""
    shift: str = ""
    category: str = ""
    immediate_action: str = ""
    severity: Optional[Severity] = None
    responsible_person_id: Optional[str] = None
    reported_on: Optional[date] = None
    nc_number: str = ""


class ClassifyPayload(BaseModel):
    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    severity: Severity
    responsible_person_id: str = Field(min_length=1)
    due_date: Optional[date] = None  # explicit QA override of the derived date
    reference_date: Optional[date] = None
    comment: str = ""


class RemediationPayload(BaseModel):
    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    root_cause: str = Field(min_length=1)
    corrective_action: str = Field(min_length=1)
    preventive_action: str = ""
    immediate_action: str = ""
    completion_date: date


class ReviewPayload(BaseModel):
    """Manager decision comment; required on decline."""

    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    comment: str = ""


class VerificationPayload(BaseModel):
    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    comment: str = ""


class OverridePayload(BaseModel):
    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    status: Status
    step: int
    comment: str = ""
    severity: Optional[Severity] = None
    due_date: Optional[date] = None
    responsible_person_id: Optional[str] = None
    department_id: Optional[str] = None


# Payload attribute -> matrix field it writes.
PAYLOAD_FIELDS: dict[type[BaseModel], dict[str, FieldName]] = {
    ClassifyPayload: {
        "severity": FieldName.SEVERITY,
        "responsible_person_id": FieldName.RESPONSIBLE_PERSON,
        "due_date": FieldName.DUE_DATE,
        "comment": FieldName.QA_COMMENT,
    },
    RemediationPayload: {
        "root_cause": FieldName.ROOT_CAUSE,
        "corrective_action": FieldName.CORRECTIVE_ACTION,
        "preventive_action": FieldName.PREVENTIVE_ACTION,
        "immediate_action": FieldName.IMMEDIATE_ACTION,
        "completion_date": FieldName.COMPLETION_DATE,
    },
    ReviewPayload: {"comment": FieldName.MANAGER_COMMENT},
    VerificationPayload: {"comment": FieldName.VERIFIER_COMMENT},
}


def parse_payload(model: type[P], payload: dict[str, Any] | None) -> P:
    """Validate ``payload`` into ``model``, raising a display-ready ValidationError."""
    try:
        return model.model_validate(payload or {})
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "payload"
        raise ValidationError(f"Invalid {location}: {first['msg']}") from exc


def touched_fields(payload: BaseModel) -> list[FieldName]:
    mapping = PAYLOAD_FIELDS.get(type(payload), {})
    return [mapping[name] for name in payload.model_fields_set if name in mapping]
