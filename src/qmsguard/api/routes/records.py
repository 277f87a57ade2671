"""NC record endpoints: create, read, transition, field policy, due dates, lockout."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Body
from pydantic import BaseModel, Field

from qmsguard.api.dependencies import ServicesDep, UnlockedDep
from qmsguard.models.record import NonConformanceRecord, Severity
from qmsguard.workflow.services import Services
from qmsguard.workflow.transitions import actions_for

router = APIRouter(tags=["records"])


class TransitionRequest(BaseModel):
    action: str
    payload: dict[str, Any] = Field(default_factory=dict)


def _present(services: Services, record: NonConformanceRecord) -> dict[str, Any]:
    escalation = services.engine.escalation_state(record.id)
    return {
        "record": record.model_dump(mode="json"),
        "decline_count": escalation.decline_count,
        "escalated": escalation.escalated,
        "available_actions": [a.value for a in actions_for(record.status, record.step)],
    }


@router.post("/records", status_code=201)
def create_record(
    services: ServicesDep, context: UnlockedDep, payload: dict[str, Any] = Body(...)
) -> dict[str, Any]:
    record = services.engine.create_record(context, payload)
    return _present(services, record)


@router.get("/records/{record_id}")
def get_record(record_id: str, services: ServicesDep, context: UnlockedDep) -> dict[str, Any]:
    return _present(services, services.engine.get_record(record_id))


@router.post("/records/{record_id}/transitions")
def transition(
    record_id: str, body: TransitionRequest, services: ServicesDep, context: UnlockedDep
) -> dict[str, Any]:
    record = services.engine.transition(record_id, body.action, context, body.payload)
    return _present(services, record)


@router.get("/records/{record_id}/fields")
def editable_fields(record_id: str, services: ServicesDep, context: UnlockedDep) -> dict[str, Any]:
    return services.engine.editable_fields(record_id, context.actor).model_dump(mode="json")


@router.get("/records/{record_id}/activity")
def activity(record_id: str, services: ServicesDep, context: UnlockedDep) -> list[dict[str, Any]]:
    services.engine.get_record(record_id)
    events = services.persistence.recorder.list_events(record_id)
    return [event.model_dump(mode="json") for event in events]


@router.get("/due-date")
def due_date(
    severity: Severity, reference_date: date, services: ServicesDep, context: UnlockedDep
) -> dict[str, str]:
    computed = services.engine.compute_due_date(severity, reference_date)
    return {"severity": severity.value, "due_date": computed.isoformat()}


@router.get("/lockout/{user_id}")
def lockout(user_id: str, services: ServicesDep, context: UnlockedDep) -> dict[str, Any]:
    return services.lockout.evaluate(user_id).model_dump(mode="json")
