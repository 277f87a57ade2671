"""Session endpoints. Reachable while locked out."""

from __future__ import annotations

from fastapi import APIRouter

from qmsguard.api.dependencies import ContextDep, ServicesDep

router = APIRouter(tags=["auth"])


@router.get("/session")
def session(services: ServicesDep, context: ContextDep) -> dict:
    """Authentication entry point: who the caller is and whether they are locked."""
    decision = services.lockout.evaluate(context.actor.id)
    return {
        "actor": context.actor.model_dump(mode="json"),
        "tenant_id": context.tenant_id,
        "lockout": decision.model_dump(mode="json"),
    }


@router.post("/sign-out")
def sign_out(context: ContextDep) -> dict[str, str]:
    return {"status": "signed_out", "actor_id": context.actor.id}
