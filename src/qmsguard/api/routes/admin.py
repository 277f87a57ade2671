"""Admin endpoints: scheduled sweep trigger and failed-notification inspection."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from qmsguard.api.dependencies import ContextDep, ServicesDep
from qmsguard.core.exceptions import AuthorizationError
from qmsguard.models.actor import RequestContext

router = APIRouter(tags=["admin"])


def _require_admin(context: RequestContext) -> None:
    if not context.actor.is_admin:
        raise AuthorizationError("Only an administrator may use admin endpoints")


@router.post("/sweep")
def run_sweep(services: ServicesDep, context: ContextDep) -> dict[str, int]:
    """Run the scheduled sweep. Called by the external scheduler with an admin identity."""
    _require_admin(context)
    return services.sweep.run().model_dump()


@router.get("/notifications/failed")
def failed_notifications(services: ServicesDep, context: ContextDep) -> list[dict[str, Any]]:
    _require_admin(context)
    return [r.model_dump(mode="json") for r in services.persistence.failures.pending()]
