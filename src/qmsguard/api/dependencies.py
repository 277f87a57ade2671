"""FastAPI dependencies: services, request context, and the lockout guard."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from qmsguard.core.exceptions import NotFoundError
from qmsguard.models.actor import RequestContext
from qmsguard.workflow.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_context(
    services: Annotated[Services, Depends(get_services)],
    x_actor_id: Annotated[Optional[str], Header()] = None,
    x_tenant_id: Annotated[Optional[str], Header()] = None,
) -> RequestContext:
    """Resolve the calling actor from the ``X-Actor-Id`` header."""
    if not x_actor_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Missing X-Actor-Id header")
    try:
        actor = services.persistence.directory.resolve(x_actor_id)
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=exc.reason) from exc
    return RequestContext(actor=actor, tenant_id=x_tenant_id)


def require_unlocked(
    services: Annotated[Services, Depends(get_services)],
    context: Annotated[RequestContext, Depends(get_context)],
) -> RequestContext:
    """Deny functional routes to locked-out users. Admins always pass."""
    if context.actor.is_admin:
        return context
    decision = services.lockout.evaluate(context.actor.id)
    if decision.locked:
        raise HTTPException(
            status.HTTP_423_LOCKED,
            detail=(
                f"Access locked: {decision.overdue_count} overdue records "
                f"(limit {decision.threshold - 1}). Close overdue records to regain access."
            ),
        )
    return context


ServicesDep = Annotated[Services, Depends(get_services)]
ContextDep = Annotated[RequestContext, Depends(get_context)]
UnlockedDep = Annotated[RequestContext, Depends(require_unlocked)]
