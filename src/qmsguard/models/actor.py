"""Actors, roles, and the per-request context threaded through the engine."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class Role(StrEnum):
    ADMIN = "admin"
    QA = "qa"
    MANAGER = "manager"
    RESPONSIBLE_PERSON = "responsible_person"
    VERIFIER = "verifier"
    VIEWER = "viewer"


class Actor(BaseModel):
    """A platform user as resolved by the actor directory."""

    id: str
    roles: frozenset[Role] = Field(default_factory=frozenset)
    department_id: Optional[str] = None
    full_name: str = ""

    model_config = {"frozen": True}

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles


class RequestContext(BaseModel):
    """Explicit caller identity for a single engine call."""

    actor: Actor
    tenant_id: Optional[str] = None

    model_config = {"frozen": True}
