"""Immutable audit-trail entries written to the activity recorder."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from qmsguard.models.record import HistoryAction, Status


class ActivityEvent(BaseModel):
    """One audit-trail entry. Written once, never updated."""

    record_id: str
    action: HistoryAction
    actor_id: str
    timestamp: datetime
    tenant_id: Optional[str] = None
    from_status: Optional[Status] = None
    from_step: Optional[int] = None
    to_status: Optional[Status] = None
    to_step: Optional[int] = None
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
