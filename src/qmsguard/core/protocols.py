"""Protocol interfaces for the collaborators the workflow engine consumes.

Structural typing, no inheritance required; backends in ``qmsguard.persistence``
and ``qmsguard.notifications`` satisfy these without importing them.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol, runtime_checkable

from qmsguard.models.activity import ActivityEvent
from qmsguard.models.actor import Actor, Role
from qmsguard.models.policy import NotificationRequest, NotificationType
from qmsguard.models.record import NonConformanceRecord


# ---------------------------------------------------------------------------
# Persistence: Record Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IRecordStore(Protocol):
    """Durable NC storage with per-record compare-and-swap."""

    def get_record(self, record_id: str) -> NonConformanceRecord: ...

    def insert_record(self, record: NonConformanceRecord) -> NonConformanceRecord: ...

    def compare_and_swap(
        self, record_id: str, expected_version: int, record: NonConformanceRecord
    ) -> NonConformanceRecord: ...

    def list_open_records(self) -> list[NonConformanceRecord]: ...

    def count_overdue(self, user_id: str, today: date) -> int: ...


# ---------------------------------------------------------------------------
# Persistence: Activity Recorder
# ---------------------------------------------------------------------------

@runtime_checkable
class IActivityRecorder(Protocol):
    """Append-only audit trail."""

    def append(self, record_id: str, event: ActivityEvent) -> None: ...

    def list_events(self, record_id: str) -> list[ActivityEvent]: ...


# ---------------------------------------------------------------------------
# Actor Directory
# ---------------------------------------------------------------------------

@runtime_checkable
class IActorDirectory(Protocol):
    """Resolves user ids to roles and department."""

    def resolve(self, user_id: str) -> Actor: ...

    def users_with_role(self, role: Role) -> list[Actor]: ...

    def department_manager(self, department_id: str) -> str | None: ...


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------

@runtime_checkable
class INotifier(Protocol):
    """Delivers a notification request. Raises NotificationFailure."""

    def notify(
        self,
        event_type: NotificationType,
        record: NonConformanceRecord,
        recipients: list[str],
        context: dict[str, Any],
    ) -> None: ...


@runtime_checkable
class INotificationFailureLog(Protocol):
    """Failed notification requests awaiting retry by the scheduled sweep."""

    def record_failure(self, request: NotificationRequest) -> NotificationRequest: ...

    def pending(self) -> list[NotificationRequest]: ...

    def remove(self, request_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...
