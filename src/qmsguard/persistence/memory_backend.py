"""In-memory backends for unit tests and local development: dict-backed fakes."""

from __future__ import annotations

import threading
from datetime import date
from typing import Any

from qmsguard.core.exceptions import ConcurrencyConflict, NotFoundError, NotificationFailure
from qmsguard.models.activity import ActivityEvent
from qmsguard.models.actor import Actor, Role
from qmsguard.models.policy import NotificationRequest, NotificationType
from qmsguard.models.record import NonConformanceRecord


class MemoryRecordStore:
    """Dict-backed IRecordStore; the lock makes compare-and-swap atomic."""

    def __init__(self) -> None:
        self._records: dict[str, NonConformanceRecord] = {}
        self._lock = threading.Lock()

    def get_record(self, record_id: str) -> NonConformanceRecord:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(f"Record {record_id} not found")
        return record.model_copy(deep=True)

    def insert_record(self, record: NonConformanceRecord) -> NonConformanceRecord:
        stored = record.model_copy(update={"version": 1}, deep=True)
        with self._lock:
            if record.id in self._records:
                raise ConcurrencyConflict(record.id, 0)
            self._records[record.id] = stored
        return stored.model_copy(deep=True)

    def compare_and_swap(
        self, record_id: str, expected_version: int, record: NonConformanceRecord
    ) -> NonConformanceRecord:
        stored = record.model_copy(update={"version": expected_version + 1}, deep=True)
        with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                raise NotFoundError(f"Record {record_id} not found")
            if existing.version != expected_version:
                raise ConcurrencyConflict(record_id, expected_version)
            self._records[record_id] = stored
        return stored.model_copy(deep=True)

    def list_open_records(self) -> list[NonConformanceRecord]:
        with self._lock:
            records = list(self._records.values())
        return [r.model_copy(deep=True) for r in records if not r.is_terminal]

    def count_overdue(self, user_id: str, today: date) -> int:
        with self._lock:
            records = list(self._records.values())
        return sum(
            1 for r in records if r.responsible_person_id == user_id and r.is_overdue(today)
        )


class MemoryActivityRecorder:
    """List-backed IActivityRecorder."""

    def __init__(self) -> None:
        self._events: dict[str, list[ActivityEvent]] = {}

    def append(self, record_id: str, event: ActivityEvent) -> None:
        self._events.setdefault(record_id, []).append(event)

    def list_events(self, record_id: str) -> list[ActivityEvent]:
        return list(self._events.get(record_id, []))


class MemoryActorDirectory:
    """Dict-backed IActorDirectory."""

    def __init__(self, actors: list[Actor] | None = None) -> None:
        self._actors: dict[str, Actor] = {a.id: a for a in actors or []}
        self._department_managers: dict[str, str] = {}

    def add(self, actor: Actor) -> Actor:
        self._actors[actor.id] = actor
        return actor

    def set_department_manager(self, department_id: str, manager_id: str) -> None:
        self._department_managers[department_id] = manager_id

    def resolve(self, user_id: str) -> Actor:
        actor = self._actors.get(user_id)
        if actor is None:
            raise NotFoundError(f"User {user_id} not found")
        return actor

    def users_with_role(self, role: Role) -> list[Actor]:
        return [a for a in self._actors.values() if a.has_role(role)]

    def department_manager(self, department_id: str) -> str | None:
        return self._department_managers.get(department_id)


class MemoryCacheBackend:
    """Dict-backed ICacheBackend; TTL is ignored."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class MemoryNotificationFailureLog:
    """Dict-backed INotificationFailureLog."""

    def __init__(self) -> None:
        self._requests: dict[str, NotificationRequest] = {}

    def record_failure(self, request: NotificationRequest) -> NotificationRequest:
        self._requests[request.id] = request
        return request

    def pending(self) -> list[NotificationRequest]:
        return list(self._requests.values())

    def remove(self, request_id: str) -> None:
        self._requests.pop(request_id, None)


class RecordingNotifier:
    """INotifier that keeps every call; can be told to fail for test scenarios."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_with: str | None = None

    def notify(
        self,
        event_type: NotificationType,
        record: NonConformanceRecord,
        recipients: list[str],
        context: dict[str, Any],
    ) -> None:
        if self.fail_with is not None:
            raise NotificationFailure(event_type.value, self.fail_with)
        self.sent.append(
            {
                "event_type": event_type,
                "record_id": record.id,
                "recipients": list(recipients),
                "context": dict(context),
            }
        )

    def of_type(self, event_type: NotificationType) -> list[dict[str, Any]]:
        return [n for n in self.sent if n["event_type"] is event_type]
