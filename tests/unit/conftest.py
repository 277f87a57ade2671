"""Unit test fixtures: a seeded actor directory and in-memory backends on a fixed clock."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable

import pytest

from qmsguard.models.actor import Actor, RequestContext, Role
from qmsguard.models.record import NonConformanceRecord, Severity, Status
from qmsguard.workflow.engine import WorkflowEngine
from qmsguard.workflow.lockout import LockoutPolicy
from qmsguard.workflow.sweep import ScheduledSweep
from tests.fakes import (
    MemoryActivityRecorder,
    MemoryActorDirectory,
    MemoryCacheBackend,
    MemoryNotificationFailureLog,
    MemoryRecordStore,
    RecordingNotifier,
)

NOW = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

ACTORS = [
    Actor(id="admin-1", roles=frozenset({Role.ADMIN}), full_name="Site Administrator"),
    Actor(id="qa-1", roles=frozenset({Role.QA}), full_name="QA Officer"),
    Actor(id="verifier-1", roles=frozenset({Role.VERIFIER}), full_name="Verifier"),
    Actor(id="manager-ops", roles=frozenset({Role.MANAGER}), department_id="ops"),
    Actor(id="manager-maint", roles=frozenset({Role.MANAGER}), department_id="maint"),
    Actor(id="manager-global", roles=frozenset({Role.MANAGER})),
    Actor(id="rp-1", roles=frozenset({Role.RESPONSIBLE_PERSON}), department_id="ops"),
    Actor(id="rp-2", roles=frozenset({Role.RESPONSIBLE_PERSON}), department_id="ops"),
    Actor(id="reporter-1", roles=frozenset({Role.VIEWER}), department_id="ops"),
]


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def directory() -> MemoryActorDirectory:
    d = MemoryActorDirectory(ACTORS)
    d.set_department_manager("ops", "manager-ops")
    d.set_department_manager("maint", "manager-maint")
    return d


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def recorder() -> MemoryActivityRecorder:
    return MemoryActivityRecorder()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failures() -> MemoryNotificationFailureLog:
    return MemoryNotificationFailureLog()


@pytest.fixture
def cache() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture
def lockout(store, directory, cache) -> LockoutPolicy:
    return LockoutPolicy(store=store, directory=directory, cache=cache, clock=fixed_clock)


@pytest.fixture
def engine(store, recorder, notifier, directory, failures, lockout) -> WorkflowEngine:
    return WorkflowEngine(
        store=store,
        recorder=recorder,
        notifier=notifier,
        directory=directory,
        failures=failures,
        lockout=lockout,
        clock=fixed_clock,
    )


@pytest.fixture
def sweep(store, recorder, notifier, directory, failures, lockout) -> ScheduledSweep:
    return ScheduledSweep(
        store=store,
        recorder=recorder,
        notifier=notifier,
        directory=directory,
        lockout=lockout,
        failures=failures,
        clock=fixed_clock,
    )


@pytest.fixture
def as_user(directory) -> Callable[[str], RequestContext]:
    def _context(user_id: str) -> RequestContext:
        return RequestContext(actor=directory.resolve(user_id), tenant_id="tenant-a")

    return _context


def make_record(**overrides: Any) -> NonConformanceRecord:
    """A record at in_progress/2 assigned to rp-1 in the ops department."""
    fields: dict[str, Any] = {
        "id": "nc-1",
        "nc_number": "NC-20250101-0001",
        "status": Status.IN_PROGRESS,
        "step": 2,
        "severity": Severity.MAJOR,
        "reporter_id": "reporter-1",
        "responsible_person_id": "rp-1",
        "department_id": "ops",
        "reported_on": date(2025, 1, 1),
        "due_date": date(2025, 1, 8),
        "created_at": datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc),
        "description": "Hydraulic leak on press 4",
    }
    fields.update(overrides)
    return NonConformanceRecord(**fields)
