"""Tests for LockoutPolicy."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from qmsguard.core.exceptions import NotFoundError
from qmsguard.models.actor import Actor, Role
from qmsguard.models.record import Status
from qmsguard.workflow.lockout import LockoutPolicy
from tests.unit.conftest import TODAY, fixed_clock, make_record


def _overdue(store, user_id: str, count: int, prefix: str = "nc") -> list[str]:
    ids = []
    for i in range(count):
        record = make_record(
            id=f"{prefix}-{user_id}-{i}",
            responsible_person_id=user_id,
            due_date=TODAY - timedelta(days=i + 1),
        )
        ids.append(store.insert_record(record).id)
    return ids


def _close(store, record_id: str) -> None:
    record = store.get_record(record_id)
    store.compare_and_swap(
        record_id, record.version, record.model_copy(update={"status": Status.CLOSED, "step": 5})
    )


class TestDecide:
    def test_locked_at_threshold(self, lockout):
        assert lockout.decide("rp-1", 5, is_admin=False).locked
        assert not lockout.decide("rp-1", 4, is_admin=False).locked

    def test_admin_exempt(self, lockout):
        decision = lockout.decide("admin-1", 12, is_admin=True)
        assert not decision.locked
        assert decision.exempt
        assert decision.overdue_count == 12


class TestEvaluate:
    def test_five_overdue_locks(self, store, lockout):
        _overdue(store, "rp-1", 5)
        decision = lockout.evaluate("rp-1")
        assert decision.locked
        assert decision.overdue_count == 5
        assert decision.threshold == 5

    def test_closing_one_unlocks(self, store, lockout):
        ids = _overdue(store, "rp-1", 5)
        assert lockout.is_locked("rp-1")

        _close(store, ids[0])
        lockout.invalidate("rp-1")
        assert not lockout.is_locked("rp-1")
        assert lockout.evaluate("rp-1").overdue_count == 4

    def test_admin_never_locked(self, store, lockout):
        _overdue(store, "admin-1", 7)
        decision = lockout.evaluate("admin-1")
        assert not decision.locked
        assert decision.exempt

    def test_due_today_is_not_overdue(self, store, lockout):
        _overdue(store, "rp-1", 4)
        store.insert_record(make_record(id="due-today", due_date=TODAY))
        assert lockout.evaluate("rp-1").overdue_count == 4

    def test_terminal_records_not_counted(self, store, lockout):
        _overdue(store, "rp-1", 4)
        store.insert_record(
            make_record(id="rejected", status=Status.REJECTED, step=5, due_date=date(2024, 1, 1))
        )
        assert not lockout.evaluate("rp-1").locked

    def test_other_users_records_not_counted(self, store, lockout):
        _overdue(store, "rp-2", 6)
        assert lockout.evaluate("rp-1").overdue_count == 0

    def test_unknown_user(self, lockout):
        with pytest.raises(NotFoundError):
            lockout.evaluate("ghost")


class TestCache:
    def test_decision_served_from_cache_until_invalidated(self, store, lockout, cache):
        assert not lockout.is_locked("rp-1")
        assert cache.get("lockout:rp-1") is not None

        _overdue(store, "rp-1", 5)
        assert not lockout.is_locked("rp-1")  # stale within the TTL window

        lockout.invalidate("rp-1")
        assert lockout.is_locked("rp-1")

    def test_bypass_cache(self, store, lockout):
        lockout.evaluate("rp-1")
        _overdue(store, "rp-1", 5)
        assert lockout.evaluate("rp-1", use_cache=False).locked

    def test_works_without_cache(self, store, directory):
        policy = LockoutPolicy(store=store, directory=directory, clock=fixed_clock)
        _overdue(store, "rp-1", 5)
        assert policy.is_locked("rp-1")
        policy.invalidate("rp-1")

    def test_newly_added_user(self, store, directory, lockout):
        directory.add(Actor(id="rp-9", roles=frozenset({Role.RESPONSIBLE_PERSON})))
        _overdue(store, "rp-9", 5)
        assert lockout.is_locked("rp-9")
