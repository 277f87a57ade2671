"""NC workflow transition table.

Each row names the (status, steps) it fires from, the capability the actor
needs, and the (status, step) it lands on. ``admin_override`` is not a row:
it may target any state in ``VALID_STATES`` from anywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from qmsguard.models.policy import NotificationType
from qmsguard.models.record import HistoryAction, Status
from qmsguard.workflow.capabilities import Capability


class Action(StrEnum):
    CLASSIFY = "classify"
    SUBMIT_REMEDIATION = "submit_remediation"
    APPROVE = "approve"
    DECLINE = "decline"
    VERIFY_APPROVE = "verify_approve"
    VERIFY_REJECT = "verify_reject"
    ADMIN_OVERRIDE = "admin_override"


@dataclass(frozen=True)
class Transition:
    """One row of the transition table."""

    action: Action
    from_status: Status
    from_steps: frozenset[int]
    capability: Capability
    to_status: Status
    to_step: int
    history_action: HistoryAction
    notification: NotificationType

    def matches(self, action: Action, status: Status, step: int) -> bool:
        return self.action is action and self.from_status is status and step in self.from_steps


TRANSITIONS: tuple[Transition, ...] = (
    Transition(
        action=Action.CLASSIFY,
        from_status=Status.OPEN,
        from_steps=frozenset({1}),
        capability=Capability.CLASSIFY,
        to_status=Status.IN_PROGRESS,
        to_step=2,
        history_action=HistoryAction.QA_CLASSIFIED,
        notification=NotificationType.QA_CLASSIFIED,
    ),
    Transition(
        action=Action.SUBMIT_REMEDIATION,
        from_status=Status.IN_PROGRESS,
        from_steps=frozenset({2, 3}),
        capability=Capability.SUBMIT_REMEDIATION,
        to_status=Status.PENDING_REVIEW,
        to_step=4,
        history_action=HistoryAction.REMEDIATION_SUBMITTED,
        notification=NotificationType.RESPONSE_SUBMITTED,
    ),
    Transition(
        action=Action.APPROVE,
        from_status=Status.PENDING_REVIEW,
        from_steps=frozenset({4}),
        capability=Capability.REVIEW,
        to_status=Status.PENDING_VERIFICATION,
        to_step=5,
        history_action=HistoryAction.MANAGER_APPROVED,
        notification=NotificationType.AWAITING_VERIFICATION,
    ),
    # Final approval round closes without a verification step.
    Transition(
        action=Action.APPROVE,
        from_status=Status.PENDING_REVIEW,
        from_steps=frozenset({6}),
        capability=Capability.REVIEW,
        to_status=Status.CLOSED,
        to_step=6,
        history_action=HistoryAction.MANAGER_APPROVED,
        notification=NotificationType.NC_CLOSED,
    ),
    Transition(
        action=Action.DECLINE,
        from_status=Status.PENDING_REVIEW,
        from_steps=frozenset({4, 6}),
        capability=Capability.REVIEW,
        to_status=Status.IN_PROGRESS,
        to_step=3,
        history_action=HistoryAction.MANAGER_DECLINED,
        notification=NotificationType.NC_DECLINED,
    ),
    Transition(
        action=Action.VERIFY_APPROVE,
        from_status=Status.PENDING_VERIFICATION,
        from_steps=frozenset({5}),
        capability=Capability.VERIFY,
        to_status=Status.CLOSED,
        to_step=5,
        history_action=HistoryAction.VERIFICATION_APPROVED,
        notification=NotificationType.NC_CLOSED,
    ),
    Transition(
        action=Action.VERIFY_REJECT,
        from_status=Status.PENDING_VERIFICATION,
        from_steps=frozenset({5}),
        capability=Capability.VERIFY,
        to_status=Status.REJECTED,
        to_step=5,
        history_action=HistoryAction.VERIFICATION_REJECTED,
        notification=NotificationType.NC_REJECTED,
    ),
)


def _valid_states() -> frozenset[tuple[Status, int]]:
    states: set[tuple[Status, int]] = set()
    for row in TRANSITIONS:
        states.update((row.from_status, step) for step in row.from_steps)
        states.add((row.to_status, row.to_step))
    return frozenset(states)


VALID_STATES: frozenset[tuple[Status, int]] = _valid_states()


def is_valid_state(status: Status, step: int) -> bool:
    return (status, step) in VALID_STATES


def find_transition(action: Action, status: Status, step: int) -> Transition | None:
    for row in TRANSITIONS:
        if row.matches(action, status, step):
            return row
    return None


def actions_for(status: Status, step: int) -> list[Action]:
    """Table actions available from a state, in table order."""
    seen: list[Action] = []
    for row in TRANSITIONS:
        if row.from_status is status and step in row.from_steps and row.action not in seen:
            seen.append(row.action)
    return seen
