"""EscalationPolicy: rework-decline escalation and overdue escalation tiers."""

from __future__ import annotations

from qmsguard.core.config import WorkflowConfig
from qmsguard.models.policy import EscalationState, EscalationTier
from qmsguard.models.record import HistoryAction, NonConformanceRecord


class EscalationPolicy:
    """Derives escalation state from a record's history.

    ``decline_count`` is a fold over the append-only history, so ``escalated``
    can never revert once the threshold has been reached.
    """

    def __init__(self, config: WorkflowConfig | None = None) -> None:
        config = config or WorkflowConfig()
        self._threshold = config.escalation_threshold
        self._manager_tier_days = config.manager_tier_days
        self._senior_tier_days = config.senior_tier_days

    @property
    def threshold(self) -> int:
        return self._threshold

    def evaluate(self, record: NonConformanceRecord) -> EscalationState:
        decline_count = sum(
            1 for event in record.history if event.action is HistoryAction.MANAGER_DECLINED
        )
        return EscalationState(
            decline_count=decline_count,
            escalated=decline_count >= self._threshold,
        )

    def needs_notification(self, record: NonConformanceRecord) -> bool:
        """True exactly once per record: escalated and admins not yet told."""
        return self.evaluate(record).escalated and not record.escalation_notified

    def overdue_tier(self, days_overdue: int) -> EscalationTier:
        if days_overdue >= self._senior_tier_days:
            return EscalationTier.SENIOR
        if days_overdue >= self._manager_tier_days:
            return EscalationTier.MANAGER
        return EscalationTier.REMINDER
