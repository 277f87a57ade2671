"""DueDatePolicy: severity to target remediation date."""

from __future__ import annotations

from datetime import date, timedelta

from qmsguard.core.config import WorkflowConfig
from qmsguard.core.exceptions import ValidationError
from qmsguard.models.record import Severity


class DueDatePolicy:
    """Maps a severity and reference date to the remediation due date."""

    def __init__(self, config: WorkflowConfig | None = None) -> None:
        config = config or WorkflowConfig()
        self._offsets: dict[Severity, int] = {
            Severity.CRITICAL: config.critical_offset_days,
            Severity.MAJOR: config.major_offset_days,
            Severity.MINOR: config.minor_offset_days,
        }

    def compute_due_date(self, severity: Severity | str, reference_date: date) -> date:
        try:
            severity = Severity(severity)
        except ValueError as exc:
            raise ValidationError(f"Unknown severity {severity!r}") from exc
        return reference_date + timedelta(days=self._offsets[severity])


def compute_due_date(severity: Severity | str, reference_date: date) -> date:
    """Due date under the default offsets (critical 0, major 7, minor 30 days)."""
    return DueDatePolicy().compute_due_date(severity, reference_date)
