"""Notifier that only logs requests. Used in dev and when no transport is configured."""

from __future__ import annotations

from typing import Any

import structlog

from qmsguard.models.policy import NotificationType
from qmsguard.models.record import NonConformanceRecord

logger = structlog.get_logger(__name__)


class LoggingNotifier:
    """INotifier that writes one log event per request and never fails."""

    def notify(
        self,
        event_type: NotificationType,
        record: NonConformanceRecord,
        recipients: list[str],
        context: dict[str, Any],
    ) -> None:
        logger.info(
            "notification_requested",
            event_type=event_type.value,
            record_id=record.id,
            nc_number=record.nc_number,
            recipients=recipients,
            context=context,
        )
