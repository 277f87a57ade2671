"""SQS notifier: hands notification requests to the delivery service's queue.

The delivery service (email/SMS) consumes the queue; this side only enqueues.
"""

from __future__ import annotations

import json
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from qmsguard.core.exceptions import ConfigurationError, NotificationFailure
from qmsguard.models.policy import NotificationType
from qmsguard.models.record import NonConformanceRecord


class SQSNotifier:
    """Production INotifier backed by an SQS queue, with bounded timeouts."""

    def __init__(self, queue_url: str, region: str = "us-east-1",
                 endpoint_url: str | None = None, timeout: int = 5) -> None:
        if not queue_url:
            raise ConfigurationError("SQS notifier requires a queue URL")
        self._queue_url = queue_url
        kwargs: dict = {
            "region_name": region,
            "config": Config(
                connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 1}
            ),
        }
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("sqs", **kwargs)

    @staticmethod
    def build_message(
        event_type: NotificationType,
        record: NonConformanceRecord,
        recipients: list[str],
        context: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "type": event_type.value,
            "nc_id": record.id,
            "nc_number": record.nc_number,
            "tenant_id": record.tenant_id,
            "status": record.status.value,
            "step": record.step,
            "severity": record.severity.value if record.severity else None,
            "due_date": record.due_date.isoformat() if record.due_date else None,
            "recipients": recipients,
            "context": context,
        }

    def notify(
        self,
        event_type: NotificationType,
        record: NonConformanceRecord,
        recipients: list[str],
        context: dict[str, Any],
    ) -> None:
        body = json.dumps(self.build_message(event_type, record, recipients, context), default=str)
        try:
            self._client.send_message(
                QueueUrl=self._queue_url,
                MessageBody=body,
                MessageAttributes={
                    "event_type": {"DataType": "String", "StringValue": event_type.value},
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise NotificationFailure(event_type.value, str(exc)) from exc
