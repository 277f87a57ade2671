"""DynamoDB backends: record store, activity log, actor directory, failure log.

Records are stored whole as a JSON ``body`` next to the handful of attributes
the scans filter on. Compare-and-swap is a conditional put on ``version``.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr, ConditionBase, Key
from botocore.exceptions import ClientError

from qmsguard.core.exceptions import ConcurrencyConflict, NotFoundError, PersistenceError
from qmsguard.models.activity import ActivityEvent
from qmsguard.models.actor import Actor, Role
from qmsguard.models.policy import NotificationRequest
from qmsguard.models.record import TERMINAL_STATUSES, NonConformanceRecord, Status

RECORDS_TABLE = "qmsguard-nc-records"
ACTIVITY_TABLE = "qmsguard-activity-log"
ACTORS_TABLE = "qmsguard-actors"
FAILURES_TABLE = "qmsguard-notification-failures"

OPEN_STATUSES = [s.value for s in Status if s not in TERMINAL_STATUSES]


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class _DynamoDBBackend:
    """Shared resource wiring and table helpers."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    def _table(self, base: str):
        return self._ddb.Table(f"{base}{self._table_suffix}")

    def _get_item(self, table_base: str, pk: str, sk: str) -> dict[str, Any] | None:
        """Get a single item by PK + SK. Returns None if not found."""
        try:
            resp = self._table(table_base).get_item(Key={"PK": pk, "SK": sk})
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB get failed for {pk}/{sk}: {exc}") from exc
        return resp.get("Item")

    def _query_pk(self, table_base: str, pk: str) -> list[dict[str, Any]]:
        """Query all items with a given partition key, following pagination."""
        tbl = self._table(table_base)
        kwargs: dict[str, Any] = {"KeyConditionExpression": Key("PK").eq(pk)}
        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = tbl.query(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    return items
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB query failed for {pk}: {exc}") from exc

    def _scan(self, table_base: str, condition: ConditionBase) -> list[dict[str, Any]]:
        tbl = self._table(table_base)
        kwargs: dict[str, Any] = {"FilterExpression": condition}
        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = tbl.scan(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    return items
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB scan of {table_base} failed: {exc}") from exc


class DynamoDBRecordStore(_DynamoDBBackend):
    """Production IRecordStore with optimistic versioning."""

    @staticmethod
    def _to_item(record: NonConformanceRecord) -> dict[str, Any]:
        item: dict[str, Any] = {
            "PK": f"NC#{record.id}",
            "SK": "RECORD",
            "version": record.version,
            "status": record.status.value,
            "body": record.model_dump_json(),
        }
        if record.responsible_person_id:
            item["responsible_person_id"] = record.responsible_person_id
        if record.due_date is not None:
            item["due_date"] = record.due_date.isoformat()
        return item

    @staticmethod
    def _from_item(item: dict[str, Any]) -> NonConformanceRecord:
        record = NonConformanceRecord.model_validate_json(item["body"])
        return record.model_copy(update={"version": int(item["version"])})

    def get_record(self, record_id: str) -> NonConformanceRecord:
        item = self._get_item(RECORDS_TABLE, f"NC#{record_id}", "RECORD")
        if item is None:
            raise NotFoundError(f"Record {record_id} not found")
        return self._from_item(item)

    def insert_record(self, record: NonConformanceRecord) -> NonConformanceRecord:
        stored = record.model_copy(update={"version": 1})
        try:
            self._table(RECORDS_TABLE).put_item(
                Item=self._to_item(stored),
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                raise ConcurrencyConflict(record.id, 0) from exc
            raise PersistenceError(f"DynamoDB insert failed for {record.id}: {exc}") from exc
        return stored

    def compare_and_swap(
        self, record_id: str, expected_version: int, record: NonConformanceRecord
    ) -> NonConformanceRecord:
        stored = record.model_copy(update={"version": expected_version + 1})
        try:
            self._table(RECORDS_TABLE).put_item(
                Item=self._to_item(stored),
                ConditionExpression="attribute_exists(PK) AND #v = :expected",
                ExpressionAttributeNames={"#v": "version"},
                ExpressionAttributeValues={":expected": expected_version},
            )
        except ClientError as exc:
            if not _is_conditional_failure(exc):
                raise PersistenceError(f"DynamoDB write failed for {record_id}: {exc}") from exc
            if self._get_item(RECORDS_TABLE, f"NC#{record_id}", "RECORD") is None:
                raise NotFoundError(f"Record {record_id} not found") from exc
            raise ConcurrencyConflict(record_id, expected_version) from exc
        return stored

    def list_open_records(self) -> list[NonConformanceRecord]:
        items = self._scan(RECORDS_TABLE, Attr("SK").eq("RECORD") & Attr("status").is_in(OPEN_STATUSES))
        return [self._from_item(item) for item in items]

    def count_overdue(self, user_id: str, today: date) -> int:
        condition = (
            Attr("responsible_person_id").eq(user_id)
            & Attr("due_date").lt(today.isoformat())
            & Attr("status").is_in(OPEN_STATUSES)
        )
        return len(self._scan(RECORDS_TABLE, condition))


class DynamoDBActivityRecorder(_DynamoDBBackend):
    """Production IActivityRecorder. Items are only ever put, never updated."""

    def append(self, record_id: str, event: ActivityEvent) -> None:
        item = {
            "PK": f"NC#{record_id}",
            "SK": f"EVENT#{event.timestamp.isoformat()}#{uuid.uuid4().hex[:8]}",
            "action": event.action.value,
            "actor_id": event.actor_id,
            "body": event.model_dump_json(),
        }
        try:
            self._table(ACTIVITY_TABLE).put_item(
                Item=item, ConditionExpression="attribute_not_exists(SK)"
            )
        except ClientError as exc:
            raise PersistenceError(f"Audit append failed for {record_id}: {exc}") from exc

    def list_events(self, record_id: str) -> list[ActivityEvent]:
        items = self._query_pk(ACTIVITY_TABLE, f"NC#{record_id}")
        return [ActivityEvent.model_validate_json(item["body"]) for item in items]


class DynamoDBActorDirectory(_DynamoDBBackend):
    """Production IActorDirectory over the actors table."""

    @staticmethod
    def _to_actor(item: dict[str, Any]) -> Actor:
        return Actor(
            id=item["PK"].removeprefix("USER#"),
            roles=frozenset(Role(r) for r in item.get("roles", [])),
            department_id=item.get("department_id") or None,
            full_name=item.get("full_name", ""),
        )

    def resolve(self, user_id: str) -> Actor:
        item = self._get_item(ACTORS_TABLE, f"USER#{user_id}", "PROFILE")
        if item is None:
            raise NotFoundError(f"User {user_id} not found")
        return self._to_actor(item)

    def users_with_role(self, role: Role) -> list[Actor]:
        items = self._scan(ACTORS_TABLE, Attr("SK").eq("PROFILE") & Attr("roles").contains(role.value))
        return sorted((self._to_actor(item) for item in items), key=lambda a: a.id)

    def department_manager(self, department_id: str) -> str | None:
        item = self._get_item(ACTORS_TABLE, f"DEPT#{department_id}", "MANAGER")
        return item.get("manager_id") if item else None


class DynamoDBNotificationFailureLog(_DynamoDBBackend):
    """Production INotificationFailureLog under a single partition."""

    PK = "FAILURE"

    def record_failure(self, request: NotificationRequest) -> NotificationRequest:
        if not request.id:
            request = request.model_copy(update={"id": uuid.uuid4().hex})
        try:
            self._table(FAILURES_TABLE).put_item(
                Item={"PK": self.PK, "SK": request.id, "body": request.model_dump_json()}
            )
        except ClientError as exc:
            raise PersistenceError(f"Could not record failed notification {request.id}: {exc}") from exc
        return request

    def pending(self) -> list[NotificationRequest]:
        return [
            NotificationRequest.model_validate_json(item["body"])
            for item in self._query_pk(FAILURES_TABLE, self.PK)
        ]

    def remove(self, request_id: str) -> None:
        try:
            self._table(FAILURES_TABLE).delete_item(Key={"PK": self.PK, "SK": request_id})
        except ClientError as exc:
            raise PersistenceError(f"Could not remove failed notification {request_id}: {exc}") from exc
