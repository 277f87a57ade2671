"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from dataclasses import dataclass

from qmsguard.core.config import AppSettings
from qmsguard.core.protocols import (
    IActivityRecorder,
    IActorDirectory,
    ICacheBackend,
    INotificationFailureLog,
    IRecordStore,
)
from qmsguard.persistence.dynamodb_backend import (
    DynamoDBActivityRecorder,
    DynamoDBActorDirectory,
    DynamoDBNotificationFailureLog,
    DynamoDBRecordStore,
)
from qmsguard.persistence.memory_backend import (
    MemoryActivityRecorder,
    MemoryActorDirectory,
    MemoryCacheBackend,
    MemoryNotificationFailureLog,
    MemoryRecordStore,
)
from qmsguard.persistence.redis_backend import RedisCacheBackend


@dataclass
class Persistence:
    store: IRecordStore
    recorder: IActivityRecorder
    directory: IActorDirectory
    failures: INotificationFailureLog
    cache: ICacheBackend


def create_persistence(settings: AppSettings | None = None) -> Persistence:
    """Create wired-up persistence backends from application settings."""
    if settings is None:
        settings = AppSettings()

    if settings.backend == "memory":
        return Persistence(
            store=MemoryRecordStore(),
            recorder=MemoryActivityRecorder(),
            directory=MemoryActorDirectory(),
            failures=MemoryNotificationFailureLog(),
            cache=MemoryCacheBackend(),
        )

    ddb = {
        "table_suffix": settings.dynamodb.table_suffix,
        "region": settings.dynamodb.region,
        "endpoint_url": settings.dynamodb.endpoint_url,
    }
    return Persistence(
        store=DynamoDBRecordStore(**ddb),
        recorder=DynamoDBActivityRecorder(**ddb),
        directory=DynamoDBActorDirectory(**ddb),
        failures=DynamoDBNotificationFailureLog(**ddb),
        cache=RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            namespace=settings.redis.namespace,
        ),
    )
