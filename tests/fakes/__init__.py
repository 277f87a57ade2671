"""Shared test doubles: re-export memory backends."""

from __future__ import annotations

from qmsguard.persistence.memory_backend import (
    MemoryActivityRecorder,
    MemoryActorDirectory,
    MemoryCacheBackend,
    MemoryNotificationFailureLog,
    MemoryRecordStore,
    RecordingNotifier,
)

__all__ = [
    "MemoryActivityRecorder",
    "MemoryActorDirectory",
    "MemoryCacheBackend",
    "MemoryNotificationFailureLog",
    "MemoryRecordStore",
    "RecordingNotifier",
]
