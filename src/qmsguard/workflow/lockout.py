"""LockoutPolicy: revoke access for users carrying too many overdue records."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from qmsguard.core.config import WorkflowConfig
from qmsguard.core.protocols import IActorDirectory, ICacheBackend, IRecordStore
from qmsguard.core.types import Clock
from qmsguard.models.policy import LockoutDecision

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LockoutPolicy:
    """Advisory lockout decision for the access layer.

    Decisions may be served from the cache for up to ``lockout_cache_ttl``
    seconds; crossing the threshold takes effect on the next uncached read.
    """

    CACHE_PREFIX = "lockout:"

    def __init__(
        self,
        *,
        store: IRecordStore,
        directory: IActorDirectory,
        cache: ICacheBackend | None = None,
        config: WorkflowConfig | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        config = config or WorkflowConfig()
        self._store = store
        self._directory = directory
        self._cache = cache
        self._threshold = config.lockout_threshold
        self._ttl = config.lockout_cache_ttl
        self._clock = clock

    @property
    def threshold(self) -> int:
        return self._threshold

    def decide(self, user_id: str, overdue_count: int, is_admin: bool) -> LockoutDecision:
        """Pure decision from an overdue count; admins are never locked."""
        return LockoutDecision(
            user_id=user_id,
            locked=overdue_count >= self._threshold and not is_admin,
            overdue_count=overdue_count,
            threshold=self._threshold,
            exempt=is_admin,
        )

    def evaluate(self, user_id: str, use_cache: bool = True) -> LockoutDecision:
        cache_key = f"{self.CACHE_PREFIX}{user_id}"
        if use_cache and self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return LockoutDecision.model_validate_json(cached)

        actor = self._directory.resolve(user_id)
        today = self._clock().date()
        decision = self.decide(user_id, self._store.count_overdue(user_id, today), actor.is_admin)

        if self._cache is not None:
            self._cache.setex(cache_key, self._ttl, decision.model_dump_json())
        if decision.locked:
            logger.info("user_locked_out", user_id=user_id, overdue_count=decision.overdue_count)
        return decision

    def is_locked(self, user_id: str) -> bool:
        return self.evaluate(user_id).locked

    def invalidate(self, user_id: str) -> None:
        if self._cache is not None:
            self._cache.delete(f"{self.CACHE_PREFIX}{user_id}")
