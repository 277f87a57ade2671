"""Wiring: build the engine, lockout policy, and sweep from settings."""

from __future__ import annotations

from dataclasses import dataclass

from qmsguard.core.config import AppSettings
from qmsguard.core.protocols import INotifier
from qmsguard.core.types import Clock
from qmsguard.notifications.log_notifier import LoggingNotifier
from qmsguard.notifications.sqs_notifier import SQSNotifier
from qmsguard.persistence import Persistence, create_persistence
from qmsguard.workflow.engine import WorkflowEngine
from qmsguard.workflow.lockout import LockoutPolicy
from qmsguard.workflow.sweep import ScheduledSweep


@dataclass
class Services:
    """Everything the API layer and the scheduler call into."""

    persistence: Persistence
    notifier: INotifier
    engine: WorkflowEngine
    lockout: LockoutPolicy
    sweep: ScheduledSweep


def create_notifier(settings: AppSettings) -> INotifier:
    if settings.notifier.backend == "sqs":
        return SQSNotifier(
            queue_url=settings.notifier.queue_url,
            region=settings.notifier.region,
            endpoint_url=settings.notifier.endpoint_url,
            timeout=settings.notifier.timeout,
        )
    return LoggingNotifier()


def create_services(
    settings: AppSettings | None = None,
    *,
    persistence: Persistence | None = None,
    notifier: INotifier | None = None,
    clock: Clock | None = None,
) -> Services:
    """Wire services from settings; explicit collaborators take precedence."""
    if settings is None:
        settings = AppSettings()
    persistence = persistence or create_persistence(settings)
    notifier = notifier or create_notifier(settings)
    clock_kwargs = {"clock": clock} if clock is not None else {}

    lockout = LockoutPolicy(
        store=persistence.store,
        directory=persistence.directory,
        cache=persistence.cache,
        config=settings.workflow,
        **clock_kwargs,
    )
    engine = WorkflowEngine(
        store=persistence.store,
        recorder=persistence.recorder,
        notifier=notifier,
        directory=persistence.directory,
        failures=persistence.failures,
        lockout=lockout,
        config=settings.workflow,
        **clock_kwargs,
    )
    sweep = ScheduledSweep(
        store=persistence.store,
        recorder=persistence.recorder,
        notifier=notifier,
        directory=persistence.directory,
        lockout=lockout,
        failures=persistence.failures,
        config=settings.workflow,
        **clock_kwargs,
    )
    return Services(
        persistence=persistence, notifier=notifier, engine=engine, lockout=lockout, sweep=sweep
    )
