"""Tests for service wiring and logging configuration."""

from __future__ import annotations

import pytest
import structlog
from moto import mock_aws

from qmsguard.core.config import AppSettings, NotifierConfig
from qmsguard.core.exceptions import ConfigurationError
from qmsguard.core.logging import configure_logging
from qmsguard.core.protocols import (
    IActivityRecorder,
    IActorDirectory,
    ICacheBackend,
    INotificationFailureLog,
    INotifier,
    IRecordStore,
)
from qmsguard.notifications.log_notifier import LoggingNotifier
from qmsguard.notifications.sqs_notifier import SQSNotifier
from qmsguard.persistence import create_persistence
from qmsguard.persistence.memory_backend import MemoryRecordStore
from qmsguard.workflow.services import create_notifier, create_services
from tests.fakes import RecordingNotifier
from tests.unit.conftest import NOW, fixed_clock


class TestCreatePersistence:
    def test_memory_backends_satisfy_protocols(self):
        p = create_persistence(AppSettings())
        assert isinstance(p.store, IRecordStore)
        assert isinstance(p.recorder, IActivityRecorder)
        assert isinstance(p.directory, IActorDirectory)
        assert isinstance(p.failures, INotificationFailureLog)
        assert isinstance(p.cache, ICacheBackend)
        assert isinstance(p.store, MemoryRecordStore)


class TestCreateNotifier:
    def test_log_notifier_by_default(self):
        notifier = create_notifier(AppSettings())
        assert isinstance(notifier, LoggingNotifier)
        assert isinstance(notifier, INotifier)

    def test_sqs_requires_queue_url(self):
        settings = AppSettings(notifier=NotifierConfig(backend="sqs"))
        with pytest.raises(ConfigurationError, match="queue URL"):
            create_notifier(settings)

    def test_sqs_notifier(self):
        with mock_aws():
            settings = AppSettings(
                notifier=NotifierConfig(backend="sqs", queue_url="https://sqs.us-east-1.amazonaws.com/123456789012/nc")
            )
            assert isinstance(create_notifier(settings), SQSNotifier)


class TestCreateServices:
    def test_shares_one_store(self):
        services = create_services(AppSettings())
        assert services.engine._store is services.persistence.store
        assert services.sweep._store is services.persistence.store
        assert services.lockout.threshold == 5
        assert isinstance(services.notifier, LoggingNotifier)

    def test_explicit_collaborators_win(self):
        notifier = RecordingNotifier()
        services = create_services(AppSettings(), notifier=notifier, clock=fixed_clock)
        assert services.notifier is notifier
        assert services.sweep.run().reminders_sent == 0

    def test_injected_clock_reaches_lockout(self):
        services = create_services(AppSettings(), clock=fixed_clock)
        assert services.lockout._clock() == NOW


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _reset(self):
        yield
        structlog.reset_defaults()

    def test_json_renderer(self):
        configure_logging("DEBUG", json=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self):
        configure_logging("warning")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
