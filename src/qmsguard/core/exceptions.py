"""QMS Guard exception hierarchy.

Every error carries a ``reason`` suitable for direct display to the user.
"""

from __future__ import annotations


class QMSGuardError(Exception):
    """Base exception for all QMS Guard errors."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class ValidationError(QMSGuardError):
    """No transition-table row matches, or the payload is malformed."""


class AuthorizationError(QMSGuardError):
    """Actor lacks the role or relationship the action requires."""


class NotFoundError(QMSGuardError):
    """Unknown record or user."""


class ConcurrencyConflict(QMSGuardError):
    """Record version changed between read and write."""

    def __init__(self, record_id: str, expected_version: int) -> None:
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"Record {record_id} was modified by someone else (expected version "
            f"{expected_version}); reload and try again"
        )


class NotificationFailure(QMSGuardError):
    """Notification request could not be delivered. Never fatal to a transition."""

    def __init__(self, event_type: str, reason: str) -> None:
        self.event_type = event_type
        super().__init__(f"Notification {event_type} failed: {reason}")


class ConfigurationError(QMSGuardError):
    """A required collaborator is missing or misconfigured."""


class PersistenceError(QMSGuardError):
    """Backend storage operation failed."""


class CacheError(QMSGuardError):
    """Redis cache operation failed."""
