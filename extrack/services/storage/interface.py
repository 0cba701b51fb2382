"""
Abstract Storage Interface

DESIGN DECISION: Business services talk to the relational store through
an injected `Database` handle (see sqlalchemy_store.py). The audit trail
is the one piece of storage that stays behind an abstract interface, so
the audit logger can run with no persistence at all (tests, scripts) or
with a different sink later.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from extrack.models.audit import AuditEvent


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_events_for_user(
        self,
        user_id: int,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent events that belong to one user.

        Returns:
            List of events (newest first)
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
        entity_type: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
