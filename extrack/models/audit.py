"""
Audit Models for extrack

Every mutation of user data is recorded as an audit event.
This provides:
1. Traceability of how a ledger, bill or goal reached its state
2. Debugging information when things go wrong
3. A per-user history that can be shown back to the user

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    USER_REGISTERED = "user_registered"
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    AUTHENTICATION_FAILED = "authentication_failed"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    DEFAULT_CATEGORIES_SEEDED = "default_categories_seeded"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    MONTH_LEDGER_CREATED = "month_ledger_created"
    MONTHLY_INCOME_SET = "monthly_income_set"

    # Recurring bills
    RECURRING_RULE_CREATED = "recurring_rule_created"
    RECURRING_RULE_UPDATED = "recurring_rule_updated"
    RECURRING_RULE_DELETED = "recurring_rule_deleted"
    RECURRING_INSTANCES_GENERATED = "recurring_instances_generated"
    BILL_PAID = "bill_paid"

    # Budgets
    BUDGET_SAVED = "budget_saved"
    BUDGET_DELETED = "budget_deleted"

    # Saving goals
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"
    GOAL_ADJUSTED = "goal_adjusted"
    GOAL_ADJUSTMENT_REJECTED = "goal_adjustment_rejected"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - who and what is this about?
    user_id: Optional[int] = Field(
        default=None,
        description="Owning user, when known"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'goal', 'budget', 'recurring_instance')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events raised by one request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bill_paid(user_id, instance_id, ...)
        event = AuditEventBuilder.goal_adjusted(user_id, goal_id, ...)
    """

    @staticmethod
    def user_registered(user_id: int, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description=f"User registered: {email}",
        )

    @staticmethod
    def authentication_failed(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTHENTICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Sign-in rejected",
            details={"email": email},
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        user_id: Optional[int],
        entity_type: str,
        entity_id: Optional[int],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Generic create/update/delete event for an owned row."""
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def month_ledger_created(
        user_id: int,
        ledger_id: int,
        month_key: str,
        instances_created: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_LEDGER_CREATED,
            user_id=user_id,
            entity_type="month_ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger opened for {month_key}",
            details={
                "month_key": month_key,
                "instances_created": instances_created,
            },
        )

    @staticmethod
    def recurring_instances_generated(
        user_id: int,
        month_key: str,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_INSTANCES_GENERATED,
            user_id=user_id,
            entity_type="recurring_instance",
            correlation_id=correlation_id,
            description=f"Generated {created} recurring bill(s) for {month_key}",
            details={
                "month_key": month_key,
                "created": created,
            },
        )

    @staticmethod
    def bill_paid(
        user_id: int,
        instance_id: int,
        amount: str,
        total_paid: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_PAID,
            user_id=user_id,
            entity_type="recurring_instance",
            entity_id=instance_id,
            correlation_id=correlation_id,
            description=f"Bill payment of {amount} recorded ({status})",
            details={
                "amount": amount,
                "total_paid": total_paid,
                "status": status,
            },
        )

    @staticmethod
    def goal_adjusted(
        user_id: int,
        goal_id: int,
        delta: str,
        current_amount: str,
        transaction_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_ADJUSTED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal balance changed by {delta}",
            details={
                "delta": delta,
                "current_amount": current_amount,
                "transaction_id": transaction_id,
            },
        )

    @staticmethod
    def goal_adjustment_rejected(
        user_id: int,
        goal_id: int,
        available: str,
        requested: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_ADJUSTMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Withdrawal larger than goal balance rejected",
            details={
                "available": available,
                "requested": requested,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
