"""
Audit Logger

DESIGN DECISION: Every mutation in the system is logged.
This provides:
1. Complete traceability of ledger, bill and goal changes
2. Debugging capability
3. A per-user history of changes

The audit logger:
- Always writes a structured local log line
- Optionally persists to audit storage
- Gracefully handles storage failures (never fails the user's request)
- Stamps every event with the correlation ID bound for the current
  request, so one operation's events can be read back together
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from extrack.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from extrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the standard library at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("extrack").setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user-visible history)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("extrack.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        if event.correlation_id is None:
            event.correlation_id = current_correlation_id()

        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_change(
        self,
        event_type: AuditEventType,
        user_id: Optional[int],
        entity_type: str,
        entity_id: Optional[int],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a create/update/delete of an owned row."""
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_user_registered(self, user_id: int, email: str) -> None:
        self.log(AuditEventBuilder.user_registered(user_id=user_id, email=email))

    def log_authentication_failed(self, email: str) -> None:
        self.log(AuditEventBuilder.authentication_failed(email=email))

    def log_month_ledger_created(
        self,
        user_id: int,
        ledger_id: int,
        month_key: str,
        instances_created: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.month_ledger_created(
            user_id=user_id,
            ledger_id=ledger_id,
            month_key=month_key,
            instances_created=instances_created,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_instances_generated(
        self,
        user_id: int,
        month_key: str,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.recurring_instances_generated(
            user_id=user_id,
            month_key=month_key,
            created=created,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_bill_paid(
        self,
        user_id: int,
        instance_id: int,
        amount: str,
        total_paid: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.bill_paid(
            user_id=user_id,
            instance_id=instance_id,
            amount=amount,
            total_paid=total_paid,
            status=status,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_goal_adjusted(
        self,
        user_id: int,
        goal_id: int,
        delta: str,
        current_amount: str,
        transaction_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.goal_adjusted(
            user_id=user_id,
            goal_id=goal_id,
            delta=delta,
            current_amount=current_amount,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_goal_adjustment_rejected(
        self,
        user_id: int,
        goal_id: int,
        available: str,
        requested: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.goal_adjustment_rejected(
            user_id=user_id,
            goal_id=goal_id,
            available=available,
            requested=requested,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user request.
    Pass it through all subsequent operations.
    """
    return uuid4()


def current_correlation_id() -> Optional[UUID]:
    """The correlation ID bound by the running request, if any."""
    bound = structlog.contextvars.get_contextvars().get("correlation_id")
    return UUID(bound) if bound else None
