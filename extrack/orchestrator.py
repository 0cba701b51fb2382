"""
Main Orchestrator for extrack

This module ties the action services together behind one facade and
defines the boundary to the presentation layer:
1. ExpenseTracker - one object holding every action service, all sharing
   the same database handle, audit logger and clock
2. perform() - runs one operation and converts the outcome into an
   ActionResult

DESIGN DECISION: Domain errors cross the boundary as their short
user_message. Anything unexpected is recorded as a system error in the
audit log and the caller only sees a generic message, never a traceback.
"""

import inspect
from typing import Any, Callable, Optional

import structlog

from extrack.actions import (
    AccountActions,
    BudgetActions,
    CategoryActions,
    Clock,
    GoalActions,
    LedgerActions,
    RecurringActions,
    TransactionActions,
)
from extrack.audit import AuditLogger, configure_logging, create_correlation_id
from extrack.config import get_settings
from extrack.errors import ExtrackError
from extrack.models.finance import ActionResult
from extrack.services.storage import Database, SqlAuditStorage


logger = structlog.get_logger("extrack.orchestrator")


class ExpenseTracker:
    """
    Facade over every action service.

    Usage:
        tracker = create_app_components("sqlite:///extrack.db")
        user = tracker.accounts.register_user({...})
        dashboard = tracker.ledger.get_dashboard(user.id, "2024-06")
    """

    def __init__(
        self,
        database: Database,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._database = database
        self._audit_logger = audit_logger or AuditLogger()

        services = (database, self._audit_logger, clock)
        self.accounts = AccountActions(*services)
        self.categories = CategoryActions(*services)
        self.transactions = TransactionActions(*services)
        self.recurring = RecurringActions(*services)
        self.ledger = LedgerActions(*services)
        self.budgets = BudgetActions(*services)
        self.goals = GoalActions(*services)

    @property
    def database(self) -> Database:
        return self._database

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def perform(self, action: Callable[..., Any], *args, **kwargs) -> ActionResult:
        """
        Run one operation for the presentation layer.

        A fresh correlation ID is bound for the duration of the call, so
        every audit event and log line the operation writes carries it.

        Returns:
            ActionResult with the operation's return value as `data`, or
            `success=False` and a short message
        """
        correlation_id = create_correlation_id()
        name = getattr(action, "__name__", str(action))
        with structlog.contextvars.bound_contextvars(correlation_id=str(correlation_id)):
            try:
                return ActionResult(
                    success=True,
                    data=action(*args, **kwargs),
                    correlation_id=correlation_id,
                )
            except ExtrackError as e:
                logger.info(
                    "action_rejected",
                    action=name,
                    error_type=type(e).__name__,
                    error=e.user_message,
                )
                return ActionResult(success=False, error=e.user_message, correlation_id=correlation_id)
            except Exception as e:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"action": name},
                    user_id=_caller_id(action, args, kwargs),
                )
                return ActionResult(
                    success=False,
                    error=ExtrackError.default_message,
                    correlation_id=correlation_id,
                )


def _caller_id(action: Callable[..., Any], args: tuple, kwargs: dict) -> Optional[int]:
    """The `user_id` argument of an action call, positional or keyword."""
    try:
        bound = inspect.signature(action).bind_partial(*args, **kwargs)
    except (TypeError, ValueError):
        return None
    user_id = bound.arguments.get("user_id")
    if isinstance(user_id, int) and not isinstance(user_id, bool):
        return user_id
    return None


def create_app_components(
    database_url: Optional[str] = None,
    clock: Optional[Clock] = None,
    persist_audit: bool = True,
) -> ExpenseTracker:
    """
    Factory function to create all application components.

    Args:
        database_url: SQLAlchemy URL; defaults to DATABASE_URL from settings
        clock: Source of "now"; defaults to the system clock
        persist_audit: Whether audit events are also written to the
                       audit_events table. Set to False for local-only logging.

    Returns:
        A ready ExpenseTracker with the schema created and the default
        categories in place
    """
    configure_logging(get_settings().app.log_level)

    database = Database(database_url)
    database.create_schema()

    audit_logger = AuditLogger(SqlAuditStorage(database) if persist_audit else None)

    tracker = ExpenseTracker(database, audit_logger=audit_logger, clock=clock)
    tracker.categories.ensure_default_categories()
    return tracker
