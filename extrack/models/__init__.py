"""
Data Models Package

This package contains all Pydantic models used by extrack, plus the
month key helpers every month-scoped operation relies on.
"""

from extrack.models.finance import (
    ActionResult,
    BillPaymentInput,
    BudgetInput,
    BudgetProgress,
    BudgetRecord,
    CategoryInput,
    CategoryKind,
    CategoryRecord,
    CategoryUpdate,
    DashboardData,
    GoalAdjustmentInput,
    GoalInput,
    GoalUpdate,
    InstanceStatus,
    MonthLedgerRecord,
    MonthlyIncomeInput,
    MonthTotals,
    PasswordChangeInput,
    RecurringInstanceRecord,
    RecurringInterval,
    RecurringRuleInput,
    RecurringRuleRecord,
    RecurringRuleUpdate,
    RegistrationInput,
    SavingGoalRecord,
    TransactionInput,
    TransactionRecord,
    TransactionType,
    UserRecord,
    parse_input,
)
from extrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from extrack.models.month import (
    is_current_or_future,
    make_month_key,
    month_date_range,
    month_key_for,
    parse_month_key,
    shift_month_key,
)

__all__ = [
    # Finance models
    "ActionResult",
    "BillPaymentInput",
    "BudgetInput",
    "BudgetProgress",
    "BudgetRecord",
    "CategoryInput",
    "CategoryKind",
    "CategoryRecord",
    "CategoryUpdate",
    "DashboardData",
    "GoalAdjustmentInput",
    "GoalInput",
    "GoalUpdate",
    "InstanceStatus",
    "MonthLedgerRecord",
    "MonthlyIncomeInput",
    "MonthTotals",
    "PasswordChangeInput",
    "RecurringInstanceRecord",
    "RecurringInterval",
    "RecurringRuleInput",
    "RecurringRuleRecord",
    "RecurringRuleUpdate",
    "RegistrationInput",
    "SavingGoalRecord",
    "TransactionInput",
    "TransactionRecord",
    "TransactionType",
    "UserRecord",
    "parse_input",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Month keys
    "is_current_or_future",
    "make_month_key",
    "month_date_range",
    "month_key_for",
    "parse_month_key",
    "shift_month_key",
]
