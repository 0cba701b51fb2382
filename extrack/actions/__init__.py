from .accounts import AccountActions
from .base import BaseActions, Clock, get_owned, require_user, to_money
from .budgets import BudgetActions, budget_percentage, budget_progress
from .categories import (
    DEFAULT_CATEGORIES,
    CategoryActions,
    get_or_create_savings_category,
    require_category,
)
from .goals import GoalActions, list_goal_rows
from .ledger import LedgerActions
from .recurring import (
    RecurringActions,
    display_order,
    generate_instances,
    instances_for_month,
    paid_status,
)
from .transactions import (
    TransactionActions,
    month_totals,
    record_transaction,
    sum_transactions,
)

__all__ = [
    "AccountActions",
    "BaseActions",
    "BudgetActions",
    "CategoryActions",
    "Clock",
    "DEFAULT_CATEGORIES",
    "GoalActions",
    "LedgerActions",
    "RecurringActions",
    "TransactionActions",
    "budget_percentage",
    "budget_progress",
    "display_order",
    "generate_instances",
    "get_or_create_savings_category",
    "get_owned",
    "instances_for_month",
    "list_goal_rows",
    "month_totals",
    "paid_status",
    "record_transaction",
    "require_category",
    "require_user",
    "sum_transactions",
    "to_money",
]
