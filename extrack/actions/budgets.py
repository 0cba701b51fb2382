"""
Budget Aggregator

A budget caps one category's spending in one month. Progress is always
computed from the transaction log, never stored.

Date range rule: every sum uses the half-open month interval
[first of month, first of next month) in local time.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from extrack.actions.base import BaseActions, get_owned, require_user, to_money
from extrack.actions.categories import require_category
from extrack.actions.transactions import sum_transactions
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    BudgetInput,
    BudgetProgress,
    BudgetRecord,
    TransactionType,
    parse_input,
)
from extrack.models.month import (
    month_date_range,
    month_key_for,
    parse_month_key,
    shift_month_key,
)
from extrack.services.storage import insert_if_absent
from extrack.services.storage.tables import BudgetRow, TransactionRow


def budget_percentage(spent: Decimal, limit: Decimal) -> float:
    """Share of the limit consumed, in percent. Not capped at 100."""
    if limit > 0:
        return float(spent / limit * 100)
    return 0.0


def budget_progress(session: Session, user_id: int, month_key: str) -> list[BudgetProgress]:
    start, end = month_date_range(month_key)
    budgets = session.scalars(
        select(BudgetRow)
        .where(BudgetRow.user_id == user_id, BudgetRow.month_key == month_key)
        .order_by(BudgetRow.id)
    ).all()

    results = []
    for budget in budgets:
        spent = sum_transactions(
            session,
            user_id,
            TransactionType.EXPENSE,
            start,
            end,
            category_id=budget.category_id,
        )
        progress = BudgetProgress.model_validate(budget)
        progress.spent = spent
        progress.percentage = budget_percentage(spent, budget.limit)
        results.append(progress)
    return results


class BudgetActions(BaseActions):
    """Monthly per-category budgets."""

    def upsert_budget(self, user_id: int, data) -> BudgetRecord:
        """
        Create the budget for (category, month) or replace its limit.
        """
        payload = parse_input(BudgetInput, data)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            require_category(session, payload.category_id)
            query = select(BudgetRow).where(
                BudgetRow.user_id == user_id,
                BudgetRow.category_id == payload.category_id,
                BudgetRow.month_key == payload.month_key,
            )
            budget = session.scalars(query).first()
            if budget is None:
                candidate = BudgetRow(
                    user_id=user_id,
                    category_id=payload.category_id,
                    month_key=payload.month_key,
                    limit=payload.limit,
                )
                if insert_if_absent(session, candidate):
                    budget = candidate
                else:
                    budget = session.scalars(query).one()
            budget.limit = payload.limit
            session.flush()
            record = BudgetRecord.model_validate(budget)

        self._audit_logger.log_change(
            event_type=AuditEventType.BUDGET_SAVED,
            user_id=user_id,
            entity_type="budget",
            entity_id=record.id,
            description=f"Budget for {record.month_key} set to {record.limit}",
            details={"category_id": record.category_id, "limit": str(record.limit)},
        )
        return record

    def update_budget(self, user_id: int, budget_id: int, limit) -> BudgetRecord:
        with self._database.session_scope() as session:
            require_user(session, user_id)
            budget = get_owned(session, BudgetRow, budget_id, user_id, "Budget")
            payload = parse_input(
                BudgetInput,
                {"category_id": budget.category_id, "month_key": budget.month_key, "limit": limit},
            )
            budget.limit = payload.limit
            session.flush()
            record = BudgetRecord.model_validate(budget)

        self._audit_logger.log_change(
            event_type=AuditEventType.BUDGET_SAVED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget for {record.month_key} set to {record.limit}",
            details={"category_id": record.category_id, "limit": str(record.limit)},
        )
        return record

    def delete_budget(self, user_id: int, budget_id: int) -> None:
        with self._database.session_scope() as session:
            require_user(session, user_id)
            budget = get_owned(session, BudgetRow, budget_id, user_id, "Budget")
            session.delete(budget)

        self._audit_logger.log_change(
            event_type=AuditEventType.BUDGET_DELETED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            description="Budget deleted",
        )

    def get_budgets_for_month(self, user_id: int, month_key: str) -> list[BudgetProgress]:
        """Every budget of the month with its actual spend and percentage."""
        parse_month_key(month_key)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            return budget_progress(session, user_id, month_key)

    def suggest_budget(self, user_id: int, category_id: int, month_key: str) -> Optional[int]:
        """
        Suggest a limit from recent spending.

        Looks at the calendar months before `month_key` (three by default,
        the target month excluded), totals the category's expenses per
        month and returns the mean of those totals, rounded half up.

        Returns:
            The suggested whole amount, or None when there is no history.
            None is not the same as a suggestion of 0.
        """
        months = self._settings.budget_suggestion_months
        window_start, _ = month_date_range(shift_month_key(month_key, -months))
        window_end, _ = month_date_range(month_key)

        with self._database.session_scope() as session:
            require_user(session, user_id)
            rows = session.execute(
                select(TransactionRow.amount, TransactionRow.date).where(
                    TransactionRow.user_id == user_id,
                    TransactionRow.category_id == category_id,
                    TransactionRow.type == TransactionType.EXPENSE,
                    TransactionRow.date >= window_start,
                    TransactionRow.date < window_end,
                )
            ).all()

        if not rows:
            return None

        monthly_totals: dict[str, Decimal] = defaultdict(Decimal)
        for amount, date in rows:
            monthly_totals[month_key_for(date)] += to_money(amount)

        average = sum(monthly_totals.values(), Decimal("0")) / len(monthly_totals)
        return int(average.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
