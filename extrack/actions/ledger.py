"""
Monthly Ledger

One ledger row per (user, month) holds the month's target income. The
ledger is also the trigger for materialising recurring bills: opening a
current or future month creates its ledger if needed and tops up the
month's bill instances.

GUARANTEES:
- Opening a past month never writes anything
- A ledger and the instances created with it commit in one unit of work
- Two requests opening the same month end up with one ledger
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from extrack.actions.base import BaseActions, require_user
from extrack.actions.budgets import budget_progress
from extrack.actions.goals import list_goal_rows
from extrack.actions.recurring import generate_instances, instances_for_month
from extrack.actions.transactions import month_totals
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    DashboardData,
    MonthLedgerRecord,
    MonthlyIncomeInput,
    RecurringInstanceRecord,
    SavingGoalRecord,
    TransactionRecord,
    parse_input,
)
from extrack.models.month import is_current_or_future, month_date_range, parse_month_key
from extrack.services.storage import insert_if_absent
from extrack.services.storage.tables import MonthLedgerRow, TransactionRow


def _ledger_query(user_id: int, month_key: str):
    return select(MonthLedgerRow).where(
        MonthLedgerRow.user_id == user_id,
        MonthLedgerRow.month_key == month_key,
    )


class LedgerActions(BaseActions):
    """Month ledgers, target income and the monthly dashboard."""

    def _open_month(
        self,
        session: Session,
        user_id: int,
        month_key: str,
    ) -> tuple[Optional[MonthLedgerRow], int, bool]:
        """
        Find or create the ledger and generate missing bills, inside the
        caller's unit of work.

        Returns:
            (ledger or None, instances created, whether this call created the ledger)
        """
        query = _ledger_query(user_id, month_key)
        ledger = session.scalars(query).first()
        writable = is_current_or_future(month_key, self._today())

        is_new = False
        if ledger is None:
            if not writable:
                return None, 0, False
            candidate = MonthLedgerRow(user_id=user_id, month_key=month_key)
            if insert_if_absent(session, candidate):
                ledger, is_new = candidate, True
            else:
                ledger = session.scalars(query).one()

        created = generate_instances(session, user_id, month_key) if writable else 0
        return ledger, created, is_new

    def _log_opened(self, user_id: int, month_key: str, ledger_id: Optional[int], created: int, is_new: bool):
        if is_new:
            self._audit_logger.log_month_ledger_created(
                user_id=user_id,
                ledger_id=ledger_id,
                month_key=month_key,
                instances_created=created,
            )
        elif created:
            self._audit_logger.log_instances_generated(
                user_id=user_id,
                month_key=month_key,
                created=created,
            )

    def ensure_month_ledger(self, user_id: int, month_key: str) -> Optional[MonthLedgerRecord]:
        """
        Return the month's ledger, creating it if the month is not in the past.

        Returns:
            The ledger, or None for a past month that never had one
        """
        parse_month_key(month_key)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            ledger, created, is_new = self._open_month(session, user_id, month_key)
            record = MonthLedgerRecord.model_validate(ledger) if ledger is not None else None

        self._log_opened(user_id, month_key, record.id if record else None, created, is_new)
        return record

    def set_monthly_income(self, user_id: int, month_key: str, income) -> MonthLedgerRecord:
        """
        Set the month's target income.

        Works for any month, past ones included; this is the only way a
        ledger is created for a past month. No bills are generated here.
        """
        payload = parse_input(MonthlyIncomeInput, {"month_key": month_key, "income": income})
        with self._database.session_scope() as session:
            require_user(session, user_id)
            query = _ledger_query(user_id, payload.month_key)
            ledger = session.scalars(query).first()
            if ledger is None:
                candidate = MonthLedgerRow(user_id=user_id, month_key=payload.month_key)
                if insert_if_absent(session, candidate):
                    ledger = candidate
                else:
                    ledger = session.scalars(query).one()
            ledger.income = payload.income
            session.flush()
            record = MonthLedgerRecord.model_validate(ledger)

        self._audit_logger.log_change(
            event_type=AuditEventType.MONTHLY_INCOME_SET,
            user_id=user_id,
            entity_type="month_ledger",
            entity_id=record.id,
            description=f"Target income for {record.month_key} set to {record.income}",
            details={"month_key": record.month_key, "income": str(record.income)},
        )
        return record

    def get_dashboard(self, user_id: int, month_key: str) -> DashboardData:
        """
        Everything the monthly overview needs, read in one unit of work.

        Opens the month first, so a current or future month always comes
        back with its ledger and bills.
        """
        parse_month_key(month_key)
        start, end = month_date_range(month_key)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            ledger, created, is_new = self._open_month(session, user_id, month_key)

            recent = session.scalars(
                select(TransactionRow)
                .where(
                    TransactionRow.user_id == user_id,
                    TransactionRow.date >= start,
                    TransactionRow.date < end,
                )
                .order_by(TransactionRow.date.desc(), TransactionRow.id.desc())
                .limit(self._settings.recent_transactions_limit)
            ).all()

            dashboard = DashboardData(
                month_key=month_key,
                ledger=MonthLedgerRecord.model_validate(ledger) if ledger is not None else None,
                instances=[
                    RecurringInstanceRecord.model_validate(row)
                    for row in instances_for_month(session, user_id, month_key)
                ],
                recent_transactions=[TransactionRecord.model_validate(row) for row in recent],
                goals=[SavingGoalRecord.model_validate(row) for row in list_goal_rows(session, user_id)],
                budgets=budget_progress(session, user_id, month_key),
                totals=month_totals(session, user_id, month_key),
            )

        self._log_opened(
            user_id,
            month_key,
            dashboard.ledger.id if dashboard.ledger else None,
            created,
            is_new,
        )
        return dashboard
