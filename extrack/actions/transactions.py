"""
Transaction Ledger

Append-only record of money movement. Transactions are created directly
by the user or as side effects of bill payments and goal adjustments;
there is no edit or delete operation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from extrack.actions.base import BaseActions, require_user, to_money
from extrack.actions.categories import require_category
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    MonthTotals,
    TransactionInput,
    TransactionRecord,
    TransactionType,
    parse_input,
)
from extrack.models.month import month_date_range
from extrack.services.storage.tables import TransactionRow


def record_transaction(
    session: Session,
    user_id: int,
    amount: Decimal,
    type: TransactionType,
    date: datetime,
    category_id: Optional[int] = None,
    note: Optional[str] = None,
    recurring_instance_id: Optional[int] = None,
) -> TransactionRow:
    """Insert a transaction inside the caller's unit of work."""
    row = TransactionRow(
        user_id=user_id,
        amount=amount,
        type=type,
        category_id=category_id,
        note=note,
        date=date,
        recurring_instance_id=recurring_instance_id,
    )
    session.add(row)
    session.flush()
    return row


def sum_transactions(
    session: Session,
    user_id: int,
    type: TransactionType,
    start: datetime,
    end: datetime,
    category_id: Optional[int] = None,
) -> Decimal:
    """Sum of one user's transactions of `type` dated in [start, end)."""
    query = select(func.coalesce(func.sum(TransactionRow.amount), 0)).where(
        TransactionRow.user_id == user_id,
        TransactionRow.type == type,
        TransactionRow.date >= start,
        TransactionRow.date < end,
    )
    if category_id is not None:
        query = query.where(TransactionRow.category_id == category_id)
    return to_money(session.scalar(query))


def month_totals(session: Session, user_id: int, month_key: str) -> MonthTotals:
    start, end = month_date_range(month_key)
    return MonthTotals(
        month_key=month_key,
        income=sum_transactions(session, user_id, TransactionType.INCOME, start, end),
        expenses=sum_transactions(session, user_id, TransactionType.EXPENSE, start, end),
    )


class TransactionActions(BaseActions):
    """Record and read a user's transactions."""

    def add_transaction(self, user_id: int, data) -> TransactionRecord:
        payload = parse_input(TransactionInput, data)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            if payload.category_id is not None:
                require_category(session, payload.category_id)
            row = record_transaction(
                session,
                user_id,
                amount=payload.amount,
                type=payload.type,
                date=payload.date,
                category_id=payload.category_id,
                note=payload.note,
            )
            record = TransactionRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=record.id,
            description=f"{record.type.value.title()} of {record.amount} recorded",
            details={"amount": str(record.amount), "type": record.type.value},
        )
        return record

    def list_transactions(
        self,
        user_id: int,
        month_key: str,
        type: Optional[TransactionType] = None,
        limit: Optional[int] = None,
    ) -> list[TransactionRecord]:
        """A month's transactions, newest first."""
        start, end = month_date_range(month_key)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            query = select(TransactionRow).where(
                TransactionRow.user_id == user_id,
                TransactionRow.date >= start,
                TransactionRow.date < end,
            )
            if type is not None:
                query = query.where(TransactionRow.type == TransactionType(type))
            rows = session.scalars(
                query.order_by(TransactionRow.date.desc(), TransactionRow.id.desc())
                .limit(limit or self._settings.transactions_page_size)
            ).all()
            return [TransactionRecord.model_validate(row) for row in rows]

    def get_month_totals(self, user_id: int, month_key: str) -> MonthTotals:
        with self._database.session_scope() as session:
            require_user(session, user_id)
            return month_totals(session, user_id, month_key)
