"""
Recurring Rule Engine

A recurring rule is a monthly obligation (rent on the 1st, a loan
repayment on the 5th). For every calendar month it materialises into at
most one recurring instance, which tracks how much of that month's
obligation has been paid.

GUARANTEES:
- Instances are created lazily, only for the current or a future month
- Exactly one instance per (rule, month); the unique constraint is the
  backstop when two requests race
- Payment status is recomputed from the stored payments, never from the
  amount just paid
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from extrack.actions.base import BaseActions, get_owned, require_user, to_money
from extrack.actions.categories import require_category
from extrack.actions.transactions import record_transaction
from extrack.errors import NotFoundError
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    BillPaymentInput,
    InstanceStatus,
    RecurringInstanceRecord,
    RecurringRuleInput,
    RecurringRuleRecord,
    RecurringRuleUpdate,
    TransactionType,
    parse_input,
)
from extrack.models.month import is_current_or_future, parse_month_key
from extrack.services.storage import insert_if_absent
from extrack.services.storage.tables import (
    RecurringInstanceRow,
    RecurringRuleRow,
    TransactionRow,
)


def generate_instances(session: Session, user_id: int, month_key: str) -> int:
    """
    Create the missing instances of a user's active rules for one month.

    No calendar check happens here; callers decide whether the month may
    be materialised.

    Returns:
        Number of instances this call created
    """
    rules = session.scalars(
        select(RecurringRuleRow).where(
            RecurringRuleRow.user_id == user_id,
            RecurringRuleRow.active.is_(True),
        )
    ).all()
    if not rules:
        return 0

    existing = set(
        session.scalars(
            select(RecurringInstanceRow.rule_id).where(
                RecurringInstanceRow.month_key == month_key,
                RecurringInstanceRow.rule_id.in_([rule.id for rule in rules]),
            )
        ).all()
    )

    created = 0
    for rule in rules:
        if rule.id in existing:
            continue
        instance = RecurringInstanceRow(
            rule_id=rule.id,
            month_key=month_key,
            amount_due=rule.amount,
            status=InstanceStatus.DUE,
        )
        # Losing a race to a concurrent request is fine: the row exists
        if insert_if_absent(session, instance):
            created += 1
    return created


def display_order(instances: Iterable[RecurringInstanceRow]) -> list[RecurringInstanceRow]:
    """Open bills (DUE, PARTIAL) first, then settled ones; each by due day."""
    return sorted(
        instances,
        key=lambda i: (
            0 if InstanceStatus(i.status).is_open else 1,
            i.rule.day_of_month,
            i.rule.name,
            i.id,
        ),
    )


def instances_for_month(session: Session, user_id: int, month_key: str) -> list[RecurringInstanceRow]:
    rows = session.scalars(
        select(RecurringInstanceRow)
        .join(RecurringInstanceRow.rule)
        .where(
            RecurringInstanceRow.month_key == month_key,
            RecurringRuleRow.user_id == user_id,
        )
    ).all()
    return display_order(rows)


def paid_status(total_paid: Decimal, amount_due: Decimal, tolerance: Decimal) -> InstanceStatus:
    """PAID once payments reach `tolerance` of the amount due (rounding slack)."""
    if total_paid >= amount_due * tolerance:
        return InstanceStatus.PAID
    return InstanceStatus.PARTIAL


class RecurringActions(BaseActions):
    """Recurring rules, their monthly instances and bill payments."""

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(self, user_id: int, data) -> RecurringRuleRecord:
        payload = parse_input(RecurringRuleInput, data)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            if payload.category_id is not None:
                require_category(session, payload.category_id)
            row = RecurringRuleRow(user_id=user_id, **payload.model_dump())
            session.add(row)
            session.flush()
            record = RecurringRuleRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.RECURRING_RULE_CREATED,
            user_id=user_id,
            entity_type="recurring_rule",
            entity_id=record.id,
            description=f"Recurring bill created: {record.name}",
            details={"amount": str(record.amount), "day_of_month": record.day_of_month},
        )
        return record

    def update_rule(self, user_id: int, rule_id: int, data) -> RecurringRuleRecord:
        """
        Update a rule. Instances that already exist keep their amount due;
        changes apply from the next generated month.
        """
        payload = parse_input(RecurringRuleUpdate, data)
        changes = payload.model_dump(exclude_unset=True)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = get_owned(session, RecurringRuleRow, rule_id, user_id, "Recurring bill")
            if changes.get("category_id") is not None:
                require_category(session, changes["category_id"])
            for field, value in changes.items():
                if value is None and field != "category_id":
                    continue
                setattr(row, field, value)
            session.flush()
            session.refresh(row)
            record = RecurringRuleRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.RECURRING_RULE_UPDATED,
            user_id=user_id,
            entity_type="recurring_rule",
            entity_id=rule_id,
            description=f"Recurring bill updated: {record.name}",
            details={"fields": sorted(changes)},
        )
        return record

    def delete_rule(self, user_id: int, rule_id: int) -> None:
        """Delete a rule and its instances; payments stay, unlinked."""
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = get_owned(session, RecurringRuleRow, rule_id, user_id, "Recurring bill")
            name = row.name
            session.delete(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.RECURRING_RULE_DELETED,
            user_id=user_id,
            entity_type="recurring_rule",
            entity_id=rule_id,
            description=f"Recurring bill deleted: {name}",
        )

    def list_rules(self, user_id: int) -> list[RecurringRuleRecord]:
        with self._database.session_scope() as session:
            require_user(session, user_id)
            rows = session.scalars(
                select(RecurringRuleRow)
                .where(RecurringRuleRow.user_id == user_id)
                .order_by(RecurringRuleRow.day_of_month, RecurringRuleRow.name)
            ).all()
            return [RecurringRuleRecord.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Monthly instances
    # ------------------------------------------------------------------

    def ensure_instances_for_month(self, user_id: int, month_key: str) -> int:
        """
        Materialise this month's bills for every active rule.

        Months strictly before the current month are left untouched.
        Idempotent: calling it again creates nothing new.

        Returns:
            Number of instances created by this call
        """
        parse_month_key(month_key)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            if not is_current_or_future(month_key, self._today()):
                return 0
            created = generate_instances(session, user_id, month_key)

        if created:
            self._audit_logger.log_instances_generated(
                user_id=user_id,
                month_key=month_key,
                created=created,
            )
        return created

    def get_instances_for_month(self, user_id: int, month_key: str) -> list[RecurringInstanceRecord]:
        """
        A month's bills in display order.

        Instances are ensured first (current/future months only); past
        months return whatever was materialised at the time.
        """
        self.ensure_instances_for_month(user_id, month_key)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            return [
                RecurringInstanceRecord.model_validate(row)
                for row in instances_for_month(session, user_id, month_key)
            ]

    def pay_bill(
        self,
        user_id: int,
        instance_id: int,
        amount,
        date: Optional[datetime] = None,
    ) -> RecurringInstanceRecord:
        """
        Record a (possibly partial) payment of one month's bill.

        The payment, the recomputed total and the status update commit
        together. The instance row is locked first, so a concurrent
        payment waits and then sums over both.

        Raises:
            NotFoundError: instance missing or owned by another user
        """
        payload = parse_input(
            BillPaymentInput,
            {"instance_id": instance_id, "amount": amount, "date": date or self._now()},
        )
        with self._database.session_scope() as session:
            require_user(session, user_id)
            instance = session.scalars(
                select(RecurringInstanceRow)
                .join(RecurringInstanceRow.rule)
                .where(
                    RecurringInstanceRow.id == payload.instance_id,
                    RecurringRuleRow.user_id == user_id,
                )
                .with_for_update(of=RecurringInstanceRow)
            ).first()
            if instance is None:
                raise NotFoundError("Bill")

            payment = record_transaction(
                session,
                user_id,
                amount=payload.amount,
                type=TransactionType.EXPENSE,
                date=payload.date,
                category_id=instance.rule.category_id,
                note=f"Payment for {instance.rule.name}",
                recurring_instance_id=instance.id,
            )

            total_paid = to_money(
                session.scalar(
                    select(func.coalesce(func.sum(TransactionRow.amount), 0)).where(
                        TransactionRow.recurring_instance_id == instance.id
                    )
                )
            )
            instance.status = paid_status(
                total_paid,
                instance.amount_due,
                self._settings.bill_paid_tolerance,
            )
            session.flush()
            record = RecurringInstanceRecord.model_validate(instance)

        self._audit_logger.log_bill_paid(
            user_id=user_id,
            instance_id=record.id,
            amount=str(payment.amount),
            total_paid=str(total_paid),
            status=record.status.value,
        )
        return record
