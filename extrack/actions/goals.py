"""
Saving Goal Tracker

A goal is a target/current pair. The current amount only moves through
add/subtract, and every move writes a mirror transaction in the
"Savings" category inside the same unit of work, so the ledger and the
goal can never disagree.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from extrack.actions.base import BaseActions, get_owned, require_user
from extrack.actions.categories import get_or_create_savings_category
from extrack.actions.transactions import record_transaction
from extrack.errors import InsufficientFundsError
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    GoalAdjustmentInput,
    GoalInput,
    GoalUpdate,
    SavingGoalRecord,
    TransactionType,
    parse_input,
)
from extrack.services.storage.tables import SavingGoalRow


def list_goal_rows(session: Session, user_id: int) -> list[SavingGoalRow]:
    """A user's goals, newest first."""
    return list(
        session.scalars(
            select(SavingGoalRow)
            .where(SavingGoalRow.user_id == user_id)
            .order_by(SavingGoalRow.created_at.desc(), SavingGoalRow.id.desc())
        ).all()
    )


class GoalActions(BaseActions):
    """Saving goals and their deposits and withdrawals."""

    def create_goal(self, user_id: int, data) -> SavingGoalRecord:
        payload = parse_input(GoalInput, data)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = SavingGoalRow(
                user_id=user_id,
                title=payload.title,
                target_amount=payload.target_amount,
                current_amount=payload.current_amount,
                deadline=payload.deadline,
                color=payload.color or self._settings.default_goal_color,
                created_at=self._now(),
            )
            session.add(row)
            session.flush()
            record = SavingGoalRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.GOAL_CREATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=record.id,
            description=f"Goal created: {record.title}",
            details={"target_amount": str(record.target_amount)},
        )
        return record

    def update_goal(self, user_id: int, goal_id: int, data) -> SavingGoalRecord:
        payload = parse_input(GoalUpdate, data)
        changes = payload.model_dump(exclude_unset=True)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = get_owned(session, SavingGoalRow, goal_id, user_id, "Goal")
            for field, value in changes.items():
                if value is None and field != "deadline":
                    continue
                setattr(row, field, value)
            session.flush()
            record = SavingGoalRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.GOAL_UPDATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal updated: {record.title}",
            details={"fields": sorted(changes)},
        )
        return record

    def delete_goal(self, user_id: int, goal_id: int) -> None:
        """Delete a goal. Its mirror transactions stay in the ledger."""
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = get_owned(session, SavingGoalRow, goal_id, user_id, "Goal")
            title = row.title
            session.delete(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.GOAL_DELETED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal deleted: {title}",
        )

    def list_goals(self, user_id: int) -> list[SavingGoalRecord]:
        with self._database.session_scope() as session:
            require_user(session, user_id)
            return [SavingGoalRecord.model_validate(row) for row in list_goal_rows(session, user_id)]

    def add_to_goal(self, user_id: int, goal_id: int, amount) -> SavingGoalRecord:
        """
        Move money into a goal.

        Writes an EXPENSE transaction (money leaving the spendable
        balance) tagged "Savings", then increments the goal.
        """
        payload = parse_input(GoalAdjustmentInput, {"amount": amount})
        return self._adjust(user_id, goal_id, payload.amount)

    def subtract_from_goal(self, user_id: int, goal_id: int, amount) -> SavingGoalRecord:
        """
        Take money back out of a goal.

        Raises:
            InsufficientFundsError: the goal holds less than `amount`;
                nothing is written
        """
        payload = parse_input(GoalAdjustmentInput, {"amount": amount})
        return self._adjust(user_id, goal_id, -payload.amount)

    def _adjust(self, user_id: int, goal_id: int, delta: Decimal) -> SavingGoalRecord:
        try:
            with self._database.session_scope() as session:
                require_user(session, user_id)
                # Locked so concurrent adjustments apply one after the other
                goal = get_owned(session, SavingGoalRow, goal_id, user_id, "Goal", for_update=True)

                # Checked before any write so a rejection leaves nothing behind
                if delta < 0 and goal.current_amount < -delta:
                    raise InsufficientFundsError(available=goal.current_amount, requested=-delta)

                savings = get_or_create_savings_category(session, self._settings)
                if delta > 0:
                    mirror = record_transaction(
                        session,
                        user_id,
                        amount=delta,
                        type=TransactionType.EXPENSE,
                        date=self._now(),
                        category_id=savings.id,
                        note=f"Savings: {goal.title}",
                    )
                else:
                    mirror = record_transaction(
                        session,
                        user_id,
                        amount=-delta,
                        type=TransactionType.INCOME,
                        date=self._now(),
                        category_id=savings.id,
                        note=f"Withdrawal from savings: {goal.title}",
                    )

                goal.current_amount = goal.current_amount + delta
                session.flush()
                record = SavingGoalRecord.model_validate(goal)
        except InsufficientFundsError as e:
            self._audit_logger.log_goal_adjustment_rejected(
                user_id=user_id,
                goal_id=goal_id,
                available=str(e.available),
                requested=str(e.requested),
            )
            raise

        self._audit_logger.log_goal_adjusted(
            user_id=user_id,
            goal_id=goal_id,
            delta=str(delta),
            current_amount=str(record.current_amount),
            transaction_id=mirror.id,
        )
        return record
