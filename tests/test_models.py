"""
Tests for extrack models

Test strategy:
1. Unit tests for the pydantic input structs and read models
2. Service tests against a throwaway SQLite database (see conftest.py)
3. No network or external services in tests
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from extrack.errors import InputValidationError
from extrack.models.finance import (
    BudgetInput,
    BudgetProgress,
    CategoryKind,
    GoalInput,
    InstanceStatus,
    MonthTotals,
    RecurringRuleInput,
    RegistrationInput,
    SavingGoalRecord,
    TransactionInput,
    TransactionType,
    parse_input,
)
from extrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestInputModels:
    """Tests for operation input structs."""

    def test_transaction_input_creation(self):
        """Test TransactionInput model creation."""
        tx = TransactionInput(
            amount=Decimal("250.00"),
            type=TransactionType.EXPENSE,
            note="  Lunch  ",
            date=datetime(2024, 6, 3, 13, 30),
        )
        assert tx.amount == Decimal("250.00")
        assert tx.note == "Lunch"

    def test_transaction_input_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-10")):
            with pytest.raises(ValueError):
                TransactionInput(amount=amount, type="EXPENSE", date=datetime(2024, 6, 1))

    def test_transaction_input_rejects_fractions_of_a_cent(self):
        """Test money is limited to two decimal places."""
        with pytest.raises(ValueError):
            TransactionInput(amount=Decimal("1.005"), type="INCOME", date=datetime(2024, 6, 1))

    def test_transaction_date_accepts_plain_date(self):
        """Test a date or YYYY-MM-DD string becomes local midnight."""
        from_date = TransactionInput(amount=1, type="INCOME", date=date(2024, 2, 29))
        from_text = TransactionInput(amount=1, type="INCOME", date="2024-02-29")
        assert from_date.date == datetime(2024, 2, 29, 0, 0)
        assert from_text.date == datetime(2024, 2, 29, 0, 0)

    def test_offset_string_becomes_local_time(self):
        """Test an ISO string with an offset lands on the same local instant as the aware datetime."""
        aware = datetime(2024, 2, 29, 23, 30, tzinfo=timezone.utc)
        expected = aware.astimezone().replace(tzinfo=None)

        from_datetime = TransactionInput(amount=1, type="INCOME", date=aware)
        from_text = TransactionInput(amount=1, type="INCOME", date=aware.isoformat())
        from_other_offset = TransactionInput(
            amount=1, type="INCOME", date=aware.astimezone(timezone(timedelta(hours=-5))).isoformat()
        )

        assert from_text.date.tzinfo is None
        assert from_datetime.date == expected
        assert from_text.date == expected
        assert from_other_offset.date == expected

    def test_recurring_rule_day_bounds(self):
        """Test day_of_month must be 1..31."""
        RecurringRuleInput(name="Rent", amount=Decimal("100"), day_of_month=31)
        with pytest.raises(ValueError):
            RecurringRuleInput(name="Rent", amount=Decimal("100"), day_of_month=0)
        with pytest.raises(ValueError):
            RecurringRuleInput(name="Rent", amount=Decimal("100"), day_of_month=32)

    def test_budget_input_validates_month_key(self):
        """Test budgets need a YYYY-MM month."""
        BudgetInput(category_id=1, month_key="2024-06", limit=Decimal("0"))
        with pytest.raises(ValueError):
            BudgetInput(category_id=1, month_key="2024-6", limit=Decimal("10"))

    def test_registration_email_is_normalized(self):
        """Test emails are trimmed and lower-cased."""
        data = RegistrationInput(email="  Alice@Example.COM ", password="secret1")
        assert data.email == "alice@example.com"

    def test_goal_input_defaults(self):
        """Test a goal starts at zero saved with no color."""
        goal = GoalInput(title="Laptop", target_amount=Decimal("1000"))
        assert goal.current_amount == Decimal("0")
        assert goal.color is None


class TestParseInput:
    """Tests for boundary validation."""

    def test_parse_input_accepts_dict(self):
        """Test a plain dict payload is validated into the model."""
        rule = parse_input(
            RecurringRuleInput,
            {"name": "Internet", "amount": "1500", "day_of_month": 10},
        )
        assert rule.amount == Decimal("1500")
        assert rule.active is True

    def test_parse_input_passes_model_through(self):
        """Test an already-built model is returned unchanged."""
        goal = GoalInput(title="Trip", target_amount=Decimal("500"))
        assert parse_input(GoalInput, goal) is goal

    def test_parse_input_raises_domain_error(self):
        """Test pydantic errors surface as InputValidationError with the field."""
        with pytest.raises(InputValidationError) as exc_info:
            parse_input(TransactionInput, {"amount": "-5", "type": "EXPENSE", "date": "2024-06-01"})
        assert exc_info.value.field == "amount"
        assert exc_info.value.user_message.startswith("amount:")


class TestRecords:
    """Tests for derived properties on read models."""

    def _goal(self, current, target):
        return SavingGoalRecord(
            id=1,
            user_id=1,
            title="New Phone",
            target_amount=Decimal(target),
            current_amount=Decimal(current),
            color="#ec4899",
            created_at=datetime(2024, 6, 1),
        )

    def test_goal_completion_is_derived(self):
        """Test is_complete follows current >= target."""
        assert self._goal("15000", "50000").is_complete is False
        assert self._goal("50000", "50000").is_complete is True
        assert self._goal("15000", "50000").progress_percentage == pytest.approx(30.0)

    def test_budget_progress_over_budget(self):
        """Test over-budget detection and uncapped percentage."""
        progress = BudgetProgress(
            id=1,
            user_id=1,
            category_id=1,
            month_key="2024-06",
            limit=Decimal("1000"),
            spent=Decimal("1500"),
            percentage=150.0,
        )
        assert progress.is_over_budget is True
        assert progress.percentage == 150.0

    def test_month_totals_net(self):
        """Test net is income minus expenses."""
        totals = MonthTotals(month_key="2024-06", income=Decimal("5000"), expenses=Decimal("3200.50"))
        assert totals.net == Decimal("1799.50")


class TestEnums:
    """Tests for finance enums."""

    def test_open_statuses(self):
        """Test DUE and PARTIAL are open, PAID and SKIPPED are not."""
        assert InstanceStatus.DUE.is_open
        assert InstanceStatus.PARTIAL.is_open
        assert not InstanceStatus.PAID.is_open
        assert not InstanceStatus.SKIPPED.is_open

    def test_enum_values(self):
        """Test string values used in storage."""
        assert TransactionType.EXPENSE.value == "EXPENSE"
        assert CategoryKind("INCOME") is CategoryKind.INCOME


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            description="Expense of 250.00 recorded",
        )
        assert event.event_type == AuditEventType.TRANSACTION_RECORDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BILL_PAID,
            user_id=7,
            description="Bill payment recorded",
            details={"amount": "1000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "bill_paid"
        assert log_dict["user_id"] == 7
        assert log_dict["details"]["amount"] == "1000"

    def test_audit_event_builder_bill_paid(self):
        """Test AuditEventBuilder.bill_paid."""
        correlation_id = uuid4()
        event = AuditEventBuilder.bill_paid(
            user_id=3,
            instance_id=12,
            amount="500.00",
            total_paid="1000.00",
            status="PAID",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.BILL_PAID
        assert event.entity_id == 12
        assert event.correlation_id == correlation_id
        assert event.details["status"] == "PAID"

    def test_audit_event_builder_goal_rejection_is_warning(self):
        """Test a rejected withdrawal is recorded as a warning."""
        event = AuditEventBuilder.goal_adjustment_rejected(
            user_id=1,
            goal_id=2,
            available="15000.00",
            requested="20000.00",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["requested"] == "20000.00"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
