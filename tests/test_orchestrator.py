"""Tests for the facade, the presentation boundary, audit storage and demo data."""

import pytest
from datetime import datetime
from decimal import Decimal

from extrack.audit import AuditLogger, create_correlation_id
from extrack.models.audit import AuditEvent, AuditEventType
from extrack.models.finance import ActionResult
from extrack.orchestrator import ExpenseTracker, create_app_components
from extrack.seed import DEMO_EMAIL, seed_demo_data
from extrack.services.storage import AuditStorageInterface, Database, StorageError
from extrack.services.storage.interface import ConnectionError


class BrokenAuditStorage(AuditStorageInterface):
    """Audit sink whose writes always fail."""

    def append_event(self, event):
        raise StorageError("audit table is gone")

    def get_events_by_correlation_id(self, correlation_id):
        return []

    def get_events_for_user(self, user_id, limit=100):
        return []

    def get_recent_events(self, limit=100, entity_type=None):
        return []


class TestPerform:
    """Tests for the presentation boundary."""

    def test_success_carries_data(self, tracker, user_id):
        result = tracker.perform(tracker.goals.create_goal, user_id, {"title": "Bike", "target_amount": "800"})
        assert isinstance(result, ActionResult)
        assert result.success is True
        assert result.data.title == "Bike"
        assert result.error is None

    def test_domain_error_becomes_message(self, tracker, user_id):
        """Test a rejected withdrawal reaches the caller as a short message."""
        goal = tracker.goals.create_goal(user_id, {"title": "Bike", "target_amount": "800", "current_amount": "100"})
        result = tracker.perform(tracker.goals.subtract_from_goal, user_id, goal.id, "500")
        assert result.success is False
        assert result.error == "Insufficient amount in goal"

    def test_not_found_message(self, tracker, user_id):
        result = tracker.perform(tracker.goals.delete_goal, user_id, 12345)
        assert result.error == "Goal not found"

    def test_unauthenticated_message(self, tracker):
        result = tracker.perform(tracker.ledger.get_dashboard, None, "2024-06")
        assert result.error == "User not authenticated"

    def test_unexpected_error_is_hidden_and_audited(self, tracker, audit_storage):
        """Test internal failures return a generic message and land in the audit log."""
        def explode():
            raise RuntimeError("disk on fire")

        result = tracker.perform(explode)
        assert result.success is False
        assert result.error == "Something went wrong. Please try again."
        assert "disk on fire" not in result.error

        errors = [e for e in audit_storage.get_recent_events() if e.event_type == AuditEventType.SYSTEM_ERROR]
        assert len(errors) == 1
        assert errors[0].error_message == "disk on fire"
        assert errors[0].details["action"] == "explode"

    def test_unexpected_error_names_positional_caller(self, tracker, audit_storage, user_id):
        """Test the failing caller is found whether user_id is passed by position or by keyword."""
        def explode(user_id, goal_id):
            raise RuntimeError("disk on fire")

        tracker.perform(explode, user_id, 7)
        tracker.perform(explode, goal_id=7, user_id=user_id)

        errors = [e for e in audit_storage.get_events_for_user(user_id) if e.event_type == AuditEventType.SYSTEM_ERROR]
        assert len(errors) == 2

    def test_operation_events_share_a_correlation_id(self, tracker, audit_storage, user_id):
        """Test every audit event written by one call carries the id returned with its result."""
        goal = tracker.goals.create_goal(user_id, {"title": "Bike", "target_amount": "800", "current_amount": "100"})

        result = tracker.perform(tracker.goals.subtract_from_goal, user_id, goal.id, "500")
        assert result.correlation_id is not None
        [rejected] = audit_storage.get_events_by_correlation_id(result.correlation_id)
        assert rejected.event_type == AuditEventType.GOAL_ADJUSTMENT_REJECTED

        second = tracker.perform(tracker.goals.add_to_goal, user_id, goal.id, "50")
        assert second.correlation_id != result.correlation_id
        [adjusted] = audit_storage.get_events_by_correlation_id(second.correlation_id)
        assert adjusted.event_type == AuditEventType.GOAL_ADJUSTED

    def test_no_correlation_id_outside_perform(self, tracker, audit_storage, user_id):
        tracker.goals.create_goal(user_id, {"title": "Bike", "target_amount": "800"})
        [created] = [
            e for e in audit_storage.get_events_for_user(user_id) if e.event_type == AuditEventType.GOAL_CREATED
        ]
        assert created.correlation_id is None


class TestAuditTrail:
    """Tests for audit logging and persistence."""

    def test_changes_are_persisted(self, tracker, audit_storage, user_id):
        tracker.transactions.add_transaction(user_id, {"amount": "10", "type": "EXPENSE", "date": "2024-06-02"})
        types = [e.event_type for e in audit_storage.get_events_for_user(user_id)]
        assert AuditEventType.USER_REGISTERED in types
        assert AuditEventType.TRANSACTION_RECORDED in types

    def test_events_by_correlation_id(self, audit_storage):
        correlation_id = create_correlation_id()
        logger = AuditLogger(audit_storage)
        logger.log_change(
            event_type=AuditEventType.BUDGET_SAVED,
            user_id=1,
            entity_type="budget",
            entity_id=5,
            description="Budget saved",
            details={"limit": Decimal("250.00")},
            correlation_id=correlation_id,
        )
        [event] = audit_storage.get_events_by_correlation_id(correlation_id)
        assert event.entity_id == 5
        assert event.details["limit"] == "250.00"

    def test_storage_failure_does_not_raise(self):
        """Test a broken audit sink never fails the caller."""
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEvent(event_type=AuditEventType.GOAL_CREATED, description="Goal created")
        assert logger.log(event) is False

    def test_operations_survive_broken_audit_storage(self, database, clock):
        tracker = ExpenseTracker(database, audit_logger=AuditLogger(BrokenAuditStorage()), clock=clock)
        user = tracker.accounts.register_user({"email": "eve@example.com", "password": "secret123"})
        assert tracker.accounts.get_user(user.id).email == "eve@example.com"

    def test_local_only_logger(self):
        logger = AuditLogger()
        assert logger.storage is None
        assert logger.log(AuditEvent(event_type=AuditEventType.GOAL_DELETED, description="Goal deleted")) is True


class TestAppComponents:
    """Tests for the factory and demo data."""

    def test_create_app_components_in_memory(self, clock):
        tracker = create_app_components("sqlite://", clock=clock)
        user = tracker.accounts.register_user({"email": "frank@example.com", "password": "secret123"})
        assert len(tracker.categories.list_categories(user.id)) == 12
        dashboard = tracker.ledger.get_dashboard(user.id, "2024-06")
        assert dashboard.ledger is not None
        tracker.database.dispose()

    def test_unreachable_database(self, tmp_path):
        """Test the startup check reports a connection error."""
        database = Database(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'db.sqlite'}", connect_attempts=1)
        with pytest.raises(ConnectionError):
            database.connect()

    def test_seed_is_idempotent(self, tracker):
        first = seed_demo_data(tracker)
        second = seed_demo_data(tracker)
        assert first == second

        assert tracker.accounts.find_user_by_email(DEMO_EMAIL).id == first
        rules = tracker.recurring.list_rules(first)
        assert [(r.name, r.amount, r.day_of_month) for r in rules] == [
            ("Monthly Rent", Decimal("32000"), 1),
            ("Microfinance Repayment", Decimal("12000"), 5),
        ]
        [goal] = tracker.goals.list_goals(first)
        assert (goal.title, goal.current_amount, goal.target_amount) == (
            "New Phone", Decimal("15000"), Decimal("50000"),
        )

    def test_seeded_month_has_demo_bills(self, tracker, clock):
        user_id = seed_demo_data(tracker)
        clock.now = datetime(2024, 7, 2, 9, 0)
        dashboard = tracker.ledger.get_dashboard(user_id, "2024-07")
        assert [i.rule.name for i in dashboard.instances] == ["Monthly Rent", "Microfinance Repayment"]
