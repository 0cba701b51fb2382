"""Tests for budgets, budget progress and suggestions."""

import pytest
from decimal import Decimal

from extrack.actions import budgets as budgets_module
from extrack.actions.budgets import budget_percentage
from extrack.errors import InputValidationError, NotFoundError
from extrack.services.storage.tables import BudgetRow


CURRENT_MONTH = "2024-06"  # month of the frozen clock


def _spend(tracker, user_id, category_id, amount, when):
    tracker.transactions.add_transaction(
        user_id, {"amount": amount, "type": "EXPENSE", "category_id": category_id, "date": when}
    )


@pytest.fixture
def food(categories):
    return categories["Cafe/Food"]


class TestBudgetPercentage:

    def test_quarter_spent(self):
        assert budget_percentage(Decimal("250"), Decimal("1000")) == pytest.approx(25.0)

    def test_not_capped(self):
        assert budget_percentage(Decimal("1500"), Decimal("1000")) == pytest.approx(150.0)

    def test_zero_limit(self):
        assert budget_percentage(Decimal("80"), Decimal("0")) == 0.0


class TestBudgets:
    """Tests for budget CRUD and progress."""

    def test_progress_from_transactions(self, tracker, user_id, food):
        """Test a 1000 limit with 250 spent reports 25 percent."""
        tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "1000"})
        _spend(tracker, user_id, food, "100", "2024-06-02")
        _spend(tracker, user_id, food, "150", "2024-06-20")

        [progress] = tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH)
        assert progress.spent == Decimal("250")
        assert progress.percentage == pytest.approx(25.0)
        assert progress.is_over_budget is False
        assert progress.category.name == "Cafe/Food"

    def test_progress_ignores_other_months_and_categories(self, tracker, user_id, food, categories):
        """Test only the month's expenses in the budget's category count."""
        tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "1000"})
        _spend(tracker, user_id, food, "400", "2024-05-31")
        _spend(tracker, user_id, food, "400", "2024-07-01")
        _spend(tracker, user_id, categories["Internet"], "400", "2024-06-10")
        tracker.transactions.add_transaction(
            user_id, {"amount": "400", "type": "INCOME", "category_id": food, "date": "2024-06-10"}
        )

        [progress] = tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH)
        assert progress.spent == Decimal("0")
        assert progress.percentage == 0.0

    def test_over_budget_is_uncapped(self, tracker, user_id, food):
        """Test overspending shows above 100 percent."""
        tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "200"})
        _spend(tracker, user_id, food, "300", "2024-06-05")

        [progress] = tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH)
        assert progress.percentage == pytest.approx(150.0)
        assert progress.is_over_budget is True

    def test_upsert_replaces_limit(self, tracker, user_id, food):
        """Test one budget per category and month."""
        first = tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "500"})
        second = tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "800"})
        assert first.id == second.id
        assert second.limit == Decimal("800")
        assert len(tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH)) == 1

    def test_upsert_after_concurrent_insert(self, tracker, user_id, food, lose_insert_race):
        """Test a budget created by another request is updated rather than duplicated."""
        lose_insert_race(
            budgets_module,
            lambda row: BudgetRow(
                user_id=row.user_id,
                category_id=row.category_id,
                month_key=row.month_key,
                limit=Decimal("1"),
            ),
        )
        saved = tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "300"})
        assert saved.limit == Decimal("300")
        assert len(tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH)) == 1

    def test_update_and_delete(self, tracker, user_id, food):
        budget = tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "500"})
        assert tracker.budgets.update_budget(user_id, budget.id, "650").limit == Decimal("650")
        tracker.budgets.delete_budget(user_id, budget.id)
        assert tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH) == []

    def test_negative_limit_rejected(self, tracker, user_id, food):
        with pytest.raises(InputValidationError):
            tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "-5"})

    def test_unknown_category_rejected(self, tracker, user_id):
        with pytest.raises(NotFoundError):
            tracker.budgets.upsert_budget(user_id, {"category_id": 9999, "month_key": CURRENT_MONTH, "limit": "5"})

    def test_budgets_are_private(self, tracker, user_id, other_user_id, food):
        """Test another user can neither see nor change a budget."""
        budget = tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "500"})
        assert tracker.budgets.get_budgets_for_month(other_user_id, CURRENT_MONTH) == []
        with pytest.raises(NotFoundError):
            tracker.budgets.update_budget(other_user_id, budget.id, "1")
        with pytest.raises(NotFoundError):
            tracker.budgets.delete_budget(other_user_id, budget.id)

    def test_spending_by_other_users_not_counted(self, tracker, user_id, other_user_id, food):
        tracker.budgets.upsert_budget(user_id, {"category_id": food, "month_key": CURRENT_MONTH, "limit": "1000"})
        _spend(tracker, other_user_id, food, "700", "2024-06-05")
        [progress] = tracker.budgets.get_budgets_for_month(user_id, CURRENT_MONTH)
        assert progress.spent == Decimal("0")


class TestSuggestBudget:
    """Tests for limit suggestions from recent history."""

    def test_no_history_returns_none(self, tracker, user_id, food):
        """Test no data is distinct from a zero suggestion."""
        assert tracker.budgets.suggest_budget(user_id, food, CURRENT_MONTH) is None

    def test_mean_of_months_with_spending(self, tracker, user_id, food):
        """Test the average covers only months that had expenses."""
        _spend(tracker, user_id, food, "100", "2024-03-04")
        _spend(tracker, user_id, food, "200", "2024-03-20")
        _spend(tracker, user_id, food, "500", "2024-04-11")
        assert tracker.budgets.suggest_budget(user_id, food, CURRENT_MONTH) == 400

    def test_target_month_and_older_months_excluded(self, tracker, user_id, food):
        """Test the window is the three months before the target."""
        _spend(tracker, user_id, food, "9000", "2024-02-29")
        _spend(tracker, user_id, food, "9000", "2024-06-01")
        _spend(tracker, user_id, food, "300", "2024-05-31")
        assert tracker.budgets.suggest_budget(user_id, food, CURRENT_MONTH) == 300

    def test_rounds_half_up(self, tracker, user_id, food):
        _spend(tracker, user_id, food, "100", "2024-04-01")
        _spend(tracker, user_id, food, "101", "2024-05-01")
        assert tracker.budgets.suggest_budget(user_id, food, CURRENT_MONTH) == 101

    def test_window_crosses_year_end(self, tracker, user_id, food):
        _spend(tracker, user_id, food, "120", "2023-11-15")
        assert tracker.budgets.suggest_budget(user_id, food, "2024-02") == 120
