"""
Demo data

Creates the default categories and a demo account with two recurring
bills and one saving goal. Running it again changes nothing.

    python -m extrack.seed
"""

from decimal import Decimal

import structlog

from extrack.orchestrator import ExpenseTracker, create_app_components


logger = structlog.get_logger("extrack.seed")

DEMO_EMAIL = "demo@extrack.local"
DEMO_PASSWORD = "demo12345"
DEMO_NAME = "Demo User"

DEMO_RULES = [
    {"name": "Monthly Rent", "amount": Decimal("32000"), "day_of_month": 1, "category": "Rent"},
    {"name": "Microfinance Repayment", "amount": Decimal("12000"), "day_of_month": 5, "category": "Microfinance"},
]

DEMO_GOAL = {
    "title": "New Phone",
    "target_amount": Decimal("50000"),
    "current_amount": Decimal("15000"),
    "color": "#ec4899",
}


def seed_demo_data(tracker: ExpenseTracker) -> int:
    """
    Insert the demo data that is missing.

    Returns:
        The demo user's id
    """
    tracker.categories.ensure_default_categories()

    user = tracker.accounts.find_user_by_email(DEMO_EMAIL)
    if user is None:
        user = tracker.accounts.register_user(
            {"email": DEMO_EMAIL, "password": DEMO_PASSWORD, "name": DEMO_NAME}
        )
    logger.info("seed_demo_user", user_id=user.id, email=user.email)

    category_ids = {c.name: c.id for c in tracker.categories.list_categories(user.id)}

    existing_rules = {r.name for r in tracker.recurring.list_rules(user.id)}
    for rule in DEMO_RULES:
        if rule["name"] in existing_rules:
            continue
        tracker.recurring.create_rule(
            user.id,
            {
                "name": rule["name"],
                "amount": rule["amount"],
                "day_of_month": rule["day_of_month"],
                "category_id": category_ids.get(rule["category"]),
            },
        )
        logger.info("seed_rule_created", name=rule["name"])

    if not any(goal.title == DEMO_GOAL["title"] for goal in tracker.goals.list_goals(user.id)):
        tracker.goals.create_goal(user.id, DEMO_GOAL)
        logger.info("seed_goal_created", title=DEMO_GOAL["title"])

    return user.id


if __name__ == "__main__":
    seed_demo_data(create_app_components())
