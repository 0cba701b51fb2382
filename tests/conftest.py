"""
Shared fixtures.

Every test gets its own SQLite file and a clock frozen at
15 June 2024, noon, so "current month" is 2024-06 throughout.
"""

from datetime import datetime

import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from extrack.audit import AuditLogger
from extrack.orchestrator import ExpenseTracker
from extrack.services.storage import Database, SqlAuditStorage


FIXED_NOW = datetime(2024, 6, 15, 12, 0)


class FrozenClock:
    """Callable clock that tests can move by assigning `now`."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(FIXED_NOW)


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'extrack-test.db'}", connect_attempts=1)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def audit_storage(database):
    return SqlAuditStorage(database)


@pytest.fixture
def tracker(database, audit_storage, clock):
    tracker = ExpenseTracker(database, audit_logger=AuditLogger(audit_storage), clock=clock)
    tracker.categories.ensure_default_categories()
    return tracker


@pytest.fixture
def user_id(tracker):
    user = tracker.accounts.register_user(
        {"email": "alice@example.com", "password": "secret123", "name": "Alice"}
    )
    return user.id


@pytest.fixture
def other_user_id(tracker):
    user = tracker.accounts.register_user(
        {"email": "bob@example.com", "password": "hunter22", "name": "Bob"}
    )
    return user.id


@pytest.fixture
def categories(tracker, user_id):
    """Default category ids by name."""
    return {c.name: c.id for c in tracker.categories.list_categories(user_id)}


@pytest.fixture
def locked_selects():
    """
    SELECTs that take a row lock, rendered for PostgreSQL.

    SQLite drops FOR UPDATE when it compiles, so the statements are
    recompiled for a dialect that keeps it.
    """
    captured = []

    def capture(orm_execute_state):
        if orm_execute_state.is_select:
            sql = str(orm_execute_state.statement.compile(dialect=postgresql.dialect()))
            if "FOR UPDATE" in sql:
                captured.append(sql)

    event.listen(Session, "do_orm_execute", capture)
    yield captured
    event.remove(Session, "do_orm_execute", capture)


@pytest.fixture
def lose_insert_race(monkeypatch):
    """
    Make a module's guarded insert lose a race.

    An identical row from "another request" is flushed just before the
    real insert runs, so the insert hits the unique constraint.
    """
    def install(module, make_winner):
        real_insert = module.insert_if_absent

        def insert_after_winner(session, row):
            session.add(make_winner(row))
            session.flush()
            return real_insert(session, row)

        monkeypatch.setattr(module, "insert_if_absent", insert_after_winner)

    return install
