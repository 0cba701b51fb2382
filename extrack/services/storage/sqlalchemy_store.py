"""
SQLAlchemy Storage Implementation

DESIGN DECISION: The database handle is an explicitly constructed object
that every service receives in its constructor. There is no module-level
engine or session, so tests and concurrent requests never share hidden
state.

Each public service operation runs inside exactly one `session_scope()`:
commit on success, rollback on any exception. Multi-step mutations
(ledger + instances, goal + mirror transaction, payment + status) are
therefore atomic to readers.

TRADEOFFS:
- SQLite is the default for personal use; any SQLAlchemy URL works
- The pysqlite driver needs explicit BEGIN handling for SAVEPOINTs
  (see _configure_sqlite)
"""

import json
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy import Engine, create_engine, event, select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from extrack.config import get_settings
from extrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from extrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)
from extrack.services.storage.tables import AuditEventRow, Base


def _configure_sqlite(engine: Engine) -> None:
    """Enforce foreign keys and let SQLAlchemy own transaction boundaries."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """
    Data-access handle: one engine plus a session factory.

    Usage:
        db = Database("sqlite:///extrack.db")
        db.create_schema()
        with db.session_scope() as session:
            ...
    """

    def __init__(
        self,
        url: Optional[str] = None,
        echo: Optional[bool] = None,
        connect_attempts: Optional[int] = None,
    ):
        settings = get_settings().database
        self._url = url or settings.url
        self._connect_attempts = connect_attempts or settings.connect_attempts

        engine_kwargs = {"echo": settings.echo if echo is None else echo}
        if self._url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self._engine = create_engine(self._url, **engine_kwargs)
        if self._engine.dialect.name == "sqlite":
            _configure_sqlite(self._engine)

        self._session_factory = sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
        )

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> Engine:
        return self._engine

    def _ping(self) -> None:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def connect(self) -> None:
        """
        Verify the database is reachable.

        Retried with exponential backoff; this startup check is the only
        place the package retries anything.
        """
        checker = retry(
            stop=stop_after_attempt(self._connect_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )(self._ping)
        try:
            checker()
        except OperationalError as e:
            raise ConnectionError(f"Failed to connect to database: {e}")

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        self.connect()
        Base.metadata.create_all(self._engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(self._engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """One unit of work: commit on success, roll back on any error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()


def insert_if_absent(session: Session, row) -> bool:
    """
    Insert a row guarded by a SAVEPOINT.

    A unique-key violation means a concurrent request already created the
    same row; that is reported as False and the outer unit of work goes on.

    Returns:
        True if this call inserted the row
    """
    try:
        with session.begin_nested():
            session.add(row)
            session.flush()
    except IntegrityError:
        return False
    return True


class SqlAuditStorage(AuditStorageInterface):
    """
    Audit storage in the `audit_events` table.

    Each event is written in its own unit of work, after the business
    change has committed, so a failed audit write never undoes user data.
    """

    def __init__(self, database: Database):
        self._database = database

    def _event_to_row(self, event: AuditEvent) -> AuditEventRow:
        return AuditEventRow(
            event_id=str(event.event_id),
            timestamp=event.timestamp,
            event_type=event.event_type.value,
            severity=event.severity.value,
            user_id=event.user_id,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            correlation_id=str(event.correlation_id) if event.correlation_id else None,
            description=event.description,
            # Round-trip through JSON so Decimals and dates are stored as text
            details=json.loads(json.dumps(event.details, default=str)),
            error_message=event.error_message,
        )

    def _row_to_event(self, row: AuditEventRow) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row.event_id),
            timestamp=row.timestamp,
            event_type=AuditEventType(row.event_type),
            severity=AuditSeverity(row.severity),
            user_id=row.user_id,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            correlation_id=UUID(row.correlation_id) if row.correlation_id else None,
            description=row.description,
            details=row.details or {},
            error_message=row.error_message,
        )

    def append_event(self, event: AuditEvent) -> bool:
        try:
            with self._database.session_scope() as session:
                session.add(self._event_to_row(event))
        except Exception as e:
            raise StorageError(f"Failed to append audit event: {e}")
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        with self._database.session_scope() as session:
            rows = session.scalars(
                select(AuditEventRow)
                .where(AuditEventRow.correlation_id == str(correlation_id))
                .order_by(AuditEventRow.timestamp, AuditEventRow.id)
            ).all()
            return [self._row_to_event(row) for row in rows]

    def get_events_for_user(self, user_id: int, limit: int = 100) -> list[AuditEvent]:
        with self._database.session_scope() as session:
            rows = session.scalars(
                select(AuditEventRow)
                .where(AuditEventRow.user_id == user_id)
                .order_by(AuditEventRow.timestamp.desc(), AuditEventRow.id.desc())
                .limit(limit)
            ).all()
            return [self._row_to_event(row) for row in rows]

    def get_recent_events(
        self,
        limit: int = 100,
        entity_type: Optional[str] = None,
    ) -> list[AuditEvent]:
        with self._database.session_scope() as session:
            query = select(AuditEventRow)
            if entity_type:
                query = query.where(AuditEventRow.entity_type == entity_type)
            rows = session.scalars(
                query.order_by(AuditEventRow.timestamp.desc(), AuditEventRow.id.desc()).limit(limit)
            ).all()
            return [self._row_to_event(row) for row in rows]
