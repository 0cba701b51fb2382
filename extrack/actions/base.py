"""
Shared plumbing for the action services.

Every action service is constructed with the same three collaborators:
the injected database handle, an audit logger and a clock. The clock is
read at call time, so "current month" checks follow the real calendar in
production and a fixed date in tests.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from extrack.audit import AuditLogger
from extrack.config import get_settings
from extrack.errors import AuthenticationError, NotFoundError
from extrack.services.storage import Database
from extrack.services.storage.tables import Base, UserRow


Clock = Callable[[], datetime]

RowT = TypeVar("RowT", bound=Base)

ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """Normalise a database sum (None, float or Decimal) to a 2dp Decimal."""
    if value is None:
        return ZERO.quantize(Decimal("0.01"))
    return Decimal(str(value)).quantize(Decimal("0.01"))


def require_user(session: Session, user_id: Optional[int]) -> UserRow:
    """
    Resolve the caller.

    Fails closed: a missing id, a non-integer id or an id with no user row
    all raise AuthenticationError. No operation ever falls back to a
    default user.
    """
    if user_id is None or isinstance(user_id, bool) or not isinstance(user_id, int):
        raise AuthenticationError()
    user = session.get(UserRow, user_id)
    if user is None:
        raise AuthenticationError()
    return user


def get_owned(
    session: Session,
    model: type[RowT],
    row_id: Optional[int],
    user_id: int,
    entity: str,
    for_update: bool = False,
) -> RowT:
    """
    Load a row owned by `user_id`.

    Missing rows and rows owned by someone else raise the same
    NotFoundError. With `for_update` the row stays locked until the unit
    of work ends (ignored by SQLite, which locks the whole database).
    """
    if row_id is None:
        raise NotFoundError(entity)
    query = select(model).where(model.id == row_id, model.user_id == user_id)
    if for_update:
        query = query.with_for_update(of=model)
    row = session.scalars(query).first()
    if row is None:
        raise NotFoundError(entity)
    return row


class BaseActions:
    """Constructor and helpers shared by every action service."""

    def __init__(
        self,
        database: Database,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._database = database
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or datetime.now
        self._settings = get_settings().app

    def _now(self) -> datetime:
        return self._clock()

    def _today(self) -> date:
        return self._clock().date()
