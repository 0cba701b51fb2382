"""
Core Data Models for extrack

These models define the strict schemas for data crossing the service
boundary. Two families live here:
1. Input structs - one per operation, validated before anything is written
2. Records - plain read models built from database rows

DESIGN DECISION: Money is always Decimal with two decimal places.
Floats never enter the ledger, so sums and the "paid" threshold are exact.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, TypeVar
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from extrack.errors import InputValidationError
from extrack.models.month import parse_month_key


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a money movement."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class CategoryKind(str, Enum):
    """
    Whether a category labels spending or earning.

    DESIGN DECISION: Stored on the category itself instead of being
    inferred from a hardcoded list of names.
    """
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class InstanceStatus(str, Enum):
    """
    Payment status of one month of a recurring bill.

    Moves forward only: DUE -> PARTIAL -> PAID.
    SKIPPED is reserved and never assigned automatically.
    """
    DUE = "DUE"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    SKIPPED = "SKIPPED"

    @property
    def is_open(self) -> bool:
        return self in (InstanceStatus.DUE, InstanceStatus.PARTIAL)


class RecurringInterval(str, Enum):
    MONTHLY = "MONTHLY"


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

Money = Decimal

ModelT = TypeVar("ModelT", bound=BaseModel)


def _check_month_key(value: str) -> str:
    try:
        parse_month_key(value)
    except InputValidationError as e:
        raise ValueError(e.user_message)
    return value


def _to_local_datetime(value: Any) -> Any:
    """Accept dates and YYYY-MM-DD strings as local midnight."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and len(value) == 10:
        return datetime.combine(date.fromisoformat(value), time.min)
    return value


def _as_naive_local(value: datetime) -> datetime:
    """Aware datetimes, parsed or passed in, become naive local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_input(model: type[ModelT], data: Any) -> ModelT:
    """
    Validate an operation payload at the service boundary.

    Accepts an instance of the model or a plain dict (JSON-style payload).
    Pydantic errors are reported as InputValidationError so callers only
    ever see domain errors.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "Invalid input")
        if field:
            message = f"{field}: {message}"
        raise InputValidationError(message, field=field)


# =============================================================================
# INPUT STRUCTS
# =============================================================================

class RegistrationInput(BaseModel):
    """New account credentials."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(
        ...,
        min_length=3,
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Login email"
    )
    password: str = Field(..., min_length=6, max_length=128)
    name: Optional[str] = Field(default=None, max_length=120)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class PasswordChangeInput(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class CategoryInput(BaseModel):
    """A new category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(
        default=None,
        pattern=r"^#[0-9a-fA-F]{6}$",
        description="Hex color, e.g. #22c55e"
    )
    kind: CategoryKind = CategoryKind.EXPENSE
    is_default: bool = False


class CategoryUpdate(BaseModel):
    """Partial category update. Only fields that are set are applied."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    kind: Optional[CategoryKind] = None
    is_default: Optional[bool] = None


class TransactionInput(BaseModel):
    """A single income or expense entry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Money = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Positive amount; direction comes from `type`"
    )
    type: TransactionType
    category_id: Optional[int] = None
    note: Optional[str] = Field(default=None, max_length=500)
    date: datetime = Field(
        ...,
        description="When the money moved (local time)"
    )

    @field_validator('date', mode='before')
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _to_local_datetime(v)

    @field_validator('date')
    @classmethod
    def to_local_time(cls, v: datetime) -> datetime:
        return _as_naive_local(v)


class RecurringRuleInput(BaseModel):
    """A monthly obligation, e.g. rent due on the 1st."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    amount: Money = Field(..., gt=0, decimal_places=2)
    day_of_month: int = Field(..., ge=1, le=31)
    category_id: Optional[int] = None
    active: bool = True


class RecurringRuleUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Money] = Field(default=None, gt=0, decimal_places=2)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    category_id: Optional[int] = None
    active: Optional[bool] = None


class BillPaymentInput(BaseModel):
    """A (possibly partial) payment towards one recurring instance."""

    instance_id: int
    amount: Money = Field(..., gt=0, decimal_places=2)
    date: datetime

    @field_validator('date', mode='before')
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _to_local_datetime(v)

    @field_validator('date')
    @classmethod
    def to_local_time(cls, v: datetime) -> datetime:
        return _as_naive_local(v)


class BudgetInput(BaseModel):
    """Spending cap for one category in one month."""

    category_id: int
    month_key: str
    limit: Money = Field(..., ge=0, decimal_places=2)

    @field_validator('month_key')
    @classmethod
    def validate_month_key(cls, v: str) -> str:
        return _check_month_key(v)


class MonthlyIncomeInput(BaseModel):
    month_key: str
    income: Money = Field(..., ge=0, decimal_places=2)

    @field_validator('month_key')
    @classmethod
    def validate_month_key(cls, v: str) -> str:
        return _check_month_key(v)


class GoalInput(BaseModel):
    """A new saving goal."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=100)
    target_amount: Money = Field(..., gt=0, decimal_places=2)
    current_amount: Money = Field(default=Decimal("0"), ge=0, decimal_places=2)
    deadline: Optional[date] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


class GoalUpdate(BaseModel):
    """
    Partial goal update.

    `current_amount` is deliberately absent: it only moves through
    add/subtract so that every change has a mirror transaction.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    target_amount: Optional[Money] = Field(default=None, gt=0, decimal_places=2)
    deadline: Optional[date] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


class GoalAdjustmentInput(BaseModel):
    amount: Money = Field(..., gt=0, decimal_places=2)


# =============================================================================
# RECORDS - read models returned to callers
# =============================================================================

class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserRecord(_Record):
    id: int
    email: str
    name: Optional[str] = None


class CategoryRecord(_Record):
    id: int
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    kind: CategoryKind
    is_default: bool


class TransactionRecord(_Record):
    id: int
    user_id: int
    amount: Money
    type: TransactionType
    category_id: Optional[int] = None
    category: Optional[CategoryRecord] = None
    note: Optional[str] = None
    date: datetime
    recurring_instance_id: Optional[int] = None


class RecurringRuleRecord(_Record):
    id: int
    user_id: int
    name: str
    amount: Money
    day_of_month: int
    category_id: Optional[int] = None
    category: Optional[CategoryRecord] = None
    active: bool
    interval: RecurringInterval


class RecurringInstanceRecord(_Record):
    id: int
    rule_id: int
    month_key: str
    amount_due: Money
    status: InstanceStatus
    rule: RecurringRuleRecord


class MonthLedgerRecord(_Record):
    id: int
    user_id: int
    month_key: str
    income: Money


class BudgetRecord(_Record):
    id: int
    user_id: int
    category_id: int
    category: Optional[CategoryRecord] = None
    month_key: str
    limit: Money


class BudgetProgress(BudgetRecord):
    """A budget with its actual spend for the month."""

    spent: Money = Decimal("0")
    percentage: float = Field(
        default=0.0,
        ge=0.0,
        description="spent / limit * 100; not capped at 100"
    )

    @property
    def is_over_budget(self) -> bool:
        return self.limit > 0 and self.spent > self.limit


class SavingGoalRecord(_Record):
    id: int
    user_id: int
    title: str
    target_amount: Money
    current_amount: Money
    deadline: Optional[date] = None
    color: str
    created_at: datetime

    @property
    def is_complete(self) -> bool:
        """Completion is derived, never stored."""
        return self.current_amount >= self.target_amount

    @property
    def progress_percentage(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return float(self.current_amount / self.target_amount * 100)


class MonthTotals(BaseModel):
    month_key: str
    income: Money = Decimal("0")
    expenses: Money = Decimal("0")

    @property
    def net(self) -> Money:
        return self.income - self.expenses


class DashboardData(BaseModel):
    """Everything the monthly overview shows, for one user."""

    month_key: str
    ledger: Optional[MonthLedgerRecord] = Field(
        default=None,
        description="None means no target income was set for a past month"
    )
    instances: list[RecurringInstanceRecord] = Field(default_factory=list)
    recent_transactions: list[TransactionRecord] = Field(default_factory=list)
    goals: list[SavingGoalRecord] = Field(default_factory=list)
    budgets: list[BudgetProgress] = Field(default_factory=list)
    totals: MonthTotals


class ActionResult(BaseModel):
    """
    Outcome of an operation as handed to the presentation layer.

    Only a short message crosses the boundary on failure.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Shared by every audit event the operation wrote"
    )
