"""
Category Store

Categories are shared labels (name, icon, color, kind) attached to
transactions, budgets and recurring rules. They are not owned by a user,
but every mutation still requires an authenticated caller.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from extrack.actions.base import BaseActions, require_user
from extrack.config.settings import AppSettings
from extrack.errors import InputValidationError, NotFoundError
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    CategoryInput,
    CategoryKind,
    CategoryRecord,
    CategoryUpdate,
    parse_input,
)
from extrack.services.storage import insert_if_absent
from extrack.services.storage.tables import (
    BudgetRow,
    CategoryRow,
    RecurringRuleRow,
    TransactionRow,
)


DEFAULT_CATEGORIES: list[dict] = [
    # Expense
    {"name": "Rent", "icon": "🏠", "color": "#ef4444", "kind": CategoryKind.EXPENSE},
    {"name": "Microfinance", "icon": "🏦", "color": "#f97316", "kind": CategoryKind.EXPENSE},
    {"name": "Taxi/Ride", "icon": "🚕", "color": "#eab308", "kind": CategoryKind.EXPENSE},
    {"name": "Cafe/Food", "icon": "🍔", "color": "#22c55e", "kind": CategoryKind.EXPENSE},
    {"name": "Church", "icon": "⛪", "color": "#06b6d4", "kind": CategoryKind.EXPENSE},
    {"name": "Family Support", "icon": "👨‍👩‍👧", "color": "#3b82f6", "kind": CategoryKind.EXPENSE},
    {"name": "Internet", "icon": "🌐", "color": "#8b5cf6", "kind": CategoryKind.EXPENSE},
    {"name": "Other", "icon": "📦", "color": "#64748b", "kind": CategoryKind.EXPENSE},
    # Income
    {"name": "Salary", "icon": "💰", "color": "#22c55e", "kind": CategoryKind.INCOME},
    {"name": "Business", "icon": "💼", "color": "#3b82f6", "kind": CategoryKind.INCOME},
    {"name": "Freelance", "icon": "💻", "color": "#a855f7", "kind": CategoryKind.INCOME},
    {"name": "Gift", "icon": "🎁", "color": "#ec4899", "kind": CategoryKind.INCOME},
]


def require_category(session: Session, category_id: Optional[int]) -> CategoryRow:
    category = session.get(CategoryRow, category_id) if category_id is not None else None
    if category is None:
        raise NotFoundError("Category")
    return category


def get_or_create_savings_category(session: Session, settings: AppSettings) -> CategoryRow:
    """
    The category used for goal mirror transactions.

    Matched by name; created once on first use. A concurrent creator
    losing the unique-name race simply reads the winner's row.
    """
    name = settings.savings_category_name
    query = select(CategoryRow).where(CategoryRow.name == name)
    category = session.scalars(query).first()
    if category is not None:
        return category

    candidate = CategoryRow(
        name=name,
        icon=settings.savings_category_icon,
        color=settings.savings_category_color,
        kind=CategoryKind.EXPENSE,
        is_default=False,
    )
    if insert_if_absent(session, candidate):
        return candidate
    return session.scalars(query).one()


class CategoryActions(BaseActions):
    """Create, list, update and delete categories."""

    def ensure_default_categories(self) -> int:
        """
        Insert any missing default categories.

        Only the known default names are considered; user-created
        categories are never touched. Safe to call repeatedly.

        Returns:
            Number of categories inserted
        """
        created = 0
        with self._database.session_scope() as session:
            names = [c["name"] for c in DEFAULT_CATEGORIES]
            existing = set(
                session.scalars(select(CategoryRow.name).where(CategoryRow.name.in_(names))).all()
            )
            for default in DEFAULT_CATEGORIES:
                if default["name"] in existing:
                    continue
                if insert_if_absent(session, CategoryRow(is_default=True, **default)):
                    created += 1

        if created:
            self._audit_logger.log_change(
                event_type=AuditEventType.DEFAULT_CATEGORIES_SEEDED,
                user_id=None,
                entity_type="category",
                entity_id=None,
                description=f"Inserted {created} default categories",
                details={"created": created},
            )
        return created

    def list_categories(
        self,
        user_id: int,
        kind: Optional[CategoryKind] = None,
    ) -> list[CategoryRecord]:
        """All categories, defaults first, then alphabetical."""
        with self._database.session_scope() as session:
            require_user(session, user_id)
            query = select(CategoryRow)
            if kind is not None:
                query = query.where(CategoryRow.kind == CategoryKind(kind))
            rows = session.scalars(
                query.order_by(CategoryRow.is_default.desc(), CategoryRow.name)
            ).all()
            return [CategoryRecord.model_validate(row) for row in rows]

    def create_category(self, user_id: int, data) -> CategoryRecord:
        payload = parse_input(CategoryInput, data)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = CategoryRow(**payload.model_dump())
            if not insert_if_absent(session, row):
                raise InputValidationError(
                    f"A category named '{payload.name}' already exists",
                    field="name",
                )
            record = CategoryRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.CATEGORY_CREATED,
            user_id=user_id,
            entity_type="category",
            entity_id=record.id,
            description=f"Category created: {record.name}",
        )
        return record

    def update_category(self, user_id: int, category_id: int, data) -> CategoryRecord:
        payload = parse_input(CategoryUpdate, data)
        changes = payload.model_dump(exclude_unset=True)
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = require_category(session, category_id)
            for field, value in changes.items():
                if value is None and field not in ("icon", "color"):
                    continue
                setattr(row, field, value)
            try:
                with session.begin_nested():
                    session.flush()
            except IntegrityError:
                raise InputValidationError(
                    f"A category named '{changes.get('name')}' already exists",
                    field="name",
                )
            record = CategoryRecord.model_validate(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.CATEGORY_UPDATED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            description=f"Category updated: {record.name}",
            details={"fields": sorted(changes)},
        )
        return record

    def delete_category(self, user_id: int, category_id: int) -> None:
        """
        Delete an unused category.

        Raises:
            InputValidationError: if any transaction, budget or recurring
                rule still references the category
        """
        with self._database.session_scope() as session:
            require_user(session, user_id)
            row = require_category(session, category_id)
            usage = sum(
                session.scalar(
                    select(func.count()).select_from(model).where(model.category_id == category_id)
                )
                for model in (TransactionRow, BudgetRow, RecurringRuleRow)
            )
            if usage > 0:
                raise InputValidationError(
                    "Cannot delete category that is used in transactions, budgets, or recurring rules"
                )
            name = row.name
            session.delete(row)

        self._audit_logger.log_change(
            event_type=AuditEventType.CATEGORY_DELETED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            description=f"Category deleted: {name}",
        )

    def get_or_create_savings_category(self) -> CategoryRecord:
        with self._database.session_scope() as session:
            return CategoryRecord.model_validate(
                get_or_create_savings_category(session, self._settings)
            )
