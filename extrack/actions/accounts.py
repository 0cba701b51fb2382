"""
Accounts

Registration, password login and profile changes. Every other action
service identifies its caller by user id and resolves it through
`require_user`; this module is where those ids come from.
"""

from typing import Optional

from sqlalchemy import select
from werkzeug.security import check_password_hash, generate_password_hash

from extrack.actions.base import BaseActions, require_user
from extrack.errors import AuthenticationError, InputValidationError
from extrack.models.audit import AuditEventType
from extrack.models.finance import (
    PasswordChangeInput,
    RegistrationInput,
    UserRecord,
    parse_input,
)
from extrack.services.storage import insert_if_absent
from extrack.services.storage.tables import UserRow


class AccountActions(BaseActions):
    """User accounts."""

    def register_user(self, data) -> UserRecord:
        """
        Create an account.

        Raises:
            InputValidationError: malformed input or the email is taken
        """
        payload = parse_input(RegistrationInput, data)
        with self._database.session_scope() as session:
            row = UserRow(
                email=payload.email,
                name=payload.name,
                password_hash=generate_password_hash(payload.password),
            )
            if not insert_if_absent(session, row):
                raise InputValidationError("Email already registered", field="email")
            record = UserRecord.model_validate(row)

        self._audit_logger.log_user_registered(user_id=record.id, email=record.email)
        return record

    def authenticate(self, email: str, password: str) -> int:
        """
        Check credentials.

        Unknown email and wrong password fail the same way.

        Returns:
            The user id
        """
        normalized = (email or "").strip().lower()
        with self._database.session_scope() as session:
            user = session.scalars(select(UserRow).where(UserRow.email == normalized)).first()
            user_id = user.id if user is not None else None
            valid = user is not None and check_password_hash(user.password_hash, password or "")

        if not valid:
            self._audit_logger.log_authentication_failed(email=normalized)
            raise AuthenticationError("Invalid email or password")
        return user_id

    def get_user(self, user_id: int) -> UserRecord:
        with self._database.session_scope() as session:
            return UserRecord.model_validate(require_user(session, user_id))

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._database.session_scope() as session:
            user = session.scalars(
                select(UserRow).where(UserRow.email == (email or "").strip().lower())
            ).first()
            return UserRecord.model_validate(user) if user is not None else None

    def update_profile(self, user_id: int, name: Optional[str]) -> UserRecord:
        cleaned = name.strip() if name else None
        if cleaned is not None and len(cleaned) > 120:
            raise InputValidationError("name: String should have at most 120 characters", field="name")
        with self._database.session_scope() as session:
            user = require_user(session, user_id)
            user.name = cleaned or None
            session.flush()
            record = UserRecord.model_validate(user)

        self._audit_logger.log_change(
            event_type=AuditEventType.PROFILE_UPDATED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="Profile updated",
        )
        return record

    def change_password(self, user_id: int, data) -> None:
        """
        Replace the password after checking the current one.

        Raises:
            InputValidationError: the current password is wrong or the new
                one is too short
        """
        payload = parse_input(PasswordChangeInput, data)
        with self._database.session_scope() as session:
            user = require_user(session, user_id)
            if not check_password_hash(user.password_hash, payload.current_password):
                raise InputValidationError("Current password is incorrect", field="current_password")
            user.password_hash = generate_password_hash(payload.new_password)

        self._audit_logger.log_change(
            event_type=AuditEventType.PASSWORD_CHANGED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="Password changed",
        )
