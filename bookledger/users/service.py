"""
User Service for BookLedger

Registration and profile management for library members and admins.
Users are never deleted; borrow history references them permanently.
"""

from typing import Optional, Union

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookledger.exceptions import (
    DuplicateResourceError,
    InvalidInputError,
    NotFoundError,
)
from bookledger.storage.database import Database, violates_unique
from bookledger.storage.models import USER_EMAIL_UNIQUE, UserModel, UserRole
from bookledger.storage.user_repository import StoredUser, UserRepository

PROFILE_FIELDS = ("email", "first_name", "last_name", "phone")


def role_value(role: Union[UserRole, str]) -> str:
    if isinstance(role, UserRole):
        return role.value
    return UserRole(role.strip().upper()).value


def _required(field: str, value: str) -> str:
    value = value.strip()
    if not value:
        raise InvalidInputError.blank(field)
    return value


def _is_email_conflict(exc: IntegrityError) -> bool:
    return violates_unique(exc, USER_EMAIL_UNIQUE, "users.email")


class UserService:
    """
    User operations.

    Usage:
        users = UserService(db)
        user = users.create_user(email="ada@example.com", first_name="Ada", last_name="Lovelace")
        users.change_role(user.id, UserRole.ADMIN)
    """

    def __init__(self, db: Database, users: Optional[UserRepository] = None):
        self.db = db
        self.users = users or UserRepository()

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
        role: Union[UserRole, str] = UserRole.MEMBER,
    ) -> StoredUser:
        """
        Register a user.

        Raises:
            DuplicateResourceError: email already registered (case-insensitive)
            InvalidInputError: blank email or name
        """
        email = _required("email", email).lower()
        first_name = _required("first_name", first_name)
        last_name = _required("last_name", last_name)
        logger.debug(f"Registering user: {email}")

        try:
            with self.db.transaction() as session:
                if self.users.get_by_email(session, email) is not None:
                    logger.warning(f"User with email {email} already exists")
                    raise DuplicateResourceError.for_user_email(email)

                user = self.users.add(
                    session,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    phone=phone,
                    role=role_value(role),
                )
                stored = StoredUser.from_model(user)
        except IntegrityError as e:
            if _is_email_conflict(e):
                # Lost a race on the email unique constraint
                raise DuplicateResourceError.for_user_email(email) from e
            raise

        logger.info(f"User registered: {stored.full_name} (ID: {stored.id}, role: {stored.role})")
        return stored

    def get_user(self, user_id: int) -> StoredUser:
        with self.db.transaction() as session:
            return StoredUser.from_model(self._require_user(session, user_id))

    def find_by_email(self, email: str) -> StoredUser:
        with self.db.transaction() as session:
            user = self.users.get_by_email(session, email)
            if user is None:
                raise NotFoundError("User", email)
            return StoredUser.from_model(user)

    def list_members(self) -> list[StoredUser]:
        with self.db.transaction() as session:
            return [StoredUser.from_model(u) for u in self.users.list_members(session)]

    def search_by_name(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> list[StoredUser]:
        with self.db.transaction() as session:
            matches = self.users.search_by_name(session, first_name=first_name, last_name=last_name)
            return [StoredUser.from_model(u) for u in matches]

    def find_by_role(self, role: Union[UserRole, str]) -> list[StoredUser]:
        with self.db.transaction() as session:
            return [StoredUser.from_model(u) for u in self.users.find_by_role(session, role_value(role))]

    def update_profile(self, user_id: int, **updates) -> StoredUser:
        """
        Update email, names or phone. ``None`` values are ignored.

        Raises:
            NotFoundError: user does not exist
            DuplicateResourceError: new email belongs to another user
            InvalidInputError: blank email or name
        """
        fields = {
            k: v for k, v in updates.items()
            if k in PROFILE_FIELDS and v is not None
        }
        for key in ("email", "first_name", "last_name"):
            if key in fields:
                fields[key] = _required(key, fields[key])
        if "email" in fields:
            fields["email"] = fields["email"].lower()

        try:
            with self.db.transaction() as session:
                user = self._require_user(session, user_id)

                if "email" in fields and fields["email"] != user.email:
                    if self.users.get_by_email(session, fields["email"]) is not None:
                        raise DuplicateResourceError.for_user_email(fields["email"])

                self.users.update_fields(session, user, **fields)
                stored = StoredUser.from_model(user)
        except IntegrityError as e:
            if "email" in fields and _is_email_conflict(e):
                raise DuplicateResourceError.for_user_email(fields["email"]) from e
            raise

        logger.info(f"User updated: {stored.full_name} (ID: {user_id})")
        return stored

    def change_role(self, user_id: int, role: Union[UserRole, str]) -> StoredUser:
        with self.db.transaction() as session:
            user = self._require_user(session, user_id)
            previous = user.role
            self.users.update_fields(session, user, role=role_value(role))
            stored = StoredUser.from_model(user)

        logger.info(f"User {user_id} role changed: {previous} -> {stored.role}")
        return stored

    def count_all(self) -> int:
        with self.db.transaction() as session:
            return self.users.count_all(session)

    def count_by_role(self, role: Union[UserRole, str]) -> int:
        with self.db.transaction() as session:
            return self.users.count_by_role(session, role_value(role))

    def _require_user(self, session: Session, user_id: int) -> UserModel:
        user = self.users.get(session, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
