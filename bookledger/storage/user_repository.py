"""
User Repository for BookLedger.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .models import UserModel, UserRole


@dataclass
class StoredUser:
    """Data class for user data transfer."""

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_model(cls, model: UserModel) -> "StoredUser":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            role=model.role,
            phone=model.phone,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class UserRepository:
    """Repository for user rows. Users are never deleted."""

    def add(self, session: Session, **fields) -> UserModel:
        user = UserModel(**fields)
        session.add(user)
        session.flush()
        session.refresh(user)
        return user

    def get(self, session: Session, user_id: int) -> Optional[UserModel]:
        return session.get(UserModel, user_id)

    def exists(self, session: Session, user_id: int) -> bool:
        return session.execute(
            select(UserModel.id).where(UserModel.id == user_id)
        ).first() is not None

    def get_by_email(self, session: Session, email: str) -> Optional[UserModel]:
        """Case-insensitive email lookup."""
        return session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.strip().lower())
        ).scalar_one_or_none()

    def update_fields(self, session: Session, user: UserModel, **updates) -> UserModel:
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        user.updated_at = datetime.utcnow()
        session.flush()
        return user

    def list_members(self, session: Session) -> list[UserModel]:
        """All MEMBER users ordered by last name, then first name."""
        return list(session.execute(
            select(UserModel)
            .where(UserModel.role == UserRole.MEMBER.value)
            .order_by(UserModel.last_name, UserModel.first_name)
        ).scalars().all())

    def search_by_name(
        self,
        session: Session,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> list[UserModel]:
        """
        Match users whose first or last name contains the given fragments.

        Args:
            session: Open session
            first_name: Fragment matched against first_name
            last_name: Fragment matched against last_name

        Returns:
            Matching users ordered by name
        """
        clauses = []
        if first_name:
            clauses.append(UserModel.first_name.ilike(f"%{first_name}%"))
        if last_name:
            clauses.append(UserModel.last_name.ilike(f"%{last_name}%"))
        if not clauses:
            return []

        return list(session.execute(
            select(UserModel)
            .where(or_(*clauses))
            .order_by(UserModel.last_name, UserModel.first_name)
        ).scalars().all())

    def find_by_role(self, session: Session, role: str) -> list[UserModel]:
        return list(session.execute(
            select(UserModel)
            .where(UserModel.role == role)
            .order_by(UserModel.id)
        ).scalars().all())

    def count_all(self, session: Session) -> int:
        return session.execute(select(func.count(UserModel.id))).scalar_one()

    def count_by_role(self, session: Session, role: str) -> int:
        return session.execute(
            select(func.count(UserModel.id)).where(UserModel.role == role)
        ).scalar_one()
