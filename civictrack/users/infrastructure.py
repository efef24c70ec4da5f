"""
User Directory Infrastructure
=============================

SQLAlchemy model and repository for the user directory.
"""

from typing import List, Optional

from sqlalchemy import String, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from civictrack.config import UserRole
from civictrack.infrastructure.database import Base, storage_errors
from civictrack.users.application import IUserDirectory
from civictrack.users.domain import User


class UserModel(Base):
    """
    Database model for directory users.

    Maps to the 'users' table.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    ward: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def to_domain(self) -> User:
        return User(id=self.id, name=self.name, role=UserRole(self.role), ward=self.ward)


class SQLAlchemyUserDirectory(IUserDirectory):
    """SQLAlchemy implementation of the user directory."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        async with storage_errors("load user"):
            model = await self._session.get(UserModel, user_id)
        return model.to_domain() if model else None

    async def list_by_role(self, role: UserRole) -> List[User]:
        """List every user holding a role."""
        stmt = select(UserModel).where(UserModel.role == UserRole(role).value).order_by(UserModel.id)
        async with storage_errors("list users"):
            result = await self._session.execute(stmt)
        return [model.to_domain() for model in result.scalars().all()]

    async def upsert(self, user: User) -> User:
        """Create or replace a user."""
        async with storage_errors("upsert user"):
            model = await self._session.get(UserModel, user.id)
            if model is None:
                model = UserModel(id=user.id)
                self._session.add(model)
            model.name = user.name
            model.role = UserRole(user.role).value
            model.ward = user.ward
            await self._session.flush()
        return user
