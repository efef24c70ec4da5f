"""
User Directory Application Layer
=================================

Directory interface plus the fixture loader that seeds it at startup.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from civictrack.config import UserRole
from civictrack.core import ConfigurationException
from civictrack.shared.infrastructure.logging import get_logger
from civictrack.users.domain import User

logger = get_logger(__name__)


class IUserDirectory(ABC):
    """Interface for user lookups."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[User]:
        """Get user by ID."""

    @abstractmethod
    async def list_by_role(self, role: UserRole) -> List[User]:
        """List every user holding a role."""

    @abstractmethod
    async def upsert(self, user: User) -> User:
        """Create or replace a user."""


class UserFixture(BaseModel):
    """One entry of the users fixture file."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: UserRole
    ward: Optional[str] = None

    def to_domain(self) -> User:
        return User(id=self.id, name=self.name, role=self.role, ward=self.ward)


class UsersFixtureFile(BaseModel):
    users: List[UserFixture] = Field(default_factory=list)


def load_user_fixtures(path: Path) -> List[User]:
    """
    Parse the users fixture YAML.

    A missing file yields an empty directory; a malformed one is a
    configuration error.
    """
    if not path.exists():
        logger.warning(f"Users fixture not found: {path}, starting with an empty directory")
        return []

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    try:
        parsed = UsersFixtureFile(**data)
    except ValueError as e:
        raise ConfigurationException(f"Invalid users fixture {path}: {e}") from e

    return [entry.to_domain() for entry in parsed.users]


async def seed_users(directory: IUserDirectory, users: List[User]) -> int:
    """Upsert fixture users into the directory. Returns the number written."""
    for user in users:
        await directory.upsert(user)
    logger.info("User directory seeded", extra={"users": len(users)})
    return len(users)
