"""
User Directory Domain
=====================

Who exists and which role they hold. Authentication is handled elsewhere;
the directory only answers identity and role questions.
"""

from dataclasses import dataclass
from typing import Optional

from civictrack.config import UserRole


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: UserRole
    ward: Optional[str] = None

    @property
    def is_authority(self) -> bool:
        return self.role == UserRole.AUTHORITY
