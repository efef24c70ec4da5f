"""
User Directory Interfaces
=========================

FastAPI dependencies resolving the calling user from the X-User-ID header.
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from civictrack.core import ForbiddenException, ResourceNotFoundException
from civictrack.infrastructure.database import get_session
from civictrack.users.domain import User
from civictrack.users.infrastructure import SQLAlchemyUserDirectory


async def get_current_user(
    x_user_id: str = Header(..., description="Calling user's directory ID"),
    session: AsyncSession = Depends(get_session)
) -> User:
    """Resolve the caller. Unknown IDs are a 404."""
    user = await SQLAlchemyUserDirectory(session).get(x_user_id)
    if user is None:
        raise ResourceNotFoundException("User", x_user_id)
    return user


async def require_authority(user: User = Depends(get_current_user)) -> User:
    """Restrict an endpoint to authorities."""
    if not user.is_authority:
        raise ForbiddenException("Insufficient permissions", {"user_id": user.id})
    return user
