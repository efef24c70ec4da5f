"""
User Directory Module
=====================

Citizens and authorities, loaded from a fixture file at startup.
"""

from civictrack.users.domain import User
from civictrack.users.application import IUserDirectory, load_user_fixtures, seed_users

__all__ = ["User", "IUserDirectory", "load_user_fixtures", "seed_users"]
