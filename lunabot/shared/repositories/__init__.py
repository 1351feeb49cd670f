"""Repository layer over the asyncpg pool."""

from .analytics import AnalyticsRepository
from .group import GroupRepository
from .user import UserRepository

__all__ = [
    "AnalyticsRepository",
    "GroupRepository",
    "UserRepository",
]
