"""Shared data models for the bot's store."""

from .analytics import CommandLog, CommandUsage, MessageLog
from .group import Group
from .user import User

__all__ = [
    "CommandLog",
    "CommandUsage",
    "Group",
    "MessageLog",
    "User",
]
