"""Data model for the users table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    user_id: str
    name: str = ""
    is_admin: bool = False
    command_count: int = 0
    first_seen: datetime | None = None
    last_seen: datetime | None = None
