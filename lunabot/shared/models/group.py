"""Data model for the groups table."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Group:
    """A group thread, registered from transport metadata on first sight."""

    group_id: str
    name: str = ""
    member_count: int = 0
    admin_ids: list[str] = field(default_factory=list)
    message_count: int = 0
    command_count: int = 0
    created_at: datetime | None = None
    last_activity: datetime | None = None
