"""Data models for command and message logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class CommandLog:
    """One executed command."""

    id: int
    command_name: str
    user_id: str
    group_id: str | None = None
    success: bool = True
    execution_ms: int = 0
    created_at: datetime | None = None


@dataclass
class MessageLog:
    id: int
    message_id: str
    user_id: str
    thread_id: str
    kind: str = "text"
    text: str = ""
    created_at: datetime | None = None


@dataclass
class CommandUsage:
    """Aggregated usage of one command."""

    command_name: str
    usage_count: int = 0
    success_count: int = 0
    avg_execution_ms: float = 0.0
