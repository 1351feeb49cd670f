"""Boundaries the core talks through: the messaging transport and the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class ThreadInfo:
    """Thread metadata as reported by the transport."""

    thread_id: str
    name: str = ""
    participants: list[str] = field(default_factory=list)
    admin_ids: set[str] = field(default_factory=set)
    description: str = ""

    @property
    def member_count(self) -> int:
        return len(self.participants)


@runtime_checkable
class Transport(Protocol):
    """Outbound side of the messaging network."""

    bot_id: str

    async def send_text(
        self,
        thread_id: str,
        text: str,
        *,
        quote: str | None = None,
        mentions: list[str] | None = None,
    ) -> str | None: ...

    async def get_thread_info(self, thread_id: str) -> ThreadInfo: ...

    async def accept_invite(self, group_id: str) -> None: ...

    async def reject_call(self, call_id: str, caller_id: str) -> None: ...


@runtime_checkable
class Persistence(Protocol):
    """Store operations the core reads and writes (all best-effort)."""

    async def get_user(self, user_id: str) -> Any | None: ...

    async def save_user(
        self, user_id: str, name: str, *, is_admin: bool = False
    ) -> Any: ...

    async def get_group(self, group_id: str) -> Any | None: ...

    async def save_group(
        self,
        group_id: str,
        name: str,
        *,
        member_count: int = 0,
        admin_ids: list[str] | None = None,
    ) -> Any: ...

    async def log_command_usage(
        self,
        command_name: str,
        user_id: str,
        group_id: str | None,
        success: bool,
        execution_ms: int,
    ) -> None: ...

    async def log_message(
        self,
        message_id: str,
        user_id: str,
        thread_id: str,
        group_id: str | None,
        kind: str,
        text: str,
    ) -> None: ...

    async def increment_command_count(self, user_id: str) -> None: ...

    async def user_stats(self, user_id: str) -> dict[str, Any]: ...

    async def group_stats(self, group_id: str) -> dict[str, Any]: ...

    async def top_commands(self, limit: int = 5) -> list[dict[str, Any]]: ...
