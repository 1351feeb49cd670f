"""Store: the persistence operations the bot core reads and writes."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

import asyncpg

from lunabot.shared.models.group import Group
from lunabot.shared.models.user import User
from lunabot.shared.repositories.analytics import AnalyticsRepository
from lunabot.shared.repositories.group import GroupRepository
from lunabot.shared.repositories.user import UserRepository

logger = logging.getLogger(__name__)


class Store:
    """Facade over the repositories, shaped after the core's Persistence protocol."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.users = UserRepository(pool)
        self.groups = GroupRepository(pool)
        self.analytics = AnalyticsRepository(pool)

    # ==================== Users / groups ====================

    async def get_user(self, user_id: str) -> User | None:
        return await self.users.get_user(user_id)

    async def save_user(self, user_id: str, name: str, *, is_admin: bool = False) -> User:
        return await self.users.upsert_user(user_id, name, is_admin)

    async def get_group(self, group_id: str) -> Group | None:
        return await self.groups.get_group(group_id)

    async def save_group(
        self,
        group_id: str,
        name: str,
        *,
        member_count: int = 0,
        admin_ids: list[str] | None = None,
    ) -> Group:
        return await self.groups.upsert_group(group_id, name, member_count, admin_ids)

    # ==================== Logs ====================

    async def log_command_usage(
        self,
        command_name: str,
        user_id: str,
        group_id: str | None,
        success: bool,
        execution_ms: int,
    ) -> None:
        await self.analytics.log_command(command_name, user_id, group_id, success, execution_ms)
        if group_id:
            await self.groups.increment_command_count(group_id)

    async def log_message(
        self,
        message_id: str,
        user_id: str,
        thread_id: str,
        group_id: str | None,
        kind: str,
        text: str,
    ) -> None:
        await self.analytics.log_message(message_id, user_id, thread_id, kind, text)
        if group_id:
            await self.groups.increment_message_count(group_id)

    async def increment_command_count(self, user_id: str) -> None:
        await self.users.increment_command_count(user_id)

    # ==================== Stats ====================

    async def user_stats(self, user_id: str) -> dict[str, Any]:
        user = await self.users.get_user(user_id)
        summary = await self.analytics.user_command_summary(user_id)
        return {
            "user_id": user_id,
            "name": user.name if user else "",
            "command_count": user.command_count if user else 0,
            "first_seen": user.first_seen if user else None,
            **summary,
        }

    async def group_stats(self, group_id: str) -> dict[str, Any]:
        group = await self.groups.get_group(group_id)
        summary = await self.analytics.group_activity_summary(group_id)
        return {
            "group_id": group_id,
            "name": group.name if group else "",
            "member_count": group.member_count if group else 0,
            "message_count": group.message_count if group else 0,
            "command_count": group.command_count if group else 0,
            **summary,
        }

    async def top_commands(self, limit: int = 5) -> list[dict[str, Any]]:
        return [dataclasses.asdict(u) for u in await self.analytics.top_commands(limit)]
