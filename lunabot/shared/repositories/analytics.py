"""Repository for command_logs and message_logs."""

from __future__ import annotations

import logging

import asyncpg

from lunabot.shared.cache import AsyncTTLCache, cached
from lunabot.shared.models.analytics import CommandUsage

logger = logging.getLogger(__name__)

# --- In-process caches ---
_top_commands_cache = AsyncTTLCache(maxsize=16, ttl=120)


class AnalyticsRepository:
    """Write-heavy log tables plus the aggregate queries behind ``stats``."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Recording ====================

    async def log_command(
        self,
        command_name: str,
        user_id: str,
        group_id: str | None,
        success: bool,
        execution_ms: int,
    ) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO command_logs
                    (command_name, user_id, group_id, success, execution_ms)
                VALUES ($1, $2, $3, $4, $5)
                """,
                command_name,
                user_id,
                group_id,
                success,
                execution_ms,
            )

    async def log_message(
        self, message_id: str, user_id: str, thread_id: str, kind: str, text: str
    ) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO message_logs (message_id, user_id, thread_id, kind, text)
                VALUES ($1, $2, $3, $4, $5)
                """,
                message_id,
                user_id,
                thread_id,
                kind,
                text,
            )

    # ==================== Aggregates ====================

    async def user_command_summary(self, user_id: str) -> dict:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT
                    COUNT(*)                                   AS commands_logged,
                    COUNT(*) FILTER (WHERE success)            AS successful,
                    COALESCE(AVG(execution_ms), 0)::FLOAT      AS avg_execution_ms
                FROM command_logs
                WHERE user_id = $1
                """,
                user_id,
            )
            favourite = await conn.fetchval(
                """
                SELECT command_name FROM command_logs
                WHERE user_id = $1
                GROUP BY command_name
                ORDER BY COUNT(*) DESC, command_name
                LIMIT 1
                """,
                user_id,
            )
        summary = dict(row) if row else {}
        summary["favourite_command"] = favourite
        return summary

    async def group_activity_summary(self, group_id: str) -> dict:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT
                    (SELECT COUNT(*) FROM message_logs WHERE thread_id = $1)  AS messages_logged,
                    (SELECT COUNT(DISTINCT user_id) FROM message_logs
                        WHERE thread_id = $1)                                 AS active_users,
                    (SELECT COUNT(*) FROM command_logs WHERE group_id = $1)   AS commands_logged
                """,
                group_id,
            )
        return dict(row) if row else {}

    @cached(cache=_top_commands_cache, key_func=lambda self, limit=5: f"top:{limit}")
    async def top_commands(self, limit: int = 5) -> list[CommandUsage]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT
                    command_name,
                    COUNT(*)                               AS usage_count,
                    COUNT(*) FILTER (WHERE success)        AS success_count,
                    COALESCE(AVG(execution_ms), 0)::FLOAT  AS avg_execution_ms
                FROM command_logs
                GROUP BY command_name
                ORDER BY usage_count DESC, command_name
                LIMIT $1
                """,
                limit,
            )
            return [CommandUsage(**dict(r)) for r in rows]
