"""Repository for the groups table."""

from __future__ import annotations

import logging

import asyncpg

from lunabot.shared.cache import AsyncTTLCache, cached
from lunabot.shared.models.group import Group

logger = logging.getLogger(__name__)

# --- In-process caches ---
_group_cache = AsyncTTLCache(maxsize=256, ttl=300)

_GROUP_COLUMNS = (
    "group_id, name, member_count, admin_ids, message_count, command_count, "
    "created_at, last_activity"
)


def _row_to_group(row: asyncpg.Record) -> Group:
    data = dict(row)
    data["admin_ids"] = list(data.get("admin_ids") or [])
    return Group(**data)


class GroupRepository:
    """Pure SQL operations for groups."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @cached(cache=_group_cache, key_func=lambda self, group_id: f"group:{group_id}")
    async def get_group(self, group_id: str) -> Group | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_GROUP_COLUMNS} FROM groups WHERE group_id = $1",  # noqa: S608
                group_id,
            )
            return _row_to_group(row) if row else None

    async def upsert_group(
        self,
        group_id: str,
        name: str,
        member_count: int = 0,
        admin_ids: list[str] | None = None,
    ) -> Group:
        """Register a group or refresh its metadata and last activity."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO groups (group_id, name, member_count, admin_ids)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (group_id) DO UPDATE SET
                    name          = EXCLUDED.name,
                    member_count  = EXCLUDED.member_count,
                    admin_ids     = EXCLUDED.admin_ids,
                    last_activity = NOW()
                RETURNING {_GROUP_COLUMNS}
                """,
                group_id,
                name,
                member_count,
                admin_ids or [],
            )
        group = _row_to_group(row)
        _group_cache.set(f"group:{group_id}", group)
        return group

    async def increment_message_count(self, group_id: str) -> None:
        """No-op for threads that are not registered groups."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE groups
                SET message_count = message_count + 1, last_activity = NOW()
                WHERE group_id = $1
                """,
                group_id,
            )
        _group_cache.invalidate(f"group:{group_id}")

    async def increment_command_count(self, group_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE groups
                SET command_count = command_count + 1, last_activity = NOW()
                WHERE group_id = $1
                """,
                group_id,
            )
        _group_cache.invalidate(f"group:{group_id}")
