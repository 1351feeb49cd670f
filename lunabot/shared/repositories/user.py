"""Repository for the users table."""

from __future__ import annotations

import logging

import asyncpg

from lunabot.shared.cache import AsyncTTLCache, cached
from lunabot.shared.models.user import User

logger = logging.getLogger(__name__)

# --- In-process caches ---
_user_cache = AsyncTTLCache(maxsize=1024, ttl=300)

_USER_COLUMNS = "user_id, name, is_admin, command_count, first_seen, last_seen"


class UserRepository:
    """Pure SQL operations for users."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @cached(cache=_user_cache, key_func=lambda self, user_id: f"user:{user_id}")
    async def get_user(self, user_id: str) -> User | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = $1",  # noqa: S608
                user_id,
            )
            return User(**dict(row)) if row else None

    async def upsert_user(self, user_id: str, name: str, is_admin: bool = False) -> User:
        """Insert a first-seen user or refresh name and last_seen."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO users (user_id, name, is_admin)
                VALUES ($1, $2, $3)
                ON CONFLICT (user_id) DO UPDATE SET
                    name      = EXCLUDED.name,
                    is_admin  = EXCLUDED.is_admin,
                    last_seen = NOW()
                RETURNING {_USER_COLUMNS}
                """,
                user_id,
                name,
                is_admin,
            )
        user = User(**dict(row))
        _user_cache.set(f"user:{user_id}", user)
        return user

    async def increment_command_count(self, user_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET command_count = command_count + 1, last_seen = NOW()
                WHERE user_id = $1
                """,
                user_id,
            )
        _user_cache.invalidate(f"user:{user_id}")
