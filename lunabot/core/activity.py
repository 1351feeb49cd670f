"""Best-effort activity recording: users, groups, message and command logs."""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from datetime import datetime, timezone
from typing import Any

from lunabot.core.events import InboundEvent
from lunabot.core.guards import Actor
from lunabot.core.interfaces import Persistence
from lunabot.core.threads import ThreadDirectory
from lunabot.shared.cache import _MISSING, AsyncTTLCache

LOGGER = logging.getLogger("Activity")

# Refresh a known user/group row at most this often
REFRESH_SECONDS = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _age_seconds(when: datetime | None, now: datetime) -> float:
    if when is None:
        return float("inf")
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return (now - when).total_seconds()


class ActivityRecorder:
    """Writes activity to the store; every failure is logged and swallowed.

    With no store configured every call is a no-op.
    """

    def __init__(
        self,
        store: Persistence | None,
        directory: ThreadDirectory | None = None,
        *,
        admin_ids: Collection[str] = (),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.directory = directory
        self.admin_ids = frozenset(admin_ids)
        self._clock = clock
        self._users = AsyncTTLCache(maxsize=1024, ttl=300)
        self._groups = AsyncTTLCache(maxsize=256, ttl=300)

    @property
    def enabled(self) -> bool:
        return self.store is not None

    async def record_message(self, event: InboundEvent, actor: Actor) -> None:
        if self.store is None:
            return
        try:
            if not actor.synthetic and not actor.from_me:
                await self._touch_user(actor.id, event.sender_name)
            if event.is_group:
                await self._touch_group(event)
            await self.store.log_message(
                event.id,
                actor.id,
                event.thread_id,
                event.thread_id if event.is_group else None,
                event.kind.value,
                event.text or "",
            )
        except Exception as e:
            LOGGER.warning(
                f"[DATA] Failed to record message {event.id} from {actor.id}: "
                f"{type(e).__name__}: {e}"
            )

    async def record_command(
        self,
        command_name: str,
        actor_id: str,
        group_id: str | None,
        success: bool,
        execution_ms: int,
    ) -> None:
        if self.store is None:
            return
        try:
            await self.store.log_command_usage(
                command_name, actor_id, group_id, success, execution_ms
            )
            await self.store.increment_command_count(actor_id)
        except Exception as e:
            LOGGER.warning(
                f"[DATA] Failed to log usage of '{command_name}' by {actor_id}: "
                f"{type(e).__name__}: {e}"
            )

    # ------------------------------------------------------------------

    async def _touch_user(self, user_id: str, name: str) -> Any:
        user = self._users.get(user_id)
        if user is _MISSING:
            user = await self.store.get_user(user_id)

        now = self._clock()
        if user is None:
            user = await self.store.save_user(
                user_id, name or user_id, is_admin=user_id in self.admin_ids
            )
            LOGGER.info(f"[DATA] Registered new user {name or user_id} ({user_id})")
        elif (name and name != user.name) or _age_seconds(user.last_seen, now) > REFRESH_SECONDS:
            user = await self.store.save_user(
                user_id, name or user.name, is_admin=user.is_admin
            )

        self._users.set(user_id, user)
        return user

    async def _touch_group(self, event: InboundEvent) -> Any:
        group_id = event.thread_id
        group = self._groups.get(group_id)
        if group is _MISSING:
            group = await self.store.get_group(group_id)

        now = self._clock()
        if group is None:
            info = await self.directory.info(group_id) if self.directory else None
            group = await self.store.save_group(
                group_id,
                (info.name if info else "") or event.thread_name or group_id,
                member_count=info.member_count if info else 0,
                admin_ids=sorted(info.admin_ids) if info else [],
            )
            LOGGER.info(f"[DATA] Registered new group {group.name} ({group_id})")
        elif _age_seconds(group.last_activity, now) > REFRESH_SECONDS:
            group = await self.store.save_group(
                group_id,
                group.name,
                member_count=group.member_count,
                admin_ids=list(group.admin_ids),
            )

        self._groups.set(group_id, group)
        return group
