"""
Pytest configuration and shared fixtures for lunabot tests.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any

import pytest

from lunabot.core.bot import Bot
from lunabot.core.config import LunaSettings
from lunabot.core.events import EventKind, InboundEvent, SenderIdentity, ThreadType
from lunabot.core.interfaces import ThreadInfo
from lunabot.core.loader import ComponentLoader
from lunabot.core.state import DispatchState
from lunabot.core.threads import ThreadDirectory
from lunabot.shared.models.group import Group
from lunabot.shared.models.user import User

BOT_ID = "999000111"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Records everything the bot sends."""

    def __init__(self) -> None:
        self.bot_id = BOT_ID
        self.sent: list[dict[str, Any]] = []
        self.threads: dict[str, ThreadInfo] = {}
        self.accepted: list[str] = []
        self.rejected: list[tuple[str, str]] = []
        self.info_calls = 0
        self.info_error: Exception | None = None
        self.send_error: Exception | None = None
        self.reject_error: Exception | None = None
        self._ids = itertools.count(1)

    async def send_text(self, thread_id, text, *, quote=None, mentions=None):
        if self.send_error is not None:
            raise self.send_error
        message_id = f"out-{next(self._ids)}"
        self.sent.append(
            {
                "id": message_id,
                "thread_id": thread_id,
                "text": text,
                "quote": quote,
                "mentions": mentions,
            }
        )
        return message_id

    async def get_thread_info(self, thread_id):
        self.info_calls += 1
        if self.info_error is not None:
            raise self.info_error
        return self.threads.get(thread_id) or ThreadInfo(thread_id, name=f"Group {thread_id}")

    async def accept_invite(self, group_id):
        self.accepted.append(group_id)

    async def reject_call(self, call_id, caller_id):
        if self.reject_error is not None:
            raise self.reject_error
        self.rejected.append((call_id, caller_id))

    @property
    def texts(self) -> list[str]:
        return [m["text"] for m in self.sent]


class MemoryStore:
    """In-memory implementation of the persistence protocol."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.groups: dict[str, Group] = {}
        self.command_logs: list[dict[str, Any]] = []
        self.message_logs: list[dict[str, Any]] = []
        self.fail: Exception | None = None

    def _check(self) -> None:
        if self.fail is not None:
            raise self.fail

    async def get_user(self, user_id):
        self._check()
        return self.users.get(user_id)

    async def save_user(self, user_id, name, *, is_admin=False):
        self._check()
        now = datetime.now(timezone.utc)
        existing = self.users.get(user_id)
        user = User(
            user_id=user_id,
            name=name,
            is_admin=is_admin,
            command_count=existing.command_count if existing else 0,
            first_seen=existing.first_seen if existing else now,
            last_seen=now,
        )
        self.users[user_id] = user
        return user

    async def get_group(self, group_id):
        self._check()
        return self.groups.get(group_id)

    async def save_group(self, group_id, name, *, member_count=0, admin_ids=None):
        self._check()
        now = datetime.now(timezone.utc)
        existing = self.groups.get(group_id)
        group = Group(
            group_id=group_id,
            name=name,
            member_count=member_count,
            admin_ids=list(admin_ids or []),
            message_count=existing.message_count if existing else 0,
            command_count=existing.command_count if existing else 0,
            created_at=existing.created_at if existing else now,
            last_activity=now,
        )
        self.groups[group_id] = group
        return group

    async def log_command_usage(self, command_name, user_id, group_id, success, execution_ms):
        self._check()
        self.command_logs.append(
            {
                "command_name": command_name,
                "user_id": user_id,
                "group_id": group_id,
                "success": success,
                "execution_ms": execution_ms,
            }
        )
        if group_id in self.groups:
            self.groups[group_id].command_count += 1

    async def log_message(self, message_id, user_id, thread_id, group_id, kind, text):
        self._check()
        self.message_logs.append(
            {"message_id": message_id, "user_id": user_id, "thread_id": thread_id, "kind": kind}
        )
        if group_id in self.groups:
            self.groups[group_id].message_count += 1

    async def increment_command_count(self, user_id):
        self._check()
        if user_id in self.users:
            self.users[user_id].command_count += 1

    async def user_stats(self, user_id):
        self._check()
        user = self.users.get(user_id)
        mine = [c for c in self.command_logs if c["user_id"] == user_id]
        return {
            "user_id": user_id,
            "command_count": user.command_count if user else 0,
            "commands_logged": len(mine),
            "favourite_command": mine[0]["command_name"] if mine else None,
        }

    async def group_stats(self, group_id):
        self._check()
        group = self.groups.get(group_id)
        return {
            "group_id": group_id,
            "name": group.name if group else "",
            "message_count": group.message_count if group else 0,
            "command_count": group.command_count if group else 0,
        }

    async def top_commands(self, limit=5):
        self._check()
        counts: dict[str, int] = {}
        for log in self.command_logs:
            counts[log["command_name"]] = counts.get(log["command_name"], 0) + 1
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
        return [{"command_name": name, "usage_count": n} for name, n in ranked]


@pytest.fixture
def make_settings():
    """Settings isolated from the process environment and any .env file."""

    def _make(**overrides: Any) -> LunaSettings:
        return LunaSettings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def settings(make_settings) -> LunaSettings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(settings, clock) -> DispatchState:
    return DispatchState(settings, clock=clock)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_bot(transport, clock):
    """Build a bot around a fresh state; components are only loaded when asked."""

    def _make(settings: LunaSettings, *, store=None, modules=()) -> Bot:
        state = DispatchState(settings, clock=clock)
        return Bot(
            transport,
            settings,
            store=store,
            state=state,
            directory=ThreadDirectory(transport, retry_delay=0),
            loader=ComponentLoader(state, modules=list(modules)),
            session_id="test",
        )

    return _make


@pytest.fixture
def bot(make_bot, settings) -> Bot:
    return make_bot(settings)


@pytest.fixture
def make_event():
    """Factory for inbound events from a plain actor id."""
    ids = itertools.count(1)

    def _make(
        text: str = "",
        *,
        actor: str | None = "123",
        thread: str | None = None,
        group: bool = False,
        kind: EventKind = EventKind.TEXT,
        **kwargs: Any,
    ) -> InboundEvent:
        jid = f"{actor}@s.whatsapp.net" if actor else None
        sender = SenderIdentity(
            sender_id=None if group else jid,
            participant_id=jid if group else None,
            push_name=kwargs.pop("push_name", None),
        )
        return InboundEvent(
            id=kwargs.pop("id", f"in-{next(ids)}"),
            thread_id=thread or ("G1" if group else f"{actor}@s.whatsapp.net"),
            kind=kind,
            thread_type=ThreadType.GROUP if group else ThreadType.PRIVATE,
            sender=sender,
            text=text,
            **kwargs,
        )

    return _make
