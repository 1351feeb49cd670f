"""Tests for lifecycle routing, activation scopes and built-in side effects."""

from unittest.mock import AsyncMock

import pytest

from lunabot.core.events import (
    CALL_INCOMING,
    MEMBERSHIP_JOINED,
    MEMBERSHIP_PROMOTED,
    MESSAGE_INCOMING,
    CallInfo,
    EventKind,
    InviteInfo,
)
from lunabot.core.interfaces import ThreadInfo
from lunabot.core.lifecycle import ActivationScopes, LifecyclePool


def _membership(make_event, action, thread="T1", participants=("555@s.whatsapp.net",)):
    return make_event(
        kind=EventKind.MEMBERSHIP,
        group=True,
        thread=thread,
        action=action,
        participants=list(participants),
    )


class TestScopes:
    def test_unscoped_name_is_inactive(self):
        scopes = ActivationScopes()
        assert not scopes.allows("welcome", "T1")

    def test_thread_scope(self):
        scopes = ActivationScopes()
        scopes.activate("welcome", "T1")

        assert scopes.allows("welcome", "T1")
        assert not scopes.allows("welcome", "T2")

        scopes.deactivate("welcome", "T1")
        assert not scopes.allows("welcome", "T1")

    def test_universal_scope(self):
        scopes = ActivationScopes()
        scopes.set("welcome", "*")

        assert scopes.allows("welcome", "anything")
        # Removing a single thread from a universal scope is a no-op
        scopes.deactivate("welcome", "T1")
        assert scopes.get("welcome") == "*"

    def test_deactivate_whole_scope(self):
        scopes = ActivationScopes()
        scopes.set("welcome", ["T1", "T2"])
        assert scopes.get("welcome") == frozenset({"T1", "T2"})

        scopes.deactivate("welcome")

        assert "welcome" not in scopes


class TestPool:
    def test_unknown_key_is_rejected(self):
        with pytest.raises(ValueError):
            LifecyclePool().subscribe("membership.exploded", "x", AsyncMock())

    def test_same_name_replaces(self):
        pool = LifecyclePool()
        pool.subscribe(MEMBERSHIP_JOINED, "greet", AsyncMock())
        newer = pool.subscribe(MEMBERSHIP_JOINED, "greet", AsyncMock())

        assert pool.for_key(MEMBERSHIP_JOINED) == [newer]

    def test_unsubscribe_and_remove_owner(self):
        pool = LifecyclePool()
        pool.subscribe(MEMBERSHIP_JOINED, "a", AsyncMock(), owner="x")
        pool.subscribe(CALL_INCOMING, "b", AsyncMock(), owner="x")
        pool.subscribe(CALL_INCOMING, "c", AsyncMock(), owner="y")

        assert pool.unsubscribe(CALL_INCOMING, "c")
        assert not pool.unsubscribe(CALL_INCOMING, "c")
        assert pool.remove_owner("x") == 2
        assert len(pool) == 0


class TestRouting:
    async def test_scope_limits_subscription_to_thread(self, bot, make_event):
        callback = AsyncMock()
        bot.state.lifecycle.subscribe(MEMBERSHIP_JOINED, "greet", callback)
        bot.state.scopes.activate("greet", "T1")

        await bot.handle_event(_membership(make_event, "add", thread="T1"))
        await bot.handle_event(_membership(make_event, "add", thread="T2"))

        callback.assert_awaited_once()
        assert callback.await_args.args[0].thread_id == "T1"

    async def test_universal_scope_fires_everywhere(self, bot, make_event):
        callback = AsyncMock()
        bot.state.lifecycle.subscribe(MEMBERSHIP_PROMOTED, "announce", callback)
        bot.state.scopes.set("announce", "*")

        await bot.handle_event(_membership(make_event, "promote", thread="T1"))
        await bot.handle_event(_membership(make_event, "promote", thread="T2"))

        assert callback.await_count == 2

    async def test_failing_subscription_does_not_stop_others(self, bot, make_event):
        bad = AsyncMock(side_effect=RuntimeError("x"))
        good = AsyncMock()
        for name, cb in (("bad", bad), ("good", good)):
            bot.state.lifecycle.subscribe(MEMBERSHIP_JOINED, name, cb)
            bot.state.scopes.set(name, "*")

        fired = await bot.lifecycle.route(
            MEMBERSHIP_JOINED,
            _membership(make_event, "add"),
            bot.actor_for(_membership(make_event, "add")),
        )

        assert fired == 2
        good.assert_awaited_once()

    async def test_message_incoming_fires_for_allowed_messages(self, make_bot, make_settings, make_event):
        bot = make_bot(make_settings(banned_users=["456"]))
        callback = AsyncMock()
        bot.state.lifecycle.subscribe(MESSAGE_INCOMING, "log", callback)
        bot.state.scopes.set("log", "*")

        await bot.handle_event(make_event("hello", actor="123"))
        await bot.handle_event(make_event("hello", actor="456"))

        callback.assert_awaited_once()

    async def test_membership_event_refreshes_admin_roster(self, bot, make_event, transport):
        transport.threads["T1"] = ThreadInfo("T1", name="Team")
        await bot.directory.info("T1")
        assert transport.info_calls == 1

        await bot.handle_event(_membership(make_event, "promote", thread="T1"))
        await bot.directory.info("T1")

        assert transport.info_calls == 2

    async def test_unknown_membership_action_is_ignored(self, bot, make_event):
        callback = AsyncMock()
        bot.state.lifecycle.subscribe(MEMBERSHIP_JOINED, "greet", callback)
        bot.state.scopes.set("greet", "*")

        await bot.handle_event(_membership(make_event, "exploded"))

        callback.assert_not_awaited()


class TestBuiltins:
    async def test_welcome_message(self, make_bot, make_settings, make_event, transport):
        transport.threads["T1"] = ThreadInfo("T1", name="Book Club")
        bot = make_bot(make_settings(welcome_enabled=True, welcome_message="Hi {user}, welcome to {group}"))

        await bot.handle_event(_membership(make_event, "add", thread="T1"))

        sent = transport.sent[0]
        assert sent["text"] == "Hi @555, welcome to Book Club"
        assert sent["mentions"] == ["555@s.whatsapp.net"]

    async def test_welcome_disabled_by_default(self, bot, make_event, transport):
        await bot.handle_event(_membership(make_event, "add"))
        assert transport.sent == []

    async def test_leave_message_falls_back_to_thread_name(self, make_bot, make_settings, make_event, transport):
        transport.info_error = ConnectionError("offline")
        bot = make_bot(make_settings(leave_enabled=True, leave_message="Bye {user} from {group}"))

        await bot.handle_event(_membership(make_event, "remove"))

        assert transport.texts == ["Bye @555 from the group"]

    async def test_call_rejected_and_caller_notified(self, make_bot, make_settings, make_event, transport):
        bot = make_bot(make_settings(reject_calls=True, call_reject_message="No calls please"))
        event = make_event(kind=EventKind.CALL, call=CallInfo("c1", "777@s.whatsapp.net"))

        await bot.handle_event(event)

        assert transport.rejected == [("c1", "777@s.whatsapp.net")]
        assert transport.sent[0]["thread_id"] == "777@s.whatsapp.net"
        assert transport.texts == ["No calls please"]

    async def test_missed_call_is_not_rejected(self, make_bot, make_settings, make_event, transport):
        bot = make_bot(make_settings(reject_calls=True))
        event = make_event(
            kind=EventKind.CALL, call=CallInfo("c1", "777@s.whatsapp.net", status="missed")
        )

        await bot.handle_event(event)

        assert transport.rejected == []

    async def test_builtin_failure_is_isolated(self, make_bot, make_settings, make_event, transport):
        transport.reject_error = RuntimeError("socket closed")
        bot = make_bot(make_settings(reject_calls=True, call_reject_message="No calls"))
        callback = AsyncMock()
        bot.state.lifecycle.subscribe(CALL_INCOMING, "audit", callback)
        bot.state.scopes.set("audit", "*")
        event = make_event(kind=EventKind.CALL, call=CallInfo("c1", "777@s.whatsapp.net"))

        await bot.handle_event(event)

        callback.assert_awaited_once()
        assert transport.sent == []

    async def test_invite_from_admin_accepted(self, make_bot, make_settings, make_event, transport):
        bot = make_bot(make_settings(auto_accept_invites=True, admin_ids=["999"]))

        await bot.handle_event(
            make_event(kind=EventKind.INVITE, invite=InviteInfo("G7", "999@s.whatsapp.net"))
        )
        await bot.handle_event(
            make_event(kind=EventKind.INVITE, invite=InviteInfo("G8", "123@s.whatsapp.net"))
        )

        assert transport.accepted == ["G7"]

    async def test_invite_from_anyone_when_not_restricted(
        self, make_bot, make_settings, make_event, transport
    ):
        bot = make_bot(make_settings(auto_accept_invites=True, invites_from_admins_only=False))

        await bot.handle_event(
            make_event(kind=EventKind.INVITE, invite=InviteInfo("G8", "123@s.whatsapp.net"))
        )

        assert transport.accepted == ["G8"]
