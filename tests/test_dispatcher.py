"""Tests for prefixed command dispatch."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from lunabot.core.errors import HANDLER_APOLOGY, DispatchStatus
from lunabot.core.interfaces import ThreadInfo
from lunabot.core.registry import Command


def _install(bot, name="ping", **kwargs) -> Command:
    kwargs.setdefault("on_start", AsyncMock())
    return bot.state.registry.register(Command(name=name, **kwargs))


class TestScenarios:
    async def test_cooldown_is_per_actor(self, make_bot, make_settings, make_event, clock):
        bot = make_bot(make_settings())
        ping = _install(bot, "ping", cooldown=5)

        first = await bot.handle_event(make_event("!ping", actor="123"))
        clock.advance(1)
        second = await bot.handle_event(make_event("!ping", actor="123"))
        other = await bot.handle_event(make_event("!ping", actor="456"))

        assert first.status is DispatchStatus.OK
        assert second.status is DispatchStatus.COOLDOWN_ACTIVE
        assert second.remaining == pytest.approx(4)
        assert other.status is DispatchStatus.OK
        assert ping.on_start.await_count == 2

    async def test_admin_only_rejects_without_side_effects(
        self, make_bot, make_settings, make_event, store, transport
    ):
        bot = make_bot(make_settings(admin_only=True, admin_ids=["999"]), store=store)
        ping = _install(bot, "ping")

        result = await bot.handle_event(make_event("!ping", actor="123"))
        await bot.drain()

        assert result.status is DispatchStatus.ADMIN_ONLY
        ping.on_start.assert_not_awaited()
        assert store.command_logs == []
        assert store.message_logs == []
        assert "Admin-only mode" in transport.texts[0]

    async def test_admin_passes_admin_only(self, make_bot, make_settings, make_event, store):
        bot = make_bot(make_settings(admin_only=True, admin_ids=["999"]), store=store)
        ping = _install(bot, "ping")

        result = await bot.handle_event(make_event("!ping", actor="999"))
        await bot.drain()

        assert result.ok
        ping.on_start.assert_awaited_once()
        assert [log["command_name"] for log in store.command_logs] == ["ping"]


class TestParsing:
    async def test_alias_and_args(self, bot, make_event):
        ping = _install(bot, "ping", aliases=("p",))

        result = await bot.handle_event(make_event("!P  hello   world"))

        assert result.command == "ping"
        ctx = ping.on_start.await_args.args[0]
        assert ctx.args == ["hello", "world"]
        assert ctx.prefix == "!"
        assert ctx.command is ping

    async def test_empty_command_hint(self, bot, make_event, transport):
        result = await bot.handle_event(make_event("!   "))

        assert result.status is DispatchStatus.EMPTY_COMMAND
        assert "no command provided" in transport.texts[0]
        assert "!help" in transport.texts[0]

    async def test_unknown_command_hint(self, bot, make_event, transport):
        result = await bot.handle_event(make_event("!nope"))

        assert result.status is DispatchStatus.UNKNOWN_COMMAND
        assert result.command == "nope"
        assert "Unknown command: *nope*" in transport.texts[0]

    async def test_command_without_start_handler_is_unknown(self, bot, make_event):
        bot.state.registry.register(Command(name="quiet", on_chat=AsyncMock(return_value=False)))

        result = await bot.handle_event(make_event("!quiet"))

        assert result.status is DispatchStatus.UNKNOWN_COMMAND

    async def test_thread_prefix_override(self, make_bot, make_settings, make_event):
        settings = make_settings(thread_prefixes={"G1": "."})
        bot = make_bot(settings)
        ping = _install(bot, "ping")

        in_group = await bot.handle_event(make_event(".ping", group=True))
        elsewhere = await bot.handle_event(make_event("!ping"))

        assert in_group.ok
        assert elsewhere.ok
        assert ping.on_start.await_count == 2
        # "!" is just text in the overridden thread
        assert await bot.handle_event(make_event("!ping", group=True)) is None

    async def test_case_sensitive_commands(self, make_bot, make_settings, make_event):
        bot = make_bot(make_settings(case_sensitive_commands=True))
        _install(bot, "ping")

        result = await bot.handle_event(make_event("!PING"))

        assert result.status is DispatchStatus.UNKNOWN_COMMAND

    async def test_unprefixed_text_is_unknown_and_silent(self, bot, make_event, transport):
        ping = _install(bot, "ping")
        event = make_event("ping")

        result = await bot.dispatcher.dispatch(event, bot.actor_for(event))

        assert result.status is DispatchStatus.UNKNOWN_COMMAND
        ping.on_start.assert_not_awaited()
        assert transport.sent == []


class TestAuthorization:
    async def test_banned_actor_gets_nothing(self, make_bot, make_settings, make_event, transport):
        bot = make_bot(make_settings(banned_users=["123"]))
        ping = _install(bot, "ping")

        for text in ("!ping", "!", "!nope"):
            result = await bot.handle_event(make_event(text))
            assert result.status is DispatchStatus.BANNED

        ping.on_start.assert_not_awaited()
        assert transport.sent == []

    async def test_runtime_ban_and_unban(self, bot, make_event):
        ping = _install(bot, "ping")

        bot.ban("123@s.whatsapp.net")
        banned = await bot.handle_event(make_event("!ping"))
        assert bot.unban("123")
        allowed = await bot.handle_event(make_event("!ping"))

        assert banned.status is DispatchStatus.BANNED
        assert allowed.ok
        ping.on_start.assert_awaited_once()

    async def test_ban_by_device_jid_matches_every_device(self, bot, make_event):
        ping = _install(bot, "ping")

        assert bot.ban("123:4@s.whatsapp.net") == "123"
        phone = await bot.handle_event(make_event("!ping", actor="123:4"))
        desktop = await bot.handle_event(make_event("!ping", actor="123:9"))
        assert bot.unban("123:4@s.whatsapp.net")

        assert phone.status is DispatchStatus.BANNED
        assert desktop.status is DispatchStatus.BANNED
        ping.on_start.assert_not_awaited()

    async def test_admin_configured_as_device_jid(self, make_bot, make_settings, make_event):
        bot = make_bot(make_settings(admin_only=True, admin_ids=["999:2@s.whatsapp.net"]))
        ping = _install(bot, "ping")

        result = await bot.handle_event(make_event("!ping", actor="999"))

        assert result.ok
        ping.on_start.assert_awaited_once()

    async def test_not_whitelisted_is_silent(self, make_bot, make_settings, make_event, transport):
        bot = make_bot(make_settings(whitelist_mode=True, whitelist_ids=["456"]))
        _install(bot, "ping")

        rejected = await bot.handle_event(make_event("!ping", actor="123"))
        accepted = await bot.handle_event(make_event("!ping", actor="456"))

        assert rejected.status is DispatchStatus.NOT_WHITELISTED
        assert accepted.ok
        assert transport.sent == []

    async def test_group_admin_role_uses_thread_admins(self, bot, make_event, transport):
        transport.threads["G1"] = ThreadInfo("G1", name="Team", admin_ids={"123@s.whatsapp.net"})
        admin_cmd = _install(bot, "kick", role=1)

        allowed = await bot.handle_event(make_event("!kick", actor="123", group=True))
        denied = await bot.handle_event(make_event("!kick", actor="456", group=True))

        assert allowed.ok
        assert denied.status is DispatchStatus.INSUFFICIENT_ROLE
        assert denied.required_role == 1
        assert "requires Group admins permission" in transport.texts[-1]
        admin_cmd.on_start.assert_awaited_once()

    async def test_group_role_outside_group_is_denied(self, bot, make_event, transport):
        _install(bot, "kick", role=1)

        result = await bot.handle_event(make_event("!kick", actor="123"))

        assert result.status is DispatchStatus.INSUFFICIENT_ROLE
        assert transport.info_calls == 0

    async def test_metadata_failure_denies_group_role(self, bot, make_event, transport):
        transport.info_error = ConnectionError("offline")
        _install(bot, "kick", role=1)

        result = await bot.handle_event(make_event("!kick", actor="123", group=True))

        assert result.status is DispatchStatus.INSUFFICIENT_ROLE

    async def test_rejection_does_not_start_cooldown(self, make_bot, make_settings, make_event):
        bot = make_bot(make_settings())
        _install(bot, "kick", role=2, cooldown=10)

        await bot.handle_event(make_event("!kick", actor="123"))

        assert "kick:123" not in bot.state.cooldowns


class TestExecution:
    async def test_handler_failure_sends_apology(self, make_bot, make_settings, make_event, store, transport):
        bot = make_bot(make_settings(), store=store)
        _install(bot, "boom", on_start=AsyncMock(side_effect=RuntimeError("kaput")))

        result = await bot.handle_event(make_event("!boom"))
        await bot.drain()

        assert result.status is DispatchStatus.HANDLER_FAILURE
        assert "kaput" in result.error
        assert transport.texts == [HANDLER_APOLOGY]
        assert store.command_logs[0]["success"] is False

    async def test_cooldown_applies_even_when_handler_fails(self, bot, make_event):
        _install(bot, "boom", cooldown=5, on_start=AsyncMock(side_effect=RuntimeError()))

        await bot.handle_event(make_event("!boom"))
        again = await bot.handle_event(make_event("!boom"))

        assert again.status is DispatchStatus.COOLDOWN_ACTIVE

    async def test_cooldown_holds_while_first_invocation_is_suspended(self, bot, make_event):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow(ctx):
            entered.set()
            await release.wait()

        ping = _install(bot, "ping", cooldown=5, on_start=AsyncMock(side_effect=slow))

        first = asyncio.create_task(bot.handle_event(make_event("!ping")))
        await asyncio.wait_for(entered.wait(), timeout=1)
        second = await bot.handle_event(make_event("!ping"))
        release.set()
        first_result = await asyncio.wait_for(first, timeout=1)

        assert first_result.status is DispatchStatus.OK
        assert second.status is DispatchStatus.COOLDOWN_ACTIVE
        assert second.remaining == pytest.approx(5)
        ping.on_start.assert_awaited_once()

    async def test_default_cooldown_applies_when_command_declares_none(
        self, make_bot, make_settings, make_event
    ):
        bot = make_bot(make_settings(default_cooldown=30))
        _install(bot, "ping")

        await bot.handle_event(make_event("!ping"))
        again = await bot.handle_event(make_event("!ping"))

        assert again.status is DispatchStatus.COOLDOWN_ACTIVE
        assert again.remaining == pytest.approx(30)

    async def test_command_usage_records_group(self, make_bot, make_settings, make_event, store):
        bot = make_bot(make_settings(), store=store)
        _install(bot, "ping")

        await bot.handle_event(make_event("!ping", group=True))
        await bot.drain()

        log = store.command_logs[0]
        assert log["group_id"] == "G1"
        assert log["user_id"] == "123"
        assert log["success"] is True
        assert store.users["123"].command_count == 1
