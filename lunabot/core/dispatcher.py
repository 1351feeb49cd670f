"""Prefixed command dispatch: parse, resolve, authorize, rate-limit, execute."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable

from lunabot.core.context import ContextFactory
from lunabot.core.errors import (
    HANDLER_APOLOGY,
    SILENT_REJECTIONS,
    DispatchResult,
    DispatchStatus,
)
from lunabot.core.events import InboundEvent
from lunabot.core.guards import Actor
from lunabot.core.registry import Command, role_name
from lunabot.core.state import DispatchState
from lunabot.core.threads import ThreadDirectory

LOGGER = logging.getLogger("Dispatcher")

# (command, actor, group id or None, success, execution ms)
CommandHook = Callable[[str, str, "str | None", bool, int], None]


class CommandDispatcher:
    def __init__(
        self,
        state: DispatchState,
        contexts: ContextFactory,
        directory: ThreadDirectory | None = None,
        *,
        on_command: CommandHook | None = None,
    ) -> None:
        self.state = state
        self.contexts = contexts
        self.directory = directory
        self.on_command = on_command

    def has_prefix(self, event: InboundEvent) -> bool:
        text = (event.text or "").lstrip()
        return bool(text) and text.startswith(self.state.prefix_for(event.thread_id))

    def parse(self, event: InboundEvent) -> tuple[str, str, list[str]]:
        """Split into (prefix, command token, args). Token is empty when missing."""
        prefix = self.state.prefix_for(event.thread_id)
        body = (event.text or "").lstrip()[len(prefix):].strip()
        if not body:
            return prefix, "", []
        token, *args = body.split()
        if not self.state.settings.case_sensitive_commands:
            token = token.lower()
        return prefix, token, args

    async def _notify(self, event: InboundEvent, text: str) -> None:
        try:
            await self.contexts.transport.send_text(event.thread_id, text, quote=event.id)
        except Exception as e:
            LOGGER.warning(f"Failed to send notice to {event.thread_id}: {type(e).__name__}: {e}")

    async def dispatch(self, event: InboundEvent, actor: Actor) -> DispatchResult:
        if not self.has_prefix(event):
            return DispatchResult(DispatchStatus.UNKNOWN_COMMAND)

        gate = self.state.gate
        # Banned / non-whitelisted actors get no output at all, not even hints
        early = gate.check_access(actor)
        if early in SILENT_REJECTIONS:
            return DispatchResult(early)

        prefix, token, args = self.parse(event)
        if not token:
            await self._notify(
                event,
                "❌ Prefix detected but no command provided. Please type a valid command "
                f"after the prefix. Example: {prefix}help",
            )
            return DispatchResult(DispatchStatus.EMPTY_COMMAND)

        # Keep the registry this dispatch resolved from, even across a reload
        registry = self.state.registry
        command = registry.resolve(token)
        if command is None or command.on_start is None:
            await self._notify(
                event,
                f"❌ Unknown command: *{token}*\n\nType *{prefix}help* to see available commands.",
            )
            return DispatchResult(DispatchStatus.UNKNOWN_COMMAND, command=token)

        if command.role > 0 and event.is_group and self.directory is not None:
            actor = dataclasses.replace(
                actor, group_admins=await self.directory.admins(event.thread_id)
            )

        status = gate.check_command(actor, command.role)
        if status is not DispatchStatus.OK:
            return await self._reject(event, command, status, prefix)

        duration = self.state.effective_cooldown(command)
        remaining = self.state.cooldowns.acquire(command.name, actor.id, duration)
        if remaining is not None:
            await self._notify(
                event,
                f"⏳ Please wait {remaining:.1f}s before using {prefix}{command.name} again.",
            )
            return DispatchResult(
                DispatchStatus.COOLDOWN_ACTIVE, command=command.name, remaining=remaining
            )

        return await self._execute(event, actor, command, prefix, args)

    async def _reject(
        self, event: InboundEvent, command: Command, status: DispatchStatus, prefix: str
    ) -> DispatchResult:
        LOGGER.info(f"[GUARD] {command.name} rejected: {status.value}")
        if status is DispatchStatus.ADMIN_ONLY:
            await self._notify(
                event,
                f"🔒 Admin-only mode is on. Only bot admins can use {prefix}{command.name} right now.",
            )
        elif status is DispatchStatus.INSUFFICIENT_ROLE:
            await self._notify(
                event, f"🚫 {prefix}{command.name} requires {role_name(command.role)} permission."
            )
        return DispatchResult(status, command=command.name, required_role=command.role)

    async def _execute(
        self,
        event: InboundEvent,
        actor: Actor,
        command: Command,
        prefix: str,
        args: list[str],
    ) -> DispatchResult:
        ctx = self.contexts.build(event, actor, command=command, args=args, prefix=prefix)
        started = time.perf_counter()
        error: str | None = None
        try:
            await command.on_start(ctx)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            LOGGER.exception(f"Command '{command.name}' failed for {actor.id}: {error}")
            await self._notify(event, HANDLER_APOLOGY)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if self.on_command is not None:
            self.on_command(
                command.name,
                actor.id,
                event.thread_id if event.is_group else None,
                error is None,
                elapsed_ms,
            )

        if error is not None:
            return DispatchResult(DispatchStatus.HANDLER_FAILURE, command=command.name, error=error)
        LOGGER.info(f"Command: {prefix}{command.name} by {actor.id} ({elapsed_ms}ms)")
        return DispatchResult(DispatchStatus.OK, command=command.name)
