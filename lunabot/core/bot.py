"""Bot: engine root that routes every inbound event."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Coroutine
from typing import Any

from lunabot.core.activity import ActivityRecorder
from lunabot.core.config import LunaSettings, get_settings
from lunabot.core.context import ContextFactory
from lunabot.core.correlation import CorrelationRouter
from lunabot.core.dispatcher import CommandDispatcher
from lunabot.core.errors import DispatchResult, DispatchStatus
from lunabot.core.events import MESSAGE_INCOMING, EventKind, InboundEvent
from lunabot.core.guards import Actor
from lunabot.core.identity import IdentityResolver
from lunabot.core.interfaces import Persistence, Transport
from lunabot.core.lifecycle import LifecycleRouter
from lunabot.core.loader import ComponentLoader
from lunabot.core.patterns import PatternRouter
from lunabot.core.state import DispatchState
from lunabot.core.threads import ThreadDirectory

LOGGER: logging.Logger = logging.getLogger("Bot")


class Bot:
    def __init__(
        self,
        transport: Transport,
        settings: LunaSettings | None = None,
        *,
        store: Persistence | None = None,
        state: DispatchState | None = None,
        directory: ThreadDirectory | None = None,
        loader: ComponentLoader | None = None,
        session_id: str | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.state = state or DispatchState(self.settings)
        self.transport = transport
        self.store = store

        self.identity = IdentityResolver(transport.bot_id, session_id)
        self.directory = directory or ThreadDirectory(transport)
        self.contexts = ContextFactory(self.state, transport, store)
        self.recorder = ActivityRecorder(
            store, self.directory, admin_ids=self.settings.admin_ids
        )

        self.dispatcher = CommandDispatcher(
            self.state, self.contexts, self.directory, on_command=self._record_command
        )
        self.patterns = PatternRouter(self.state, self.contexts)
        self.correlation = CorrelationRouter(self.state, self.contexts)
        self.lifecycle = LifecycleRouter(self.state, self.contexts, self.directory)
        self.loader = loader or ComponentLoader(self.state)

        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup(self) -> list[str]:
        """Load components into the live registry."""
        loaded = await self.loader.load_all()
        LOGGER.info(
            f"{self.settings.bot_name} ready: {len(self.state.registry)} commands, "
            f"prefix '{self.settings.prefix}'"
        )
        return loaded

    async def reload(self) -> list[str]:
        return await self.loader.reload()

    async def run(self, events: AsyncIterable[InboundEvent]) -> None:
        """Handle events from a transport feed until it is exhausted."""
        async for event in events:
            await self.handle_event(event)

    async def close(self) -> None:
        await self.drain()
        self.state.cooldowns.clear()
        self.state.replies.clear()
        self.state.reactions.clear()
        LOGGER.info("Bot closed")

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every outstanding background task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def _record_command(
        self, command: str, actor_id: str, group_id: str | None, success: bool, ms: int
    ) -> None:
        if self.recorder.enabled:
            self.spawn(self.recorder.record_command(command, actor_id, group_id, success, ms))

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def actor_for(self, event: InboundEvent) -> Actor:
        resolved = self.identity.resolve(event)
        return Actor(
            id=resolved.id,
            from_me=event.from_me,
            is_group=event.is_group,
            synthetic=resolved.synthetic,
        )

    async def handle_event(self, event: InboundEvent) -> DispatchResult | None:
        """Route one inbound event. Never raises.

        Returns the DispatchResult for prefixed commands, None otherwise.
        """
        try:
            actor = self.actor_for(event)
            LOGGER.debug(f"[{event.kind.value}] {actor.id}@{event.thread_id}: {event.text}")

            if event.kind is EventKind.REACTION:
                await self.correlation.route_reaction(event, actor)
                return None

            if event.kind.is_message:
                return await self._handle_message(event, actor)

            key = event.lifecycle_key()
            if key is None:
                LOGGER.debug(f"[EVENT] Ignoring {event.kind.value} event without a known key")
                return None
            await self.lifecycle.route(key, event, actor)
            return None
        except Exception as e:
            LOGGER.exception(f"Unhandled error routing event {event.id}: {type(e).__name__}: {e}")
            return None

    async def _handle_message(self, event: InboundEvent, actor: Actor) -> DispatchResult | None:
        allowed = self.state.gate.check_access(actor) is DispatchStatus.OK
        if allowed and self.recorder.enabled:
            self.spawn(self.recorder.record_message(event, actor))

        result: DispatchResult | None = None
        replied = (
            allowed
            and event.kind is EventKind.REPLY
            and await self.correlation.route_reply(event, actor)
        )
        if not replied:
            if self.dispatcher.has_prefix(event):
                result = await self.dispatcher.dispatch(event, actor)
            elif allowed and event.text:
                await self.patterns.route(event, actor)

        if allowed:
            await self.lifecycle.route(MESSAGE_INCOMING, event, actor)
        return result

    # ------------------------------------------------------------------
    # Ban list
    # ------------------------------------------------------------------

    def ban(self, actor_id: str) -> str:
        return self.state.ban(actor_id)

    def unban(self, actor_id: str) -> bool:
        return self.state.unban(actor_id)
