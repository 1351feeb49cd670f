"""Per-invocation context handed to every handler."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from lunabot.core.events import InboundEvent
from lunabot.core.guards import Actor
from lunabot.core.interfaces import Persistence, Transport

if TYPE_CHECKING:
    from lunabot.core.correlation import CorrelationSubscription, ReplyCallback
    from lunabot.core.registry import Command
    from lunabot.core.state import DispatchState


@dataclass
class Context:
    event: InboundEvent
    transport: Transport
    state: DispatchState
    actor: Actor
    args: list[str] = field(default_factory=list)
    command: Command | None = None
    prefix: str = ""
    match: re.Match[str] | None = None
    reaction: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    store: Persistence | None = None

    @property
    def actor_id(self) -> str:
        return self.actor.id

    @property
    def thread_id(self) -> str:
        return self.event.thread_id

    @property
    def is_group(self) -> bool:
        return self.event.is_group

    @property
    def text(self) -> str:
        return self.event.text or ""

    @property
    def role(self) -> int:
        return self.state.gate.role_level(self.actor)

    async def send(self, text: str, *, mentions: list[str] | None = None) -> str | None:
        """Send to the current thread. Returns the sent message id."""
        return await self.transport.send_text(self.thread_id, text, mentions=mentions)

    async def reply(self, text: str, *, mentions: list[str] | None = None) -> str | None:
        """Send to the current thread, quoting the triggering message."""
        return await self.transport.send_text(
            self.thread_id, text, quote=self.event.id, mentions=mentions
        )

    def expect_reply(
        self,
        message_id: str,
        callback: ReplyCallback,
        *,
        one_time: bool = True,
        ttl: float | None = None,
        **data: Any,
    ) -> CorrelationSubscription:
        """Run ``callback`` when someone replies to ``message_id``.

        The callback receives a context carrying this command and ``data``.
        """
        owner = self.command.owner if self.command else ""
        return self.state.replies.subscribe(
            message_id,
            callback,
            one_time=one_time,
            owner=owner,
            data=data,
            command=self.command,
            ttl=ttl,
        )


class ContextFactory:
    """Builds contexts bound to one transport, state and store."""

    def __init__(
        self,
        state: DispatchState,
        transport: Transport,
        store: Persistence | None = None,
    ) -> None:
        self.state = state
        self.transport = transport
        self.store = store

    def build(self, event: InboundEvent, actor: Actor, **kwargs: Any) -> Context:
        kwargs.setdefault("prefix", self.state.prefix_for(event.thread_id))
        return Context(
            event=event,
            transport=self.transport,
            state=self.state,
            actor=actor,
            store=self.store,
            **kwargs,
        )
