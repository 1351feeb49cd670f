"""Reply and reaction routing by referenced message id."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from lunabot.core.errors import HANDLER_APOLOGY
from lunabot.core.guards import Actor

if TYPE_CHECKING:
    from lunabot.core.context import Context, ContextFactory
    from lunabot.core.events import InboundEvent
    from lunabot.core.registry import Command
    from lunabot.core.state import DispatchState

LOGGER = logging.getLogger("CorrelationRouter")

ReplyCallback = Callable[["Context"], Awaitable[Any]]

WILDCARD = "*"


def reaction_key(message_id: str, reaction: str | None = None) -> str:
    """``"<id>:<reaction>"``, or ``"<id>:*"`` for any reaction."""
    return f"{message_id}:{reaction or WILDCARD}"


@dataclass
class CorrelationSubscription:
    key: str
    callback: ReplyCallback
    one_time: bool = True
    owner: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    command: Command | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class CorrelationPool:
    """Subscriptions keyed by string; at most one per key.

    A new subscription under an existing key replaces the old one.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subs: dict[str, CorrelationSubscription] = {}

    def subscribe(
        self,
        key: str,
        callback: ReplyCallback,
        *,
        one_time: bool = True,
        owner: str = "",
        data: dict[str, Any] | None = None,
        command: Command | None = None,
        ttl: float | None = None,
    ) -> CorrelationSubscription:
        previous = self._subs.pop(key, None)
        if previous is not None:
            previous.cancel_timer()
            LOGGER.debug(f"[{self.name.upper()}] Replacing subscription for {key}")

        sub = CorrelationSubscription(
            key, callback, one_time, owner, dict(data or {}), command
        )
        if ttl is not None and ttl > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                LOGGER.warning(f"[{self.name.upper()}] No running loop, ttl ignored for {key}")
            else:
                sub.timer = loop.call_later(ttl, self._expire, key, sub)
        self._subs[key] = sub
        return sub

    def _expire(self, key: str, sub: CorrelationSubscription) -> None:
        # Only drop the subscription this timer was created for
        if self._subs.get(key) is sub:
            del self._subs[key]
            LOGGER.debug(f"[{self.name.upper()}] Subscription {key} expired")

    def get(self, key: str) -> CorrelationSubscription | None:
        return self._subs.get(key)

    def claim(self, key: str) -> CorrelationSubscription | None:
        """Fetch a subscription, removing it first when it is one-time."""
        sub = self._subs.get(key)
        if sub is not None and sub.one_time:
            self.unsubscribe(key)
        return sub

    def unsubscribe(self, key: str) -> bool:
        sub = self._subs.pop(key, None)
        if sub is None:
            return False
        sub.cancel_timer()
        return True

    def remove_owner(self, owner: str) -> int:
        doomed = [k for k, s in self._subs.items() if s.owner == owner]
        for k in doomed:
            self.unsubscribe(k)
        return len(doomed)

    def keys(self) -> list[str]:
        return list(self._subs)

    def clear(self) -> None:
        for key in self.keys():
            self.unsubscribe(key)

    def __contains__(self, key: object) -> bool:
        return key in self._subs

    def __len__(self) -> int:
        return len(self._subs)


class CorrelationRouter:
    def __init__(self, state: DispatchState, contexts: ContextFactory) -> None:
        self.state = state
        self.contexts = contexts

    # ==================== Binding ====================

    def bind_reply(
        self, message_id: str, command: Command, *, one_time: bool = True, **data: Any
    ) -> CorrelationSubscription:
        """Route replies to ``message_id`` to ``command.on_reply``."""
        if command.on_reply is None:
            raise ValueError(f"command '{command.name}' has no reply handler")
        return self.state.replies.subscribe(
            message_id,
            command.on_reply,
            one_time=one_time,
            owner=command.owner,
            data=data,
            command=command,
        )

    def bind_reaction(
        self,
        message_id: str,
        command: Command,
        reaction: str | None = None,
        *,
        one_time: bool = False,
        **data: Any,
    ) -> CorrelationSubscription:
        """Route reactions on ``message_id`` to ``command.on_reaction``."""
        if command.on_reaction is None:
            raise ValueError(f"command '{command.name}' has no reaction handler")
        return self.state.reactions.subscribe(
            reaction_key(message_id, reaction),
            command.on_reaction,
            one_time=one_time,
            owner=command.owner,
            data=data,
            command=command,
        )

    # ==================== Routing ====================

    async def route_reply(self, event: InboundEvent, actor: Actor) -> bool:
        """Returns False when no subscription references the quoted message."""
        target = event.quoted_message_id
        if not target:
            return False
        sub = self.state.replies.claim(target)
        if sub is None:
            return False
        await self._invoke(sub, event, actor)
        return True

    async def route_reaction(self, event: InboundEvent, actor: Actor) -> bool:
        if actor.id in self.state.banned:
            LOGGER.debug(f"[REACTION] Dropping reaction from banned actor {actor.id}")
            return False

        target = event.quoted_message_id
        reaction = event.reaction or ""
        pool = self.state.reactions

        if target:
            # Exact reaction first, then any reaction on the message
            for key in dict.fromkeys((reaction_key(target, reaction), reaction_key(target))):
                sub = pool.claim(key)
                if sub is not None:
                    await self._invoke(sub, event, actor)
                    return True

        # Global keys carry no message id
        matched = [
            key for key in pool.keys() if ":" not in key and key in (WILDCARD, reaction)
        ]
        fired = False
        for key in matched:
            sub = pool.claim(key)
            if sub is None:
                continue
            fired = True
            await self._invoke(sub, event, actor)
        return fired

    async def _invoke(
        self, sub: CorrelationSubscription, event: InboundEvent, actor: Actor
    ) -> None:
        ctx = self.contexts.build(
            event,
            actor,
            command=sub.command,
            reaction=event.reaction,
            data=dict(sub.data),
            args=(event.text or "").split(),
        )
        try:
            await sub.callback(ctx)
        except Exception as e:
            LOGGER.exception(
                f"[CORRELATION] Handler for {sub.key} ({sub.owner or 'anonymous'}) failed "
                f"for {actor.id}: {type(e).__name__}: {e}"
            )
            try:
                await ctx.reply(HANDLER_APOLOGY)
            except Exception as send_err:
                LOGGER.warning(
                    f"[CORRELATION] Could not send apology: {type(send_err).__name__}: {send_err}"
                )
