"""Free-text routing: command chat listeners, then ad-hoc pattern subscriptions."""

from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lunabot.core.errors import DispatchStatus
from lunabot.core.guards import Actor

if TYPE_CHECKING:
    from lunabot.core.context import Context, ContextFactory
    from lunabot.core.state import DispatchState

LOGGER = logging.getLogger("PatternRouter")

PatternCallback = Callable[["Context"], Awaitable[Any]]


@dataclass
class PatternSubscription:
    id: str
    pattern: str | re.Pattern[str]
    callback: PatternCallback
    one_time: bool = False
    owner: str = ""

    def match(self, text: str) -> re.Match[str] | bool:
        """Regex patterns use ``search``; literals compare case-insensitively."""
        if isinstance(self.pattern, re.Pattern):
            return self.pattern.search(text) or False
        return self.pattern.strip().lower() == text.strip().lower()


class PatternPool:
    """Ad-hoc literal/regex listeners keyed by subscription id."""

    def __init__(self) -> None:
        self._subs: dict[str, PatternSubscription] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        pattern: str | re.Pattern[str],
        callback: PatternCallback,
        *,
        one_time: bool = False,
        owner: str = "",
    ) -> str:
        sub_id = f"pattern-{next(self._ids)}"
        self._subs[sub_id] = PatternSubscription(sub_id, pattern, callback, one_time, owner)
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        return self._subs.pop(sub_id, None) is not None

    def remove_owner(self, owner: str) -> int:
        doomed = [k for k, s in self._subs.items() if s.owner == owner]
        for k in doomed:
            del self._subs[k]
        return len(doomed)

    def snapshot(self) -> list[PatternSubscription]:
        return list(self._subs.values())

    def __contains__(self, sub_id: object) -> bool:
        return sub_id in self._subs

    def __len__(self) -> int:
        return len(self._subs)


class PatternRouter:
    """Routes non-prefixed text.

    Command listeners run in registration order and the first one that
    reports the message as handled stops routing. Otherwise every matching
    ad-hoc subscription runs.
    """

    def __init__(self, state: DispatchState, contexts: ContextFactory) -> None:
        self.state = state
        self.contexts = contexts

    async def route(self, event, actor: Actor) -> bool:
        """Returns True when a command listener reported the message handled
        or at least one ad-hoc subscription fired."""
        gate = self.state.gate
        if gate.check_access(actor) is not DispatchStatus.OK:
            return False

        text = event.text or ""
        registry = self.state.registry

        for command in registry.with_chat_listeners():
            if not gate.has_role(actor, command.role):
                continue
            ctx = self.contexts.build(event, actor, command=command)
            try:
                handled = await command.on_chat(ctx)
            except Exception as e:
                LOGGER.exception(
                    f"[CHAT] on_chat of '{command.name}' failed for {actor.id}: "
                    f"{type(e).__name__}: {e}"
                )
                continue
            if handled:
                LOGGER.debug(f"[CHAT] '{command.name}' handled message {event.id}")
                return True

        fired = False
        pool = self.state.patterns
        for sub in pool.snapshot():
            if sub.id not in pool:
                # Removed by an earlier callback in this pass
                continue
            result = sub.match(text)
            if not result:
                continue
            if sub.one_time:
                pool.unsubscribe(sub.id)
            fired = True
            ctx = self.contexts.build(
                event, actor, match=result if isinstance(result, re.Match) else None
            )
            try:
                await sub.callback(ctx)
            except Exception as e:
                LOGGER.exception(
                    f"[CHAT] Pattern subscription {sub.id} ({sub.owner or 'anonymous'}) failed: "
                    f"{type(e).__name__}: {e}"
                )
        return fired
