"""Lifecycle routing: membership, call, contact, invite and message.incoming."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lunabot.core.events import (
    CALL_INCOMING,
    INVITE_RECEIVED,
    LIFECYCLE_KEYS,
    MEMBERSHIP_JOINED,
    MEMBERSHIP_LEFT,
    InboundEvent,
)
from lunabot.core.guards import Actor
from lunabot.core.identity import normalize_sender_id

if TYPE_CHECKING:
    from lunabot.core.context import Context, ContextFactory
    from lunabot.core.state import DispatchState
    from lunabot.core.threads import ThreadDirectory

LOGGER = logging.getLogger("Lifecycle")

LifecycleCallback = Callable[["Context"], Awaitable[Any]]

UNIVERSAL = "*"


class ActivationScopes:
    """Per subscription name: universal, or an explicit set of thread ids.

    A name with no scope at all is inactive everywhere.
    """

    def __init__(self) -> None:
        self._scopes: dict[str, str | set[str]] = {}

    def set(self, name: str, scope: str | Iterable[str]) -> None:
        if isinstance(scope, str):
            self._scopes[name] = UNIVERSAL if scope == UNIVERSAL else {scope}
        else:
            self._scopes[name] = set(scope)

    def activate(self, name: str, thread_id: str = UNIVERSAL) -> None:
        if thread_id == UNIVERSAL:
            self._scopes[name] = UNIVERSAL
            return
        current = self._scopes.get(name)
        if current == UNIVERSAL:
            return
        if current is None:
            current = set()
            self._scopes[name] = current
        current.add(thread_id)

    def deactivate(self, name: str, thread_id: str | None = None) -> None:
        """Remove one thread, or the whole scope when ``thread_id`` is None."""
        if thread_id is None:
            self._scopes.pop(name, None)
            return
        current = self._scopes.get(name)
        if isinstance(current, set):
            current.discard(thread_id)

    def allows(self, name: str, thread_id: str) -> bool:
        scope = self._scopes.get(name)
        if scope is None:
            return False
        return scope == UNIVERSAL or thread_id in scope

    def get(self, name: str) -> str | frozenset[str] | None:
        scope = self._scopes.get(name)
        return frozenset(scope) if isinstance(scope, set) else scope

    def __contains__(self, name: object) -> bool:
        return name in self._scopes

    def __len__(self) -> int:
        return len(self._scopes)


@dataclass
class LifecycleSubscription:
    key: str
    name: str
    callback: LifecycleCallback
    owner: str = ""


class LifecyclePool:
    """Subscriptions grouped by event-kind key; several may share a key."""

    def __init__(self) -> None:
        self._subs: dict[str, list[LifecycleSubscription]] = {}

    def subscribe(
        self, key: str, name: str, callback: LifecycleCallback, *, owner: str = ""
    ) -> LifecycleSubscription:
        if key not in LIFECYCLE_KEYS:
            raise ValueError(f"unknown lifecycle event key '{key}'")
        sub = LifecycleSubscription(key, name, callback, owner)
        bucket = self._subs.setdefault(key, [])
        # Same name under the same key replaces the old subscription
        bucket[:] = [s for s in bucket if s.name != name]
        bucket.append(sub)
        return sub

    def unsubscribe(self, key: str, name: str) -> bool:
        bucket = self._subs.get(key, [])
        kept = [s for s in bucket if s.name != name]
        removed = len(kept) != len(bucket)
        if kept:
            self._subs[key] = kept
        else:
            self._subs.pop(key, None)
        return removed

    def remove_owner(self, owner: str) -> int:
        removed = 0
        for key in list(self._subs):
            kept = [s for s in self._subs[key] if s.owner != owner]
            removed += len(self._subs[key]) - len(kept)
            if kept:
                self._subs[key] = kept
            else:
                del self._subs[key]
        return removed

    def for_key(self, key: str) -> list[LifecycleSubscription]:
        return list(self._subs.get(key, ()))

    def __len__(self) -> int:
        return sum(len(b) for b in self._subs.values())


def _mention_text(participants: list[str]) -> str:
    return ", ".join(f"@{normalize_sender_id(p)}" for p in participants)


class LifecycleRouter:
    """Runs scoped lifecycle subscriptions, then the config-gated built-ins."""

    def __init__(
        self,
        state: DispatchState,
        contexts: ContextFactory,
        directory: ThreadDirectory | None = None,
    ) -> None:
        self.state = state
        self.contexts = contexts
        self.directory = directory

    async def route(self, key: str, event: InboundEvent, actor: Actor) -> int:
        """Returns the number of subscriptions invoked."""
        if key.startswith("membership.") and self.directory is not None:
            # Roster changed; next admin lookup must hit the transport
            self.directory.invalidate(event.thread_id)
        fired = await self._dispatch_subscriptions(key, event, actor)
        await self._run_builtins(key, event)
        return fired

    async def _dispatch_subscriptions(self, key: str, event: InboundEvent, actor: Actor) -> int:
        fired = 0
        scopes = self.state.scopes
        for sub in self.state.lifecycle.for_key(key):
            if not scopes.allows(sub.name, event.thread_id):
                continue
            fired += 1
            ctx = self.contexts.build(event, actor)
            try:
                await sub.callback(ctx)
            except Exception as e:
                LOGGER.exception(
                    f"[EVENT] Subscription '{sub.name}' for {key} failed: {type(e).__name__}: {e}"
                )
        if fired:
            LOGGER.debug(f"[EVENT] {key} on {event.thread_id}: {fired} subscription(s) ran")
        return fired

    # ==================== Built-in side effects ====================

    async def _run_builtins(self, key: str, event: InboundEvent) -> None:
        settings = self.state.settings
        if key == MEMBERSHIP_JOINED and settings.welcome_enabled:
            await self._isolated(
                "welcome", self._send_membership_notice(event, settings.welcome_message)
            )
        elif key == MEMBERSHIP_LEFT and settings.leave_enabled:
            await self._isolated(
                "farewell", self._send_membership_notice(event, settings.leave_message)
            )
        elif key == CALL_INCOMING and settings.reject_calls:
            await self._isolated("call reject", self._reject_call(event))
        elif key == INVITE_RECEIVED and settings.auto_accept_invites:
            await self._isolated("invite accept", self._accept_invite(event))

    async def _isolated(self, label: str, action: Awaitable[None]) -> None:
        try:
            await action
        except Exception as e:
            LOGGER.warning(f"[EVENT] Built-in {label} failed: {type(e).__name__}: {e}")

    async def _group_name(self, event: InboundEvent) -> str:
        if self.directory is not None:
            info = await self.directory.info(event.thread_id)
            if info is not None and info.name:
                return info.name
        return event.thread_name or "the group"

    async def _send_membership_notice(self, event: InboundEvent, template: str) -> None:
        if not event.participants:
            return
        text = template.replace("{user}", _mention_text(event.participants)).replace(
            "{group}", await self._group_name(event)
        )
        await self.contexts.transport.send_text(
            event.thread_id, text, mentions=list(event.participants)
        )
        LOGGER.info(f"[EVENT] Membership notice sent to {event.thread_id}")

    async def _reject_call(self, event: InboundEvent) -> None:
        call = event.call
        if call is None:
            return
        transport = self.contexts.transport
        await transport.reject_call(call.call_id, call.caller_id)
        LOGGER.info(
            f"[EVENT] Rejected {'video' if call.is_video else 'voice'} call from "
            f"{call.caller_name or call.caller_id}"
        )
        message = self.state.settings.call_reject_message
        if message:
            await transport.send_text(call.caller_id, message)

    async def _accept_invite(self, event: InboundEvent) -> None:
        invite = event.invite
        if invite is None:
            return
        settings = self.state.settings
        inviter = normalize_sender_id(invite.inviter_id)
        if settings.invites_from_admins_only and not self.state.gate.is_admin(inviter):
            LOGGER.info(f"[EVENT] Ignoring invite to {invite.group_id} from non-admin {inviter}")
            return
        await self.contexts.transport.accept_invite(invite.group_id)
        LOGGER.info(f"[EVENT] Accepted invite to {invite.group_name or invite.group_id} from {inviter}")
