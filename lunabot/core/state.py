"""Process-wide dispatch state, passed explicitly into every router."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from lunabot.core.config import LunaSettings, normalize_id
from lunabot.core.cooldown import CooldownTracker
from lunabot.core.correlation import CorrelationPool
from lunabot.core.guards import AuthorizationGate
from lunabot.core.lifecycle import ActivationScopes, LifecyclePool
from lunabot.core.patterns import PatternPool
from lunabot.core.registry import Command, Registry

LOGGER = logging.getLogger("DispatchState")


class DispatchState:
    """Owns the registry, cooldowns, ban set and every subscription pool."""

    def __init__(
        self,
        settings: LunaSettings,
        *,
        registry: Registry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.registry = registry or self.new_registry()
        self.cooldowns = CooldownTracker(clock)
        self.banned: set[str] = set(settings.banned_users)

        self.patterns = PatternPool()
        self.replies = CorrelationPool("reply")
        self.reactions = CorrelationPool("reaction")
        self.lifecycle = LifecyclePool()
        self.scopes = ActivationScopes()

        self.gate = AuthorizationGate(
            banned=self.banned,
            admin_ids=settings.admin_ids,
            admin_only=settings.admin_only,
            whitelist_mode=settings.whitelist_mode,
            whitelist_ids=settings.whitelist_ids,
        )

    def new_registry(self) -> Registry:
        return Registry(case_sensitive=self.settings.case_sensitive_commands)

    # --- configuration helpers ---

    def prefix_for(self, thread_id: str) -> str:
        return self.settings.prefix_for(thread_id)

    def effective_cooldown(self, command: Command) -> int:
        if command.cooldown is not None:
            return command.cooldown
        return self.settings.default_cooldown

    # --- ban list ---

    def ban(self, actor_id: str) -> str:
        # Synthetic placeholders contain no digits worth keeping
        key = actor_id if "_user_" in actor_id else normalize_id(actor_id)
        self.banned.add(key)
        LOGGER.info(f"[GUARD] Banned {key}")
        return key

    def unban(self, actor_id: str) -> bool:
        key = actor_id if "_user_" in actor_id else normalize_id(actor_id)
        if key not in self.banned:
            return False
        self.banned.discard(key)
        LOGGER.info(f"[GUARD] Unbanned {key}")
        return True

    # --- reload ---

    def swap_registry(self, registry: Registry) -> Registry:
        """Install a fully built registry in one assignment; returns the old one."""
        old, self.registry = self.registry, registry
        LOGGER.info(f"Registry swapped: {len(old)} -> {len(registry)} commands")
        return old

    def drop_owner(self, owner: str) -> int:
        """Remove every subscription registered by ``owner``."""
        return (
            self.patterns.remove_owner(owner)
            + self.replies.remove_owner(owner)
            + self.reactions.remove_owner(owner)
            + self.lifecycle.remove_owner(owner)
        )
