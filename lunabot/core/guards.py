"""Authorization checks: ban list, admin-only mode, whitelist mode, role level."""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass, field

from lunabot.core.errors import DispatchStatus
from lunabot.core.registry import ROLE_BOT_ADMIN, ROLE_EVERYONE, ROLE_GROUP_ADMIN

LOGGER = logging.getLogger("CommandGuard")


@dataclass
class Actor:
    """Resolved sender of one event, as seen by the guards."""

    id: str
    from_me: bool = False
    is_group: bool = False
    group_admins: Collection[str] = field(default_factory=frozenset)
    synthetic: bool = False


class AuthorizationGate:
    """Pure predicate over configuration sets; performs no I/O.

    ``banned`` is the live ban set owned by the dispatch state, so
    ``ban``/``unban`` calls are seen immediately.
    """

    def __init__(
        self,
        *,
        banned: Collection[str],
        admin_ids: Collection[str],
        admin_only: bool = False,
        whitelist_mode: bool = False,
        whitelist_ids: Collection[str] = (),
    ) -> None:
        self.banned = banned
        self.admin_ids = frozenset(admin_ids)
        self.admin_only = admin_only
        self.whitelist_mode = whitelist_mode
        self.whitelist_ids = frozenset(whitelist_ids)

    def is_admin(self, actor_id: str) -> bool:
        return actor_id in self.admin_ids

    def role_level(self, actor: Actor) -> int:
        """2 for bot admins, 1 for group admins of the current thread, else 0."""
        if actor.id in self.admin_ids:
            return ROLE_BOT_ADMIN
        if actor.is_group and actor.id in actor.group_admins:
            return ROLE_GROUP_ADMIN
        return ROLE_EVERYONE

    def has_role(self, actor: Actor, min_role: int) -> bool:
        if min_role <= ROLE_EVERYONE:
            return True
        return self.role_level(actor) >= min_role

    def check_access(self, actor: Actor) -> DispatchStatus:
        """Ban, admin-only and whitelist checks, in that order."""
        if actor.id in self.banned:
            LOGGER.debug(f"[GUARD] Dropping event from banned actor {actor.id}")
            return DispatchStatus.BANNED

        if self.admin_only and not actor.from_me and not self.is_admin(actor.id):
            LOGGER.debug(f"[GUARD] Admin-only mode rejected {actor.id}")
            return DispatchStatus.ADMIN_ONLY

        if (
            self.whitelist_mode
            and not actor.from_me
            and actor.id not in self.whitelist_ids
            and not self.is_admin(actor.id)
        ):
            LOGGER.debug(f"[GUARD] {actor.id} is not whitelisted")
            return DispatchStatus.NOT_WHITELISTED

        return DispatchStatus.OK

    def check_command(self, actor: Actor, min_role: int) -> DispatchStatus:
        status = self.check_access(actor)
        if status is not DispatchStatus.OK:
            return status
        if not self.has_role(actor, min_role):
            LOGGER.debug(f"[GUARD] {actor.id} below role {min_role}")
            return DispatchStatus.INSUFFICIENT_ROLE
        return DispatchStatus.OK
