"""Error types and dispatch outcomes for the routing core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LunaError(Exception):
    """Base class for errors raised by the bot core."""


class RegistrationError(LunaError):
    """A command could not be registered."""


class DuplicateAliasError(RegistrationError):
    """An alias (or canonical name) is already owned by a different command."""

    def __init__(self, alias: str, owner: str, claimant: str) -> None:
        self.alias = alias
        self.owner = owner
        self.claimant = claimant
        super().__init__(
            f"'{alias}' is already registered to command '{owner}', cannot assign it to '{claimant}'"
        )


class ComponentLoadError(LunaError):
    """A component module could not be imported or set up."""


class DispatchStatus(str, Enum):
    OK = "ok"
    EMPTY_COMMAND = "empty_command"
    UNKNOWN_COMMAND = "unknown_command"
    BANNED = "banned"
    ADMIN_ONLY = "admin_only"
    NOT_WHITELISTED = "not_whitelisted"
    INSUFFICIENT_ROLE = "insufficient_role"
    COOLDOWN_ACTIVE = "cooldown_active"
    HANDLER_FAILURE = "handler_failure"


# Rejections that never produce a reply in the chat
SILENT_REJECTIONS = frozenset({DispatchStatus.BANNED, DispatchStatus.NOT_WHITELISTED})

# Sent when a handler raises; details go to the log only
HANDLER_APOLOGY = "❌ Something went wrong while handling that. Please try again later."


@dataclass(frozen=True)
class DispatchResult:
    """Terminal outcome of one command dispatch."""

    status: DispatchStatus
    command: str | None = None
    remaining: float | None = None
    required_role: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.OK
