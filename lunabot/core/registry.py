"""Command records and the name/alias registry."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from lunabot.core.errors import DuplicateAliasError, RegistrationError

if TYPE_CHECKING:
    from lunabot.core.context import Context

LOGGER = logging.getLogger("Registry")

Handler = Callable[["Context"], Awaitable[Any]]

# Role levels
ROLE_EVERYONE = 0
ROLE_GROUP_ADMIN = 1
ROLE_BOT_ADMIN = 2

ROLE_NAMES = {
    ROLE_EVERYONE: "All users",
    ROLE_GROUP_ADMIN: "Group admins",
    ROLE_BOT_ADMIN: "Bot admins",
}


def role_name(role: int) -> str:
    return ROLE_NAMES.get(role, f"Level {role}")


@dataclass(frozen=True)
class Command:
    """An installed command. Capability handlers are all optional."""

    name: str
    aliases: tuple[str, ...] = ()
    category: str = "general"
    description: str = ""
    guide: str = ""
    role: int = ROLE_EVERYONE
    cooldown: int | None = None  # None = global default
    on_start: Handler | None = None
    on_chat: Handler | None = None
    on_reply: Handler | None = None
    on_reaction: Handler | None = None
    owner: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise RegistrationError("command name must not be empty")
        if self.role < 0:
            raise RegistrationError(f"command '{self.name}' has a negative role level")
        if self.cooldown is not None and self.cooldown < 0:
            raise RegistrationError(f"command '{self.name}' has a negative cooldown")
        # Accept any iterable of aliases but store an immutable tuple
        object.__setattr__(self, "aliases", tuple(self.aliases))


class Registry:
    """Commands by canonical name, plus the alias table.

    Built once at load time and swapped wholesale on reload; never mutated
    while a dispatch is resolving from it.
    """

    def __init__(self, *, case_sensitive: bool = False) -> None:
        self.case_sensitive = case_sensitive
        self._commands: dict[str, Command] = {}
        self._aliases: dict[str, str] = {}

    def _key(self, token: str) -> str:
        token = token.strip()
        return token if self.case_sensitive else token.lower()

    def _owner_of(self, key: str) -> str | None:
        if key in self._commands:
            return key
        return self._aliases.get(key)

    # ==================== Mutation ====================

    def register(self, command: Command) -> Command:
        name = self._key(command.name)
        aliases = [self._key(a) for a in command.aliases if a and a.strip()]

        # Canonical name must not be another command's alias
        alias_owner = self._aliases.get(name)
        if alias_owner is not None and alias_owner != name:
            raise DuplicateAliasError(name, alias_owner, name)

        seen: set[str] = set()
        for alias in aliases:
            if alias == name or alias in seen:
                continue
            seen.add(alias)
            owner = self._owner_of(alias)
            if owner is not None and owner != name:
                raise DuplicateAliasError(alias, owner, name)

        # Only the owning component may replace a command under the same name
        existing = self._commands.get(name)
        if existing is not None:
            if existing.owner != command.owner:
                raise DuplicateAliasError(name, existing.owner, command.owner)
            self.unregister(name)

        self._commands[name] = command
        for alias in seen:
            self._aliases[alias] = name

        LOGGER.debug(f"Registered '{name}' (aliases: {', '.join(sorted(seen)) or '-'})")
        return command

    def unregister(self, name: str) -> Command | None:
        key = self._key(name)
        command = self._commands.pop(key, None)
        if command is None:
            return None
        for alias in [a for a, owner in self._aliases.items() if owner == key]:
            del self._aliases[alias]
        return command

    # ==================== Lookup ====================

    def resolve(self, token: str) -> Command | None:
        """Canonical name first, then alias; None when nothing matches."""
        key = self._key(token)
        if not key:
            return None
        command = self._commands.get(key)
        if command is not None:
            return command
        canonical = self._aliases.get(key)
        return self._commands.get(canonical) if canonical else None

    def all(self) -> list[Command]:
        return list(self._commands.values())

    def with_chat_listeners(self) -> list[Command]:
        return [c for c in self._commands.values() if c.on_chat is not None]

    def list_by_category(self) -> dict[str, list[Command]]:
        grouped: dict[str, list[Command]] = {}
        for command in self._commands.values():
            grouped.setdefault(command.category or "general", []).append(command)
        return grouped

    @property
    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.resolve(token) is not None

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(self.all())
