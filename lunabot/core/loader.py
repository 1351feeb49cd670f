"""Component discovery, registration and hot reload."""

from __future__ import annotations

import dataclasses
import importlib
import logging
import re
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from lunabot.core.config import COMPONENTS_DIR, LunaSettings
from lunabot.core.errors import ComponentLoadError, DuplicateAliasError
from lunabot.core.lifecycle import LifecycleCallback, LifecycleSubscription
from lunabot.core.logging import RICH_AVAILABLE
from lunabot.core.patterns import PatternCallback
from lunabot.core.registry import Command, Registry
from lunabot.core.state import DispatchState

LOGGER = logging.getLogger("ComponentLoader")

DEFAULT_PACKAGE = "lunabot.components"


class ComponentRegistrar:
    """Handed to a component's ``setup()``; tags everything with the component name."""

    def __init__(self, name: str, registry: Registry, state: DispatchState) -> None:
        self.name = name
        self.registry = registry
        self.state = state
        self.commands: list[str] = []

    @property
    def settings(self) -> LunaSettings:
        return self.state.settings

    def add_command(self, command: Command | None = None, **fields: Any) -> Command | None:
        """Register a command; an alias collision skips only this command."""
        if command is None:
            command = Command(**fields)
        command = dataclasses.replace(command, owner=self.name)
        try:
            self.registry.register(command)
        except DuplicateAliasError as e:
            LOGGER.error(f"[LOAD] {self.name}: skipping command '{command.name}': {e}")
            return None
        self.commands.append(command.name)
        return command

    def on_event(
        self,
        key: str,
        callback: LifecycleCallback,
        *,
        name: str | None = None,
        scope: str | Iterable[str] | None = None,
    ) -> LifecycleSubscription:
        """Subscribe to a lifecycle key.

        ``scope`` seeds the activation scope ("*" or thread ids) unless the
        subscription name already has one, so scopes survive a reload.
        """
        sub_name = name or f"{self.name}.{key}"
        sub = self.state.lifecycle.subscribe(key, sub_name, callback, owner=self.name)
        if scope is not None and sub_name not in self.state.scopes:
            self.state.scopes.set(sub_name, scope)
        return sub

    def on_chat(
        self,
        pattern: str | re.Pattern[str],
        callback: PatternCallback,
        *,
        one_time: bool = False,
    ) -> str:
        return self.state.patterns.subscribe(pattern, callback, one_time=one_time, owner=self.name)


class ComponentLoader:
    def __init__(
        self,
        state: DispatchState,
        *,
        package: str = DEFAULT_PACKAGE,
        modules: Iterable[str] | None = None,
    ) -> None:
        self.state = state
        self.package = package
        self.modules = list(modules) if modules is not None else None
        self.loaded: list[str] = []
        self.failed: dict[str, str] = {}

    @staticmethod
    def short_name(module_name: str) -> str:
        return module_name.rsplit(".", 1)[-1]

    def discover(self) -> list[str]:
        """Module names to load: the explicit list, or every module in the package."""
        if self.modules is not None:
            return list(self.modules)

        if self.package == DEFAULT_PACKAGE:
            directory = COMPONENTS_DIR
        else:
            package = importlib.import_module(self.package)
            directory = Path(package.__file__).parent

        if not directory.exists():
            LOGGER.warning(f"[LOAD] Components directory not found: {directory}")
            return []
        return [
            f"{self.package}.{file.stem}"
            for file in sorted(directory.glob("*.py"))
            if not file.stem.startswith("_")
        ]

    async def _load_one(self, module_name: str, registry: Registry, *, reload: bool) -> bool:
        name = self.short_name(module_name)
        registrar = ComponentRegistrar(name, registry, self.state)
        try:
            if reload and module_name in sys.modules:
                module = importlib.reload(sys.modules[module_name])
            else:
                module = importlib.import_module(module_name)

            setup = getattr(module, "setup", None)
            if setup is None:
                raise ComponentLoadError(f"{module_name} has no setup() coroutine")
            await setup(registrar)
        except Exception as e:
            # Undo anything the component registered before failing
            for command_name in registrar.commands:
                registry.unregister(command_name)
            self.state.drop_owner(name)
            self.failed[module_name] = f"{type(e).__name__}: {e}"
            LOGGER.exception(f"[LOAD] Failed to load component {module_name}: {type(e).__name__}: {e}")
            return False

        self.failed.pop(module_name, None)
        LOGGER.debug(f"[LOAD] {module_name}: {len(registrar.commands)} command(s)")
        return True

    async def _load_many(self, names: list[str], registry: Registry, *, reload: bool) -> list[str]:
        loaded = [n for n in names if await self._load_one(n, registry, reload=reload)]
        self._report(loaded, [n for n in names if n not in loaded])
        return loaded

    def _report(self, loaded: list[str], failed: list[str]) -> None:
        if loaded:
            names = ", ".join(self.short_name(n) for n in loaded)
            if RICH_AVAILABLE:
                LOGGER.info(f"[green]Loaded components:[/green] {names}")
            else:
                LOGGER.info(f"Loaded components: {names}")
        if failed:
            names = ", ".join(f"{self.short_name(n)} ({self.failed.get(n, '?')})" for n in failed)
            if RICH_AVAILABLE:
                LOGGER.error(f"[red]Failed components:[/red] {names}")
            else:
                LOGGER.error(f"Failed components: {names}")

    async def load_all(self) -> list[str]:
        """Load every discovered component into the live registry."""
        names = self.discover()
        self.loaded = await self._load_many(names, self.state.registry, reload=False)
        return self.loaded

    async def reload(self) -> list[str]:
        """Re-import every component into a fresh registry and swap it in."""
        names = self.discover()
        for module_name in set(self.loaded) | set(names):
            self.state.drop_owner(self.short_name(module_name))

        registry = self.state.new_registry()
        loaded = await self._load_many(names, registry, reload=True)
        self.state.swap_registry(registry)
        self.loaded = loaded
        return loaded
