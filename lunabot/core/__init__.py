"""Core dispatch and routing engine."""

from .bot import Bot
from .config import COMPONENTS_DIR, PROJECT_DIR, LunaSettings, get_settings
from .context import Context
from .errors import (
    ComponentLoadError,
    DispatchResult,
    DispatchStatus,
    DuplicateAliasError,
    LunaError,
    RegistrationError,
)
from .events import EventKind, InboundEvent, SenderIdentity, ThreadType
from .interfaces import Persistence, ThreadInfo, Transport
from .loader import ComponentLoader, ComponentRegistrar
from .logging import setup_logging
from .registry import ROLE_BOT_ADMIN, ROLE_EVERYONE, ROLE_GROUP_ADMIN, Command, Registry
from .state import DispatchState

__all__ = [
    # Engine
    "Bot",
    "DispatchState",
    "Context",
    # Settings
    "LunaSettings",
    "get_settings",
    "setup_logging",
    # Path Constants
    "PROJECT_DIR",
    "COMPONENTS_DIR",
    # Commands
    "Command",
    "Registry",
    "ROLE_EVERYONE",
    "ROLE_GROUP_ADMIN",
    "ROLE_BOT_ADMIN",
    # Components
    "ComponentLoader",
    "ComponentRegistrar",
    # Events
    "EventKind",
    "InboundEvent",
    "SenderIdentity",
    "ThreadType",
    # Interfaces
    "Transport",
    "Persistence",
    "ThreadInfo",
    # Errors
    "LunaError",
    "RegistrationError",
    "DuplicateAliasError",
    "ComponentLoadError",
    "DispatchResult",
    "DispatchStatus",
]
