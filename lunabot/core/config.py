"""Bot configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lunabot.core.identity import normalize_sender_id

logger = logging.getLogger(__name__)

# === Path Configuration ===
CORE_DIR = Path(__file__).parent
PACKAGE_DIR = CORE_DIR.parent
PROJECT_DIR = PACKAGE_DIR.parent
COMPONENTS_DIR = PACKAGE_DIR / "components"


def normalize_id(raw: str) -> str:
    """Reduce a configured user id to the canonical form used by the dispatcher.

    ``"+1 555 0100"`` and ``"15550100:3@s.whatsapp.net"`` both become ``"15550100"``.
    """
    return normalize_sender_id(raw)


class LunaSettings(BaseSettings):
    """Settings consumed by the dispatch core.

    List and mapping fields are read from the environment as JSON, e.g.
    ``LUNA_ADMIN_IDS='["15550100"]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LUNA_",
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database (empty = run without persistence)
    database_url: str = Field(default="", description="PostgreSQL database URL")

    # Identity
    bot_name: str = Field(default="Luna", description="Display name of the bot")

    # Command parsing
    prefix: str = Field(default="!", description="Global command prefix")
    thread_prefixes: dict[str, str] = Field(
        default_factory=dict, description="Per-thread prefix overrides {thread_id: prefix}"
    )
    case_sensitive_commands: bool = Field(
        default=False, description="Match command tokens case-sensitively"
    )
    default_cooldown: int = Field(
        default=0, ge=0, description="Cooldown in seconds for commands that declare none"
    )

    # Access control
    banned_users: list[str] = Field(default_factory=list, description="Banned actor ids")
    admin_only: bool = Field(default=False, description="Only bot admins may use the bot")
    admin_ids: list[str] = Field(default_factory=list, description="Bot administrator ids")
    whitelist_mode: bool = Field(default=False, description="Only whitelisted ids may use the bot")
    whitelist_ids: list[str] = Field(default_factory=list, description="Whitelisted actor ids")

    # Lifecycle features
    welcome_enabled: bool = Field(default=False)
    welcome_message: str = Field(default="Welcome {user} to {group}!")
    leave_enabled: bool = Field(default=False)
    leave_message: str = Field(default="Goodbye {user}, {group} will miss you.")
    reject_calls: bool = Field(default=False, description="Automatically reject incoming calls")
    call_reject_message: str = Field(
        default="", description="Message sent to the caller after an automatic rejection"
    )
    auto_accept_invites: bool = Field(default=False)
    invites_from_admins_only: bool = Field(
        default=True, description="Only accept invites sent by bot admins"
    )

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Prefix must contain at least one visible character"""
        if not v.strip():
            raise ValueError("prefix must not be empty")
        return v.strip()

    @field_validator("banned_users", "admin_ids", "whitelist_ids")
    @classmethod
    def normalize_ids(cls, v: list[str]) -> list[str]:
        """Normalize configured ids the same way inbound sender ids are normalized"""
        return [normalize_id(str(item)) for item in v if str(item).strip()]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    def prefix_for(self, thread_id: str) -> str:
        """Active prefix for a thread (override or global default)."""
        return self.thread_prefixes.get(thread_id) or self.prefix


@lru_cache
def get_settings() -> LunaSettings:
    """Get cached settings instance"""
    return LunaSettings()
