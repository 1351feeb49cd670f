"""Actor identity resolution for inbound events."""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass

from lunabot.core.events import InboundEvent, ThreadType

LOGGER = logging.getLogger("Identity")

DIRECT_SUFFIXES = ("@s.whatsapp.net", "@c.us")
LID_SUFFIX = "@lid"

# Channel / community pseudo-identities are only trusted with this many digits
MIN_CHANNEL_DIGITS = 8


@dataclass(frozen=True)
class ActorId:
    id: str
    synthetic: bool = False

    def __str__(self) -> str:
        return self.id


def _digits(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())


def normalize_sender_id(raw: str | None) -> str:
    """Normalize a transport sender id.

    ``123:4@s.whatsapp.net`` -> ``123``, ``98765@lid`` -> ``98765``,
    ``+1 (555) 0100`` -> ``15550100``. Ids without any digit are kept as-is.
    """
    if not raw:
        return ""
    value = raw.strip()
    lowered = value.lower()

    for suffix in DIRECT_SUFFIXES:
        if lowered.endswith(suffix):
            return value[: -len(suffix)].split(":", 1)[0]

    if lowered.endswith(LID_SUFFIX):
        return _digits(value[: -len(LID_SUFFIX)])

    return _digits(value) or value


class IdentityResolver:
    """Derives the stable actor id used for cooldowns, bans and roles.

    Synthetic placeholders are stable per thread for the lifetime of the
    resolver (one process session) and are tracked like real ids.
    """

    def __init__(self, bot_id: str = "", session_id: str | None = None) -> None:
        self.bot_id = normalize_sender_id(bot_id)
        self.session_id = session_id or uuid.uuid4().hex[:8]

    def _candidates(self, event: InboundEvent) -> list[str]:
        sender = event.sender
        ordered: list[str | None] = []
        if event.is_group:
            ordered.append(sender.participant_id)
        else:
            ordered.append(sender.sender_id)
        ordered.extend(sender.alternate_ids)
        if sender.push_name:
            ordered.append(_digits(sender.push_name))
        return [c for c in ordered if c]

    def _acceptable(self, event: InboundEvent, candidate: str) -> bool:
        if event.thread_type in (ThreadType.CHANNEL, ThreadType.COMMUNITY):
            return len(_digits(candidate)) >= MIN_CHANNEL_DIGITS
        return bool(candidate)

    def synthetic_id(self, event: InboundEvent) -> str:
        digest = hashlib.sha1(event.thread_id.encode("utf-8")).hexdigest()[:8]
        return f"{event.thread_type.value}_user_{self.session_id}_{digest}"

    def resolve(self, event: InboundEvent) -> ActorId:
        if event.from_me and self.bot_id:
            return ActorId(self.bot_id)

        for candidate in self._candidates(event):
            normalized = normalize_sender_id(candidate)
            if normalized and self._acceptable(event, normalized):
                return ActorId(normalized)

        placeholder = self.synthetic_id(event)
        LOGGER.debug(f"No usable sender id on {event.thread_id}, using {placeholder}")
        return ActorId(placeholder, synthetic=True)
