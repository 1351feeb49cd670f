"""Inbound event model delivered by the transport adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EventKind(str, Enum):
    TEXT = "text"
    MEDIA = "media"
    REPLY = "reply"
    REACTION = "reaction"
    MEMBERSHIP = "membership"
    CALL = "call"
    CONTACT = "contact"
    INVITE = "invite"

    @property
    def is_message(self) -> bool:
        return self in (EventKind.TEXT, EventKind.MEDIA, EventKind.REPLY)


class ThreadType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    CHANNEL = "channel"
    COMMUNITY = "community"


# Lifecycle event-kind keys
MEMBERSHIP_JOINED = "membership.joined"
MEMBERSHIP_LEFT = "membership.left"
MEMBERSHIP_PROMOTED = "membership.promoted"
MEMBERSHIP_DEMOTED = "membership.demoted"
CALL_INCOMING = "call.incoming"
CALL_MISSED = "call.missed"
CONTACT_JOINED = "contact.joined"
CONTACT_UPDATED = "contact.updated"
INVITE_RECEIVED = "invite.received"
MESSAGE_INCOMING = "message.incoming"

LIFECYCLE_KEYS = frozenset(
    {
        MEMBERSHIP_JOINED,
        MEMBERSHIP_LEFT,
        MEMBERSHIP_PROMOTED,
        MEMBERSHIP_DEMOTED,
        CALL_INCOMING,
        CALL_MISSED,
        CONTACT_JOINED,
        CONTACT_UPDATED,
        INVITE_RECEIVED,
        MESSAGE_INCOMING,
    }
)

_MEMBERSHIP_ACTIONS = {
    "add": MEMBERSHIP_JOINED,
    "join": MEMBERSHIP_JOINED,
    "joined": MEMBERSHIP_JOINED,
    "remove": MEMBERSHIP_LEFT,
    "leave": MEMBERSHIP_LEFT,
    "left": MEMBERSHIP_LEFT,
    "promote": MEMBERSHIP_PROMOTED,
    "promoted": MEMBERSHIP_PROMOTED,
    "demote": MEMBERSHIP_DEMOTED,
    "demoted": MEMBERSHIP_DEMOTED,
}


@dataclass
class SenderIdentity:
    """Raw sender identifiers as the transport reports them."""

    sender_id: str | None = None  # private-chat sender / remote id
    participant_id: str | None = None  # group participant id
    alternate_ids: list[str] = field(default_factory=list)  # context participant etc.
    push_name: str | None = None


@dataclass
class CallInfo:
    call_id: str
    caller_id: str
    caller_name: str = ""
    is_video: bool = False
    status: str = "incoming"  # 'incoming' | 'missed'


@dataclass
class ContactInfo:
    contact_id: str
    contact_name: str = ""
    status: str = "updated"  # 'joined' | 'updated'


@dataclass
class InviteInfo:
    group_id: str
    inviter_id: str
    inviter_name: str = ""
    group_name: str = ""


@dataclass
class InboundEvent:
    """One normalized inbound event."""

    id: str
    thread_id: str
    kind: EventKind = EventKind.TEXT
    thread_type: ThreadType = ThreadType.PRIVATE
    sender: SenderIdentity = field(default_factory=SenderIdentity)
    from_me: bool = False
    text: str = ""
    thread_name: str = ""
    quoted_message_id: str | None = None  # replied-to or reacted-to message
    reaction: str | None = None
    # membership
    action: str | None = None
    participants: list[str] = field(default_factory=list)
    # call / contact / invite payloads
    call: CallInfo | None = None
    contact: ContactInfo | None = None
    invite: InviteInfo | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    raw: object = None

    @property
    def is_group(self) -> bool:
        return self.thread_type in (ThreadType.GROUP, ThreadType.COMMUNITY)

    @property
    def sender_name(self) -> str:
        return self.sender.push_name or ""

    def lifecycle_key(self) -> str | None:
        """Event-kind key used by the lifecycle router, or None for chat events."""
        if self.kind is EventKind.MEMBERSHIP:
            return _MEMBERSHIP_ACTIONS.get((self.action or "").lower())
        if self.kind is EventKind.CALL:
            status = (self.call.status if self.call else "incoming").lower()
            return CALL_MISSED if status == "missed" else CALL_INCOMING
        if self.kind is EventKind.CONTACT:
            status = (self.contact.status if self.contact else "updated").lower()
            return CONTACT_JOINED if status == "joined" else CONTACT_UPDATED
        if self.kind is EventKind.INVITE:
            return INVITE_RECEIVED
        return None
