"""Console transport: talk to the bot from a terminal, no messaging network needed.

Input syntax:
    text             plain message
    ^<id> text       reply to bot message <id>
    +<id> <emoji>    react to bot message <id>
    quit             stop
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator

from lunabot.core.events import EventKind, InboundEvent, SenderIdentity, ThreadType
from lunabot.core.interfaces import ThreadInfo

try:
    from rich.console import Console

    RICH_AVAILABLE = True
except ImportError:
    RICH_AVAILABLE = False

logger = logging.getLogger(__name__)

QUIT_WORDS = ("quit", "exit", "q")


class ConsoleTransport:
    """Single private thread between the bot and one local user."""

    def __init__(
        self,
        bot_name: str = "Luna",
        *,
        bot_id: str = "10000000",
        user_id: str = "10000001",
        user_name: str = "You",
        thread_id: str = "console",
    ) -> None:
        self.bot_id = bot_id
        self.bot_name = bot_name
        self.user_id = user_id
        self.user_name = user_name
        self.thread_id = thread_id
        self._inbound_ids = itertools.count(1)
        self._outbound_ids = itertools.count(1)
        self._console = Console() if RICH_AVAILABLE else None
        self._running = False

    def _print(self, label: str, text: str, style: str) -> None:
        if self._console is not None:
            self._console.print(f"[{style}]\\[{label}][/{style}] {text}", highlight=False)
        else:
            print(f"[{label}] {text}")

    # ==================== Transport protocol ====================

    async def send_text(
        self,
        thread_id: str,
        text: str,
        *,
        quote: str | None = None,
        mentions: list[str] | None = None,
    ) -> str | None:
        message_id = f"bot_{next(self._outbound_ids)}"
        label = f"{self.bot_name} #{message_id}"
        if quote:
            label += f" ↩ {quote}"
        self._print(label, text, "cyan")
        return message_id

    async def get_thread_info(self, thread_id: str) -> ThreadInfo:
        return ThreadInfo(
            thread_id=thread_id,
            name="Console",
            participants=[self.user_id, self.bot_id],
        )

    async def accept_invite(self, group_id: str) -> None:
        logger.info(f"Console transport: accepted invite to {group_id}")

    async def reject_call(self, call_id: str, caller_id: str) -> None:
        logger.info(f"Console transport: rejected call {call_id} from {caller_id}")

    # ==================== Input ====================

    def parse_line(self, line: str) -> InboundEvent:
        """Turn one input line into an inbound event."""
        kind = EventKind.TEXT
        text = line
        quoted: str | None = None
        reaction: str | None = None

        head, _, rest = line.partition(" ")
        if head.startswith("^") and len(head) > 1:
            kind, quoted, text = EventKind.REPLY, head[1:], rest
        elif head.startswith("+") and len(head) > 1:
            kind, quoted, reaction, text = EventKind.REACTION, head[1:], rest.strip() or "👍", ""

        return InboundEvent(
            id=f"local_{next(self._inbound_ids)}",
            thread_id=self.thread_id,
            kind=kind,
            thread_type=ThreadType.PRIVATE,
            sender=SenderIdentity(sender_id=self.user_id, push_name=self.user_name),
            text=text,
            thread_name="Console",
            quoted_message_id=quoted,
            reaction=reaction,
        )

    def _read_line(self) -> str | None:
        try:
            return input(f"[{self.user_name}] ")
        except EOFError:
            return None
        except KeyboardInterrupt:
            return "quit"

    async def events(self) -> AsyncIterator[InboundEvent]:
        """Yield events typed on stdin until ``quit`` or end of input."""
        loop = asyncio.get_running_loop()
        self._running = True
        self._print(self.bot_name, "Console transport ready. Type 'quit' to exit.", "green")
        while self._running:
            line = await loop.run_in_executor(None, self._read_line)
            if line is None:
                break
            line = line.strip()
            if not line:
                continue
            if line.lower() in QUIT_WORDS:
                break
            yield self.parse_line(line)
        self._running = False

    def stop(self) -> None:
        self._running = False
