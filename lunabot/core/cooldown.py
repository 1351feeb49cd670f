"""In-memory per-user, per-command cooldown tracking (reset on restart)."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

LOGGER = logging.getLogger("Cooldown")


class CooldownTracker:
    """Maps ``"{command}:{actor}"`` to a monotonic expiry instant.

    Entries whose expiry has passed are treated as absent. A detached
    ``loop.call_later`` timer forgets each entry once it lapses.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expiry: dict[str, float] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @staticmethod
    def key(command: str, actor: str) -> str:
        return f"{command}:{actor}"

    def check(self, command: str, actor: str) -> float | None:
        """Remaining seconds if the actor is cooling down, else None."""
        key = self.key(command, actor)
        expires = self._expiry.get(key)
        if expires is None:
            return None
        remaining = expires - self._clock()
        if remaining <= 0:
            self._forget(key)
            return None
        return remaining

    def apply(self, command: str, actor: str, duration: float) -> None:
        if duration <= 0:
            return
        key = self.key(command, actor)
        self._expiry[key] = self._clock() + duration

        old = self._timers.pop(key, None)
        if old is not None:
            old.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: entry is dropped lazily by check()
            return
        self._timers[key] = loop.call_later(duration, self._expire, key)

    def acquire(self, command: str, actor: str, duration: float) -> float | None:
        """Check and apply in one synchronous step.

        Returns the remaining seconds when rejected, None when allowed.
        """
        if duration <= 0:
            return None
        remaining = self.check(command, actor)
        if remaining is not None:
            LOGGER.debug(f"[COOLDOWN] {command} for {actor}: {remaining:.1f}s left")
            return remaining
        self.apply(command, actor, duration)
        return None

    def _expire(self, key: str) -> None:
        # Timers can fire slightly early relative to an injected clock
        expires = self._expiry.get(key)
        if expires is not None and expires - self._clock() > 0:
            return
        self._forget(key)

    def _forget(self, key: str) -> None:
        self._expiry.pop(key, None)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._expiry.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._expiry

    def __len__(self) -> int:
        return len(self._expiry)
