"""Cached thread metadata (names, participants, admin rosters)."""

from __future__ import annotations

import logging

from lunabot.core.identity import normalize_sender_id
from lunabot.core.interfaces import ThreadInfo, Transport
from lunabot.shared.cache import AsyncTTLCache, cached

LOGGER = logging.getLogger("ThreadDirectory")


class ThreadDirectory:
    """Fetches ``ThreadInfo`` through the transport.

    Results are cached for ``ttl`` seconds. Failed fetches are retried with
    doubling backoff, then fall back to the last known value.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        ttl: float = 60.0,
        retries: int = 3,
        retry_delay: float = 1.0,
        maxsize: int = 256,
    ) -> None:
        self.transport = transport
        self._cache = AsyncTTLCache(maxsize=maxsize, ttl=ttl)
        self._fetch = cached(
            cache=self._cache,
            key_func=lambda thread_id: f"thread:{thread_id}",
            retry=retries,
            retry_delay=retry_delay,
        )(self._load)

    async def _load(self, thread_id: str) -> ThreadInfo:
        return await self.transport.get_thread_info(thread_id)

    async def fetch(self, thread_id: str) -> ThreadInfo:
        """Raises when the transport fails and nothing was ever cached."""
        return await self._fetch(thread_id)

    async def info(self, thread_id: str) -> ThreadInfo | None:
        try:
            return await self._fetch(thread_id)
        except Exception as e:
            LOGGER.warning(f"Failed to get metadata for {thread_id}: {type(e).__name__}: {e}")
            return None

    async def admins(self, thread_id: str) -> frozenset[str]:
        """Normalized admin ids; empty when metadata is unavailable."""
        info = await self.info(thread_id)
        if info is None:
            return frozenset()
        return frozenset(normalize_sender_id(a) for a in info.admin_ids)

    def invalidate(self, thread_id: str) -> None:
        self._cache.invalidate(f"thread:{thread_id}")
