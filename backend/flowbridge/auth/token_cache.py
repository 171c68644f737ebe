# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Token Cache

Cached credentials per auth adapter with single-flight refresh.

The cache is the only state shared between concurrent flow runs. For each
adapter id there is at most one refresh in flight at any time:

- a per-adapter asyncio.Lock guards the "is it valid / who refreshes"
  decision and every write to the entry
- a per-adapter Future is the completion signal; callers that arrive
  while a refresh is running await it and reuse its token (or its error)
- `refresh_in_flight` / `refresh_started_at` on the entry mirror that
  state; a refresh running longer than `stale_after` seconds is treated
  as stuck and the next caller starts a new one
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

from flowbridge.core.logging import get_service_logger
from flowbridge.models.interface import TokenCacheEntry
from .adapters import FreshToken

logger = get_service_logger("token-cache")

FetchToken = Callable[[Optional[TokenCacheEntry]], Awaitable[FreshToken]]


class TokenCache:
    def __init__(
        self,
        stale_after: float = 60.0,
        expiry_skew: float = 30.0,
        clock: Callable[[], float] = time.time
    ):
        self.stale_after = stale_after
        self.expiry_skew = expiry_skew
        self.clock = clock
        self._entries: Dict[str, TokenCacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    def _get_lock(self, adapter_id: str) -> asyncio.Lock:
        if adapter_id not in self._locks:
            self._locks[adapter_id] = asyncio.Lock()
        return self._locks[adapter_id]

    def peek(self, adapter_id: str) -> Optional[TokenCacheEntry]:
        """Snapshot of the cache entry, for inspection only."""
        entry = self._entries.get(adapter_id)
        return entry.model_copy() if entry else None

    def is_valid(self, entry: Optional[TokenCacheEntry], idle_timeout: Optional[float] = None) -> bool:
        if entry is None or not entry.access_token:
            return False
        now = self.clock()
        if entry.expires_at is not None and now >= entry.expires_at - self.expiry_skew:
            return False
        if idle_timeout and entry.last_used_at is not None and now - entry.last_used_at > idle_timeout:
            return False
        return True

    def _is_stale(self, entry: Optional[TokenCacheEntry]) -> bool:
        if entry is None or entry.refresh_started_at is None:
            return False
        return self.clock() - entry.refresh_started_at > self.stale_after

    async def get_token(
        self,
        adapter_id: str,
        fetch: FetchToken,
        idle_timeout: Optional[float] = None
    ) -> TokenCacheEntry:
        """
        Return a valid cached entry, refreshing it through `fetch` if needed.

        Concurrent callers for the same adapter share one refresh.
        """
        while True:
            async with self._get_lock(adapter_id):
                entry = self._entries.get(adapter_id)
                future = self._inflight.get(adapter_id)

                if future is None and self.is_valid(entry, idle_timeout):
                    entry.last_used_at = self.clock()
                    return entry.model_copy()

                if future is not None and not future.done() and not self._is_stale(entry):
                    leader = False
                else:
                    if future is not None and not future.done():
                        logger.warning(
                            f"Token refresh for adapter {adapter_id} exceeded {self.stale_after}s; starting a new one"
                        )
                    future = asyncio.get_running_loop().create_future()
                    self._inflight[adapter_id] = future
                    entry = self._begin_refresh(adapter_id, entry)
                    previous = entry.model_copy()
                    leader = True

            if leader:
                return await self._run_refresh(adapter_id, future, fetch, previous)

            try:
                return await asyncio.wait_for(asyncio.shield(future), timeout=self.stale_after)
            except asyncio.TimeoutError:
                # Leader looks stuck; loop round and supersede it
                continue
            except asyncio.CancelledError:
                if future.cancelled():
                    # Leader was cancelled, not us
                    continue
                raise

    def _begin_refresh(self, adapter_id: str, entry: Optional[TokenCacheEntry]) -> TokenCacheEntry:
        if entry is None:
            entry = TokenCacheEntry(adapter_id=adapter_id)
            self._entries[adapter_id] = entry
        entry.refresh_in_flight = True
        entry.refresh_started_at = self.clock()
        entry.version += 1
        return entry

    async def _run_refresh(
        self,
        adapter_id: str,
        future: asyncio.Future,
        fetch: FetchToken,
        previous: TokenCacheEntry
    ) -> TokenCacheEntry:
        logger.info(f"Refreshing token for adapter {adapter_id}")
        try:
            fresh = await fetch(previous)
        except asyncio.CancelledError:
            await self._end_refresh(adapter_id, future, error="refresh cancelled")
            future.cancel()
            raise
        except Exception as e:
            await self._end_refresh(adapter_id, future, error=str(e))
            logger.error(f"Token refresh failed for adapter {adapter_id}: {e}")
            if not future.done():
                future.set_exception(e)
                # Mark retrieved; waiters (if any) still receive it
                future.exception()
            raise

        result = await self._end_refresh(adapter_id, future, fresh=fresh)
        if not future.done():
            future.set_result(result)
        return result

    async def _end_refresh(
        self,
        adapter_id: str,
        future: asyncio.Future,
        fresh: Optional[FreshToken] = None,
        error: Optional[str] = None
    ) -> TokenCacheEntry:
        async with self._get_lock(adapter_id):
            current = self._inflight.get(adapter_id) is future
            if current:
                del self._inflight[adapter_id]

            entry = self._entries.get(adapter_id)
            if entry is None:
                entry = TokenCacheEntry(adapter_id=adapter_id)

            if fresh is not None:
                now = self.clock()
                updated = entry.model_copy(update={
                    "access_token": fresh.access_token,
                    "refresh_token": fresh.refresh_token or entry.refresh_token,
                    "session_data": fresh.session_data or entry.session_data,
                    "expires_at": now + fresh.expires_in if fresh.expires_in else None,
                    "issued_at": now,
                    "last_used_at": now,
                    "last_refresh_error": None,
                })
            else:
                updated = entry.model_copy(update={"last_refresh_error": error})

            if current:
                # A superseded leader must not clobber the newer refresh state
                updated.refresh_in_flight = False
                updated.refresh_started_at = None
                self._entries[adapter_id] = updated
            return updated.model_copy()

    async def invalidate(self, adapter_id: str) -> None:
        """Drop the cached access token so the next caller refreshes."""
        async with self._get_lock(adapter_id):
            entry = self._entries.get(adapter_id)
            if entry is None:
                return
            entry.access_token = None
            entry.expires_at = None
            logger.info(f"Invalidated cached token for adapter {adapter_id}")

