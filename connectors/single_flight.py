"""
Single-flight refresh — at most one refresh per refresh token in flight.

Concurrent requests holding the same stale session would otherwise each
spend the refresh token; providers that rotate refresh tokens on use then
reject every call after the first with ``invalid_grant``.  Callers that
arrive while a refresh is running wait for it and reuse its result, and a
successful result stays reusable for a short window.  Failures are never
reused.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple

from utils.schemas import TokenExchangeResult

logger = logging.getLogger(__name__)

RefreshFn = Callable[[str], Awaitable[TokenExchangeResult]]


def fingerprint(token: str) -> str:
    """Stable, non-reversible key for a token (safe to log)."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]


class RefreshCoordinator:
    """Process-local per-refresh-token lock plus a short result cache."""

    def __init__(
        self,
        reuse_window_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.reuse_window_seconds = reuse_window_seconds
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._recent: Dict[str, Tuple[float, TokenExchangeResult]] = {}
        self._users: Dict[str, int] = {}

    async def refresh(
        self,
        refresh_token: str,
        issue: RefreshFn,
        *,
        stale_access_token: Optional[str] = None,
    ) -> TokenExchangeResult:
        """
        Run ``issue(refresh_token)`` unless an equivalent refresh already ran.

        A recent result is not reused when its access token is
        ``stale_access_token``; the provider has already rejected it.
        """
        self._prune()
        key = fingerprint(refresh_token)
        lock = self._locks.setdefault(key, asyncio.Lock())

        # Counted before waiting so _prune never drops a lock someone is queued on.
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                cached = self._reusable(key, stale_access_token)
                if cached is not None:
                    logger.debug("Refresh coalesced for refresh token %s", key)
                    return cached

                result = await issue(refresh_token)
                self._recent[key] = (self._clock(), result)
                return result
        finally:
            remaining = self._users.get(key, 1) - 1
            if remaining:
                self._users[key] = remaining
            else:
                self._users.pop(key, None)

    def _reusable(self, key: str, stale_access_token: Optional[str]) -> Optional[TokenExchangeResult]:
        entry = self._recent.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self._clock() - stored_at > self.reuse_window_seconds:
            return None
        if stale_access_token is not None and result.access_token == stale_access_token:
            return None
        return result

    def _prune(self) -> None:
        now = self._clock()
        for key in [k for k, (ts, _) in self._recent.items() if now - ts > self.reuse_window_seconds]:
            del self._recent[key]
        for key in [k for k in self._locks if k not in self._users and k not in self._recent]:
            del self._locks[key]

    def clear(self) -> None:
        self._locks.clear()
        self._recent.clear()
        self._users.clear()
