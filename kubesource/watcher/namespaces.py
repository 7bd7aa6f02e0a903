"""Cached view of the cluster's namespace set."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from kubesource.observability.logging import get_logger

_log = get_logger("watcher.namespaces")


@dataclass(frozen=True)
class NamespaceListing:
    """Result of one namespace list call."""

    names: frozenset[str]
    resource_version: str = ""


class NamespaceSet:
    """Namespace names with a time-based cache window.

    ``names()`` serves the cached set while it is younger than
    ``cache_duration`` seconds and refreshes lazily otherwise.  ``refresh()``
    always fetches.  At most one fetch runs at a time; a caller that queued
    behind a fetch which started after it asked reuses that result instead of
    fetching again.  A failed fetch leaves the previous set in place.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[NamespaceListing]],
        cache_duration: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._cache_duration = cache_duration
        self._clock = clock
        self._lock = asyncio.Lock()
        self._listing = NamespaceListing(names=frozenset())
        self._last_refreshed: float | None = None
        # Sequence numbers of the most recently started and completed fetch
        self._started_seq = 0
        self._completed_seq = 0

    @property
    def resource_version(self) -> str:
        return self._listing.resource_version

    @property
    def last_refreshed(self) -> float | None:
        return self._last_refreshed

    def expires_in(self) -> float | None:
        """Seconds until the cached set goes stale, or None without a window."""
        if self._cache_duration <= 0 or self._last_refreshed is None:
            return None
        return max(0.0, self._last_refreshed + self._cache_duration - self._clock())

    async def names(self) -> frozenset[str]:
        if self._fresh():
            return self._listing.names
        async with self._lock:
            if not self._fresh():
                await self._fetch_locked()
        return self._listing.names

    async def refresh(self) -> NamespaceListing:
        """Fetch the namespace set now, regardless of the cache window."""
        requested_after = self._started_seq
        async with self._lock:
            if self._completed_seq > requested_after:
                return self._listing
            return await self._fetch_locked()

    def _fresh(self) -> bool:
        if self._last_refreshed is None:
            return False
        return self._clock() - self._last_refreshed < self._cache_duration

    async def _fetch_locked(self) -> NamespaceListing:
        self._started_seq += 1
        seq = self._started_seq
        listing = await self._fetch()
        self._listing = listing
        self._last_refreshed = self._clock()
        self._completed_seq = seq
        _log.debug(
            "namespaces_refreshed",
            count=len(listing.names),
            resource_version=listing.resource_version,
        )
        return listing
