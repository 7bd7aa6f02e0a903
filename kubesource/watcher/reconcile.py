"""Namespace reconciliation loop.

Keeps the served adapter batch in step with the cluster's namespaces::

    INITIALIZING -> RUNNING <-> RECOVERING -> FATAL

The loop runs as a single background task and reports to the foreground only
through a bounded signal queue: ``REBUILT`` carries each new batch, and one
``FATAL`` is emitted before the loop stops for good.
"""

from __future__ import annotations

import asyncio
import enum
import random
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
from kubernetes_asyncio.client.exceptions import ApiException

from kubesource.adapters.registry import AdapterBatch
from kubesource.models.config import WatchConfig
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import (
    adapter_rebuilds_total,
    watch_fatal_total,
    watch_reconnect_failures_total,
)
from kubesource.watcher.namespaces import NamespaceListing, NamespaceSet

_log = get_logger("watcher.reconcile")

# Notification types that carry no change
_KEEPALIVE_TYPES = frozenset({"", "BOOKMARK"})


class WatcherState(enum.StrEnum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    RECOVERING = "recovering"
    FATAL = "fatal"


class SignalKind(enum.StrEnum):
    REBUILT = "rebuilt"
    FATAL = "fatal"


@dataclass(frozen=True)
class WatcherSignal:
    kind: SignalKind
    batch: AdapterBatch | None = None
    reason: str = ""


class NamespaceSource(Protocol):
    async def list_namespaces(self) -> NamespaceListing: ...

    async def open_watch(self, resource_version: str) -> AsyncIterator[Mapping[str, Any]]: ...


class BatchBuilder(Protocol):
    def build(self, namespaces: Iterable[str]) -> AdapterBatch: ...


def is_transient(exc: BaseException) -> bool:
    """Whether a failure to reopen the watch is worth retrying.

    Network-level failures and timeouts are transient, as are API server
    responses that ask the client to come back later (429, 5xx).
    """
    if isinstance(exc, aiohttp.ClientConnectionError | OSError | TimeoutError):
        return True
    if isinstance(exc, ApiException):
        return exc.status is not None and (exc.status == 429 or exc.status >= 500)
    return False


class NamespaceWatcher:
    """Watches namespaces and emits a rebuilt adapter batch on every change."""

    def __init__(
        self,
        source: NamespaceSource,
        namespaces: NamespaceSet,
        registry: BatchBuilder,
        signals: asyncio.Queue[WatcherSignal],
        config: WatchConfig,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self._source = source
        self._namespaces = namespaces
        self._registry = registry
        self._signals = signals
        self._config = config
        self._sleep = sleep
        self._jitter = jitter

        self._state = WatcherState.INITIALIZING
        self._failures = 0
        self._rebuilds = 0
        # Namespaces of the most recently emitted batch
        self._served: frozenset[str] = frozenset()

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def rebuild_count(self) -> int:
        return self._rebuilds

    async def run(self) -> None:
        """Run until FATAL.  Cancellation stops the loop without a FATAL signal.

        An unexpected error anywhere in the loop also ends in FATAL.
        """
        try:
            stream = await self._initialize()
            while stream is not None:
                await self._consume(stream)
                self._state = WatcherState.RECOVERING
                stream = await self._recover()
        except Exception as exc:
            if self._state is not WatcherState.FATAL:
                _log.error(
                    "namespace_watcher_crashed",
                    state=str(self._state),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await self._fatal(f"unexpected failure: {exc}")

    def backoff_delay(self, failures: int) -> float:
        """Sleep before the next reopen after *failures* consecutive failures."""
        cfg = self._config
        delay = min(cfg.backoff_max, cfg.backoff_base * 2 ** (failures - 1))
        return delay + self._jitter(0.0, delay * cfg.jitter_ratio)

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _initialize(self) -> AsyncIterator[Mapping[str, Any]] | None:
        stream: AsyncIterator[Mapping[str, Any]] | None = None
        try:
            listing = await self._namespaces.refresh()
            stream = await self._source.open_watch(listing.resource_version)
            await self._rebuild(listing.names)
        except Exception as exc:
            if stream is not None:
                await _close_stream(stream)
            await self._fatal(f"initialisation failed: {exc}")
            return None
        self._state = WatcherState.RUNNING
        _log.info("namespace_watcher_running", namespaces=len(listing.names))
        return stream

    async def _consume(self, stream: AsyncIterator[Mapping[str, Any]]) -> None:
        """Apply watch events until the stream ends or fails.

        Whenever the cached namespace set goes stale with no event in
        between, it is re-read and a change the stream never reported still
        triggers a rebuild.
        """
        pending: asyncio.Task[Mapping[str, Any] | None] | None = None
        try:
            while True:
                if pending is None:
                    pending = asyncio.create_task(_next_event(stream))
                done, _ = await asyncio.wait({pending}, timeout=self._namespaces.expires_in())
                if not done:
                    await self._resync()
                    continue
                event = pending.result()
                pending = None
                if event is None:
                    break
                event_type = event.get("type") or ""
                if event_type in _KEEPALIVE_TYPES:
                    continue
                name = ((event.get("object") or {}).get("metadata") or {}).get("name", "")
                _log.info("namespace_changed", type=event_type, namespace=name)
                listing = await self._namespaces.refresh()
                await self._rebuild(listing.names)
            _log.warning("namespace_watch_closed")
        except Exception as exc:
            _log.warning("namespace_watch_failed", error=str(exc), error_type=type(exc).__name__)
        finally:
            if pending is not None:
                pending.cancel()
                await asyncio.gather(pending, return_exceptions=True)
            await _close_stream(stream)

    async def _recover(self) -> AsyncIterator[Mapping[str, Any]] | None:
        while True:
            try:
                listing = await self._namespaces.refresh()
                stream = await self._source.open_watch(listing.resource_version)
            except Exception as exc:
                transient = is_transient(exc)
                watch_reconnect_failures_total.labels(transient=str(transient).lower()).inc()
                if not transient:
                    await self._fatal(f"watch reopen failed: {exc}")
                    return None
                self._failures += 1
                if self._failures > self._config.max_reconnect_failures:
                    await self._fatal(f"watch reopen failed {self._failures} times in a row: {exc}")
                    return None
                delay = self.backoff_delay(self._failures)
                _log.warning(
                    "namespace_watch_reopen_failed",
                    attempt=self._failures,
                    retry_in=round(delay, 3),
                    error=str(exc),
                )
                await self._sleep(delay)
                continue

            self._failures = 0
            try:
                await self._rebuild(listing.names)
            except Exception as exc:
                await _close_stream(stream)
                await self._fatal(f"adapter rebuild failed: {exc}")
                return None
            self._state = WatcherState.RUNNING
            _log.info("namespace_watch_recovered", namespaces=len(listing.names))
            return stream

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resync(self) -> None:
        names = await self._namespaces.names()
        if names == self._served:
            return
        _log.info(
            "namespace_drift_detected",
            added=sorted(names - self._served),
            removed=sorted(self._served - names),
        )
        await self._rebuild(names)

    async def _rebuild(self, names: Iterable[str]) -> None:
        served = frozenset(names)
        batch = self._registry.build(served)
        self._served = served
        self._rebuilds += 1
        adapter_rebuilds_total.inc()
        await self._signals.put(WatcherSignal(kind=SignalKind.REBUILT, batch=batch))

    async def _fatal(self, reason: str) -> None:
        self._state = WatcherState.FATAL
        watch_fatal_total.inc()
        _log.error("namespace_watcher_fatal", reason=reason, failures=self._failures)
        await self._signals.put(WatcherSignal(kind=SignalKind.FATAL, reason=reason))


async def _close_stream(stream: AsyncIterator[Mapping[str, Any]]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


async def _next_event(stream: AsyncIterator[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    """The next event, or None once the stream has ended."""
    return await anext(stream, None)
