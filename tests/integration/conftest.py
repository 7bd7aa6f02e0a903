"""Shared fixtures for kubesource integration tests.

Provides scripted stand-ins for the Kubernetes namespace source and the
adapter registry so the watcher and app can be driven through full state
sequences without a cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock

import pytest

from kubesource.adapters.registry import AdapterBatch, AdapterRegistry
from kubesource.models.config import WatchConfig
from kubesource.watcher.namespaces import NamespaceListing, NamespaceSet
from kubesource.watcher.reconcile import NamespaceWatcher, WatcherSignal

# ---------------------------------------------------------------------------
# Namespace source script
# ---------------------------------------------------------------------------

CLOSE = "close"
HANG = "hang"


@dataclass
class StreamScript:
    """One watch subscription: the events it yields, then how it ends.

    ``end`` is CLOSE (server closes the stream), HANG (stays open until the
    test is over) or an exception raised mid-stream.
    """

    events: list[Mapping[str, Any]] = field(default_factory=list)
    end: str | BaseException = CLOSE


def listing(*names: str, rv: str = "1") -> NamespaceListing:
    return NamespaceListing(names=frozenset(names), resource_version=rv)


def event(event_type: str, name: str = "default") -> dict[str, Any]:
    return {"type": event_type, "object": {"metadata": {"name": name}}}


class FakeNamespaceSource:
    """Replays scripted namespace listings and watch subscriptions.

    Each entry of ``listings`` / ``streams`` is consumed by one call; an
    exception entry is raised instead of returned.  The last listing repeats
    once the script runs out.
    """

    def __init__(
        self,
        listings: Iterable[NamespaceListing | BaseException],
        streams: Iterable[StreamScript | BaseException],
    ) -> None:
        self._listings = list(listings)
        self._streams = list(streams)
        self.list_calls = 0
        self.opened_at: list[str] = []
        self._release = asyncio.Event()

    async def list_namespaces(self) -> NamespaceListing:
        self.list_calls += 1
        result = self._listings.pop(0) if len(self._listings) > 1 else self._listings[0]
        if isinstance(result, BaseException):
            raise result
        return result

    async def open_watch(self, resource_version: str) -> AsyncIterator[Mapping[str, Any]]:
        self.opened_at.append(resource_version)
        if not self._streams:
            raise AssertionError("watch opened more often than scripted")
        script = self._streams.pop(0)
        if isinstance(script, BaseException):
            raise script
        return self._play(script)

    async def _play(self, script: StreamScript) -> AsyncIterator[Mapping[str, Any]]:
        for ev in script.events:
            yield ev
        if script.end == HANG:
            await self._release.wait()
        elif isinstance(script.end, BaseException):
            raise script.end


class FakeRegistry:
    """Builds empty batches, remembering the namespaces of each build."""

    def __init__(self) -> None:
        self.builds: list[tuple[str, ...]] = []

    def build(self, namespaces: Iterable[str]) -> AdapterBatch:
        ns = tuple(sorted(set(namespaces)))
        self.builds.append(ns)
        return AdapterBatch(adapters=(), namespaces=ns, generation=len(self.builds))


class FailingRegistry(FakeRegistry):
    """Builds normally ``healthy_builds`` times, then raises on every build."""

    def __init__(self, healthy_builds: int) -> None:
        super().__init__()
        self._healthy_builds = healthy_builds

    def build(self, namespaces: Iterable[str]) -> AdapterBatch:
        if len(self.builds) >= self._healthy_builds:
            raise RuntimeError("registry exploded")
        return super().build(namespaces)


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def watch_config() -> WatchConfig:
    return WatchConfig(max_reconnect_failures=3, backoff_base=1.0, backoff_max=30.0, jitter_ratio=0.5)


@pytest.fixture
def signals() -> asyncio.Queue[WatcherSignal]:
    return asyncio.Queue(maxsize=16)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_watcher(
    watch_config: WatchConfig,
    signals: asyncio.Queue[WatcherSignal],
    registry: FakeRegistry,
    sleep: RecordingSleep,
):
    """Factory: build a NamespaceWatcher over a scripted source (no jitter)."""

    def _make(
        source: FakeNamespaceSource,
        config: WatchConfig | None = None,
        *,
        batches: FakeRegistry | None = None,
        cache_duration: float = 60,
    ) -> NamespaceWatcher:
        namespaces = NamespaceSet(source.list_namespaces, cache_duration=cache_duration)
        return NamespaceWatcher(
            source,
            namespaces,
            batches if batches is not None else registry,
            signals,
            config or watch_config,
            sleep=sleep,
            jitter=lambda low, high: 0.0,
        )

    return _make


@pytest.fixture
def api_client() -> MagicMock:
    """ApiClient stand-in whose serialiser passes plain dicts through."""
    client = MagicMock()
    client.sanitize_for_serialization.side_effect = lambda obj: obj
    return client


@pytest.fixture
def adapter_registry(api_client: MagicMock) -> AdapterRegistry:
    return AdapterRegistry(api_client, "c1", timeout=2.0)
