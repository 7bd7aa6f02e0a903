"""Integration tests for the app's signal handling and entrypoint."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

import kubesource.app as app_module
from kubesource.adapters.engine import ResourceAdapter
from kubesource.adapters.registry import AdapterBatch
from kubesource.app import KubeSourceApp, main
from kubesource.watcher.reconcile import SignalKind, WatcherSignal

pytestmark = pytest.mark.integration


def _batch(generation: int, *namespaces: str) -> AdapterBatch:
    return AdapterBatch(adapters=(), namespaces=tuple(namespaces), generation=generation)


def _rebuilt(generation: int, *namespaces: str) -> WatcherSignal:
    return WatcherSignal(kind=SignalKind.REBUILT, batch=_batch(generation, *namespaces))


class _RecordingHost:
    def __init__(self) -> None:
        self.replacements: list[Sequence[ResourceAdapter]] = []

    def replace_adapters(self, adapters: Sequence[ResourceAdapter]) -> None:
        self.replacements.append(adapters)


def _app_with_queue(host=None, *signals: WatcherSignal) -> KubeSourceApp:
    app = KubeSourceApp(host=host)
    queue: asyncio.Queue[WatcherSignal] = asyncio.Queue()
    for sig in signals:
        queue.put_nowait(sig)
    app._signals = queue
    return app


# ---------------------------------------------------------------------------
# Signal handling
# ---------------------------------------------------------------------------


class TestHandleSignal:
    async def test_rebuilt_swaps_batch(self) -> None:
        app = KubeSourceApp()
        assert app.batch is None
        assert await app.handle_signal(_rebuilt(1, "default"))
        assert app.batch is not None and app.batch.generation == 1
        assert await app.handle_signal(_rebuilt(2, "default", "prod"))
        assert app.batch.generation == 2

    async def test_host_notified(self) -> None:
        host = _RecordingHost()
        app = KubeSourceApp(host=host)
        await app.handle_signal(_rebuilt(1, "default"))
        assert host.replacements == [()]

    async def test_async_host_awaited(self) -> None:
        host = MagicMock()
        host.replace_adapters = AsyncMock()
        app = KubeSourceApp(host=host)
        await app.handle_signal(_rebuilt(1, "default"))
        host.replace_adapters.assert_awaited_once_with(())

    async def test_fatal_stops(self) -> None:
        app = KubeSourceApp()
        assert not await app.handle_signal(WatcherSignal(kind=SignalKind.FATAL, reason="gone"))


class TestRun:
    async def test_fatal_returns_exit_code_one(self) -> None:
        app = _app_with_queue(
            None,
            _rebuilt(1, "default"),
            WatcherSignal(kind=SignalKind.FATAL, reason="watch reopen failed"),
        )
        assert await asyncio.wait_for(app.run(), timeout=2.0) == 1
        assert app.batch is not None and app.batch.generation == 1

    async def test_stop_request_returns_zero(self) -> None:
        app = _app_with_queue(None, _rebuilt(1, "default"))
        task = asyncio.create_task(app.run())
        await asyncio.sleep(0.01)
        app.request_stop()
        assert await asyncio.wait_for(task, timeout=2.0) == 0
        assert app.batch is not None

    async def test_watcher_crash_returns_exit_code_one(self) -> None:
        async def crash() -> None:
            raise RuntimeError("boom")

        app = _app_with_queue(None)
        app._watcher_task = asyncio.create_task(crash())
        assert await asyncio.wait_for(app.run(), timeout=2.0) == 1

    async def test_exited_watcher_batches_still_applied(self) -> None:
        app = _app_with_queue(None)

        async def finish() -> None:
            assert app._signals is not None
            app._signals.put_nowait(_rebuilt(3, "default"))

        app._watcher_task = asyncio.create_task(finish())
        assert await asyncio.wait_for(app.run(), timeout=2.0) == 1
        assert app.batch is not None and app.batch.generation == 3

    async def test_stop_on_unstarted_app_is_noop(self) -> None:
        await KubeSourceApp().stop()


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


class TestMain:
    async def test_fatal_exits_non_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_start(self: KubeSourceApp) -> None:
            self._signals = asyncio.Queue()
            self._signals.put_nowait(WatcherSignal(kind=SignalKind.FATAL, reason="watch reopen failed"))

        monkeypatch.setattr(KubeSourceApp, "start", fake_start)
        with pytest.raises(SystemExit) as info:
            await main()
        assert info.value.code == 1

    async def test_startup_failure_exits_non_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_start(self: KubeSourceApp) -> None:
            raise app_module._ComponentError("k8s_client", RuntimeError("no kubeconfig"))

        monkeypatch.setattr(KubeSourceApp, "start", failing_start)
        with pytest.raises(SystemExit) as info:
            await main()
        assert info.value.code == 1
