"""Application bootstrap for kubesource.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → metrics → K8s client → adapter registry
              → namespace source/set → namespace watcher

The watcher runs as a background task and talks to the foreground only
through the signal queue.  ``run()`` consumes that queue: every ``REBUILT``
signal replaces the served adapter batch and a ``FATAL`` signal ends the run
with a non-zero exit code.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

import kubernetes_asyncio.config as k8s_config
from kubernetes_asyncio import client as k8s_client
from prometheus_client import start_http_server

from kubesource.adapters.engine import ResourceAdapter
from kubesource.adapters.registry import AdapterBatch, AdapterRegistry
from kubesource.config import cluster_name_from_host, load_config
from kubesource.models.config import KubeSourceConfig
from kubesource.observability.logging import bind_cluster, get_logger, setup_logging
from kubesource.observability.metrics import adapters_registered
from kubesource.watcher import (
    KubeNamespaceSource,
    NamespaceSet,
    NamespaceWatcher,
    SignalKind,
    WatcherSignal,
)

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class AdapterHost(Protocol):
    """Discovery engine that serves the adapters; notified on every batch swap."""

    def replace_adapters(self, adapters: Sequence[ResourceAdapter]) -> Any: ...


class KubeSourceApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or has
    already stopped.
    """

    def __init__(self, host: AdapterHost | None = None) -> None:
        self.config: KubeSourceConfig | None = None
        self._host = host

        self._api_client: k8s_client.ApiClient | None = None
        self._cluster_name = ""
        self._registry: AdapterRegistry | None = None
        self._namespace_set: NamespaceSet | None = None
        self._watcher: NamespaceWatcher | None = None
        self._watcher_task: asyncio.Task[None] | None = None
        self._signals: asyncio.Queue[WatcherSignal] | None = None
        self._batch: AdapterBatch | None = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._stop_requested = asyncio.Event()
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def batch(self) -> AdapterBatch | None:
        """The authoritative adapter batch; None until the first rebuild."""
        return self._batch

    @property
    def cluster_name(self) -> str:
        return self._cluster_name

    @property
    def watcher(self) -> NamespaceWatcher | None:
        return self._watcher

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) re-raises this as a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubesource starting", version=_kubesource_version())

        # --- 3. Metrics -------------------------------------------------
        self._start_metrics()

        # --- 4. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 5. Adapter registry -----------------------------------------
        self._start_registry()

        # --- 6. Namespace watcher ----------------------------------------
        self._start_watcher()

        self._running = True
        self._log.info("kubesource started", cluster=self._cluster_name)

    def _start_metrics(self) -> None:
        assert self._log is not None
        assert self.config is not None
        port = self.config.metrics.port
        if port <= 0:
            self._log.debug("metrics listener disabled")
            return
        try:
            start_http_server(port)
        except OSError as exc:
            raise _ComponentError("metrics", exc) from exc
        self._log.info("metrics listener started", port=port)

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        kubeconfig = self.config.kubernetes.kubeconfig
        try:
            if kubeconfig:
                await k8s_config.load_kube_config(config_file=kubeconfig)
                self._log.info("k8s client configured from kubeconfig", path=kubeconfig)
            else:
                try:
                    # load_incluster_config() is synchronous in kubernetes-asyncio
                    k8s_config.load_incluster_config()
                    self._log.info("k8s client configured from in-cluster service account")
                except k8s_config.ConfigException:
                    await k8s_config.load_kube_config()
                    self._log.info("k8s client configured from kubeconfig")

            self._api_client = k8s_client.ApiClient()
            self._cluster_name = self.config.cluster_name or cluster_name_from_host(
                self._api_client.configuration.host
            )
            bind_cluster(self._cluster_name)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _start_registry(self) -> None:
        assert self.config is not None
        assert self._api_client is not None
        self._registry = AdapterRegistry(
            self._api_client,
            self._cluster_name,
            timeout=self.config.kubernetes.api_timeout,
        )

    def _start_watcher(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._api_client is not None
        assert self._registry is not None

        source = KubeNamespaceSource(
            k8s_client.CoreV1Api(self._api_client),
            timeout=self.config.kubernetes.api_timeout,
        )
        self._namespace_set = NamespaceSet(
            source.list_namespaces,
            cache_duration=self.config.namespaces.cache_seconds,
        )
        self._signals = asyncio.Queue(maxsize=self.config.watch.signal_queue_size)
        self._watcher = NamespaceWatcher(
            source,
            self._namespace_set,
            self._registry,
            self._signals,
            self.config.watch,
        )
        task = asyncio.create_task(self._watcher.run(), name="namespace-watcher")
        self._background_tasks.append(task)
        self._watcher_task = task
        self._log.info("namespace watcher started")

    # ------------------------------------------------------------------
    # Foreground loop
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Consume watcher signals until FATAL or a stop request.

        The watcher task ending without a FATAL signal is treated as FATAL.
        Returns the process exit code: 1 after FATAL, 0 otherwise.
        """
        assert self._signals is not None
        while not self._stop_requested.is_set():
            getter = asyncio.create_task(self._signals.get())
            stopper = asyncio.create_task(self._stop_requested.wait())
            waiting: set[asyncio.Future[Any]] = {getter, stopper}
            if self._watcher_task is not None:
                waiting.add(self._watcher_task)
            try:
                await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (getter, stopper):
                    if not task.done():
                        task.cancel()
            if getter.done() and not getter.cancelled():
                if not await self.handle_signal(getter.result()):
                    return 1
            elif self._watcher_task is not None and self._watcher_task.done():
                return await self._watcher_exited(self._watcher_task)
        return 0

    async def _watcher_exited(self, task: asyncio.Task[None]) -> int:
        """Apply what the finished watcher left queued, then report it as FATAL."""
        assert self._signals is not None
        while not self._signals.empty():
            if not await self.handle_signal(self._signals.get_nowait()):
                return 1
        if self._stop_requested.is_set():
            return 0
        log = self._log or get_logger("app")
        error = None if task.cancelled() else task.exception()
        log.critical(
            "namespace watcher exited without a fatal signal",
            error=str(error) if error is not None else None,
        )
        return 1

    def request_stop(self) -> None:
        self._stop_requested.set()

    async def handle_signal(self, sig: WatcherSignal) -> bool:
        """Apply one watcher signal.  Returns False when the app must stop."""
        log = self._log or get_logger("app")
        if sig.kind is SignalKind.FATAL:
            log.critical("namespace watcher failed", reason=sig.reason)
            return False

        assert sig.batch is not None
        # In-flight calls keep the adapters they started with
        self._batch = sig.batch
        adapters_registered.set(len(sig.batch.adapters))
        log.info(
            "adapter batch swapped",
            generation=sig.batch.generation,
            adapters=len(sig.batch.adapters),
            namespaces=len(sig.batch.namespaces),
        )
        if self._host is not None:
            result = self._host.replace_adapters(sig.batch.adapters)
            if asyncio.iscoroutine(result):
                await result
        return True

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Cancel the watcher and close the Kubernetes client."""
        if not self._running and self._log is None:
            # Never started
            return

        log = self._log or get_logger("app")
        log.info("kubesource shutting down")
        self._running = False
        self._stop_requested.set()

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._stop_k8s_client()
        log.info("kubesource stopped")

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await asyncio.wait_for(self._api_client.close(), timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("k8s client close timed out", timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _kubesource_version() -> str:
    from kubesource import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown or FATAL."""
    app = KubeSourceApp()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.request_stop)

    exit_code = 0
    try:
        await app.start()
        exit_code = await app.run()
    except _ComponentError as exc:
        # A mandatory component failed; log and exit non-zero
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        exit_code = 1
    finally:
        await app.stop()

    if exit_code:
        raise SystemExit(exit_code)


def run_cli() -> None:
    """Console-script entry point."""
    asyncio.run(main())
