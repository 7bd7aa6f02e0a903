"""Namespace watch and adapter-batch reconciliation."""

from kubesource.watcher.namespaces import NamespaceListing, NamespaceSet
from kubesource.watcher.reconcile import NamespaceWatcher, SignalKind, WatcherSignal, WatcherState
from kubesource.watcher.source import KubeNamespaceSource

__all__ = [
    "KubeNamespaceSource",
    "NamespaceListing",
    "NamespaceSet",
    "NamespaceWatcher",
    "SignalKind",
    "WatcherSignal",
    "WatcherState",
]
