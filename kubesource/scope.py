"""Scope addressing: which cluster, and optionally which namespace.

Scopes are rendered as ``{cluster}`` for cluster-scoped items and
``{cluster}.{namespace}`` otherwise.  Cluster names may themselves contain
dots or a ``host:port`` form, so the namespace is always taken to be the
final dot-delimited segment.
"""

from __future__ import annotations

from dataclasses import dataclass

from kubesource.errors import ScopeError

_SEPARATOR = "."


@dataclass(frozen=True)
class ScopeDetails:
    """Parsed form of a scope string."""

    cluster_name: str
    namespace: str = ""

    def __str__(self) -> str:
        return format_scope(self.cluster_name, self.namespace)

    def with_namespace(self, namespace: str | None) -> ScopeDetails:
        """Return a scope in the same cluster, in *namespace* (or cluster-wide)."""
        return ScopeDetails(cluster_name=self.cluster_name, namespace=namespace or "")


def format_scope(cluster: str, namespace: str | None = None) -> str:
    """Render a scope string; an absent or empty namespace yields the cluster alone."""
    if not cluster:
        raise ScopeError(f"{cluster}{_SEPARATOR}{namespace or ''}", "cluster name is blank")
    if not namespace:
        return cluster
    return f"{cluster}{_SEPARATOR}{namespace}"


def parse_scope(scope: str, namespaced: bool) -> ScopeDetails:
    """Split *scope* into cluster and namespace.

    Raises:
        ScopeError: no separator when one is expected, or an empty cluster
            or namespace segment.
    """
    if namespaced:
        cluster, sep, namespace = scope.rpartition(_SEPARATOR)
        if not sep:
            raise ScopeError(scope, "does not contain a namespace in the format {clusterName}.{namespace}")
        if not namespace:
            raise ScopeError(scope, "namespace segment is blank")
    else:
        cluster, namespace = scope, ""

    if not cluster:
        raise ScopeError(scope, "cluster name is blank")

    return ScopeDetails(cluster_name=cluster, namespace=namespace)
