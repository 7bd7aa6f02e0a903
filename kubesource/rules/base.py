"""Relationship extraction contract and rule registry.

A relationship extractor is a pure function::

    (resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]

It receives the serialised (and, where configured, redacted) resource plus
the scope of the item being built, performs no I/O, retains no state and
signals failure by raising.  Extractors register themselves per kind with
``@relationship_rule("Kind")``; health extractors with ``@health_rule``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from kubesource.adapters.engine import HealthExtractor, RelationshipExtractor
from kubesource.adapters.filters import label_selector_query, match_labels_query
from kubesource.models.items import BlastPropagation, LinkedItemQuery, QueryMethod
from kubesource.scope import ScopeDetails

# Scope used for items that are not owned by any cluster (IP addresses, DNS names)
GLOBAL_SCOPE = "global"
# Scope used for cloud resources whose account/region is unknown
ANY_SCOPE = "*"

RELATIONSHIP_RULES: dict[str, RelationshipExtractor] = {}
HEALTH_RULES: dict[str, HealthExtractor] = {}

_F = TypeVar("_F", bound=Callable[..., Any])


def relationship_rule(kind: str) -> Callable[[_F], _F]:
    """Register the decorated function as the relationship extractor for *kind*."""

    def register(fn: _F) -> _F:
        if kind in RELATIONSHIP_RULES:
            raise ValueError(f"duplicate relationship rule for kind {kind!r}")
        RELATIONSHIP_RULES[kind] = fn
        return fn

    return register


def health_rule(kind: str) -> Callable[[_F], _F]:
    """Register the decorated function as the health extractor for *kind*."""

    def register(fn: _F) -> _F:
        if kind in HEALTH_RULES:
            raise ValueError(f"duplicate health rule for kind {kind!r}")
        HEALTH_RULES[kind] = fn
        return fn

    return register


def blast(in_: bool, out: bool) -> BlastPropagation:
    return BlastPropagation(in_=in_, out=out)


def get_query(kind: str, name: str, scope: str, *, in_: bool, out: bool) -> LinkedItemQuery:
    """Edge to a specific named object."""
    return LinkedItemQuery(
        type=kind,
        method=QueryMethod.GET,
        query=name,
        scope=scope,
        blast_propagation=blast(in_, out),
    )


def search_query(kind: str, query: str, scope: str, *, in_: bool, out: bool) -> LinkedItemQuery:
    """Edge to every object matched by a search *query*."""
    return LinkedItemQuery(
        type=kind,
        method=QueryMethod.SEARCH,
        query=query,
        scope=scope,
        blast_propagation=blast(in_, out),
    )


def selector_search(kind: str, selector: Mapping[str, Any], scope: str, *, in_: bool, out: bool) -> LinkedItemQuery:
    """SEARCH edge for a LabelSelector (``matchLabels``/``matchExpressions``)."""
    return search_query(kind, label_selector_query(selector), scope, in_=in_, out=out)


def labels_search(kind: str, labels: Mapping[str, str], scope: str, *, in_: bool, out: bool) -> LinkedItemQuery:
    """SEARCH edge for a bare ``{key: value}`` selector."""
    return search_query(kind, match_labels_query(labels), scope, in_=in_, out=out)


def object_reference_query(
    ref: Mapping[str, Any],
    parent: ScopeDetails,
    *,
    in_: bool,
    out: bool,
) -> LinkedItemQuery:
    """GET edge for an ObjectReference.

    The reference may point into another namespace; the cluster is always
    the parent's.  A reference without a namespace resolves cluster-wide.
    """
    scope = parent.with_namespace(ref.get("namespace"))
    return get_query(ref["kind"], ref["name"], str(scope), in_=in_, out=out)


def ip_query(address: str) -> LinkedItemQuery:
    return get_query("ip", address, GLOBAL_SCOPE, in_=True, out=True)


def dns_query(hostname: str, method: QueryMethod = QueryMethod.GET) -> LinkedItemQuery:
    return LinkedItemQuery(
        type="dns",
        method=method,
        query=hostname,
        scope=GLOBAL_SCOPE,
        blast_propagation=blast(True, True),
    )
