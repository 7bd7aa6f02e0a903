"""Relationship rules for Ingress, NetworkPolicy and EndpointSlice."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubesource.models.items import LinkedItemQuery, QueryMethod
from kubesource.rules.base import (
    dns_query,
    get_query,
    ip_query,
    object_reference_query,
    relationship_rule,
    selector_search,
)
from kubesource.scope import parse_scope

_IP_ADDRESS_TYPES = frozenset({"IPv4", "IPv6"})


def _backend_queries(backend: Mapping[str, Any], scope: str, *, resource_out_only: bool) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    if service := backend.get("service"):
        queries.append(get_query("Service", service["name"], scope, in_=True, out=False))
    if ref := backend.get("resource"):
        queries.append(get_query(ref["kind"], ref["name"], scope, in_=not resource_out_only, out=True))
    return queries


@relationship_rule("Ingress")
def ingress_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    sd = parse_scope(scope, namespaced=True)
    spec = resource.get("spec") or {}

    if spec.get("ingressClassName"):
        # IngressClass is cluster-scoped
        queries.append(get_query("IngressClass", spec["ingressClassName"], sd.cluster_name, in_=True, out=False))

    if backend := spec.get("defaultBackend"):
        queries.extend(_backend_queries(backend, scope, resource_out_only=True))

    for rule in spec.get("rules") or []:
        if rule.get("host"):
            # Hosts may be wildcards, so search rather than get
            queries.append(dns_query(rule["host"], method=QueryMethod.SEARCH))
        for path in (rule.get("http") or {}).get("paths") or []:
            queries.extend(_backend_queries(path.get("backend") or {}, scope, resource_out_only=False))

    return queries


@relationship_rule("NetworkPolicy")
def network_policy_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    spec = resource.get("spec") or {}
    # An empty podSelector selects every pod in the namespace
    queries = [selector_search("Pod", spec.get("podSelector") or {}, scope, in_=False, out=True)]

    peers: list[Mapping[str, Any]] = []
    for ingress in spec.get("ingress") or []:
        peers.extend(ingress.get("from") or [])
    for egress in spec.get("egress") or []:
        peers.extend(egress.get("to") or [])

    for peer in peers:
        if peer.get("podSelector") is not None:
            queries.append(selector_search("Pod", peer["podSelector"], scope, in_=False, out=True))

    return queries


@relationship_rule("EndpointSlice")
def endpoint_slice_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    sd = parse_scope(scope, namespaced=True)
    address_type = resource.get("addressType")

    for endpoint in resource.get("endpoints") or []:
        if endpoint.get("hostname"):
            queries.append(dns_query(endpoint["hostname"]))
        if endpoint.get("nodeName"):
            queries.append(get_query("Node", endpoint["nodeName"], sd.cluster_name, in_=True, out=False))
        if endpoint.get("targetRef"):
            queries.append(object_reference_query(endpoint["targetRef"], sd, in_=True, out=True))

        for address in endpoint.get("addresses") or []:
            if address_type in _IP_ADDRESS_TYPES:
                queries.append(ip_query(address))
            elif address_type == "FQDN":
                queries.append(dns_query(address))

    return queries
