"""Relationship rules for core/v1 kinds: Pod, Service, Endpoints, ServiceAccount, Node."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubesource.models.items import LinkedItemQuery
from kubesource.rules.base import (
    ANY_SCOPE,
    dns_query,
    get_query,
    ip_query,
    labels_search,
    object_reference_query,
    relationship_rule,
)
from kubesource.scope import parse_scope

# Prefix of EBS CSI volume handles reported in Node.status.volumesAttached
_EBS_CSI_PREFIX = "kubernetes.io/csi/ebs.csi.aws.com"


def _consumed(kind: str, name: str, scope: str) -> LinkedItemQuery:
    """Edge to something a pod consumes: it can break the pod, the pod cannot change it."""
    return get_query(kind, name, scope, in_=True, out=False)


@relationship_rule("Pod")
def pod_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    sd = parse_scope(scope, namespaced=True)
    spec = resource.get("spec") or {}
    status = resource.get("status") or {}

    if spec.get("serviceAccountName"):
        queries.append(_consumed("ServiceAccount", spec["serviceAccountName"], scope))

    for vol in spec.get("volumes") or []:
        if claim := vol.get("persistentVolumeClaim"):
            # The pod can affect the claim too, e.g. by filling it up
            queries.append(get_query("PersistentVolumeClaim", claim["claimName"], scope, in_=True, out=True))
        if secret := vol.get("secret"):
            queries.append(_consumed("Secret", secret["secretName"], scope))
        if config_map := vol.get("configMap"):
            queries.append(_consumed("ConfigMap", config_map["name"], scope))
        for source in (vol.get("projected") or {}).get("sources") or []:
            if source.get("configMap"):
                queries.append(_consumed("ConfigMap", source["configMap"]["name"], scope))
            if source.get("secret"):
                queries.append(_consumed("Secret", source["secret"]["name"], scope))

    for container in [*(spec.get("initContainers") or []), *(spec.get("containers") or [])]:
        for env in container.get("env") or []:
            value_from = env.get("valueFrom") or {}
            if value_from.get("secretKeyRef"):
                queries.append(_consumed("Secret", value_from["secretKeyRef"]["name"], scope))
            if value_from.get("configMapKeyRef"):
                queries.append(_consumed("ConfigMap", value_from["configMapKeyRef"]["name"], scope))
        for env_from in container.get("envFrom") or []:
            if env_from.get("secretRef"):
                queries.append(_consumed("Secret", env_from["secretRef"]["name"], scope))
            if env_from.get("configMapRef"):
                queries.append(_consumed("ConfigMap", env_from["configMapRef"]["name"], scope))

    if spec.get("priorityClassName"):
        # A lower priority can leave the pod pending indefinitely
        queries.append(_consumed("PriorityClass", spec["priorityClassName"], sd.cluster_name))

    if spec.get("nodeName"):
        queries.append(_consumed("Node", spec["nodeName"], sd.cluster_name))

    pod_ips = [entry.get("ip") for entry in status.get("podIPs") or []]
    if not pod_ips and status.get("podIP"):
        pod_ips = [status["podIP"]]
    queries.extend(ip_query(ip) for ip in pod_ips if ip)

    return queries


@relationship_rule("Service")
def service_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    metadata = resource.get("metadata") or {}
    spec = resource.get("spec") or {}
    status = resource.get("status") or {}

    if spec.get("selector"):
        queries.append(labels_search("Pod", spec["selector"], scope, in_=True, out=True))

    ips: list[str] = list(spec.get("clusterIPs") or [])
    if not ips and spec.get("clusterIP"):
        ips.append(spec["clusterIP"])
    ips.extend(spec.get("externalIPs") or [])
    if spec.get("loadBalancerIP"):
        ips.append(spec["loadBalancerIP"])
    # Headless services report "None" as their cluster IP
    queries.extend(ip_query(ip) for ip in ips if ip and ip != "None")

    if spec.get("externalName"):
        queries.append(dns_query(spec["externalName"]))

    if metadata.get("name"):
        queries.append(get_query("Endpoints", metadata["name"], scope, in_=True, out=True))

    for ingress in (status.get("loadBalancer") or {}).get("ingress") or []:
        if ingress.get("ip"):
            queries.append(ip_query(ingress["ip"]))
        if ingress.get("hostname"):
            queries.append(dns_query(ingress["hostname"]))

    return queries


@relationship_rule("Endpoints")
def endpoints_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    sd = parse_scope(scope, namespaced=True)

    for subset in resource.get("subsets") or []:
        for address in [*(subset.get("addresses") or []), *(subset.get("notReadyAddresses") or [])]:
            if address.get("hostname"):
                queries.append(dns_query(address["hostname"]))
            if address.get("nodeName"):
                queries.append(get_query("Node", address["nodeName"], sd.cluster_name, in_=True, out=False))
            if address.get("ip"):
                queries.append(ip_query(address["ip"]))
            if address.get("targetRef"):
                queries.append(object_reference_query(address["targetRef"], sd, in_=True, out=True))

    return queries


@relationship_rule("ServiceAccount")
def service_account_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    for secret in [*(resource.get("secrets") or []), *(resource.get("imagePullSecrets") or [])]:
        if secret.get("name"):
            queries.append(_consumed("Secret", secret["name"], scope))
    return queries


@relationship_rule("Node")
def node_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    status = resource.get("status") or {}

    for addr in status.get("addresses") or []:
        kind = addr.get("type")
        if kind == "ExternalDNS":
            queries.append(dns_query(addr["address"]))
        elif kind in ("ExternalIP", "InternalIP"):
            queries.append(ip_query(addr["address"]))

    for vol in status.get("volumesAttached") or []:
        name = vol.get("name", "")
        if name.startswith(_EBS_CSI_PREFIX):
            sections = name.split("^")
            if len(sections) == 2:
                queries.append(get_query("ec2-volume", sections[1], ANY_SCOPE, in_=True, out=True))

    return queries
