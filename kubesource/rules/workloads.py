"""Relationship rules for workload controllers and their policies."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubesource.models.items import LinkedItemQuery
from kubesource.rules.base import get_query, labels_search, relationship_rule, selector_search


def _selected_pods(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    selector = (resource.get("spec") or {}).get("selector")
    if not selector:
        return []
    return [selector_search("Pod", selector, scope, in_=True, out=True)]


@relationship_rule("ReplicaSet")
def replica_set_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    return _selected_pods(resource, scope)


@relationship_rule("Job")
def job_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    return _selected_pods(resource, scope)


@relationship_rule("ReplicationController")
def replication_controller_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    # ReplicationControllers use a bare map rather than a LabelSelector
    selector = (resource.get("spec") or {}).get("selector")
    if not selector:
        return []
    return [labels_search("Pod", selector, scope, in_=True, out=True)]


@relationship_rule("StatefulSet")
def stateful_set_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    spec = resource.get("spec") or {}

    if spec.get("selector"):
        queries.append(selector_search("Pod", spec["selector"], scope, in_=True, out=True))
        if spec.get("volumeClaimTemplates"):
            queries.append(selector_search("PersistentVolumeClaim", spec["selector"], scope, in_=True, out=True))

    if spec.get("serviceName"):
        # The governing service gives the pods their network identity
        queries.append(get_query("Service", spec["serviceName"], scope, in_=True, out=False))

    return queries


@relationship_rule("HorizontalPodAutoscaler")
def horizontal_pod_autoscaler_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    target = (resource.get("spec") or {}).get("scaleTargetRef") or {}
    if not target.get("name"):
        return []
    # The autoscaler resizes its target; the target cannot change the autoscaler
    return [get_query(target["kind"], target["name"], scope, in_=False, out=True)]


@relationship_rule("PodDisruptionBudget")
def pod_disruption_budget_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    selector = (resource.get("spec") or {}).get("selector")
    if not selector:
        return []
    return [selector_search("Pod", selector, scope, in_=False, out=True)]
