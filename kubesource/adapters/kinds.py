"""Kubernetes kind table and the kubernetes_asyncio accessor binding.

Each ``KindSpec`` names the API group class and the snake-case resource name
used in kubernetes_asyncio's generated method names, e.g. ``pod`` maps to
``CoreV1Api.read_namespaced_pod`` / ``CoreV1Api.list_namespaced_pod``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubernetes_asyncio import client

from kubesource.adapters.engine import Redactor
from kubesource.adapters.filters import ListOptions
from kubesource.adapters.redaction import redact_secret


@dataclass(frozen=True)
class KindSpec:
    """Static description of one Kubernetes kind."""

    kind: str
    api_class: type
    resource: str
    namespaced: bool = True
    redactor: Redactor | None = None


class KubeAccessor:
    """ItemAccessor over one kubernetes_asyncio API object.

    Bound to a namespace for namespaced kinds, or to the whole cluster when
    ``namespace`` is None.  Results are returned as the camelCase dicts
    produced by ``ApiClient.sanitize_for_serialization``.
    """

    def __init__(self, api: Any, resource: str, namespace: str | None = None) -> None:
        self._api = api
        self._resource = resource
        self._namespace = namespace

    async def get(self, name: str) -> Mapping[str, Any]:
        if self._namespace is None:
            obj = await getattr(self._api, f"read_{self._resource}")(name)
        else:
            obj = await getattr(self._api, f"read_namespaced_{self._resource}")(name, self._namespace)
        return self._serialize(obj)

    async def list(self, options: ListOptions) -> Mapping[str, Any]:
        kwargs = options.to_kwargs()
        if self._namespace is None:
            obj = await getattr(self._api, f"list_{self._resource}")(**kwargs)
        else:
            obj = await getattr(self._api, f"list_namespaced_{self._resource}")(self._namespace, **kwargs)
        return self._serialize(obj)

    def _serialize(self, obj: Any) -> Mapping[str, Any]:
        return self._api.api_client.sanitize_for_serialization(obj)


KIND_SPECS: tuple[KindSpec, ...] = (
    # core/v1
    KindSpec("Pod", client.CoreV1Api, "pod"),
    KindSpec("Service", client.CoreV1Api, "service"),
    KindSpec("PersistentVolumeClaim", client.CoreV1Api, "persistent_volume_claim"),
    KindSpec("Secret", client.CoreV1Api, "secret", redactor=redact_secret),
    KindSpec("Endpoints", client.CoreV1Api, "endpoints"),
    KindSpec("ServiceAccount", client.CoreV1Api, "service_account"),
    KindSpec("LimitRange", client.CoreV1Api, "limit_range"),
    KindSpec("ReplicationController", client.CoreV1Api, "replication_controller"),
    KindSpec("ResourceQuota", client.CoreV1Api, "resource_quota"),
    KindSpec("ConfigMap", client.CoreV1Api, "config_map"),
    KindSpec("Node", client.CoreV1Api, "node", namespaced=False),
    KindSpec("PersistentVolume", client.CoreV1Api, "persistent_volume", namespaced=False),
    # apps/v1
    KindSpec("DaemonSet", client.AppsV1Api, "daemon_set"),
    KindSpec("ReplicaSet", client.AppsV1Api, "replica_set"),
    KindSpec("Deployment", client.AppsV1Api, "deployment"),
    KindSpec("StatefulSet", client.AppsV1Api, "stateful_set"),
    # batch/v1
    KindSpec("Job", client.BatchV1Api, "job"),
    KindSpec("CronJob", client.BatchV1Api, "cron_job"),
    # autoscaling/v2
    KindSpec("HorizontalPodAutoscaler", client.AutoscalingV2Api, "horizontal_pod_autoscaler"),
    # networking.k8s.io/v1
    KindSpec("Ingress", client.NetworkingV1Api, "ingress"),
    KindSpec("NetworkPolicy", client.NetworkingV1Api, "network_policy"),
    # policy/v1
    KindSpec("PodDisruptionBudget", client.PolicyV1Api, "pod_disruption_budget"),
    # rbac.authorization.k8s.io/v1
    KindSpec("Role", client.RbacAuthorizationV1Api, "role"),
    KindSpec("RoleBinding", client.RbacAuthorizationV1Api, "role_binding"),
    KindSpec("ClusterRole", client.RbacAuthorizationV1Api, "cluster_role", namespaced=False),
    KindSpec("ClusterRoleBinding", client.RbacAuthorizationV1Api, "cluster_role_binding", namespaced=False),
    # discovery.k8s.io/v1
    KindSpec("EndpointSlice", client.DiscoveryV1Api, "endpoint_slice"),
    # storage.k8s.io/v1
    KindSpec("StorageClass", client.StorageV1Api, "storage_class", namespaced=False),
    KindSpec("VolumeAttachment", client.StorageV1Api, "volume_attachment", namespaced=False),
    # scheduling.k8s.io/v1
    KindSpec("PriorityClass", client.SchedulingV1Api, "priority_class", namespaced=False),
)
