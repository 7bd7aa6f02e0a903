"""Relationship rules for PersistentVolume and VolumeAttachment."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubesource.models.items import LinkedItemQuery
from kubesource.rules.base import ANY_SCOPE, get_query, object_reference_query, relationship_rule
from kubesource.scope import parse_scope


@relationship_rule("PersistentVolume")
def persistent_volume_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    sd = parse_scope(scope, namespaced=False)
    spec = resource.get("spec") or {}

    if ebs := spec.get("awsElasticBlockStore"):
        queries.append(get_query("ec2-volume", ebs["volumeID"], ANY_SCOPE, in_=True, out=True))

    if spec.get("claimRef"):
        queries.append(object_reference_query(spec["claimRef"], sd, in_=True, out=True))

    if spec.get("storageClassName"):
        queries.append(get_query("StorageClass", spec["storageClassName"], sd.cluster_name, in_=True, out=False))

    return queries


@relationship_rule("VolumeAttachment")
def volume_attachment_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    spec = resource.get("spec") or {}

    pv_name = (spec.get("source") or {}).get("persistentVolumeName")
    if pv_name:
        queries.append(get_query("PersistentVolume", pv_name, scope, in_=True, out=True))

    if spec.get("nodeName"):
        queries.append(get_query("Node", spec["nodeName"], scope, in_=True, out=False))

    return queries
