"""Health rules: map resource status onto an item health value."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubesource.models.items import Health
from kubesource.rules.base import health_rule

_POD_PHASE_HEALTH = {
    "Pending": Health.PENDING,
    "Running": Health.OK,
    "Succeeded": Health.OK,
    "Failed": Health.ERROR,
    "Unknown": Health.UNKNOWN,
}


@health_rule("Pod")
def pod_health(resource: Mapping[str, Any]) -> Health | None:
    phase = (resource.get("status") or {}).get("phase")
    return _POD_PHASE_HEALTH.get(phase) if phase else None


@health_rule("VolumeAttachment")
def volume_attachment_health(resource: Mapping[str, Any]) -> Health | None:
    status = resource.get("status") or {}
    if status.get("attachError") or status.get("detachError"):
        return Health.ERROR
    return Health.OK


@health_rule("Node")
def node_health(resource: Mapping[str, Any]) -> Health | None:
    for condition in (resource.get("status") or {}).get("conditions") or []:
        if condition.get("type") != "Ready":
            continue
        return {"True": Health.OK, "False": Health.ERROR}.get(condition.get("status"), Health.UNKNOWN)
    return None
