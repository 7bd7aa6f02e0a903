"""Tests for the kind table, the Kubernetes accessor and batch assembly."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kubesource.adapters.filters import ListOptions
from kubesource.adapters.kinds import KIND_SPECS, KindSpec, KubeAccessor
from kubesource.adapters.redaction import redact_secret
from kubesource.adapters.registry import AdapterRegistry

_CLUSTER_SCOPED = {
    "Node",
    "PersistentVolume",
    "ClusterRole",
    "ClusterRoleBinding",
    "StorageClass",
    "VolumeAttachment",
    "PriorityClass",
}


class _FakeWidgetApi:
    """Stands in for a generated kubernetes_asyncio API group class."""

    def __init__(self, api_client: Any) -> None:
        self.api_client = api_client
        self.read_namespaced_widget = AsyncMock(return_value={"metadata": {"name": "w"}})
        self.list_namespaced_widget = AsyncMock(return_value={"items": []})
        self.read_widget = AsyncMock(return_value={"metadata": {"name": "cw"}})
        self.list_widget = AsyncMock(return_value={"items": []})


def _api_client() -> MagicMock:
    client = MagicMock()
    client.sanitize_for_serialization.side_effect = lambda obj: obj
    return client


# ---------------------------------------------------------------------------
# Kind table
# ---------------------------------------------------------------------------


class TestKindTable:
    def test_thirty_unique_kinds(self) -> None:
        kinds = [spec.kind for spec in KIND_SPECS]
        assert len(kinds) == 30
        assert len(set(kinds)) == 30

    def test_cluster_scoped_kinds(self) -> None:
        assert {spec.kind for spec in KIND_SPECS if not spec.namespaced} == _CLUSTER_SCOPED

    @pytest.mark.parametrize("spec", KIND_SPECS, ids=lambda s: s.kind)
    def test_api_methods_exist(self, spec: KindSpec) -> None:
        infix = "namespaced_" if spec.namespaced else ""
        assert hasattr(spec.api_class, f"read_{infix}{spec.resource}")
        assert hasattr(spec.api_class, f"list_{infix}{spec.resource}")

    def test_only_secrets_redacted(self) -> None:
        redacted = {spec.kind: spec.redactor for spec in KIND_SPECS if spec.redactor is not None}
        assert redacted == {"Secret": redact_secret}


# ---------------------------------------------------------------------------
# Accessor
# ---------------------------------------------------------------------------


class TestKubeAccessor:
    async def test_namespaced_get(self) -> None:
        api = _FakeWidgetApi(_api_client())
        result = await KubeAccessor(api, "widget", "default").get("w")
        api.read_namespaced_widget.assert_awaited_once_with("w", "default")
        assert result == {"metadata": {"name": "w"}}

    async def test_namespaced_list_forwards_filter(self) -> None:
        api = _FakeWidgetApi(_api_client())
        await KubeAccessor(api, "widget", "default").list(ListOptions(label_selector="app=web", watch=True))
        api.list_namespaced_widget.assert_awaited_once_with("default", label_selector="app=web")

    async def test_cluster_calls(self) -> None:
        api = _FakeWidgetApi(_api_client())
        accessor = KubeAccessor(api, "widget")
        await accessor.get("cw")
        await accessor.list(ListOptions(limit=5))
        api.read_widget.assert_awaited_once_with("cw")
        api.list_widget.assert_awaited_once_with(limit=5)

    async def test_results_serialised(self) -> None:
        client = _api_client()
        client.sanitize_for_serialization.side_effect = lambda obj: {"serialised": obj}
        api = _FakeWidgetApi(client)
        assert await KubeAccessor(api, "widget", "default").get("w") == {"serialised": {"metadata": {"name": "w"}}}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestAdapterRegistry:
    def test_builds_every_kind(self) -> None:
        registry = AdapterRegistry(_api_client(), "c1")
        batch = registry.build(["default", "prod", "default"])
        assert len(batch) == 30
        assert batch.namespaces == ("default", "prod")
        pods = batch.by_kind("Pod")
        assert pods is not None
        assert pods.scopes() == ["c1.default", "c1.prod"]
        assert pods.relationships is not None
        assert pods.health is not None
        assert batch.by_kind("Secret").redactor is redact_secret  # type: ignore[union-attr]
        assert batch.by_kind("Node").scopes() == ["c1"]  # type: ignore[union-attr]

    def test_generation_increases(self) -> None:
        registry = AdapterRegistry(_api_client(), "c1")
        first = registry.build(["default"])
        second = registry.build(["default"])
        assert second.generation > first.generation

    def test_invalid_kinds_skipped(self) -> None:
        """With no namespaces, namespaced kinds fail validation and are left out."""
        batch = AdapterRegistry(_api_client(), "c1").build([])
        assert {a.kind for a in batch.adapters} == _CLUSTER_SCOPED

    def test_blank_kind_skipped(self) -> None:
        kinds = [KindSpec("", _FakeWidgetApi, "widget"), KindSpec("Widget", _FakeWidgetApi, "widget")]
        batch = AdapterRegistry(_api_client(), "c1", kinds=kinds).build(["default"])
        assert [a.kind for a in batch.adapters] == ["Widget"]

    def test_timeout_passed_through(self) -> None:
        kinds = [KindSpec("Widget", _FakeWidgetApi, "widget")]
        batch = AdapterRegistry(_api_client(), "c1", kinds=kinds, timeout=3.0).build(["default"])
        assert batch.adapters[0].timeout == 3.0

    async def test_adapter_uses_bound_namespace(self) -> None:
        kinds = [KindSpec("Widget", _FakeWidgetApi, "widget")]
        registry = AdapterRegistry(_api_client(), "c1", kinds=kinds)
        adapter = registry.build(["default", "prod"]).adapters[0]
        item = await adapter.get("c1.prod", "w")
        assert item.unique_attribute_value == "w"
        api = registry._apis[_FakeWidgetApi]
        api.read_namespaced_widget.assert_awaited_once_with("w", "prod")

    def test_api_objects_shared(self) -> None:
        registry = AdapterRegistry(_api_client(), "c1")
        registry.build(["default"])
        registry.build(["default"])
        assert len(registry._apis) == len({spec.api_class for spec in KIND_SPECS})
