"""Assembly of the adapter batch served for one namespace set."""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from kubesource.adapters.engine import ResourceAdapter
from kubesource.adapters.kinds import KIND_SPECS, KindSpec, KubeAccessor
from kubesource.errors import ConfigurationError
from kubesource.observability.logging import get_logger
from kubesource.rules import HEALTH_RULES, RELATIONSHIP_RULES

_log = get_logger("adapters.registry")


@dataclass(frozen=True)
class AdapterBatch:
    """An immutable set of adapters built against one namespace snapshot."""

    adapters: tuple[ResourceAdapter, ...]
    namespaces: tuple[str, ...]
    generation: int

    def by_kind(self, kind: str) -> ResourceAdapter | None:
        for adapter in self.adapters:
            if adapter.kind == kind:
                return adapter
        return None

    def __len__(self) -> int:
        return len(self.adapters)


class AdapterRegistry:
    """Builds one ResourceAdapter per kind for a given namespace set."""

    def __init__(
        self,
        api_client: Any,
        cluster_name: str,
        kinds: Iterable[KindSpec] = KIND_SPECS,
        timeout: float = 10.0,
    ) -> None:
        self._api_client = api_client
        self._cluster_name = cluster_name
        self._kinds = tuple(kinds)
        self._timeout = timeout
        self._apis: dict[type, Any] = {}
        self._generation = itertools.count(1)

    def build(self, namespaces: Iterable[str]) -> AdapterBatch:
        """Build a fresh batch.

        Kinds that fail validation are logged and left out; the rest of the
        batch is still returned.
        """
        ns = tuple(sorted(set(namespaces)))
        adapters: list[ResourceAdapter] = []
        for spec in self._kinds:
            try:
                adapters.append(self._adapter(spec, ns))
            except ConfigurationError as exc:
                _log.error("adapter_config_invalid", kind=spec.kind, error=str(exc))

        batch = AdapterBatch(adapters=tuple(adapters), namespaces=ns, generation=next(self._generation))
        _log.info(
            "adapter_batch_built",
            generation=batch.generation,
            adapters=len(batch.adapters),
            namespaces=len(ns),
        )
        return batch

    def _adapter(self, spec: KindSpec, namespaces: tuple[str, ...]) -> ResourceAdapter:
        api = self._api(spec.api_class)
        kwargs: dict[str, Any] = {}
        if spec.namespaced:
            kwargs["namespaced_accessor"] = lambda namespace: KubeAccessor(api, spec.resource, namespace)
            kwargs["namespaces"] = namespaces
        else:
            kwargs["cluster_accessor"] = lambda: KubeAccessor(api, spec.resource)

        return ResourceAdapter(
            kind=spec.kind,
            cluster_name=self._cluster_name,
            relationships=RELATIONSHIP_RULES.get(spec.kind),
            health=HEALTH_RULES.get(spec.kind),
            redactor=spec.redactor,
            timeout=self._timeout,
            **kwargs,
        )

    def _api(self, api_class: type) -> Any:
        if api_class not in self._apis:
            self._apis[api_class] = api_class(self._api_client)
        return self._apis[api_class]
