"""ResourceAdapter -- the get/list/search engine for one resource kind.

One algorithm serves every kind.  A kind is described purely by the
callables it is constructed with:

    accessor builder        -- cluster-wide ``() -> accessor`` or
                               per-namespace ``(namespace) -> accessor``
    list extractor          -- pulls the resource sequence out of a list response
    relationship extractor  -- optional, see ``kubesource.rules``
    health extractor        -- optional
    redactor                -- optional, masks sensitive fields before conversion

Adapters are immutable and hold no state between calls, so concurrent calls
against the same adapter need no locking.  The engine never retries.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
from kubernetes_asyncio.client.exceptions import ApiException

from kubesource.adapters.filters import ListOptions
from kubesource.adapters.flatten import flatten_attributes
from kubesource.errors import (
    ConfigurationError,
    ExtractionError,
    NotFoundError,
    QueryParseError,
    UpstreamError,
    UpstreamTimeoutError,
)
from kubesource.models.items import BlastPropagation, Health, Item, LinkedItemQuery, QueryMethod
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import adapter_queries_total, adapter_query_duration_seconds
from kubesource.scope import format_scope, parse_scope

_log = get_logger("adapters.engine")

_DEFAULT_TIMEOUT = 10.0

# An owner (controller) can change its dependants; the reverse does not hold.
_OWNER_BLAST = BlastPropagation(in_=True, out=False)


class ItemAccessor(Protocol):
    """Upstream fetch capability for one kind, bound to one namespace or the cluster."""

    async def get(self, name: str) -> Mapping[str, Any]: ...

    async def list(self, options: ListOptions) -> Any: ...


ClusterAccessorBuilder = Callable[[], ItemAccessor]
NamespacedAccessorBuilder = Callable[[str], ItemAccessor]
ListExtractor = Callable[[Any], Sequence[Mapping[str, Any]]]
RelationshipExtractor = Callable[[Mapping[str, Any], str], list[LinkedItemQuery]]
HealthExtractor = Callable[[Mapping[str, Any]], Health | None]
Redactor = Callable[[Mapping[str, Any]], Mapping[str, Any]]


def items_list_extractor(response: Any) -> Sequence[Mapping[str, Any]]:
    """Default list extractor for serialised ``*List`` responses."""
    if not isinstance(response, Mapping):
        raise TypeError(f"expected a serialised list response, got {type(response).__name__}")
    return list(response.get("items") or [])


@dataclass(frozen=True)
class ResourceAdapter:
    """Parametrised adapter turning one kind of Kubernetes resource into Items.

    Exactly one of ``cluster_accessor`` and ``namespaced_accessor`` must be
    given.  Namespaced adapters also need a non-empty ``namespaces``.
    Validation happens here, never at call time.
    """

    kind: str
    cluster_name: str
    list_extractor: ListExtractor | None = items_list_extractor
    cluster_accessor: ClusterAccessorBuilder | None = None
    namespaced_accessor: NamespacedAccessorBuilder | None = None
    relationships: RelationshipExtractor | None = None
    health: HealthExtractor | None = None
    redactor: Redactor | None = None
    namespaces: tuple[str, ...] = ()
    timeout: float = _DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        # Deduplicate while keeping the caller's order
        object.__setattr__(self, "namespaces", tuple(dict.fromkeys(self.namespaces)))

        if self.cluster_accessor is None and self.namespaced_accessor is None:
            raise ConfigurationError("either namespaced_accessor or cluster_accessor must be specified")
        if self.cluster_accessor is not None and self.namespaced_accessor is not None:
            raise ConfigurationError("only one of namespaced_accessor and cluster_accessor may be specified")
        if self.list_extractor is None:
            raise ConfigurationError("list_extractor must be specified")
        if not self.kind:
            raise ConfigurationError("kind must be specified")
        if self.namespaced and not self.namespaces:
            raise ConfigurationError(f"namespaces must be specified for namespaced kind {self.kind}")
        if not self.cluster_name:
            raise ConfigurationError("cluster_name must be specified")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")

    # ------------------------------------------------------------------
    # Descriptive surface used by the host engine
    # ------------------------------------------------------------------

    @property
    def namespaced(self) -> bool:
        return self.namespaced_accessor is not None

    @property
    def name(self) -> str:
        return f"k8s-{self.kind}"

    def scopes(self) -> list[str]:
        """One scope per namespace, or the single cluster scope."""
        if self.namespaced:
            return [format_scope(self.cluster_name, ns) for ns in self.namespaces]
        return [format_scope(self.cluster_name)]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, scope: str, name: str) -> Item:
        """Fetch one resource by name and convert it.

        Raises:
            ScopeError: *scope* is malformed.
            NotFoundError: the upstream API reports no such resource.
            UpstreamError: any other upstream failure.
            ExtractionError: conversion of the resource failed.
        """
        started = time.monotonic()
        outcome = "error"
        try:
            accessor = self._accessor(scope)
            try:
                async with asyncio.timeout(self.timeout):
                    resource = await accessor.get(name)
            except TimeoutError as exc:
                raise UpstreamTimeoutError(f"get {self.kind} {name!r}", self.timeout) from exc
            except ApiException as exc:
                if exc.status == 404:
                    outcome = "not_found"
                    raise NotFoundError(self.kind, scope, name, _api_message(exc)) from exc
                raise self._upstream_error("get", scope, exc) from exc
            except aiohttp.ClientError as exc:
                raise self._upstream_error("get", scope, exc) from exc

            item = self._to_item(resource)
            outcome = "ok"
            return item
        finally:
            self._observe(QueryMethod.GET, outcome, started)

    async def list(self, scope: str) -> list[Item]:
        """List every resource in *scope*.

        All-or-nothing: if any resource fails to convert the call raises and
        no items are returned.
        """
        return await self._list(QueryMethod.LIST, scope, ListOptions())

    async def search(self, scope: str, query: str) -> list[Item]:
        """List the resources matching a ListOptions JSON *query*.

        Raises:
            QueryParseError: *query* is not a valid filter.
        """
        started = time.monotonic()
        try:
            options = ListOptions.from_query(query)
        except QueryParseError:
            self._observe(QueryMethod.SEARCH, "bad_query", started)
            raise
        return await self._list(QueryMethod.SEARCH, scope, options)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _list(self, method: QueryMethod, scope: str, options: ListOptions) -> list[Item]:
        started = time.monotonic()
        outcome = "error"
        options = options.snapshot()
        try:
            accessor = self._accessor(scope)
            try:
                async with asyncio.timeout(self.timeout):
                    response = await accessor.list(options)
            except TimeoutError as exc:
                raise UpstreamTimeoutError(f"list {self.kind}", self.timeout) from exc
            except (ApiException, aiohttp.ClientError) as exc:
                raise self._upstream_error("list", scope, exc) from exc

            assert self.list_extractor is not None
            try:
                resources = self.list_extractor(response)
            except Exception as exc:
                raise ExtractionError(self.kind, "", "list extraction", exc) from exc

            items = [self._to_item(resource) for resource in resources]
            outcome = "ok"
            return items
        finally:
            self._observe(method, outcome, started)

    def _accessor(self, scope: str) -> ItemAccessor:
        if self.namespaced_accessor is not None:
            details = parse_scope(scope, namespaced=True)
            return self.namespaced_accessor(details.namespace)
        parse_scope(scope, namespaced=False)
        assert self.cluster_accessor is not None
        return self.cluster_accessor()

    def _to_item(self, resource: Mapping[str, Any]) -> Item:
        """Run the conversion pipeline for one resource."""
        name = str((resource.get("metadata") or {}).get("name", ""))

        if self.redactor is not None:
            try:
                resource = self.redactor(resource)
            except Exception as exc:
                raise self._extraction_error(name, "redaction", exc) from exc

        metadata = resource.get("metadata") or {}
        scope = format_scope(self.cluster_name, metadata.get("namespace"))

        item = Item(
            type=self.kind,
            unique_attribute_value=name,
            scope=scope,
            attributes=flatten_attributes(resource),
        )

        try:
            for ref in metadata.get("ownerReferences") or []:
                item.linked_queries.append(
                    LinkedItemQuery(
                        type=ref["kind"],
                        method=QueryMethod.GET,
                        query=ref["name"],
                        scope=scope,
                        blast_propagation=_OWNER_BLAST,
                    )
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise self._extraction_error(name, "owner references", exc) from exc

        if self.relationships is not None:
            try:
                item.linked_queries.extend(self.relationships(resource, scope))
            except Exception as exc:
                raise self._extraction_error(name, "relationship extraction", exc) from exc

        if self.health is not None:
            try:
                item.health = self.health(resource)
            except Exception as exc:
                raise self._extraction_error(name, "health extraction", exc) from exc

        return item

    def _extraction_error(self, name: str, stage: str, cause: Exception) -> ExtractionError:
        _log.warning("conversion_failed", kind=self.kind, name=name, stage=stage, error=str(cause))
        return ExtractionError(self.kind, name, stage, cause)

    def _upstream_error(self, operation: str, scope: str, exc: Exception) -> UpstreamError:
        if isinstance(exc, ApiException):
            err = UpstreamError(_api_message(exc), status=exc.status)
        else:
            err = UpstreamError(str(exc))
        _log.warning(
            "upstream_error",
            kind=self.kind,
            operation=operation,
            scope=scope,
            status=err.status,
            error=str(err),
        )
        return err

    def _observe(self, method: QueryMethod, outcome: str, started: float) -> None:
        adapter_queries_total.labels(kind=self.kind, method=method.value, outcome=outcome).inc()
        adapter_query_duration_seconds.labels(kind=self.kind, method=method.value).observe(
            time.monotonic() - started
        )


def _api_message(exc: ApiException) -> str:
    """The upstream Status message if the body carries one, else the HTTP reason."""
    body = exc.body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if body:
        try:
            status = json.loads(body)
        except ValueError:
            return str(body)
        if isinstance(status, dict) and status.get("message"):
            return str(status["message"])
    return str(exc.reason or exc)
