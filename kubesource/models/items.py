"""Uniform graph node representation of discovered resources."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class QueryMethod(StrEnum):
    """Lookup method of a linked item query."""

    GET = "GET"
    LIST = "LIST"
    SEARCH = "SEARCH"


class Health(StrEnum):
    """Health of a discovered resource."""

    OK = "ok"
    WARNING = "warning"
    ERROR = "error"
    PENDING = "pending"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BlastPropagation:
    """Whether a change on one side of an edge can affect the other.

    ``in_``: a change to the target can affect the source.
    ``out``: a change to the source can affect the target.
    """

    in_: bool = False
    out: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"in": self.in_, "out": self.out}


@dataclass(frozen=True)
class LinkedItemQuery:
    """A directed, re-fetchable edge from one item toward another."""

    type: str
    method: QueryMethod
    query: str
    scope: str
    blast_propagation: BlastPropagation = field(default_factory=BlastPropagation)

    def __post_init__(self) -> None:
        if not self.query and self.method != QueryMethod.LIST:
            raise ValueError(f"{self.method} query to {self.type} requires a non-empty query string")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "method": self.method.value,
            "query": self.query,
            "scope": self.scope,
            "blastPropagation": self.blast_propagation.to_dict(),
        }


@dataclass
class Item:
    """One discovered resource instance.

    Built fresh for every get/list/search call and never persisted.
    """

    type: str
    unique_attribute_value: str
    scope: str
    attributes: dict[str, Any] = field(default_factory=dict)
    linked_queries: list[LinkedItemQuery] = field(default_factory=list)
    health: Health | None = None
    unique_attribute_name: str = "name"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type,
            "uniqueAttributeName": self.unique_attribute_name,
            "uniqueAttributeValue": self.unique_attribute_value,
            "scope": self.scope,
            "attributes": self.attributes,
            "linkedQueries": [q.to_dict() for q in self.linked_queries],
        }
        if self.health is not None:
            out["health"] = self.health.value
        return out
