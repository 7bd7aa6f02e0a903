"""Search filter codec.

A search query is the JSON form of Kubernetes ``ListOptions``::

    {"labelSelector": "app=web,tier=frontend", "fieldSelector": "status.phase=Running"}

Searches are always point-in-time snapshots: any ``watch`` or
``allowWatchBookmarks`` flag in the parsed filter is forced off.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from kubesource.errors import QueryParseError

# JSON key -> (attribute, accepted types)
_FIELDS: dict[str, tuple[str, tuple[type, ...]]] = {
    "labelSelector": ("label_selector", (str,)),
    "fieldSelector": ("field_selector", (str,)),
    "limit": ("limit", (int,)),
    "resourceVersion": ("resource_version", (str,)),
    "timeoutSeconds": ("timeout_seconds", (int,)),
    "watch": ("watch", (bool,)),
    "allowWatchBookmarks": ("allow_watch_bookmarks", (bool,)),
}

_SET_OPERATORS = {"In": "in", "NotIn": "notin"}


@dataclass(frozen=True)
class ListOptions:
    """Label/field filter applied to a list call."""

    label_selector: str = ""
    field_selector: str = ""
    limit: int | None = None
    resource_version: str = ""
    timeout_seconds: int | None = None
    watch: bool = False
    allow_watch_bookmarks: bool = False

    @classmethod
    def from_query(cls, query: str) -> ListOptions:
        """Parse a search query, clearing any subscription flags.

        Unknown keys are ignored.

        Raises:
            QueryParseError: the query is not a JSON object or a known key
                carries a value of the wrong type.
        """
        try:
            raw = json.loads(query)
        except (TypeError, ValueError) as exc:
            raise QueryParseError(f"search query is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise QueryParseError(f"search query must be a JSON object, got {type(raw).__name__}")

        values: dict[str, Any] = {}
        for key, (attr, types) in _FIELDS.items():
            if key not in raw or raw[key] is None:
                continue
            value = raw[key]
            # bool is an int subclass; reject it for integer fields
            if not isinstance(value, types) or (bool not in types and isinstance(value, bool)):
                raise QueryParseError(f"search query field {key!r} has invalid value {value!r}")
            values[attr] = value

        return cls(**values).snapshot()

    def snapshot(self) -> ListOptions:
        """Return a copy with continuous-subscription flags cleared."""
        return replace(self, watch=False, allow_watch_bookmarks=False)

    def to_query(self) -> str:
        """Render as a search query, omitting empty fields."""
        out: dict[str, Any] = {}
        for key, (attr, _types) in _FIELDS.items():
            value = getattr(self, attr)
            if value not in (None, "", False):
                out[key] = value
        return json.dumps(out, separators=(",", ":"))

    def to_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a kubernetes_asyncio ``list_*`` call.

        Never includes ``watch``.
        """
        kwargs: dict[str, Any] = {}
        if self.label_selector:
            kwargs["label_selector"] = self.label_selector
        if self.field_selector:
            kwargs["field_selector"] = self.field_selector
        if self.limit is not None:
            kwargs["limit"] = self.limit
        if self.resource_version:
            kwargs["resource_version"] = self.resource_version
        if self.timeout_seconds is not None:
            kwargs["timeout_seconds"] = self.timeout_seconds
        return kwargs


def selector_string(pairs: Mapping[str, str]) -> str:
    """Render equality pairs as ``k1=v1,k2=v2`` with keys sorted."""
    return ",".join(f"{k}={v}" for k, v in sorted(pairs.items()))


def label_selector_string(selector: Mapping[str, Any]) -> str:
    """Render a LabelSelector (``matchLabels`` + ``matchExpressions``) as a selector string."""
    parts: list[str] = []
    match_labels = selector.get("matchLabels") or {}
    if match_labels:
        parts.append(selector_string(match_labels))

    for expr in selector.get("matchExpressions") or []:
        key = expr.get("key", "")
        operator = expr.get("operator", "")
        values = expr.get("values") or []
        if not key:
            continue
        if operator in _SET_OPERATORS:
            parts.append(f"{key} {_SET_OPERATORS[operator]} ({','.join(sorted(values))})")
        elif operator == "Exists":
            parts.append(key)
        elif operator == "DoesNotExist":
            parts.append(f"!{key}")

    return ",".join(parts)


def label_selector_query(selector: Mapping[str, Any]) -> str:
    """Search query string that selects the resources matching *selector*."""
    return ListOptions(label_selector=label_selector_string(selector)).to_query()


def match_labels_query(labels: Mapping[str, str]) -> str:
    """Search query string for a bare ``{key: value}`` selector (e.g. Service.spec.selector)."""
    return ListOptions(label_selector=selector_string(labels)).to_query()
