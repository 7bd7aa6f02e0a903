"""Flatten a serialised Kubernetes object into an item attribute map.

Top-level fields are kept as-is except ``metadata``, whose fields are
promoted to the top level.  High-volume fields on the deny-list are dropped
at both levels.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

DENIED_FIELDS = frozenset(
    {
        "managedFields",
        "binaryData",
        "stringData",
        "immutable",
    }
)


def flatten_attributes(resource: Mapping[str, Any]) -> dict[str, Any]:
    """Return the attribute map for *resource*.

    The input is expected in the camelCase JSON shape produced by
    ``ApiClient.sanitize_for_serialization``.  Metadata fields win over a
    top-level field of the same name.
    """
    attributes: dict[str, Any] = {}
    for key, value in resource.items():
        if key == "metadata" or key in DENIED_FIELDS or value is None:
            continue
        attributes[key] = value

    metadata = resource.get("metadata") or {}
    if isinstance(metadata, Mapping):
        for key, value in metadata.items():
            if key in DENIED_FIELDS or value is None:
                continue
            attributes[key] = value

    return attributes
