"""Redaction of sensitive resource payloads.

Secret values are replaced by a content digest so that consumers can still
detect when a secret changed without ever seeing its contents.  The digest
is computed over the sorted keys and values, so it is stable for unchanged
input and differs whenever any key or value differs.
"""

from __future__ import annotations

import copy
import hashlib
from collections.abc import Mapping
from typing import Any

REDACTED_KEY = "data-redacted"

_SECRET_PAYLOAD_FIELDS = ("data", "stringData")


def digest_value(value: str) -> str:
    """Masked representation of a digest, e.g. ``[HASH:sha256:1a2b3c4d:<hex>]``."""
    return f"[HASH:sha256:{value[:8]}:{value}]"


def _payload_digest(payload: Mapping[str, Any]) -> str:
    hasher = hashlib.sha256()
    for key in sorted(payload):
        value = payload[key]
        raw = value if isinstance(value, bytes) else str(value if value is not None else "").encode()
        # Length prefixes keep ("ab", "c") and ("a", "bc") distinct
        hasher.update(f"{len(key)}:".encode())
        hasher.update(key.encode())
        hasher.update(f"{len(raw)}:".encode())
        hasher.update(raw)
    return hasher.hexdigest()


def redact_secret(resource: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a Secret with ``data``/``stringData`` replaced by one digest.

    The input is never mutated.  A Secret with no payload keeps an empty
    ``data`` map.
    """
    redacted = copy.deepcopy(dict(resource))
    payload: dict[str, Any] = {}
    for field_name in _SECRET_PAYLOAD_FIELDS:
        section = redacted.pop(field_name, None) or {}
        for key, value in section.items():
            payload[f"{field_name}/{key}"] = value

    if payload:
        redacted["data"] = {REDACTED_KEY: digest_value(_payload_digest(payload))}
    else:
        redacted["data"] = {}
    return redacted
