"""Per-kind relationship and health rules.

Importing this package registers every rule module with the registries.
"""

from kubesource.rules import core, health, network, rbac, storage, workloads  # noqa: F401
from kubesource.rules.base import (
    ANY_SCOPE,
    GLOBAL_SCOPE,
    HEALTH_RULES,
    RELATIONSHIP_RULES,
    get_query,
    health_rule,
    object_reference_query,
    relationship_rule,
    search_query,
)

__all__ = [
    "ANY_SCOPE",
    "GLOBAL_SCOPE",
    "HEALTH_RULES",
    "RELATIONSHIP_RULES",
    "get_query",
    "health_rule",
    "object_reference_query",
    "relationship_rule",
    "search_query",
]
