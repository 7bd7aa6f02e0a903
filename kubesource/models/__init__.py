"""Core data structures for kubesource."""

from kubesource.models.config import KubeSourceConfig
from kubesource.models.items import (
    BlastPropagation,
    Health,
    Item,
    LinkedItemQuery,
    QueryMethod,
)

__all__ = [
    "BlastPropagation",
    "Health",
    "Item",
    "KubeSourceConfig",
    "LinkedItemQuery",
    "QueryMethod",
]
