"""Resource adapter engine.

Exposes:
    ResourceAdapter -- parametrised get/list/search engine for one kind.
    ItemAccessor    -- upstream fetch capability an adapter is built on.
    ListOptions     -- parsed search filter.

The Kubernetes binding (``kinds``) and batch assembly (``registry``) are
imported from their submodules.
"""

from kubesource.adapters.engine import ItemAccessor, ResourceAdapter, items_list_extractor
from kubesource.adapters.filters import ListOptions

__all__ = ["ItemAccessor", "ListOptions", "ResourceAdapter", "items_list_extractor"]
