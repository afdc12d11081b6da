"""Resource store - durable persistence for adapter and tool records.

Backends:
- memory    - in-process dictionaries (single node, tests)
- redis     - low-latency cache-oriented store (development)
- postgres  - durable JSONB document store (production)
"""

from gateway_control.store.base import KIND_ADAPTERS, KIND_TOOLS, check_precondition
from gateway_control.store.memory import InMemoryResourceStore
from gateway_control.store.registry import (
    ResourceStores,
    create_resource_stores,
    is_backend_registered,
    list_backends,
    register_backend,
    unregister_backend,
)

__all__ = [
    "KIND_ADAPTERS",
    "KIND_TOOLS",
    "check_precondition",
    "InMemoryResourceStore",
    "ResourceStores",
    "create_resource_stores",
    "is_backend_registered",
    "list_backends",
    "register_backend",
    "unregister_backend",
]
