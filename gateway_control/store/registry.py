"""Resource store backend registry.

Maps a backend name to a builder that turns Settings into the pair of stores
(adapters, tools) the management plane needs. The backend is chosen by
configuration at process start; nothing else in the codebase knows which
implementation is in use.

Usage:
    from gateway_control.store.registry import create_resource_stores

    stores = await create_resource_stores(settings)
    adapter = await stores.adapters.get("a1")
    ...
    await stores.close()

    # Or register a custom backend
    register_backend("custom", build_custom_stores)
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from gateway_control.logging import get_current_logger
from gateway_control.protocols import (
    AdapterResource,
    LoggerProtocol,
    ResourceStoreProtocol,
    ToolResource,
)
from gateway_control.store.base import KIND_ADAPTERS, KIND_TOOLS
from gateway_control.utils.strings import redact_url

if TYPE_CHECKING:
    from gateway_control.settings import Settings


@dataclass
class ResourceStores:
    """Adapter and tool stores built from one backend."""

    backend: str
    adapters: ResourceStoreProtocol[AdapterResource]
    tools: ResourceStoreProtocol[ToolResource]
    closer: Optional[Callable[[], Awaitable[None]]] = None

    async def connect(self) -> None:
        await self.adapters.connect()
        await self.tools.connect()

    async def close(self) -> None:
        await self.adapters.close()
        await self.tools.close()
        if self.closer is not None:
            await self.closer()


StoreBuilder = Callable[["Settings", LoggerProtocol], ResourceStores]

_BACKENDS: Dict[str, StoreBuilder] = {}


def register_backend(name: str, builder: StoreBuilder) -> None:
    """Register a store backend.

    Args:
        name: Backend identifier (e.g., 'redis', 'postgres')
        builder: Function (settings, logger) -> ResourceStores
    """
    _BACKENDS[name] = builder


def unregister_backend(name: str) -> bool:
    """Unregister a store backend. Returns True if it was registered."""
    if name in _BACKENDS:
        del _BACKENDS[name]
        return True
    return False


def list_backends() -> List[str]:
    """List all registered backend names."""
    return list(_BACKENDS.keys())


def is_backend_registered(name: str) -> bool:
    """Check if a backend is registered."""
    return name in _BACKENDS


async def create_resource_stores(
    settings: "Settings",
    backend: Optional[str] = None,
    logger: Optional[LoggerProtocol] = None,
    connect: bool = True,
) -> ResourceStores:
    """Factory function to create the adapter and tool stores.

    The caller owns the lifecycle (close()).

    Args:
        settings: Application settings
        backend: Backend name (default: settings.store_backend)
        logger: Logger for DI (uses context logger if not provided)
        connect: Connect (and initialize schema) before returning

    Returns:
        ResourceStores for the selected backend

    Raises:
        ValueError: If backend is not registered
    """
    _logger = logger or get_current_logger()
    backend_name = backend or settings.store_backend

    builder = _BACKENDS.get(backend_name)
    if builder is None:
        available = ", ".join(_BACKENDS.keys()) or "(none)"
        raise ValueError(f"Unknown store backend '{backend_name}'. Available: {available}")

    _logger.info("creating_resource_stores", backend=backend_name)
    stores = builder(settings, _logger)

    if connect:
        await stores.connect()
    return stores


# =============================================================================
# Built-in Backend Registration
# =============================================================================

def _build_memory_stores(settings: "Settings", logger: LoggerProtocol) -> ResourceStores:
    from gateway_control.store.memory import InMemoryResourceStore

    return ResourceStores(
        backend="memory",
        adapters=InMemoryResourceStore(KIND_ADAPTERS, AdapterResource, logger=logger),
        tools=InMemoryResourceStore(KIND_TOOLS, ToolResource, logger=logger),
    )


def _build_redis_stores(settings: "Settings", logger: LoggerProtocol) -> ResourceStores:
    import redis.asyncio as redis

    from gateway_control.store.redis_store import RedisResourceStore

    logger.info("connecting_redis", url=redact_url(settings.redis_url))
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
    )

    return ResourceStores(
        backend="redis",
        adapters=RedisResourceStore(
            client, KIND_ADAPTERS, AdapterResource, settings.redis_key_prefix, logger=logger
        ),
        tools=RedisResourceStore(
            client, KIND_TOOLS, ToolResource, settings.redis_key_prefix, logger=logger
        ),
        closer=client.aclose,
    )


def _build_postgres_stores(settings: "Settings", logger: LoggerProtocol) -> ResourceStores:
    from sqlalchemy.ext.asyncio import create_async_engine

    from gateway_control.store.postgres_store import PostgresResourceStore

    url = settings.get_postgres_url()
    logger.info("connecting_postgres", url=redact_url(url))
    engine = create_async_engine(
        url,
        pool_size=settings.postgres_pool_size,
        max_overflow=settings.postgres_max_overflow,
        pool_timeout=settings.postgres_pool_timeout,
        pool_recycle=settings.postgres_pool_recycle,
        pool_pre_ping=True,
    )

    return ResourceStores(
        backend="postgres",
        adapters=PostgresResourceStore(engine, KIND_ADAPTERS, AdapterResource, logger=logger),
        tools=PostgresResourceStore(engine, KIND_TOOLS, ToolResource, logger=logger),
        closer=engine.dispose,
    )


def _register_builtin_backends() -> None:
    """Register built-in store backends. Called at module import time."""
    register_backend("memory", _build_memory_stores)
    register_backend("redis", _build_redis_stores)
    register_backend("postgres", _build_postgres_stores)


_register_builtin_backends()


__all__ = [
    "ResourceStores",
    "register_backend",
    "unregister_backend",
    "list_backends",
    "is_backend_registered",
    "create_resource_stores",
]
