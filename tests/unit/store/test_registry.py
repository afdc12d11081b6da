"""Unit tests for the store backend registry."""

from unittest.mock import MagicMock

import pytest

from gateway_control.store import (
    InMemoryResourceStore,
    ResourceStores,
    create_resource_stores,
    is_backend_registered,
    list_backends,
    register_backend,
    unregister_backend,
)


class TestBuiltinBackends:

    def test_builtins_registered(self):
        assert {"memory", "redis", "postgres"} <= set(list_backends())
        assert is_backend_registered("memory")

    @pytest.mark.asyncio
    async def test_memory_backend(self, settings, mock_logger):
        stores = await create_resource_stores(settings, logger=mock_logger)

        assert stores.backend == "memory"
        assert isinstance(stores.adapters, InMemoryResourceStore)
        assert stores.adapters.kind == "adapters"
        assert stores.tools.kind == "tools"
        await stores.close()

    @pytest.mark.asyncio
    async def test_unknown_backend(self, settings, mock_logger):
        with pytest.raises(ValueError, match="Unknown store backend 'nope'"):
            await create_resource_stores(settings, backend="nope", logger=mock_logger)


class TestCustomBackend:

    @pytest.mark.asyncio
    async def test_register_and_unregister(self, settings, mock_logger):
        adapters = MagicMock()
        tools = MagicMock()
        built = ResourceStores(backend="custom", adapters=adapters, tools=tools)

        register_backend("custom", lambda s, log: built)
        try:
            stores = await create_resource_stores(
                settings, backend="custom", logger=mock_logger, connect=False
            )
            assert stores is built
        finally:
            assert unregister_backend("custom") is True

        assert unregister_backend("custom") is False
        assert not is_backend_registered("custom")
