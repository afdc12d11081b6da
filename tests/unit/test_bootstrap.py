"""Unit tests for the composition root."""

import pytest

from gateway_control.bootstrap import close_app_context, create_app_context
from gateway_control.deployment import workload_name
from gateway_control.protocols import AdapterStatus
from gateway_control.store import InMemoryResourceStore
from tests.fixtures import FakeClock, FakeClusterClient


class TestCreateAppContext:

    @pytest.mark.asyncio
    async def test_wires_memory_backend(self, settings):
        cluster = FakeClusterClient()
        ctx = await create_app_context(settings, cluster_client=cluster, clock=FakeClock())
        try:
            assert ctx.stores.backend == "memory"
            assert isinstance(ctx.stores.adapters, InMemoryResourceStore)
            assert ctx.cluster is cluster
            assert ctx.settings is settings
            assert ctx.scheduler.active == 0
        finally:
            await close_app_context(ctx)

    @pytest.mark.asyncio
    async def test_services_share_one_pipeline(self, settings, owner):
        cluster = FakeClusterClient()
        ctx = await create_app_context(settings, cluster_client=cluster, clock=FakeClock())
        try:
            await ctx.adapter_service.register_adapter(
                owner,
                {"adapter_id": "A1", "display_name": "Adapter", "image": "img:v1"},
            )
            await ctx.scheduler.wait("A1")

            status = await ctx.rich_results.get_adapter_status(owner, "A1")
            assert status.effective_status == AdapterStatus.RUNNING
            assert workload_name("A1") in cluster.workloads
        finally:
            await close_app_context(ctx)

    @pytest.mark.asyncio
    async def test_unknown_backend_registered_name_required(self, settings):
        from gateway_control.store import register_backend, unregister_backend
        from gateway_control.store.registry import _build_memory_stores

        unregister_backend("memory")
        try:
            with pytest.raises(ValueError, match="Unknown store backend 'memory'"):
                await create_app_context(settings, cluster_client=FakeClusterClient())
        finally:
            register_backend("memory", _build_memory_stores)
