"""Unit tests for AdapterRichResultProvider."""

import pytest

from gateway_control.deployment import workload_name
from gateway_control.errors import ForbiddenError, UnavailableError
from gateway_control.protocols import AdapterStatus, CallerIdentity, Decision


async def _running(adapter_store, manager, make_adapter, adapter_id="A1"):
    await adapter_store.put(make_adapter(adapter_id))
    await manager.reconcile(adapter_id)


class TestGetAdapterStatus:

    @pytest.mark.asyncio
    async def test_running_and_ready(self, rich_results, adapter_store, manager, make_adapter, other):
        await _running(adapter_store, manager, make_adapter)

        result = await rich_results.get_adapter_status(other, "A1")

        assert result.effective_status == AdapterStatus.RUNNING
        assert result.stale is False
        assert result.workload.name == workload_name("A1")
        assert result.workload.image == "registry.example.io/img:v1"

    @pytest.mark.asyncio
    async def test_running_but_not_ready_reported_degraded(self, rich_results, adapter_store, manager, cluster, make_adapter, owner):
        await _running(adapter_store, manager, make_adapter)
        cluster.ready = False

        result = await rich_results.get_adapter_status(owner, "A1")

        assert result.effective_status == AdapterStatus.DEGRADED
        assert (await adapter_store.get("A1")).status == AdapterStatus.RUNNING

    @pytest.mark.asyncio
    async def test_running_but_missing_reported_degraded(self, rich_results, adapter_store, manager, cluster, make_adapter, owner):
        await _running(adapter_store, manager, make_adapter)
        cluster.workloads.clear()

        result = await rich_results.get_adapter_status(owner, "A1")

        assert result.effective_status == AdapterStatus.DEGRADED
        assert result.workload is None

    @pytest.mark.asyncio
    async def test_pending_without_workload_stays_pending(self, rich_results, adapter_store, make_adapter, owner):
        await adapter_store.put(make_adapter("A1"))

        result = await rich_results.get_adapter_status(owner, "A1")

        assert result.effective_status == AdapterStatus.PENDING
        assert result.stale is False

    @pytest.mark.asyncio
    async def test_live_read_failure_is_stale(self, rich_results, adapter_store, manager, cluster, make_adapter, owner):
        await _running(adapter_store, manager, make_adapter)
        cluster.fail("get_status", UnavailableError("apiserver timeout"))

        result = await rich_results.get_adapter_status(owner, "A1")

        assert result.stale is True
        assert result.effective_status == AdapterStatus.RUNNING
        assert result.workload is None

    @pytest.mark.asyncio
    async def test_to_dict(self, rich_results, adapter_store, manager, make_adapter, owner):
        await _running(adapter_store, manager, make_adapter)

        payload = (await rich_results.get_adapter_status(owner, "A1")).to_dict()

        assert payload["adapter_id"] == "A1"
        assert payload["status"] == "Running"
        assert payload["workload"]["ready"] is True
        assert payload["stale"] is False


class TestListAdapterStatuses:

    @pytest.mark.asyncio
    async def test_overlays_each_visible_record(self, rich_results, adapter_store, manager, make_adapter, owner):
        await _running(adapter_store, manager, make_adapter, "A1")
        await adapter_store.put(make_adapter("A2"))

        page = await rich_results.list_adapter_statuses(owner, page_size=10)

        statuses = {r.adapter.adapter_id: r.effective_status for r in page.items}
        assert statuses == {"A1": AdapterStatus.RUNNING, "A2": AdapterStatus.PENDING}

    @pytest.mark.asyncio
    async def test_filters_unreadable_records(self, adapter_store, manager, settings, make_adapter, mock_logger):
        from gateway_control.services import AdapterRichResultProvider

        class OwnerOnlyReads:
            async def authorize(self, identity, action, scope):
                return Decision.ALLOW if scope.owner == identity.subject else Decision.DENY

        await adapter_store.put(make_adapter("A1", created_by="alice"))
        await adapter_store.put(make_adapter("A2", created_by="bob"))
        provider = AdapterRichResultProvider(
            adapters=adapter_store,
            manager=manager,
            permissions=OwnerOnlyReads(),
            settings=settings,
            logger=mock_logger,
        )

        page = await provider.list_adapter_statuses(CallerIdentity(subject="bob"), page_size=10)
        assert [r.adapter.adapter_id for r in page.items] == ["A2"]

        with pytest.raises(ForbiddenError):
            await provider.get_adapter_status(CallerIdentity(subject="bob"), "A1")
