"""End-to-end adapter lifecycle through the services, scheduler and manager.

Uses the in-memory store and the fake cluster; everything between the
service call and the cluster mutation is the production code path.
"""

import pytest

from gateway_control.deployment import workload_name
from gateway_control.errors import NotFoundError
from gateway_control.protocols import AdapterStatus, tool_key


@pytest.mark.asyncio
async def test_register_update_delete(adapter_service, rich_results, adapter_store, tool_store, scheduler, cluster, owner):
    name = workload_name("A1")

    # Register
    await adapter_service.register_adapter(owner, {
        "adapter_id": "A1",
        "display_name": "Search adapter",
        "image": "img:v1",
        "tools": [{"name": "search"}],
    })
    await scheduler.wait("A1")

    record = await adapter_store.get("A1")
    assert record.status == AdapterStatus.RUNNING
    assert record.generation == 1
    assert record.last_observed_revision == 1
    assert (await tool_store.get(tool_key("A1", "search"))).adapter_id == "A1"
    assert cluster.workloads[name].image == "registry.example.io/img:v1"

    # Update in place
    await adapter_service.update_adapter(owner, "A1", {
        "display_name": "Search adapter",
        "image": "img:v2",
        "tools": [{"name": "search"}],
    })
    await scheduler.wait("A1")

    record = await adapter_store.get("A1")
    assert record.generation == 2
    assert record.last_observed_revision == 2
    assert record.status == AdapterStatus.RUNNING
    assert cluster.mutations == [("create", name), ("update", name)]
    assert cluster.workloads[name].image == "registry.example.io/img:v2"
    assert (await rich_results.get_adapter_status(owner, "A1")).workload.image == "registry.example.io/img:v2"

    # Delete
    original_delete = adapter_store.delete
    observed = []

    async def tracking_delete(key, expected_generation=None):
        observed.append(list(cluster.mutations))
        return await original_delete(key, expected_generation=expected_generation)

    adapter_store.delete = tracking_delete
    await adapter_service.delete_adapter(owner, "A1")
    await scheduler.wait("A1")

    assert observed[-1][-1] == ("remove", name)
    assert cluster.workloads == {}
    with pytest.raises(NotFoundError):
        await adapter_store.get("A1")
    with pytest.raises(NotFoundError):
        await tool_store.get(tool_key("A1", "search"))


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(adapter_service, manager, scheduler, cluster, owner):
    await adapter_service.register_adapter(owner, {
        "adapter_id": "A1",
        "display_name": "Search adapter",
        "image": "img:v1",
    })
    await scheduler.wait("A1")

    await manager.reconcile("A1")
    await manager.reconcile("A1")

    assert cluster.mutations == [("create", workload_name("A1"))]
