"""Background reconciliation scheduling.

One asyncio task per adapter. Requests arriving while a pass runs are
coalesced into a single follow-up pass. Tasks are owned by the scheduler,
not by the submitting request, so cancelling a request never cancels its
reconciliation.
"""

import asyncio
from typing import Dict, Optional, Set
from uuid import uuid4

from gateway_control.deployment.manager import KubernetesAdapterDeploymentManager
from gateway_control.logging import get_component_logger, request_scope
from gateway_control.protocols import (
    AdapterResource,
    AdapterStatus,
    LoggerProtocol,
    RequestContext,
    ResourceStoreProtocol,
)

# Records in these states have work outstanding even when converged
_UNSETTLED = (AdapterStatus.PENDING, AdapterStatus.PROVISIONING, AdapterStatus.DELETING)


class ReconciliationScheduler:
    """Runs Deployment Manager passes in background tasks."""

    def __init__(
        self,
        manager: KubernetesAdapterDeploymentManager,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._manager = manager
        self._logger = get_component_logger("ReconciliationScheduler", logger)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._pending: Set[str] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def schedule(self, adapter_id: str) -> None:
        """Request a reconciliation pass for an adapter.

        Must be called from a running event loop.
        """
        task = self._tasks.get(adapter_id)
        if task is not None and not task.done():
            self._pending.add(adapter_id)
            self._logger.debug("reconcile_coalesced", adapter_id=adapter_id)
            return

        self._tasks[adapter_id] = asyncio.get_running_loop().create_task(
            self._run(adapter_id),
            name=f"reconcile:{adapter_id}",
        )
        self._logger.debug("reconcile_scheduled", adapter_id=adapter_id)

    async def _run(self, adapter_id: str) -> None:
        ctx = RequestContext(
            request_id=uuid4().hex,
            operation="reconcile",
            tags={"adapter_id": adapter_id},
        )
        logger = self._logger.bind(adapter_id=adapter_id, request_id=ctx.request_id)

        try:
            with request_scope(ctx, logger):
                while True:
                    self._pending.discard(adapter_id)
                    try:
                        await self._manager.reconcile(adapter_id)
                    except asyncio.CancelledError:
                        raise
                    except Exception as e:
                        logger.exception("reconcile_task_error", error=str(e))

                    if adapter_id not in self._pending:
                        break
        finally:
            self._pending.discard(adapter_id)
            self._tasks.pop(adapter_id, None)

    async def wait(self, adapter_id: str) -> None:
        """Wait until no pass is running or queued for an adapter."""
        while True:
            task = self._tasks.get(adapter_id)
            if task is None:
                return
            await asyncio.wait({task})

    async def drain(self) -> None:
        """Wait for every scheduled pass, including follow-ups."""
        while self._tasks:
            await asyncio.wait(set(self._tasks.values()))
        self._logger.info("reconcile_scheduler_drained")

    async def resync(self, adapters: ResourceStoreProtocol[AdapterResource], page_size: int = 100) -> int:
        """Schedule every record with outstanding work.

        Run once at start-up to resume passes interrupted by a restart.

        Returns:
            Number of adapters scheduled
        """
        scheduled = 0
        token: Optional[str] = None
        while True:
            page = await adapters.list(page_size=page_size, continuation_token=token)
            for adapter in page.items:
                if not adapter.is_converged or adapter.status in _UNSETTLED:
                    self.schedule(adapter.adapter_id)
                    scheduled += 1
            token = page.continuation_token
            if token is None:
                break

        self._logger.info("reconcile_resync_completed", scheduled=scheduled)
        return scheduled


__all__ = ["ReconciliationScheduler"]
