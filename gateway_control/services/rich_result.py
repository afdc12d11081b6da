"""Rich Result Provider - persisted adapter records overlaid with live state.

The overlay is never written back. A live read failure returns the persisted
status flagged ``stale``; a Running record whose workload is missing or not
ready is reported as Degraded.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from gateway_control.deployment import KubernetesAdapterDeploymentManager
from gateway_control.errors import NotFoundError, UnauthorizedError, UnavailableError
from gateway_control.logging import get_component_logger
from gateway_control.protocols import (
    AdapterResource,
    AdapterStatus,
    CallerIdentity,
    Decision,
    LoggerProtocol,
    Operation,
    Page,
    PermissionProviderProtocol,
    ResourceStoreProtocol,
    WorkloadStatus,
)
from gateway_control.services.common import adapter_scope, require_permission
from gateway_control.settings import Settings


@dataclass(frozen=True)
class AdapterRichResult:
    """Adapter record plus live workload status."""

    adapter: AdapterResource
    workload: Optional[WorkloadStatus]
    effective_status: AdapterStatus
    stale: bool = False

    def to_dict(self) -> Dict[str, Any]:
        workload = None
        if self.workload is not None:
            workload = {
                "name": self.workload.name,
                "ready": self.workload.ready,
                "replicas": self.workload.replicas,
                "ready_replicas": self.workload.ready_replicas,
                "updated_replicas": self.workload.updated_replicas,
                "available_replicas": self.workload.available_replicas,
                "image": self.workload.image,
                "last_transition_time": (
                    self.workload.last_transition_time.isoformat()
                    if self.workload.last_transition_time else None
                ),
            }
        return {
            **self.adapter.model_dump(mode="json"),
            "status": self.effective_status.value,
            "workload": workload,
            "stale": self.stale,
        }


class AdapterRichResultProvider:
    """Builds AdapterRichResult views for callers."""

    def __init__(
        self,
        adapters: ResourceStoreProtocol[AdapterResource],
        manager: KubernetesAdapterDeploymentManager,
        permissions: PermissionProviderProtocol,
        settings: Settings,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._adapters = adapters
        self._manager = manager
        self._permissions = permissions
        self._settings = settings
        self._logger = get_component_logger("AdapterRichResultProvider", logger)

    async def get_adapter_status(self, identity: CallerIdentity, adapter_id: str) -> AdapterRichResult:
        record = await self._adapters.get(adapter_id)
        await require_permission(self._permissions, identity, Operation.READ, adapter_scope(record))
        return await self._overlay(record)

    async def list_adapter_statuses(
        self,
        identity: CallerIdentity,
        page_size: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> Page[AdapterRichResult]:
        page = await self._adapters.list(
            page_size=page_size or self._settings.list_page_size,
            continuation_token=continuation_token,
        )
        visible: List[AdapterResource] = []
        for record in page.items:
            decision = await self._permissions.authorize(identity, Operation.READ, adapter_scope(record))
            if decision == Decision.ALLOW:
                visible.append(record)

        results = await asyncio.gather(*(self._overlay(record) for record in visible))
        return Page(items=list(results), continuation_token=page.continuation_token)

    async def _overlay(self, record: AdapterResource) -> AdapterRichResult:
        try:
            live: Optional[WorkloadStatus] = await self._manager.get_workload_status(record.adapter_id)
        except NotFoundError:
            live = None
        except (UnavailableError, UnauthorizedError) as e:
            self._logger.warning(
                "live_status_unavailable",
                adapter_id=record.adapter_id,
                code=e.code,
                error=e.message,
            )
            return AdapterRichResult(
                adapter=record,
                workload=None,
                effective_status=record.status,
                stale=True,
            )

        effective = record.status
        if record.status == AdapterStatus.RUNNING and (live is None or not live.ready):
            effective = AdapterStatus.DEGRADED
        return AdapterRichResult(adapter=record, workload=live, effective_status=effective)


__all__ = ["AdapterRichResult", "AdapterRichResultProvider"]
