"""Adapter Management Service.

Accepts desired state from callers, persists it as a new generation and
schedules background reconciliation. Every operation checks permission
before touching the store or the cluster. Mutations return as soon as the
store accepts the record; convergence is observed through status fields.
"""

from typing import Any, List, Optional
from uuid import uuid4

from gateway_control.deployment import KubernetesAdapterDeploymentManager, ReconciliationScheduler
from gateway_control.errors import ConflictError, ValidationError
from gateway_control.logging import get_component_logger
from gateway_control.protocols import (
    AdapterData,
    AdapterResource,
    AdapterStatus,
    CallerIdentity,
    ClockProtocol,
    Decision,
    LoggerProtocol,
    Operation,
    Page,
    PermissionProviderProtocol,
    ResourceScope,
    ResourceStoreProtocol,
)
from gateway_control.services.common import (
    adapter_scope,
    require_permission,
    submit_revision,
    validate_request,
)
from gateway_control.settings import Settings


class AdapterManagementService:
    """Register, update, delete and read adapters."""

    def __init__(
        self,
        adapters: ResourceStoreProtocol[AdapterResource],
        manager: KubernetesAdapterDeploymentManager,
        scheduler: ReconciliationScheduler,
        permissions: PermissionProviderProtocol,
        settings: Settings,
        clock: ClockProtocol,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._adapters = adapters
        self._manager = manager
        self._scheduler = scheduler
        self._permissions = permissions
        self._settings = settings
        self._clock = clock
        self._logger = get_component_logger("AdapterManagementService", logger)

    async def register_adapter(self, identity: CallerIdentity, request: Any) -> AdapterResource:
        """Create an adapter at generation 1 with status Pending.

        Raises:
            ValidationError: Malformed request
            ForbiddenError: Caller may not create adapters
            ConflictError: An adapter with this id already exists
        """
        data = validate_request(AdapterData, request)
        await require_permission(
            self._permissions, identity, Operation.CREATE, ResourceScope(adapter_id=data.adapter_id)
        )

        now = self._clock.utcnow()
        record = AdapterResource.model_validate({
            **data.model_dump(),
            "adapter_id": data.adapter_id or uuid4().hex,
            "created_by": identity.subject,
            "created_at": now,
            "last_updated_at": now,
        })
        try:
            record = await self._adapters.put(record, expected_generation=0)
        except ConflictError as e:
            raise ConflictError(f"adapter '{record.adapter_id}' already exists") from e

        self._logger.info(
            "adapter_registered",
            adapter_id=record.adapter_id,
            created_by=identity.subject,
            image=record.image,
            tools=len(record.tools),
        )
        self._scheduler.schedule(record.adapter_id)
        return record

    async def update_adapter(
        self,
        identity: CallerIdentity,
        adapter_id: str,
        request: Any,
        expected_generation: Optional[int] = None,
    ) -> AdapterResource:
        """Replace an adapter's desired state, producing a new generation.

        Raises:
            ValidationError: Malformed request or mismatched adapter_id
            NotFoundError: Unknown adapter
            ForbiddenError: Caller is neither owner nor admin
            ConflictError: Stale expected_generation, adapter is being
                deleted, or retries exhausted
        """
        data = validate_request(AdapterData, request)
        if data.adapter_id is not None and data.adapter_id != adapter_id:
            raise ValidationError(
                f"adapter_id in body ('{data.adapter_id}') does not match '{adapter_id}'"
            )
        desired = data.model_dump(exclude={"adapter_id"})

        async def revise(current: AdapterResource) -> AdapterResource:
            await require_permission(
                self._permissions, identity, Operation.UPDATE, adapter_scope(current)
            )
            if current.status == AdapterStatus.DELETING:
                raise ConflictError(f"adapter '{adapter_id}' is being deleted")

            status = current.status
            message = current.status_message
            if status == AdapterStatus.FAILED:
                status, message = AdapterStatus.PENDING, None

            return AdapterResource.model_validate({
                **current.model_dump(),
                **desired,
                "generation": current.generation + 1,
                "status": status,
                "status_message": message,
                "last_updated_at": self._clock.utcnow(),
            })

        record = await submit_revision(
            self._adapters,
            adapter_id,
            revise,
            expected_generation=expected_generation,
            retries=self._settings.management_conflict_retries,
            logger=self._logger,
        )
        self._logger.info(
            "adapter_updated",
            adapter_id=adapter_id,
            generation=record.generation,
            updated_by=identity.subject,
        )
        self._scheduler.schedule(adapter_id)
        return record

    async def delete_adapter(
        self,
        identity: CallerIdentity,
        adapter_id: str,
        expected_generation: Optional[int] = None,
    ) -> AdapterResource:
        """Mark an adapter Deleting; the record is purged after the workload is gone.

        Deleting an adapter that is already Deleting is accepted and
        returns the record unchanged.
        """
        async def revise(current: AdapterResource) -> Optional[AdapterResource]:
            await require_permission(
                self._permissions, identity, Operation.DELETE, adapter_scope(current)
            )
            if current.status == AdapterStatus.DELETING:
                return None
            return current.model_copy(update={
                "generation": current.generation + 1,
                "status": AdapterStatus.DELETING,
                "status_message": None,
                "last_updated_at": self._clock.utcnow(),
            })

        record = await submit_revision(
            self._adapters,
            adapter_id,
            revise,
            expected_generation=expected_generation,
            retries=self._settings.management_conflict_retries,
            logger=self._logger,
        )
        self._logger.info(
            "adapter_delete_requested",
            adapter_id=adapter_id,
            generation=record.generation,
            deleted_by=identity.subject,
        )
        self._scheduler.schedule(adapter_id)
        return record

    async def get_adapter(self, identity: CallerIdentity, adapter_id: str) -> AdapterResource:
        record = await self._adapters.get(adapter_id)
        await require_permission(self._permissions, identity, Operation.READ, adapter_scope(record))
        return record

    async def list_adapters(
        self,
        identity: CallerIdentity,
        page_size: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> Page[AdapterResource]:
        """One page of adapters, filtered to those the caller may read."""
        page = await self._adapters.list(
            page_size=page_size or self._settings.list_page_size,
            continuation_token=continuation_token,
        )
        visible: List[AdapterResource] = []
        for record in page.items:
            decision = await self._permissions.authorize(identity, Operation.READ, adapter_scope(record))
            if decision == Decision.ALLOW:
                visible.append(record)
        return Page(items=visible, continuation_token=page.continuation_token)

    async def get_adapter_logs(self, identity: CallerIdentity, adapter_id: str, instance: int = 0) -> str:
        """Log text of one running instance of an adapter.

        Raises:
            NotFoundError: Unknown adapter, or no instance at that index
        """
        record = await self.get_adapter(identity, adapter_id)
        return await self._manager.get_logs(record.adapter_id, instance)


__all__ = ["AdapterManagementService"]
