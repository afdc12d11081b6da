"""Tool Management Service.

Tools are declared on the adapter record; changing the declared set
produces a new adapter generation. Tool rows in the tool store are
materialized by reconciliation and are read-only here.
"""

from typing import Any, List, Optional

from gateway_control.deployment import ReconciliationScheduler
from gateway_control.errors import ConflictError, NotFoundError
from gateway_control.logging import get_component_logger
from gateway_control.protocols import (
    AdapterResource,
    AdapterStatus,
    CallerIdentity,
    ClockProtocol,
    LoggerProtocol,
    Operation,
    PermissionProviderProtocol,
    ResourceStoreProtocol,
    ToolDefinition,
    ToolResource,
    tool_key,
)
from gateway_control.services.common import (
    adapter_scope,
    require_permission,
    submit_revision,
    validate_request,
)
from gateway_control.settings import Settings


class ToolManagementService:
    """Add, replace, remove and read the tools of an adapter."""

    def __init__(
        self,
        adapters: ResourceStoreProtocol[AdapterResource],
        tools: ResourceStoreProtocol[ToolResource],
        scheduler: ReconciliationScheduler,
        permissions: PermissionProviderProtocol,
        settings: Settings,
        clock: ClockProtocol,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._adapters = adapters
        self._tools = tools
        self._scheduler = scheduler
        self._permissions = permissions
        self._settings = settings
        self._clock = clock
        self._logger = get_component_logger("ToolManagementService", logger)

    async def register_tool(
        self,
        identity: CallerIdentity,
        adapter_id: str,
        request: Any,
        expected_generation: Optional[int] = None,
    ) -> AdapterResource:
        """Add or replace one tool in the adapter's declared set.

        Re-registering an identical definition is a no-op and returns the
        adapter unchanged.
        """
        definition = validate_request(ToolDefinition, request)

        async def revise(current: AdapterResource) -> Optional[AdapterResource]:
            await require_permission(
                self._permissions,
                identity,
                Operation.UPDATE,
                adapter_scope(current, definition.name),
            )
            self._reject_if_deleting(current)

            tools = list(current.tools)
            for index, tool in enumerate(tools):
                if tool.name == definition.name:
                    if tool == definition:
                        return None
                    tools[index] = definition
                    break
            else:
                tools.append(definition)
            return self._revised(current, tools)

        record = await submit_revision(
            self._adapters,
            adapter_id,
            revise,
            expected_generation=expected_generation,
            retries=self._settings.management_conflict_retries,
            logger=self._logger,
        )
        self._logger.info(
            "tool_registered",
            adapter_id=adapter_id,
            tool_name=definition.name,
            generation=record.generation,
        )
        self._scheduler.schedule(adapter_id)
        return record

    async def delete_tool(
        self,
        identity: CallerIdentity,
        adapter_id: str,
        tool_name: str,
        expected_generation: Optional[int] = None,
    ) -> AdapterResource:
        """Remove a tool from the adapter's declared set.

        Raises:
            NotFoundError: The adapter does not declare the tool
        """
        async def revise(current: AdapterResource) -> AdapterResource:
            await require_permission(
                self._permissions,
                identity,
                Operation.UPDATE,
                adapter_scope(current, tool_name),
            )
            self._reject_if_deleting(current)

            tools = [tool for tool in current.tools if tool.name != tool_name]
            if len(tools) == len(current.tools):
                raise NotFoundError(f"tool '{tool_name}' not declared by adapter '{adapter_id}'")
            return self._revised(current, tools)

        record = await submit_revision(
            self._adapters,
            adapter_id,
            revise,
            expected_generation=expected_generation,
            retries=self._settings.management_conflict_retries,
            logger=self._logger,
        )
        self._logger.info(
            "tool_deleted",
            adapter_id=adapter_id,
            tool_name=tool_name,
            generation=record.generation,
        )
        self._scheduler.schedule(adapter_id)
        return record

    async def get_tool(self, identity: CallerIdentity, adapter_id: str, tool_name: str) -> ToolResource:
        """Materialized tool row.

        Raises:
            NotFoundError: Unknown adapter, or the tool is not (yet) materialized
        """
        adapter = await self._adapters.get(adapter_id)
        await require_permission(
            self._permissions, identity, Operation.READ, adapter_scope(adapter, tool_name)
        )
        return await self._tools.get(tool_key(adapter_id, tool_name))

    async def list_tools(self, identity: CallerIdentity, adapter_id: str) -> List[ToolResource]:
        """All materialized tool rows of an adapter, ordered by name."""
        adapter = await self._adapters.get(adapter_id)
        await require_permission(self._permissions, identity, Operation.READ, adapter_scope(adapter))

        rows: List[ToolResource] = []
        token: Optional[str] = None
        while True:
            page = await self._tools.list(
                partition=adapter_id,
                page_size=self._settings.list_page_size,
                continuation_token=token,
            )
            rows.extend(page.items)
            token = page.continuation_token
            if token is None:
                break
        return sorted(rows, key=lambda row: row.tool_name)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _reject_if_deleting(adapter: AdapterResource) -> None:
        if adapter.status == AdapterStatus.DELETING:
            raise ConflictError(f"adapter '{adapter.adapter_id}' is being deleted")

    def _revised(self, current: AdapterResource, tools: List[ToolDefinition]) -> AdapterResource:
        status = current.status
        message = current.status_message
        if status == AdapterStatus.FAILED:
            status, message = AdapterStatus.PENDING, None
        return AdapterResource.model_validate({
            **current.model_dump(),
            "tools": [tool.model_dump() for tool in tools],
            "generation": current.generation + 1,
            "status": status,
            "status_message": message,
            "last_updated_at": self._clock.utcnow(),
        })


__all__ = ["ToolManagementService"]
