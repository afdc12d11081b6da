"""Deployment Manager - drives cluster workloads toward adapter records.

Reconciliation pass for one adapter:
1. Load the record. Converged + Running + live workload ready -> no-op.
2. Mark Provisioning (conditional on the current generation).
3. Build the WorkloadSpec and ensure() it under the per-name gate.
4. Materialize the declared tool set.
5. Write Running with last_observed_revision = generation, conditional on
   that generation. A catalog that still fails on the last attempt is
   written Degraded and the revision is left behind.

Failure handling:
- ConflictError      -> a newer intent exists; discard the pass, re-read.
                        Cluster 409s are retried as UnavailableError
- UnavailableError   -> retry the pass with bounded exponential backoff,
                        then mark Failed
- UnauthorizedError,
  ValidationError    -> mark Failed immediately

Deletion order is fixed: remove workload, cascade tool rows, delete record.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from gateway_control.deployment.workload import build_workload_spec, workload_name
from gateway_control.errors import (
    ConflictError,
    ManagementError,
    NotFoundError,
    ReconciliationFailedError,
    UnauthorizedError,
    UnavailableError,
    ValidationError,
)
from gateway_control.logging import get_component_logger
from gateway_control.protocols import (
    AdapterResource,
    AdapterStatus,
    ClockProtocol,
    ClusterClientProtocol,
    LoggerProtocol,
    ResourceStoreProtocol,
    ToolResource,
    WorkloadStatus,
    tool_key,
)
from gateway_control.settings import Settings
from gateway_control.utils import truncate_string

MAX_STATUS_MESSAGE_LENGTH = 1024

T = TypeVar("T")


class KubernetesAdapterDeploymentManager:
    """Reconciles adapter records against Kubernetes workloads.

    Usage:
        manager = KubernetesAdapterDeploymentManager(
            adapters=stores.adapters,
            tools=stores.tools,
            cluster=kube_client,
            settings=settings,
            clock=SystemClock(),
        )
        await manager.reconcile("A1")
    """

    def __init__(
        self,
        adapters: ResourceStoreProtocol[AdapterResource],
        tools: ResourceStoreProtocol[ToolResource],
        cluster: ClusterClientProtocol,
        settings: Settings,
        clock: ClockProtocol,
        logger: Optional[LoggerProtocol] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize deployment manager.

        Args:
            adapters: Adapter record store
            tools: Tool catalog store
            cluster: Cluster client
            settings: Settings (namespace, registry, retry policy)
            clock: Time source for audit timestamps
            logger: Logger for DI (uses context logger if not provided)
            sleep: Backoff sleep, replaceable in tests
        """
        self._adapters = adapters
        self._tools = tools
        self._cluster = cluster
        self._settings = settings
        self._clock = clock
        self._sleep = sleep
        self._logger = get_component_logger("DeploymentManager", logger)
        self._gates: Dict[str, asyncio.Lock] = {}

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def reconcile(self, adapter_id: str) -> Optional[AdapterResource]:
        """Run reconciliation passes until the adapter settles.

        Returns:
            The settled record, or None when the record no longer exists
            (deleted, or purged by this pass).
        """
        failures = 0
        generation: Optional[int] = None

        while True:
            try:
                adapter = await self._adapters.get(adapter_id)
            except NotFoundError:
                self._logger.info("adapter_reconcile_skipped", adapter_id=adapter_id, reason="not_found")
                return None
            except UnavailableError as e:
                failures += 1
                if failures >= self._settings.reconcile_max_attempts:
                    self._logger.error(
                        "adapter_reconcile_abandoned",
                        adapter_id=adapter_id,
                        attempts=failures,
                        error=str(e),
                    )
                    raise
                await self._backoff(adapter_id, failures, e)
                continue

            generation = adapter.generation
            try:
                if adapter.status == AdapterStatus.DELETING:
                    await self._reconcile_deletion(adapter)
                    return None
                final_attempt = failures + 1 >= self._settings.reconcile_max_attempts
                return await self._reconcile_workload(adapter, final_attempt)
            except ConflictError as e:
                self._logger.info(
                    "adapter_reconcile_superseded",
                    adapter_id=adapter_id,
                    generation=generation,
                    reason=e.message,
                )
                continue
            except UnavailableError as e:
                failures += 1
                if failures >= self._settings.reconcile_max_attempts:
                    return await self._mark_failed(adapter_id, generation, e)
                await self._backoff(adapter_id, failures, e)
            except (UnauthorizedError, ValidationError) as e:
                return await self._mark_failed(adapter_id, generation, e)

    async def _reconcile_workload(self, adapter: AdapterResource, final_attempt: bool = False) -> AdapterResource:
        name = workload_name(adapter.adapter_id)

        if adapter.is_converged and adapter.status == AdapterStatus.RUNNING:
            if await self._workload_ready(name):
                self._logger.debug(
                    "adapter_already_converged",
                    adapter_id=adapter.adapter_id,
                    generation=adapter.generation,
                )
                return adapter

        if adapter.status != AdapterStatus.PROVISIONING:
            adapter = await self._write_status(adapter, AdapterStatus.PROVISIONING, None)

        spec = build_workload_spec(adapter, self._settings)
        async with self._gate(name):
            revision = await self._cluster_call(self._cluster.ensure(spec), name)

        status = AdapterStatus.RUNNING
        message: Optional[str] = None
        observed: Optional[int] = adapter.generation
        try:
            await self._reconcile_tools(adapter)
        except ConflictError:
            raise
        except ManagementError as e:
            if isinstance(e, UnavailableError) and not final_attempt:
                raise
            # Revision stays behind so resync retries the catalog
            status = AdapterStatus.DEGRADED
            observed = None
            message = truncate_string(f"tool catalog: {e.message}", MAX_STATUS_MESSAGE_LENGTH)
            self._logger.warning(
                "adapter_tools_reconcile_failed",
                adapter_id=adapter.adapter_id,
                code=e.code,
                error=e.message,
            )

        settled = await self._write_status(
            adapter,
            status,
            message,
            last_observed_revision=observed,
        )
        self._logger.info(
            "adapter_reconciled",
            adapter_id=adapter.adapter_id,
            workload=name,
            generation=settled.generation,
            status=settled.status.value,
            changed=revision.changed,
        )
        return settled

    async def _workload_ready(self, name: str) -> bool:
        try:
            status = await self._cluster.get_status(name)
        except NotFoundError:
            return False
        return status.ready

    async def _reconcile_deletion(self, adapter: AdapterResource) -> None:
        name = workload_name(adapter.adapter_id)

        async with self._gate(name):
            try:
                await self._cluster_call(self._cluster.remove(name), name)
            except NotFoundError:
                self._logger.debug("workload_already_absent", adapter_id=adapter.adapter_id, workload=name)

        removed_tools = 0
        for row in await self._list_tools(adapter.adapter_id):
            try:
                await self._tools.delete(row.resource_key)
                removed_tools += 1
            except NotFoundError:
                pass

        try:
            await self._adapters.delete(adapter.adapter_id, expected_generation=adapter.generation)
        except NotFoundError:
            pass

        self._logger.info(
            "adapter_deleted",
            adapter_id=adapter.adapter_id,
            workload=name,
            generation=adapter.generation,
            tools_removed=removed_tools,
        )

    async def _reconcile_tools(self, adapter: AdapterResource) -> None:
        """Insert missing, update changed and delete undeclared tool rows."""
        existing = {row.tool_name: row for row in await self._list_tools(adapter.adapter_id)}
        declared = {tool.name: tool for tool in adapter.tools}
        now = self._clock.utcnow()

        for name, definition in declared.items():
            row = existing.get(name)
            if row is None:
                await self._tools.put(
                    ToolResource(
                        adapter_id=adapter.adapter_id,
                        tool_name=name,
                        definition=definition,
                        created_at=now,
                        last_updated_at=now,
                    ),
                    expected_generation=0,
                )
            elif row.definition != definition:
                await self._tools.put(
                    row.model_copy(update={
                        "definition": definition,
                        "generation": row.generation + 1,
                        "last_updated_at": now,
                    }),
                    expected_generation=row.generation,
                )

        for name, row in existing.items():
            if name not in declared:
                try:
                    await self._tools.delete(row.resource_key, expected_generation=row.generation)
                except NotFoundError:
                    pass

    async def _list_tools(self, adapter_id: str) -> List[ToolResource]:
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
                return rows

    # =========================================================================
    # STATUS WRITES
    # =========================================================================

    async def _write_status(
        self,
        adapter: AdapterResource,
        status: AdapterStatus,
        message: Optional[str],
        last_observed_revision: Optional[int] = None,
    ) -> AdapterResource:
        """Conditional status write. Generation is unchanged."""
        update = {
            "status": status,
            "status_message": message,
            "last_updated_at": self._clock.utcnow(),
        }
        if last_observed_revision is not None:
            update["last_observed_revision"] = last_observed_revision
        return await self._adapters.put(
            adapter.model_copy(update=update),
            expected_generation=adapter.generation,
        )

    async def _mark_failed(
        self,
        adapter_id: str,
        generation: Optional[int],
        error: ManagementError,
    ) -> Optional[AdapterResource]:
        failure = ReconciliationFailedError(adapter_id, f"{error.code}: {error.message}")
        self._logger.error(
            "adapter_reconcile_failed",
            adapter_id=adapter_id,
            generation=generation,
            code=error.code,
            error=error.message,
        )

        try:
            current = await self._adapters.get(adapter_id)
        except NotFoundError:
            return None
        if current.generation != generation:
            self._logger.info("adapter_failure_superseded", adapter_id=adapter_id, generation=generation)
            return current

        try:
            return await self._write_status(
                current,
                AdapterStatus.FAILED,
                truncate_string(failure.message, MAX_STATUS_MESSAGE_LENGTH),
            )
        except ConflictError:
            self._logger.info("adapter_failure_superseded", adapter_id=adapter_id, generation=generation)
            return None

    # =========================================================================
    # HELPERS
    # =========================================================================

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (1-based): min(base * 2**(n-1), max)."""
        base = self._settings.reconcile_backoff_base_seconds
        return min(base * (2 ** (attempt - 1)), self._settings.reconcile_backoff_max_seconds)

    async def _backoff(self, adapter_id: str, attempt: int, error: ManagementError) -> None:
        delay = self.backoff_delay(attempt)
        self._logger.warning(
            "adapter_reconcile_retrying",
            adapter_id=adapter_id,
            attempt=attempt,
            max_attempts=self._settings.reconcile_max_attempts,
            delay_seconds=delay,
            error=error.message,
        )
        await self._sleep(delay)

    async def _cluster_call(self, call: Awaitable[T], name: str) -> T:
        """Await a cluster mutation. A 409 that survived the client's own retry
        counts as a transient failure of the pass, not as a newer intent.
        """
        try:
            return await call
        except ConflictError as e:
            raise UnavailableError(f"workload '{name}' conflict persisted: {e.message}") from e

    def _gate(self, name: str) -> asyncio.Lock:
        lock = self._gates.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._gates[name] = lock
        return lock

    # =========================================================================
    # LIVE READS
    # =========================================================================

    async def get_workload_status(self, adapter_id: str) -> WorkloadStatus:
        """Live status of an adapter's workload."""
        return await self._cluster.get_status(workload_name(adapter_id))

    async def get_logs(self, adapter_id: str, instance: int = 0) -> str:
        """Log text of one instance of an adapter's workload."""
        return await self._cluster.get_logs(workload_name(adapter_id), instance)


__all__ = ["KubernetesAdapterDeploymentManager", "MAX_STATUS_MESSAGE_LENGTH"]
