"""AppContext - the wired dependency set of one management plane process.

Built by the composition root (bootstrap) and handed to whatever transport
sits in front of the services.

Usage:
    from gateway_control.bootstrap import create_app_context

    ctx = await create_app_context()
    record = await ctx.adapter_service.register_adapter(identity, request)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from gateway_control.authorization import SimplePermissionProvider
from gateway_control.deployment import KubernetesAdapterDeploymentManager, ReconciliationScheduler
from gateway_control.protocols import ClockProtocol, ClusterClientProtocol, LoggerProtocol
from gateway_control.services import (
    AdapterManagementService,
    AdapterRichResultProvider,
    ToolManagementService,
)
from gateway_control.settings import Settings
from gateway_control.store import ResourceStores


class SystemClock:
    """Wall-clock time source. Replace with a fixed clock in tests."""

    def utcnow(self) -> datetime:
        """Current UTC datetime with timezone info."""
        return datetime.now(timezone.utc)


@dataclass
class AppContext:
    """Concrete dependency container.

    Attributes:
        settings: Process settings
        logger: Root logger
        stores: Adapter and tool stores of the configured backend
        cluster: Cluster client scoped to the adapter namespace
        permissions: Permission provider
        manager: Deployment Manager
        scheduler: Background reconciliation scheduler
        adapter_service: Adapter Management Service
        tool_service: Tool Management Service
        rich_results: Rich Result Provider
        clock: Time source
    """

    settings: Settings
    logger: LoggerProtocol
    stores: ResourceStores
    cluster: ClusterClientProtocol
    permissions: SimplePermissionProvider
    manager: KubernetesAdapterDeploymentManager
    scheduler: ReconciliationScheduler
    adapter_service: AdapterManagementService
    tool_service: ToolManagementService
    rich_results: AdapterRichResultProvider
    clock: ClockProtocol = field(default_factory=SystemClock)


__all__ = ["AppContext", "SystemClock"]
