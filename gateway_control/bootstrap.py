"""Composition Root - build AppContext and inject dependencies.

This is the ONLY place where concrete implementations are instantiated
and wired together. Everything downstream receives its dependencies by
constructor injection; there are no process-wide singletons besides
settings.

Usage:
    from gateway_control.bootstrap import create_app_context, close_app_context

    ctx = await create_app_context()
    try:
        ...
    finally:
        await close_app_context(ctx)
"""

from typing import Optional

from gateway_control.authorization import SimplePermissionProvider
from gateway_control.cluster import KubeClient, KubernetesClientFactory
from gateway_control.context import AppContext, SystemClock
from gateway_control.deployment import KubernetesAdapterDeploymentManager, ReconciliationScheduler
from gateway_control.logging import configure_logging, create_logger
from gateway_control.protocols import ClockProtocol, ClusterClientProtocol
from gateway_control.services import (
    AdapterManagementService,
    AdapterRichResultProvider,
    ToolManagementService,
)
from gateway_control.settings import Settings, get_settings
from gateway_control.store import create_resource_stores


async def create_app_context(
    settings: Optional[Settings] = None,
    *,
    cluster_client: Optional[ClusterClientProtocol] = None,
    clock: Optional[ClockProtocol] = None,
    resync: bool = True,
) -> AppContext:
    """Create AppContext once per process.

    Args:
        settings: Optional pre-configured settings. Uses get_settings() if None.
        cluster_client: Optional cluster client. Builds a KubeClient from
            in-cluster config (kubeconfig fallback) if None.
        clock: Optional time source. SystemClock if None.
        resync: Schedule reconciliation of unsettled records found in the store

    Returns:
        AppContext with all dependencies wired.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(level=settings.log_level, json_output=settings.log_json)
    root_logger = create_logger("gateway_control")

    if clock is None:
        clock = SystemClock()

    stores = await create_resource_stores(settings, logger=root_logger)

    if cluster_client is None:
        factory = KubernetesClientFactory(
            kubeconfig_path=settings.kubeconfig_path,
            context=settings.kube_context,
            logger=root_logger,
        )
        cluster_client = KubeClient.from_factory(
            factory,
            namespace=settings.adapter_namespace,
            call_timeout=settings.cluster_call_timeout_seconds,
            logger=root_logger,
        )

    permissions = SimplePermissionProvider(admin_role=settings.admin_role, logger=root_logger)
    manager = KubernetesAdapterDeploymentManager(
        adapters=stores.adapters,
        tools=stores.tools,
        cluster=cluster_client,
        settings=settings,
        clock=clock,
        logger=root_logger,
    )
    scheduler = ReconciliationScheduler(manager, logger=root_logger)

    ctx = AppContext(
        settings=settings,
        logger=root_logger,
        stores=stores,
        cluster=cluster_client,
        permissions=permissions,
        manager=manager,
        scheduler=scheduler,
        adapter_service=AdapterManagementService(
            adapters=stores.adapters,
            manager=manager,
            scheduler=scheduler,
            permissions=permissions,
            settings=settings,
            clock=clock,
            logger=root_logger,
        ),
        tool_service=ToolManagementService(
            adapters=stores.adapters,
            tools=stores.tools,
            scheduler=scheduler,
            permissions=permissions,
            settings=settings,
            clock=clock,
            logger=root_logger,
        ),
        rich_results=AdapterRichResultProvider(
            adapters=stores.adapters,
            manager=manager,
            permissions=permissions,
            settings=settings,
            logger=root_logger,
        ),
        clock=clock,
    )

    root_logger.info(
        "app_context_created",
        store_backend=settings.store_backend,
        namespace=cluster_client.namespace,
        registry=settings.container_registry_endpoint,
        retry_policy=settings.retry_policy(),
    )

    if resync:
        await scheduler.resync(stores.adapters, page_size=settings.list_page_size)

    return ctx


async def close_app_context(ctx: AppContext) -> None:
    """Wait for in-flight reconciliation, then release store connections."""
    await ctx.scheduler.drain()
    await ctx.stores.close()
    ctx.logger.info("app_context_closed")


__all__ = ["create_app_context", "close_app_context"]
