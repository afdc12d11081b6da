"""Root conftest.py for gateway-control tests.

This file MUST be at the repository root for fixtures to be discovered
when running tests from any subdirectory.

Provides shared fixtures used across all test modules:
- mock_logger        - MagicMock implementing LoggerProtocol
- settings           - memory backend, zero backoff, test registry
- adapter_store / tool_store - in-memory resource stores
- cluster            - FakeClusterClient
- manager / scheduler / permissions / *_service - wired components
- owner / other / admin - caller identities
- make_adapter       - AdapterResource factory
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from gateway_control.authorization import SimplePermissionProvider
from gateway_control.deployment import KubernetesAdapterDeploymentManager, ReconciliationScheduler
from gateway_control.protocols import AdapterResource, AdapterStatus, CallerIdentity, ToolResource
from gateway_control.services import (
    AdapterManagementService,
    AdapterRichResultProvider,
    ToolManagementService,
)
from gateway_control.settings import Settings
from gateway_control.store import KIND_ADAPTERS, KIND_TOOLS, InMemoryResourceStore
from tests.fixtures import FakeClock, FakeClusterClient


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    bind() returns the same mock so component loggers can be asserted on.
    """
    logger = MagicMock()
    logger.info = MagicMock()
    logger.debug = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    logger.bind = MagicMock(return_value=logger)
    return logger


@pytest.fixture
def settings():
    """Settings for tests: memory store, no backoff delay, no .env lookup."""
    return Settings(
        _env_file=None,
        store_backend="memory",
        container_registry_endpoint="registry.example.io",
        reconcile_max_attempts=3,
        reconcile_backoff_base_seconds=0,
        reconcile_backoff_max_seconds=0,
        list_page_size=2,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def adapter_store(mock_logger):
    return InMemoryResourceStore(KIND_ADAPTERS, AdapterResource, logger=mock_logger)


@pytest.fixture
def tool_store(mock_logger):
    return InMemoryResourceStore(KIND_TOOLS, ToolResource, logger=mock_logger)


@pytest.fixture
def cluster():
    return FakeClusterClient()


@pytest.fixture
def manager(adapter_store, tool_store, cluster, settings, clock, mock_logger):
    return KubernetesAdapterDeploymentManager(
        adapters=adapter_store,
        tools=tool_store,
        cluster=cluster,
        settings=settings,
        clock=clock,
        logger=mock_logger,
        sleep=AsyncMock(),
    )


@pytest.fixture
def scheduler(manager, mock_logger):
    return ReconciliationScheduler(manager, logger=mock_logger)


@pytest.fixture
def permissions(mock_logger):
    return SimplePermissionProvider(admin_role="mcp.admin", logger=mock_logger)


@pytest.fixture
def adapter_service(adapter_store, manager, scheduler, permissions, settings, clock, mock_logger):
    return AdapterManagementService(
        adapters=adapter_store,
        manager=manager,
        scheduler=scheduler,
        permissions=permissions,
        settings=settings,
        clock=clock,
        logger=mock_logger,
    )


@pytest.fixture
def tool_service(adapter_store, tool_store, scheduler, permissions, settings, clock, mock_logger):
    return ToolManagementService(
        adapters=adapter_store,
        tools=tool_store,
        scheduler=scheduler,
        permissions=permissions,
        settings=settings,
        clock=clock,
        logger=mock_logger,
    )


@pytest.fixture
def rich_results(adapter_store, manager, permissions, settings, mock_logger):
    return AdapterRichResultProvider(
        adapters=adapter_store,
        manager=manager,
        permissions=permissions,
        settings=settings,
        logger=mock_logger,
    )


@pytest.fixture
def owner():
    return CallerIdentity(subject="alice")


@pytest.fixture
def other():
    return CallerIdentity(subject="bob")


@pytest.fixture
def admin():
    return CallerIdentity(subject="root", roles=frozenset({"mcp.admin"}))


@pytest.fixture
def make_adapter():
    """Factory for AdapterResource records with sensible defaults."""

    def _make(adapter_id: str = "A1", **overrides) -> AdapterResource:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        fields = {
            "adapter_id": adapter_id,
            "display_name": f"Adapter {adapter_id}",
            "image": "img:v1",
            "created_by": "alice",
            "created_at": now,
            "last_updated_at": now,
            "status": AdapterStatus.PENDING,
            "generation": 1,
            "last_observed_revision": 0,
        }
        fields.update(overrides)
        return AdapterResource.model_validate(fields)

    return _make
