"""Protocols and shared types.

Usage:
    from gateway_control.protocols import AdapterResource, LoggerProtocol
"""

from gateway_control.protocols.interfaces import (
    ClockProtocol,
    ClusterClientProtocol,
    LoggerProtocol,
    PermissionProviderProtocol,
    RequestContext,
    ResourceStoreProtocol,
)
from gateway_control.protocols.types import (
    MAX_ADAPTER_ID_LENGTH,
    AdapterData,
    AdapterResource,
    AdapterStatus,
    AppliedRevision,
    CallerIdentity,
    Decision,
    Operation,
    Page,
    ResourceProfile,
    ResourceScope,
    ToolDefinition,
    ToolResource,
    WorkloadSpec,
    WorkloadStatus,
    tool_key,
)

__all__ = [
    # Interfaces
    "ClockProtocol",
    "ClusterClientProtocol",
    "LoggerProtocol",
    "PermissionProviderProtocol",
    "RequestContext",
    "ResourceStoreProtocol",
    # Types
    "MAX_ADAPTER_ID_LENGTH",
    "AdapterData",
    "AdapterResource",
    "AdapterStatus",
    "AppliedRevision",
    "CallerIdentity",
    "Decision",
    "Operation",
    "Page",
    "ResourceProfile",
    "ResourceScope",
    "ToolDefinition",
    "ToolResource",
    "WorkloadSpec",
    "WorkloadStatus",
    "tool_key",
]
