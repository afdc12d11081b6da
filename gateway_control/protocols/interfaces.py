"""Protocol definitions - interfaces for dependency injection.

These are typing.Protocol classes for static type checking. Concrete
implementations are wired together in gateway_control.bootstrap.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Protocol, TypeVar, runtime_checkable

from gateway_control.protocols.types import (
    AppliedRevision,
    CallerIdentity,
    Decision,
    Operation,
    Page,
    ResourceScope,
    WorkloadSpec,
    WorkloadStatus,
)


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

@dataclass(frozen=True)
class RequestContext:
    """Immutable request context for tracing and logging.

    Usage:
        ctx = RequestContext(request_id=str(uuid4()), caller="user-123")
        with request_scope(ctx, logger):
            ...
    """
    request_id: str
    caller: Optional[str] = None
    operation: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    MAX_TAGS: ClassVar[int] = 16

    def __post_init__(self) -> None:
        if not isinstance(self.request_id, str) or not self.request_id.strip():
            raise ValueError("request_id is required and must be a non-empty string")
        if len(self.tags) > self.MAX_TAGS:
            raise ValueError(f"tags exceed max count ({self.MAX_TAGS})")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a serializable dictionary."""
        return {
            "request_id": self.request_id,
            "caller": self.caller,
            "operation": self.operation,
            "tags": self.tags,
        }


# =============================================================================
# LOGGING / CLOCK
# =============================================================================

@runtime_checkable
class LoggerProtocol(Protocol):
    """Structured logging interface."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def exception(self, message: str, **kwargs: Any) -> None: ...
    def bind(self, **kwargs: Any) -> "LoggerProtocol": ...


@runtime_checkable
class ClockProtocol(Protocol):
    """Time provider."""

    def utcnow(self) -> datetime: ...


# =============================================================================
# RESOURCE STORE
# =============================================================================

R = TypeVar("R")


@runtime_checkable
class ResourceStoreProtocol(Protocol[R]):
    """Keyed document store with optimistic concurrency.

    Precondition (``expected_generation``):
    - None: unconditional write
    - 0:    the key must not exist (create-only)
    - n:    the stored record must exist with generation n

    A failed precondition raises ConflictError. Callers must treat every
    backend as eventually consistent.
    """

    @property
    def backend(self) -> str: ...

    async def connect(self) -> None: ...
    async def close(self) -> None: ...

    async def get(self, key: str) -> R: ...
    async def put(self, record: R, expected_generation: Optional[int] = None) -> R: ...
    async def delete(self, key: str, expected_generation: Optional[int] = None) -> None: ...
    async def list(
        self,
        partition: Optional[str] = None,
        page_size: int = 100,
        continuation_token: Optional[str] = None,
    ) -> Page[R]: ...


# =============================================================================
# CLUSTER
# =============================================================================

@runtime_checkable
class ClusterClientProtocol(Protocol):
    """Narrow wrapper over the Kubernetes control plane."""

    @property
    def namespace(self) -> str: ...

    async def ensure(self, spec: WorkloadSpec) -> AppliedRevision: ...
    async def remove(self, name: str) -> None: ...
    async def get_status(self, name: str) -> WorkloadStatus: ...
    async def get_logs(self, name: str, instance: int = 0) -> str: ...


# =============================================================================
# AUTHORIZATION
# =============================================================================

@runtime_checkable
class PermissionProviderProtocol(Protocol):
    """Authorizes a caller against an action and scope."""

    async def authorize(
        self,
        identity: CallerIdentity,
        action: Operation,
        scope: ResourceScope,
    ) -> Decision: ...


__all__ = [
    "RequestContext",
    "LoggerProtocol",
    "ClockProtocol",
    "ResourceStoreProtocol",
    "ClusterClientProtocol",
    "PermissionProviderProtocol",
]
