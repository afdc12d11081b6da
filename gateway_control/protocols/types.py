"""Records and value types shared across the management plane.

Persisted records (AdapterResource, ToolResource) are pydantic models so the
store backends can serialize them to JSON documents. Value types that never
leave the process (WorkloadSpec, WorkloadStatus, AppliedRevision, Page) are
plain dataclasses.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Kubernetes quantity, e.g. "250m", "1", "512Mi", "1.5Gi"
_QUANTITY_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?(m|k|Ki|M|Mi|G|Gi|T|Ti)?$")
# Environment variable names accepted by the container runtime
_ENV_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")

MAX_ADAPTER_ID_LENGTH = 128


# =============================================================================
# ENUMS
# =============================================================================

class AdapterStatus(str, Enum):
    """Lifecycle status of an adapter."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    RUNNING = "Running"
    DEGRADED = "Degraded"
    DELETING = "Deleting"
    FAILED = "Failed"


class Operation(str, Enum):
    """Actions checked by the permission provider."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Decision(str, Enum):
    """Permission provider verdict."""

    ALLOW = "allow"
    DENY = "deny"


# =============================================================================
# CALLER IDENTITY / AUTHORIZATION SCOPE
# =============================================================================

@dataclass(frozen=True)
class CallerIdentity:
    """Already-authenticated caller, resolved by the transport layer."""

    subject: str
    roles: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if not isinstance(self.subject, str) or not self.subject.strip():
            raise ValueError("subject is required and must be a non-empty string")

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class ResourceScope:
    """What an action targets: an adapter, optionally one of its tools."""

    adapter_id: Optional[str] = None
    tool_name: Optional[str] = None
    owner: Optional[str] = None


# =============================================================================
# REQUEST / RECORD MODELS
# =============================================================================

class ToolDefinition(BaseModel):
    """Schema descriptor of a tool exposed by an adapter."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=128)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object"})

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if "/" in v or v.strip() != v:
            raise ValueError("tool name must not contain '/' or surrounding whitespace")
        return v


class ResourceProfile(BaseModel):
    """CPU and memory requests/limits for each replica."""

    model_config = ConfigDict(extra="forbid")

    cpu_request: str = "100m"
    cpu_limit: str = "500m"
    memory_request: str = "128Mi"
    memory_limit: str = "512Mi"

    @field_validator("cpu_request", "cpu_limit", "memory_request", "memory_limit")
    @classmethod
    def validate_quantity(cls, v: str) -> str:
        if not _QUANTITY_PATTERN.match(v):
            raise ValueError(f"Invalid resource quantity: {v}")
        return v


class AdapterData(BaseModel):
    """Desired state submitted by a caller."""

    model_config = ConfigDict(extra="forbid")

    adapter_id: Optional[str] = Field(default=None, min_length=1, max_length=MAX_ADAPTER_ID_LENGTH)
    display_name: str = Field(min_length=1, max_length=256)
    description: str = ""
    image: str = Field(min_length=1)
    replica_count: int = Field(default=1, ge=1, le=50)
    resources: ResourceProfile = Field(default_factory=ResourceProfile)
    environment_variables: Dict[str, str] = Field(default_factory=dict)
    use_workload_identity: bool = False
    tools: List[ToolDefinition] = Field(default_factory=list)

    @field_validator("adapter_id")
    @classmethod
    def validate_adapter_id(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and ("/" in v or v.strip() != v):
            raise ValueError("adapter_id must not contain '/' or surrounding whitespace")
        return v

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        if any(ch.isspace() for ch in v):
            raise ValueError("image reference must not contain whitespace")
        return v

    @field_validator("environment_variables")
    @classmethod
    def validate_environment(cls, v: Dict[str, str]) -> Dict[str, str]:
        for name in v:
            if not _ENV_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid environment variable name: {name}")
        return v

    @field_validator("tools")
    @classmethod
    def validate_unique_tools(cls, v: List[ToolDefinition]) -> List[ToolDefinition]:
        names = [tool.name for tool in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tool names: {', '.join(duplicates)}")
        return v


class AdapterResource(AdapterData):
    """Persisted adapter record: desired state plus lifecycle bookkeeping."""

    adapter_id: str = Field(min_length=1, max_length=MAX_ADAPTER_ID_LENGTH)
    created_by: str
    created_at: datetime
    last_updated_at: datetime
    status: AdapterStatus = AdapterStatus.PENDING
    status_message: Optional[str] = None
    generation: int = Field(default=1, ge=1)
    last_observed_revision: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_revision(self) -> "AdapterResource":
        if self.last_observed_revision > self.generation:
            raise ValueError(
                f"last_observed_revision ({self.last_observed_revision}) "
                f"exceeds generation ({self.generation})"
            )
        return self

    @property
    def resource_key(self) -> str:
        return self.adapter_id

    @property
    def partition_key(self) -> str:
        return self.adapter_id

    @property
    def is_converged(self) -> bool:
        return self.last_observed_revision == self.generation


class ToolResource(BaseModel):
    """Materialized tool catalog row, keyed by (adapter_id, tool_name)."""

    adapter_id: str
    tool_name: str
    definition: ToolDefinition
    generation: int = Field(default=1, ge=1)
    created_at: datetime
    last_updated_at: datetime

    @property
    def resource_key(self) -> str:
        return tool_key(self.adapter_id, self.tool_name)

    @property
    def partition_key(self) -> str:
        return self.adapter_id


def tool_key(adapter_id: str, tool_name: str) -> str:
    """Composite store key of a tool row."""
    return f"{adapter_id}/{tool_name}"


# =============================================================================
# STORE PAGING
# =============================================================================

R = TypeVar("R")


@dataclass
class Page(Generic[R]):
    """One page of a store listing."""

    items: List[R] = field(default_factory=list)
    continuation_token: Optional[str] = None


# =============================================================================
# CLUSTER VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class WorkloadSpec:
    """Concrete workload derived from an adapter record.

    ``spec_hash`` is a digest of every field that affects the rendered
    objects; equal hashes mean reapplying is a no-op.
    """

    name: str
    namespace: str
    image: str
    replicas: int
    container_port: int
    resources: Dict[str, Dict[str, str]]
    environment: Tuple[Tuple[str, str], ...]
    labels: Tuple[Tuple[str, str], ...]
    annotations: Tuple[Tuple[str, str], ...] = ()
    service_account_name: Optional[str] = None
    spec_hash: str = ""


@dataclass(frozen=True)
class AppliedRevision:
    """Result of Cluster Client ensure()."""

    name: str
    spec_hash: str
    resource_version: Optional[str] = None
    changed: bool = True


@dataclass(frozen=True)
class WorkloadStatus:
    """Live status of a workload, as reported by the control plane."""

    name: str
    ready: bool
    replicas: int
    ready_replicas: int = 0
    updated_replicas: int = 0
    available_replicas: int = 0
    image: Optional[str] = None
    last_transition_time: Optional[datetime] = None


__all__ = [
    "AdapterStatus",
    "Operation",
    "Decision",
    "CallerIdentity",
    "ResourceScope",
    "ToolDefinition",
    "ResourceProfile",
    "AdapterData",
    "AdapterResource",
    "ToolResource",
    "tool_key",
    "Page",
    "WorkloadSpec",
    "AppliedRevision",
    "WorkloadStatus",
    "MAX_ADAPTER_ID_LENGTH",
]
