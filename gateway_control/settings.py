"""Infrastructure settings for the adapter management plane.

All behavior that differs between deployments (store backend, cluster
namespace, registry endpoint, retry policy) is configured here and read from
the environment or a ``.env`` file.
"""

import re
from typing import Dict, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# URL pattern for HTTP/HTTPS endpoints
_URL_PATTERN = re.compile(r'^https?://[^\s/$.?#].[^\s]*$', re.IGNORECASE)
# RFC 1123 label, as required for Kubernetes namespaces
_DNS_LABEL_PATTERN = re.compile(r'^[a-z0-9]([-a-z0-9]*[a-z0-9])?$')

STORE_BACKENDS = ("memory", "redis", "postgres")


class Settings(BaseSettings):
    """Infrastructure settings."""

    # =========================================================================
    # RESOURCE STORE
    # =========================================================================
    store_backend: str = "memory"  # Options: memory | redis | postgres

    # Redis (low-latency, development)
    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "mcpgateway:"
    redis_socket_timeout: float = Field(default=5.0, gt=0, le=60)

    # PostgreSQL (durable, production)
    postgres_host: str = "localhost"
    postgres_port: int = Field(default=5432, ge=1, le=65535)
    postgres_database: str = "gateway"
    postgres_user: str = "gateway"
    postgres_password: str = ""
    postgres_pool_size: int = Field(default=10, ge=1, le=100)
    postgres_max_overflow: int = Field(default=5, ge=0, le=100)
    postgres_pool_timeout: int = Field(default=30, ge=1, le=300)
    postgres_pool_recycle: int = Field(default=3600, ge=60, le=86400)

    list_page_size: int = Field(default=100, ge=1, le=1000)

    # =========================================================================
    # CLUSTER
    # =========================================================================
    adapter_namespace: str = "adapter"
    kubeconfig_path: Optional[str] = None  # Used when not running in-cluster
    kube_context: Optional[str] = None
    container_registry_endpoint: Optional[str] = None
    adapter_container_port: int = Field(default=8000, ge=1, le=65535)
    workload_identity_service_account: str = "adapter-workload-identity"
    cluster_call_timeout_seconds: float = Field(default=30.0, gt=0, le=600)

    # =========================================================================
    # RECONCILIATION RETRY POLICY
    # =========================================================================
    # Bounded exponential backoff: delay(n) = min(base * 2**(n-1), max)
    reconcile_max_attempts: int = Field(default=5, ge=1, le=20)
    reconcile_backoff_base_seconds: float = Field(default=0.5, ge=0, le=60)
    reconcile_backoff_max_seconds: float = Field(default=8.0, ge=0, le=600)
    management_conflict_retries: int = Field(default=3, ge=1, le=10)

    # =========================================================================
    # AUTHORIZATION
    # =========================================================================
    admin_role: str = "mcp.admin"

    # =========================================================================
    # LOGGING
    # =========================================================================
    log_level: str = "INFO"
    log_json: bool = True

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator('store_backend', mode='after')
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Reject unknown store backends early."""
        v = v.lower()
        if v not in STORE_BACKENDS:
            raise ValueError(
                f"Invalid store backend: {v}. Must be one of {', '.join(STORE_BACKENDS)}"
            )
        return v

    @field_validator('redis_url', mode='after')
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(('redis://', 'rediss://')):
            raise ValueError(f"Invalid Redis URL: {v}. Must start with redis:// or rediss://")
        return v

    @field_validator('adapter_namespace', mode='after')
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Namespaces must be RFC 1123 labels."""
        if len(v) > 63 or not _DNS_LABEL_PATTERN.match(v):
            raise ValueError(f"Invalid namespace: {v}")
        return v

    @field_validator('container_registry_endpoint', mode='after')
    @classmethod
    def validate_registry_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """Registry endpoints are host[:port][/path], never a URL with scheme."""
        if v is None:
            return v
        v = v.strip().rstrip("/")
        if not v or _URL_PATTERN.match(v) or any(ch.isspace() for ch in v):
            raise ValueError(
                f"Invalid container registry endpoint: {v}. Use host[:port][/path] without scheme"
            )
        return v

    @model_validator(mode='after')
    def validate_backoff(self) -> 'Settings':
        """The backoff cap must not be below its base."""
        if self.reconcile_backoff_max_seconds < self.reconcile_backoff_base_seconds:
            raise ValueError(
                "reconcile_backoff_max_seconds must be >= reconcile_backoff_base_seconds"
            )
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # HELPER METHODS
    # =========================================================================
    def get_postgres_url(self) -> str:
        """SQLAlchemy async URL for the durable store."""
        auth = self.postgres_user
        if self.postgres_password:
            auth = f"{auth}:{self.postgres_password}"
        return (
            f"postgresql+asyncpg://{auth}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_database}"
        )

    def retry_policy(self) -> Dict[str, float]:
        """Reconcile retry parameters, for logging."""
        return {
            "max_attempts": self.reconcile_max_attempts,
            "backoff_base_seconds": self.reconcile_backoff_base_seconds,
            "backoff_max_seconds": self.reconcile_backoff_max_seconds,
        }


# =============================================================================
# GLOBAL SETTINGS (Lazy Initialization)
# =============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance.

    Creates a new Settings instance lazily if none exists.
    Prefer dependency injection over this global getter for testability.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings_instance: Settings) -> None:
    """Set the global settings instance (bootstrap and tests)."""
    global _settings
    _settings = settings_instance


def reset_settings() -> None:
    """Reset the global settings instance."""
    global _settings
    _settings = None
