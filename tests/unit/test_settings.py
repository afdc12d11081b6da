"""Unit tests for Settings validation and the global accessor."""

import pytest
from pydantic import ValidationError

from gateway_control.settings import Settings, get_settings, reset_settings, set_settings


def _settings(**kwargs):
    return Settings(_env_file=None, **kwargs)


class TestDefaults:

    def test_defaults(self):
        s = _settings()
        assert s.store_backend == "memory"
        assert s.adapter_namespace == "adapter"
        assert s.container_registry_endpoint is None
        assert s.reconcile_max_attempts == 5
        assert s.admin_role == "mcp.admin"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "REDIS")
        monkeypatch.setenv("RECONCILE_MAX_ATTEMPTS", "7")

        s = _settings()

        assert s.store_backend == "redis"
        assert s.reconcile_max_attempts == 7


class TestValidators:

    def test_unknown_backend(self):
        with pytest.raises(ValidationError, match="Invalid store backend"):
            _settings(store_backend="cosmos")

    def test_redis_url_scheme(self):
        with pytest.raises(ValidationError, match="Invalid Redis URL"):
            _settings(redis_url="http://localhost:6379")
        assert _settings(redis_url="rediss://cache:6380").redis_url == "rediss://cache:6380"

    @pytest.mark.parametrize("namespace", ["Adapter", "-adapter", "a" * 64, "adapter_ns"])
    def test_invalid_namespace(self, namespace):
        with pytest.raises(ValidationError, match="Invalid namespace"):
            _settings(adapter_namespace=namespace)

    def test_registry_rejects_scheme(self):
        with pytest.raises(ValidationError, match="without scheme"):
            _settings(container_registry_endpoint="https://registry.example.io")

    def test_registry_trailing_slash_stripped(self):
        s = _settings(container_registry_endpoint="registry.example.io:5000/team/")
        assert s.container_registry_endpoint == "registry.example.io:5000/team"

    def test_backoff_cap_below_base(self):
        with pytest.raises(ValidationError, match="reconcile_backoff_max_seconds"):
            _settings(reconcile_backoff_base_seconds=4, reconcile_backoff_max_seconds=1)


class TestHelpers:

    def test_postgres_url_without_password(self):
        s = _settings(postgres_host="db", postgres_user="svc", postgres_database="gw")
        assert s.get_postgres_url() == "postgresql+asyncpg://svc@db:5432/gw"

    def test_postgres_url_with_password(self):
        s = _settings(postgres_host="db", postgres_user="svc", postgres_password="pw")
        assert s.get_postgres_url() == "postgresql+asyncpg://svc:pw@db:5432/gateway"

    def test_retry_policy(self):
        s = _settings(reconcile_max_attempts=2)
        assert s.retry_policy() == {
            "max_attempts": 2,
            "backoff_base_seconds": 0.5,
            "backoff_max_seconds": 8.0,
        }


class TestGlobalSettings:

    def test_set_get_reset(self):
        custom = _settings(list_page_size=7)
        try:
            set_settings(custom)
            assert get_settings() is custom
            reset_settings()
            assert get_settings() is not custom
        finally:
            reset_settings()
