"""Unit tests for shared service helpers."""

import pytest

from gateway_control.errors import ForbiddenError, ValidationError
from gateway_control.protocols import (
    AdapterData,
    CallerIdentity,
    Decision,
    Operation,
    ResourceScope,
    ToolDefinition,
)
from gateway_control.services.common import require_permission, validate_request


class DenyAll:
    async def authorize(self, identity, action, scope):
        return Decision.DENY


class TestValidateRequest:

    def test_model_instance_passes_through(self):
        definition = ToolDefinition(name="search")
        assert validate_request(ToolDefinition, definition) is definition

    def test_dict_coerced(self):
        data = validate_request(AdapterData, {"display_name": "x", "image": "img:v1"})
        assert data.replica_count == 1
        assert data.resources.cpu_request == "100m"

    def test_error_names_failing_field(self):
        with pytest.raises(ValidationError, match="replica_count"):
            validate_request(AdapterData, {"display_name": "x", "image": "img", "replica_count": 99})

    def test_bad_resource_quantity(self):
        with pytest.raises(ValidationError, match="resources.cpu_limit"):
            validate_request(AdapterData, {
                "display_name": "x",
                "image": "img",
                "resources": {"cpu_limit": "lots"},
            })

    def test_bad_environment_name(self):
        with pytest.raises(ValidationError):
            validate_request(AdapterData, {
                "display_name": "x",
                "image": "img",
                "environment_variables": {"1BAD": "v"},
            })


class TestRequirePermission:

    @pytest.mark.asyncio
    async def test_deny_raises_forbidden(self):
        with pytest.raises(ForbiddenError, match="'bob' may not delete 'A1/search'"):
            await require_permission(
                DenyAll(),
                CallerIdentity(subject="bob"),
                Operation.DELETE,
                ResourceScope(adapter_id="A1", tool_name="search"),
            )

    @pytest.mark.asyncio
    async def test_allow_returns(self, permissions, owner):
        await require_permission(permissions, owner, Operation.READ, ResourceScope())
