"""Authorization - permission providers."""

from gateway_control.authorization.permission import DEFAULT_ADMIN_ROLE, SimplePermissionProvider

__all__ = ["DEFAULT_ADMIN_ROLE", "SimplePermissionProvider"]
