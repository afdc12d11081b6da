"""Simple permission provider.

Rules:
- read, create    -> any authenticated caller
- update, delete  -> the record's creator, or a holder of the admin role
"""

from typing import Optional

from gateway_control.logging import get_component_logger
from gateway_control.protocols import (
    CallerIdentity,
    Decision,
    LoggerProtocol,
    Operation,
    ResourceScope,
)

DEFAULT_ADMIN_ROLE = "mcp.admin"


class SimplePermissionProvider:
    """Owner-or-admin implementation of PermissionProviderProtocol."""

    def __init__(self, admin_role: str = DEFAULT_ADMIN_ROLE, logger: Optional[LoggerProtocol] = None):
        self._admin_role = admin_role
        self._logger = get_component_logger("SimplePermissionProvider", logger)

    async def authorize(
        self,
        identity: CallerIdentity,
        action: Operation,
        scope: ResourceScope,
    ) -> Decision:
        if action in (Operation.READ, Operation.CREATE):
            return Decision.ALLOW

        if identity.has_role(self._admin_role):
            return Decision.ALLOW
        if scope.owner is not None and scope.owner == identity.subject:
            return Decision.ALLOW

        self._logger.info(
            "permission_denied",
            subject=identity.subject,
            action=action.value,
            adapter_id=scope.adapter_id,
            tool_name=scope.tool_name,
        )
        return Decision.DENY


__all__ = ["SimplePermissionProvider", "DEFAULT_ADMIN_ROLE"]
