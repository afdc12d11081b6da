"""Management services - the operations exposed to callers."""

from gateway_control.services.adapter_management import AdapterManagementService
from gateway_control.services.rich_result import AdapterRichResult, AdapterRichResultProvider
from gateway_control.services.tool_management import ToolManagementService

__all__ = [
    "AdapterManagementService",
    "AdapterRichResult",
    "AdapterRichResultProvider",
    "ToolManagementService",
]
