"""Helpers shared by the management services."""

from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

import pydantic

from gateway_control.errors import ConflictError, ForbiddenError, ValidationError
from gateway_control.protocols import (
    AdapterResource,
    CallerIdentity,
    Decision,
    LoggerProtocol,
    Operation,
    PermissionProviderProtocol,
    ResourceScope,
    ResourceStoreProtocol,
)

M = TypeVar("M", bound=pydantic.BaseModel)


def validate_request(model: Type[M], payload: Any) -> M:
    """Coerce a request payload into its model.

    Raises:
        ValidationError: Payload does not match the model
    """
    if isinstance(payload, model):
        return payload
    if isinstance(payload, pydantic.BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"invalid {model.__name__}: {details}") from e


async def require_permission(
    permissions: PermissionProviderProtocol,
    identity: CallerIdentity,
    action: Operation,
    scope: ResourceScope,
) -> None:
    """Raise ForbiddenError unless the provider allows the action."""
    decision = await permissions.authorize(identity, action, scope)
    if decision != Decision.ALLOW:
        target = scope.adapter_id or "adapters"
        if scope.tool_name:
            target = f"{target}/{scope.tool_name}"
        raise ForbiddenError(f"'{identity.subject}' may not {action.value} '{target}'")


def adapter_scope(adapter: AdapterResource, tool_name: Optional[str] = None) -> ResourceScope:
    return ResourceScope(adapter_id=adapter.adapter_id, tool_name=tool_name, owner=adapter.created_by)


async def submit_revision(
    adapters: ResourceStoreProtocol[AdapterResource],
    adapter_id: str,
    revise: Callable[[AdapterResource], Awaitable[Optional[AdapterResource]]],
    *,
    expected_generation: Optional[int],
    retries: int,
    logger: LoggerProtocol,
) -> AdapterResource:
    """Read-modify-write an adapter record under its generation precondition.

    ``revise`` receives the current record and returns the record to write,
    or None when no write is needed. With a caller-supplied
    ``expected_generation`` a mismatch is surfaced immediately; otherwise the
    service re-reads and reapplies its intent up to ``retries`` times.
    """
    attempt = 0
    while True:
        attempt += 1
        current = await adapters.get(adapter_id)
        if expected_generation is not None and current.generation != expected_generation:
            raise ConflictError(
                f"adapters '{adapter_id}' is at generation {current.generation}, "
                f"expected {expected_generation}"
            )

        revised = await revise(current)
        if revised is None:
            return current

        try:
            return await adapters.put(revised, expected_generation=current.generation)
        except ConflictError:
            if expected_generation is not None or attempt >= retries:
                raise
            logger.info("adapter_write_conflict_retrying", adapter_id=adapter_id, attempt=attempt)


__all__ = ["validate_request", "require_permission", "adapter_scope", "submit_revision"]
