"""Helpers shared by every resource store backend.

The precondition check lives here so all backends agree on what a given
``expected_generation`` means.
"""

from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel

from gateway_control.errors import ConflictError
from gateway_control.protocols import AdapterResource, ToolResource

KIND_ADAPTERS = "adapters"
KIND_TOOLS = "tools"

R = TypeVar("R", AdapterResource, ToolResource)


def check_precondition(
    kind: str,
    key: str,
    current_generation: Optional[int],
    expected_generation: Optional[int],
) -> None:
    """Raise ConflictError unless the stored generation matches.

    Args:
        kind: Store kind, for the error message
        key: Record key
        current_generation: Stored generation, None when the key is absent
        expected_generation: None (unconditional), 0 (create-only) or n
    """
    if expected_generation is None:
        return

    if expected_generation == 0:
        if current_generation is not None:
            raise ConflictError(f"{kind} '{key}' already exists")
        return

    if current_generation is None:
        raise ConflictError(
            f"{kind} '{key}' does not exist (expected generation {expected_generation})"
        )
    if current_generation != expected_generation:
        raise ConflictError(
            f"{kind} '{key}' is at generation {current_generation}, "
            f"expected {expected_generation}"
        )


def encode_record(record: BaseModel) -> str:
    """Serialize a record to its JSON document."""
    return record.model_dump_json()


def decode_record(model: Type[R], payload: Union[str, bytes, dict]) -> R:
    """Deserialize a JSON document (or an already-decoded dict)."""
    if isinstance(payload, dict):
        return model.model_validate(payload)
    return model.model_validate_json(payload)


__all__ = [
    "KIND_ADAPTERS",
    "KIND_TOOLS",
    "check_precondition",
    "encode_record",
    "decode_record",
]
