"""In-memory resource store for single-node deployments and tests.

Documents are kept serialized so callers never share mutable state with the
store. Not shared across processes; contents live as long as the process.
"""

import asyncio
from typing import Dict, Generic, List, Optional, Tuple, Type

from gateway_control.errors import NotFoundError
from gateway_control.logging import get_component_logger
from gateway_control.protocols import LoggerProtocol, Page
from gateway_control.store.base import R, check_precondition, decode_record, encode_record


class InMemoryResourceStore(Generic[R]):
    """Dict-backed implementation of ResourceStoreProtocol."""

    backend = "memory"

    def __init__(
        self,
        kind: str,
        model: Type[R],
        logger: Optional[LoggerProtocol] = None,
    ):
        """Initialize in-memory store.

        Args:
            kind: Store kind ("adapters" or "tools")
            model: Record model used to decode documents
            logger: Logger for DI (uses context logger if not provided)
        """
        self._logger = get_component_logger("InMemoryResourceStore", logger).bind(kind=kind)
        self.kind = kind
        self._model = model
        # key -> (document, partition, generation)
        self._documents: Dict[str, Tuple[str, Optional[str], int]] = {}
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        self._logger.info("resource_store_initialized", backend=self.backend)

    async def close(self) -> None:
        self._documents.clear()

    async def get(self, key: str) -> R:
        entry = self._documents.get(key)
        if entry is None:
            raise NotFoundError(f"{self.kind} '{key}' not found")
        return decode_record(self._model, entry[0])

    async def put(self, record: R, expected_generation: Optional[int] = None) -> R:
        key = record.resource_key
        async with self._lock:
            entry = self._documents.get(key)
            check_precondition(self.kind, key, entry[2] if entry else None, expected_generation)
            self._documents[key] = (encode_record(record), record.partition_key, record.generation)

        self._logger.debug("record_written", key=key, generation=record.generation)
        return record

    async def delete(self, key: str, expected_generation: Optional[int] = None) -> None:
        async with self._lock:
            entry = self._documents.get(key)
            if entry is None:
                raise NotFoundError(f"{self.kind} '{key}' not found")
            check_precondition(self.kind, key, entry[2], expected_generation)
            del self._documents[key]

        self._logger.debug("record_deleted", key=key)

    async def list(
        self,
        partition: Optional[str] = None,
        page_size: int = 100,
        continuation_token: Optional[str] = None,
    ) -> Page[R]:
        keys: List[str] = sorted(
            key for key, (_, part, _) in self._documents.items()
            if (partition is None or part == partition)
            and (continuation_token is None or key > continuation_token)
        )
        page_keys = keys[:page_size]
        items = [decode_record(self._model, self._documents[key][0]) for key in page_keys]
        token = page_keys[-1] if len(keys) > page_size else None
        return Page(items=items, continuation_token=token)


__all__ = ["InMemoryResourceStore"]
