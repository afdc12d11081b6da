"""PostgreSQL resource store - durable backend for production deployments.

Every kind shares one table; documents are stored as JSONB next to the
columns the store needs for preconditions and paging. Preconditions are
expressed as conditional statements, so the database serializes writers:

- create-only:  INSERT ... ON CONFLICT DO NOTHING RETURNING
- conditional:  UPDATE/DELETE ... WHERE generation = :expected RETURNING
- unconditional upsert: INSERT ... ON CONFLICT DO UPDATE
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Dict, Generic, Iterator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine

from gateway_control.errors import ConflictError, NotFoundError, UnavailableError
from gateway_control.logging import get_component_logger
from gateway_control.protocols import LoggerProtocol, Page
from gateway_control.store.base import R, check_precondition, decode_record, encode_record

TABLE_NAME = "gateway_resources"

_CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    kind TEXT NOT NULL,
    resource_key TEXT NOT NULL,
    partition_key TEXT,
    generation BIGINT NOT NULL,
    document JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (kind, resource_key)
)
"""

_CREATE_PARTITION_INDEX = f"""
CREATE INDEX IF NOT EXISTS ix_{TABLE_NAME}_partition
    ON {TABLE_NAME} (kind, partition_key, resource_key)
"""

_SELECT_ONE = f"""
SELECT document FROM {TABLE_NAME}
WHERE kind = :kind AND resource_key = :key
"""

_SELECT_GENERATION = f"""
SELECT generation FROM {TABLE_NAME}
WHERE kind = :kind AND resource_key = :key
"""

_INSERT = f"""
INSERT INTO {TABLE_NAME} (kind, resource_key, partition_key, generation, document)
VALUES (:kind, :key, :partition, :generation, CAST(:document AS JSONB))
ON CONFLICT (kind, resource_key) DO NOTHING
RETURNING resource_key
"""

_UPSERT = f"""
INSERT INTO {TABLE_NAME} (kind, resource_key, partition_key, generation, document)
VALUES (:kind, :key, :partition, :generation, CAST(:document AS JSONB))
ON CONFLICT (kind, resource_key) DO UPDATE SET
    partition_key = EXCLUDED.partition_key,
    generation = EXCLUDED.generation,
    document = EXCLUDED.document,
    updated_at = now()
RETURNING resource_key
"""

_CONDITIONAL_UPDATE = f"""
UPDATE {TABLE_NAME} SET
    partition_key = :partition,
    generation = :generation,
    document = CAST(:document AS JSONB),
    updated_at = now()
WHERE kind = :kind AND resource_key = :key AND generation = :expected
RETURNING resource_key
"""

_DELETE = f"""
DELETE FROM {TABLE_NAME}
WHERE kind = :kind AND resource_key = :key
RETURNING resource_key
"""

_CONDITIONAL_DELETE = f"""
DELETE FROM {TABLE_NAME}
WHERE kind = :kind AND resource_key = :key AND generation = :expected
RETURNING resource_key
"""


class PostgresResourceStore(Generic[R]):
    """PostgreSQL implementation of ResourceStoreProtocol.

    The engine is owned by the caller (see store.registry) so the adapter
    and tool stores share one connection pool.
    """

    backend = "postgres"

    def __init__(
        self,
        engine: AsyncEngine,
        kind: str,
        model: Type[R],
        logger: Optional[LoggerProtocol] = None,
    ):
        """Initialize PostgreSQL store.

        Args:
            engine: SQLAlchemy async engine (postgresql+asyncpg://...)
            kind: Store kind ("adapters" or "tools")
            model: Record model used to decode documents
            logger: Logger for DI (uses context logger if not provided)
        """
        self._engine = engine
        self._logger = get_component_logger("PostgresResourceStore", logger).bind(kind=kind)
        self.kind = kind
        self._model = model

    @contextmanager
    def _translate_errors(self, operation: str, key: Optional[str] = None) -> Iterator[None]:
        """Map driver and pool failures onto UnavailableError."""
        try:
            yield
        except (OperationalError, InterfaceError, PoolTimeoutError, OSError, asyncio.TimeoutError) as e:
            self._logger.warning("postgres_unavailable", operation=operation, key=key, error=str(e))
            raise UnavailableError(f"postgres {operation} failed: {e}") from e
        except DBAPIError as e:
            if not e.connection_invalidated:
                raise
            self._logger.warning("postgres_connection_lost", operation=operation, key=key)
            raise UnavailableError(f"postgres {operation} failed: {e}") from e

    async def connect(self) -> None:
        """Create the table and index if they do not exist yet."""
        with self._translate_errors("initialize_schema"):
            async with self._engine.begin() as conn:
                await conn.execute(text(_CREATE_TABLE))
                await conn.execute(text(_CREATE_PARTITION_INDEX))
        self._logger.info("resource_store_initialized", backend=self.backend)

    async def close(self) -> None:
        """No-op; the shared engine is disposed by its owner."""

    async def get(self, key: str) -> R:
        with self._translate_errors("get", key):
            async with self._engine.connect() as conn:
                result = await conn.execute(text(_SELECT_ONE), {"kind": self.kind, "key": key})
                row = result.first()
        if row is None:
            raise NotFoundError(f"{self.kind} '{key}' not found")
        return decode_record(self._model, row[0])

    async def put(self, record: R, expected_generation: Optional[int] = None) -> R:
        key = record.resource_key
        params: Dict[str, Any] = {
            "kind": self.kind,
            "key": key,
            "partition": record.partition_key,
            "generation": record.generation,
            "document": encode_record(record),
        }

        if expected_generation is None:
            statement = _UPSERT
        elif expected_generation == 0:
            statement = _INSERT
        else:
            statement = _CONDITIONAL_UPDATE
            params["expected"] = expected_generation

        with self._translate_errors("put", key):
            async with self._engine.begin() as conn:
                result = await conn.execute(text(statement), params)
                if result.first() is None:
                    current = await self._current_generation(conn, key)
                    check_precondition(self.kind, key, current, expected_generation)
                    # Row changed between the write and the re-read
                    raise ConflictError(f"{self.kind} '{key}' was modified concurrently")

        self._logger.debug("record_written", key=key, generation=record.generation)
        return record

    async def delete(self, key: str, expected_generation: Optional[int] = None) -> None:
        params: Dict[str, Any] = {"kind": self.kind, "key": key}
        statement = _DELETE
        if expected_generation is not None:
            statement = _CONDITIONAL_DELETE
            params["expected"] = expected_generation

        with self._translate_errors("delete", key):
            async with self._engine.begin() as conn:
                result = await conn.execute(text(statement), params)
                if result.first() is None:
                    current = await self._current_generation(conn, key)
                    if current is None:
                        raise NotFoundError(f"{self.kind} '{key}' not found")
                    check_precondition(self.kind, key, current, expected_generation)
                    raise ConflictError(f"{self.kind} '{key}' was modified concurrently")

        self._logger.debug("record_deleted", key=key)

    async def list(
        self,
        partition: Optional[str] = None,
        page_size: int = 100,
        continuation_token: Optional[str] = None,
    ) -> Page[R]:
        clauses = ["kind = :kind"]
        params: Dict[str, Any] = {"kind": self.kind, "limit": page_size + 1}
        if partition is not None:
            clauses.append("partition_key = :partition")
            params["partition"] = partition
        if continuation_token is not None:
            clauses.append("resource_key > :after")
            params["after"] = continuation_token

        query = (
            f"SELECT resource_key, document FROM {TABLE_NAME} "
            f"WHERE {' AND '.join(clauses)} ORDER BY resource_key LIMIT :limit"
        )

        with self._translate_errors("list"):
            async with self._engine.connect() as conn:
                result = await conn.execute(text(query), params)
                rows = result.all()

        page_rows = rows[:page_size]
        items = [decode_record(self._model, row[1]) for row in page_rows]
        token = page_rows[-1][0] if len(rows) > page_size else None
        return Page(items=items, continuation_token=token)

    async def _current_generation(self, conn: Any, key: str) -> Optional[int]:
        result = await conn.execute(text(_SELECT_GENERATION), {"kind": self.kind, "key": key})
        row = result.first()
        return None if row is None else int(row[0])


__all__ = ["PostgresResourceStore", "TABLE_NAME"]
