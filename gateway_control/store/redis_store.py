"""Redis resource store - low-latency backend for development deployments.

Layout per kind (all keys under the configured prefix):
- ``<prefix><kind>:doc:<key>``               JSON document
- ``<prefix><kind>:index``                   sorted set of all keys (score 0)
- ``<prefix><kind>:partition:<partition>``   sorted set of keys per partition

All index members share score 0, so ZRANGEBYLEX gives stable key-ordered
paging. Optimistic concurrency uses WATCH/MULTI/EXEC: the generation check
runs against the watched document and a concurrent writer aborts the EXEC.
"""

import json
from contextlib import contextmanager
from typing import Any, Generic, Iterator, Optional, Type

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from gateway_control.errors import ConflictError, NotFoundError, UnavailableError
from gateway_control.logging import get_component_logger
from gateway_control.protocols import LoggerProtocol, Page
from gateway_control.store.base import R, check_precondition, decode_record, encode_record


class RedisResourceStore(Generic[R]):
    """Redis implementation of ResourceStoreProtocol.

    The redis client is owned by the caller (see store.registry) so the
    adapter and tool stores share one connection pool.

    Usage:
        client = redis.asyncio.from_url(url, decode_responses=True)
        store = RedisResourceStore(client, "adapters", AdapterResource)
        await store.put(record, expected_generation=0)
    """

    backend = "redis"

    def __init__(
        self,
        redis_client: Any,
        kind: str,
        model: Type[R],
        key_prefix: str = "mcpgateway:",
        logger: Optional[LoggerProtocol] = None,
    ):
        """Initialize Redis store.

        Args:
            redis_client: redis.asyncio.Redis instance (decode_responses=True)
            kind: Store kind ("adapters" or "tools")
            model: Record model used to decode documents
            key_prefix: Prefix for every key written by this store
            logger: Logger for DI (uses context logger if not provided)
        """
        self._redis = redis_client
        self._logger = get_component_logger("RedisResourceStore", logger).bind(kind=kind)
        self.kind = kind
        self._model = model
        self._prefix = f"{key_prefix}{kind}:"

    def _doc_key(self, key: str) -> str:
        return f"{self._prefix}doc:{key}"

    def _index_key(self, partition: Optional[str] = None) -> str:
        if partition is None:
            return f"{self._prefix}index"
        return f"{self._prefix}partition:{partition}"

    @contextmanager
    def _translate_errors(self, operation: str, key: Optional[str] = None) -> Iterator[None]:
        """Map redis exceptions onto the management error taxonomy."""
        try:
            yield
        except WatchError as e:
            raise ConflictError(
                f"{self.kind} '{key}' was modified concurrently"
            ) from e
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._logger.warning("redis_unavailable", operation=operation, key=key, error=str(e))
            raise UnavailableError(f"redis {operation} failed: {e}") from e

    async def connect(self) -> None:
        with self._translate_errors("ping"):
            await self._redis.ping()
        self._logger.info("resource_store_initialized", backend=self.backend)

    async def close(self) -> None:
        """No-op; the shared client is closed by its owner."""

    async def get(self, key: str) -> R:
        with self._translate_errors("get", key):
            payload = await self._redis.get(self._doc_key(key))
        if payload is None:
            raise NotFoundError(f"{self.kind} '{key}' not found")
        return decode_record(self._model, payload)

    async def put(self, record: R, expected_generation: Optional[int] = None) -> R:
        key = record.resource_key
        doc_key = self._doc_key(key)

        with self._translate_errors("put", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(doc_key)
                current = await pipe.get(doc_key)
                check_precondition(
                    self.kind, key, self._generation_of(current), expected_generation
                )
                pipe.multi()
                pipe.set(doc_key, encode_record(record))
                pipe.zadd(self._index_key(), {key: 0})
                pipe.zadd(self._index_key(record.partition_key), {key: 0})
                await pipe.execute()

        self._logger.debug("record_written", key=key, generation=record.generation)
        return record

    async def delete(self, key: str, expected_generation: Optional[int] = None) -> None:
        doc_key = self._doc_key(key)

        with self._translate_errors("delete", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(doc_key)
                current = await pipe.get(doc_key)
                if current is None:
                    raise NotFoundError(f"{self.kind} '{key}' not found")
                check_precondition(
                    self.kind, key, self._generation_of(current), expected_generation
                )
                partition = decode_record(self._model, current).partition_key
                pipe.multi()
                pipe.delete(doc_key)
                pipe.zrem(self._index_key(), key)
                pipe.zrem(self._index_key(partition), key)
                await pipe.execute()

        self._logger.debug("record_deleted", key=key)

    async def list(
        self,
        partition: Optional[str] = None,
        page_size: int = 100,
        continuation_token: Optional[str] = None,
    ) -> Page[R]:
        start = f"({continuation_token}" if continuation_token else "-"

        with self._translate_errors("list"):
            keys = await self._redis.zrangebylex(
                self._index_key(partition), start, "+", start=0, num=page_size + 1
            )
            page_keys = keys[:page_size]
            payloads = (
                await self._redis.mget([self._doc_key(k) for k in page_keys])
                if page_keys else []
            )

        # Index entries may briefly outlive their document
        items = [decode_record(self._model, p) for p in payloads if p is not None]
        token = page_keys[-1] if len(keys) > page_size else None
        return Page(items=items, continuation_token=token)

    @staticmethod
    def _generation_of(payload: Optional[str]) -> Optional[int]:
        if payload is None:
            return None
        return int(json.loads(payload)["generation"])


__all__ = ["RedisResourceStore"]
