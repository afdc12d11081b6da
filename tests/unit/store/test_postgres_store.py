"""Unit tests for PostgresResourceStore.

The SQLAlchemy engine is mocked; tests assert which conditional statement
runs for each precondition and how empty RETURNING results are resolved.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import DBAPIError, OperationalError

from gateway_control.errors import ConflictError, NotFoundError, UnavailableError
from gateway_control.protocols import AdapterResource
from gateway_control.store.postgres_store import PostgresResourceStore


# =============================================================================
# Test Fixtures
# =============================================================================

def _result(first=None, rows=None):
    result = MagicMock()
    result.first = MagicMock(return_value=first)
    result.all = MagicMock(return_value=rows or [])
    return result


@pytest.fixture
def conn():
    connection = MagicMock()
    connection.execute = AsyncMock(return_value=_result(first=("A1",)))
    return connection


@pytest.fixture
def engine(conn):
    """Mock AsyncEngine whose begin()/connect() yield the same connection."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    mock_engine = MagicMock()
    mock_engine.begin = MagicMock(return_value=ctx)
    mock_engine.connect = MagicMock(return_value=ctx)
    return mock_engine


@pytest.fixture
def store(engine, mock_logger):
    return PostgresResourceStore(engine, "adapters", AdapterResource, logger=mock_logger)


def _sql(call):
    return str(call.args[0])


# =============================================================================
# Schema
# =============================================================================

class TestConnect:

    @pytest.mark.asyncio
    async def test_connect_creates_table_and_index(self, store, conn):
        await store.connect()

        statements = [_sql(c) for c in conn.execute.await_args_list]
        assert any("CREATE TABLE IF NOT EXISTS gateway_resources" in s for s in statements)
        assert any("CREATE INDEX IF NOT EXISTS" in s for s in statements)

    @pytest.mark.asyncio
    async def test_connect_unreachable(self, store, engine):
        engine.begin.side_effect = OSError("connection refused")
        with pytest.raises(UnavailableError):
            await store.connect()


# =============================================================================
# Get
# =============================================================================

class TestGet:

    @pytest.mark.asyncio
    async def test_get_decodes_jsonb_dict(self, store, conn, make_adapter):
        record = make_adapter("A1")
        conn.execute.return_value = _result(first=(record.model_dump(mode="json"),))

        assert await store.get("A1") == record

    @pytest.mark.asyncio
    async def test_get_missing(self, store, conn):
        conn.execute.return_value = _result(first=None)
        with pytest.raises(NotFoundError):
            await store.get("A1")


# =============================================================================
# Put
# =============================================================================

class TestPut:

    @pytest.mark.asyncio
    async def test_unconditional_put_upserts(self, store, conn, make_adapter):
        await store.put(make_adapter("A1"))

        sql = _sql(conn.execute.await_args_list[0])
        assert "ON CONFLICT (kind, resource_key) DO UPDATE" in sql

    @pytest.mark.asyncio
    async def test_create_only_inserts(self, store, conn, make_adapter):
        await store.put(make_adapter("A1"), expected_generation=0)

        sql = _sql(conn.execute.await_args_list[0])
        assert "DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_create_over_existing_conflicts(self, store, conn, make_adapter):
        conn.execute.side_effect = [_result(first=None), _result(first=(1,))]

        with pytest.raises(ConflictError, match="already exists"):
            await store.put(make_adapter("A1"), expected_generation=0)

    @pytest.mark.asyncio
    async def test_conditional_update_binds_expected(self, store, conn, make_adapter):
        await store.put(make_adapter("A1", generation=3), expected_generation=2)

        call = conn.execute.await_args_list[0]
        assert "generation = :expected" in _sql(call)
        assert call.args[1]["expected"] == 2
        assert call.args[1]["generation"] == 3
        assert call.args[1]["partition"] == "A1"

    @pytest.mark.asyncio
    async def test_conditional_update_on_stale_generation(self, store, conn, make_adapter):
        conn.execute.side_effect = [_result(first=None), _result(first=(5,))]

        with pytest.raises(ConflictError, match="at generation 5, expected 2"):
            await store.put(make_adapter("A1", generation=3), expected_generation=2)

    @pytest.mark.asyncio
    async def test_operational_error_is_unavailable(self, store, conn, make_adapter):
        conn.execute.side_effect = OperationalError("INSERT", {}, Exception("server closed"))

        with pytest.raises(UnavailableError):
            await store.put(make_adapter("A1"))

    @pytest.mark.asyncio
    async def test_other_dbapi_errors_propagate(self, store, conn, make_adapter):
        conn.execute.side_effect = DBAPIError("INSERT", {}, Exception("syntax"))

        with pytest.raises(DBAPIError):
            await store.put(make_adapter("A1"))


# =============================================================================
# Delete
# =============================================================================

class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_missing(self, store, conn):
        conn.execute.side_effect = [_result(first=None), _result(first=None)]
        with pytest.raises(NotFoundError):
            await store.delete("A1", expected_generation=1)

    @pytest.mark.asyncio
    async def test_delete_stale_generation(self, store, conn):
        conn.execute.side_effect = [_result(first=None), _result(first=(2,))]
        with pytest.raises(ConflictError):
            await store.delete("A1", expected_generation=1)

    @pytest.mark.asyncio
    async def test_conditional_delete(self, store, conn):
        await store.delete("A1", expected_generation=2)

        call = conn.execute.await_args_list[0]
        assert "generation = :expected" in _sql(call)
        assert call.args[1] == {"kind": "adapters", "key": "A1", "expected": 2}


# =============================================================================
# List
# =============================================================================

class TestList:

    @pytest.mark.asyncio
    async def test_list_with_partition_and_token(self, store, conn, make_adapter):
        rows = [
            ("A3", make_adapter("A3").model_dump(mode="json")),
            ("A4", make_adapter("A4").model_dump(mode="json")),
        ]
        conn.execute.return_value = _result(rows=rows)

        page = await store.list(partition="A3", page_size=1, continuation_token="A2")

        call = conn.execute.await_args_list[0]
        assert "partition_key = :partition" in _sql(call)
        assert "resource_key > :after" in _sql(call)
        assert call.args[1]["limit"] == 2
        assert [a.adapter_id for a in page.items] == ["A3"]
        assert page.continuation_token == "A3"
