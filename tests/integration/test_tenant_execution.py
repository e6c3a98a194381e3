"""
Integration tests for tenant connections and statement execution.

The control-plane database stands in for a tenant: the same URL is turned
into a TenantEndpoint and driven through TenantConnectionFactory and
SQLExecutionRepository exactly as the gateway would.

Usage:
    pytest tests/integration/test_tenant_execution.py -m integration -v

Requirements:
    - DATABASE__DATABASE_URL pointing at a PostgreSQL where the user may
      create tables in the public schema
"""

import json
from urllib.parse import unquote, urlparse
from uuid import uuid4

import pytest
from pydantic import SecretStr

from tenant_gateway.config import TenantConfig, get_settings
from tenant_gateway.domain.errors import QueryExecutionError
from tenant_gateway.domain.models import TenantEndpoint
from tenant_gateway.domain.requests import ColumnDefinition
from tenant_gateway.infrastructure.tenant_connection import TenantConnectionFactory
from tenant_gateway.repositories.sql_execution import SQLExecutionRepository
from tenant_gateway.repositories.statement_builders import (
    build_create_table,
    build_drop_table,
    build_insert,
    text_input_casts,
)

TABLE = f"gateway_it_{uuid4().hex[:8]}"


@pytest.fixture
def endpoint() -> TenantEndpoint:
    url = urlparse(get_settings().database.database_url)
    return TenantEndpoint(
        instance_id=uuid4(),
        host=url.hostname or "localhost",
        port=url.port or 5432,
        username=unquote(url.username or "postgres"),
        password=unquote(url.password or ""),
        database=url.path.lstrip("/") or "postgres",
    )


@pytest.fixture
def executor() -> SQLExecutionRepository:
    return SQLExecutionRepository()


@pytest.fixture
async def scratch_table(endpoint, executor):
    factory = TenantConnectionFactory(TenantConfig())
    create = build_create_table(
        "public",
        TABLE,
        [
            ColumnDefinition(name="id", type="BIGINT", primary=True, is_identity=True),
            ColumnDefinition(name="label", type="TEXT", nullable=True),
            ColumnDefinition(name="placed", type="DATE", nullable=True),
            ColumnDefinition(name="meta", type="JSONB", nullable=True),
        ],
    )
    async with factory.connect(endpoint) as conn:
        await executor.execute(conn, create.sql)
    yield TABLE
    async with factory.connect(endpoint) as conn:
        await executor.execute(conn, build_drop_table("public", TABLE).sql)


@pytest.mark.integration
class TestTenantExecution:

    @pytest.mark.asyncio
    async def test_select_reports_columns_for_empty_results(self, endpoint, executor):
        async with TenantConnectionFactory(TenantConfig()).connect(endpoint) as conn:
            result = await executor.run_query(conn, "SELECT 1 AS one, 'x' AS two WHERE false")

        assert result.columns == ["one", "two"]
        assert result.rows == []

    @pytest.mark.asyncio
    async def test_insert_returning_id(self, endpoint, executor, scratch_table):
        statement = build_insert(scratch_table, {"label": "first"}, returning="id")

        async with TenantConnectionFactory(TenantConfig()).connect(endpoint) as conn:
            assert await executor.has_column(conn, "public", scratch_table, "id")
            row_id = await executor.insert_returning_id(conn, statement.sql, statement.params)
            ordinal = await executor.column_ordinal(conn, "public", scratch_table, "label")

        assert row_id == 1
        assert ordinal == 2

    @pytest.mark.asyncio
    async def test_insert_date_string_and_json_object(self, endpoint, executor, scratch_table):
        values = {"label": "typed", "placed": "2024-01-01", "meta": {"a": 1, "tags": ["x"]}}

        async with TenantConnectionFactory(TenantConfig()).connect(endpoint) as conn:
            column_types = await executor.column_types(conn, "public", scratch_table)
            statement = build_insert(
                scratch_table, values, returning="id", casts=text_input_casts(column_types, values)
            )
            row_id = await executor.insert_returning_id(conn, statement.sql, statement.params)
            result = await executor.run_query(
                conn, f'SELECT placed, meta FROM "{scratch_table}" WHERE id = $1', [row_id]
            )

        assert column_types["placed"] == "date"
        assert column_types["meta"] == "jsonb"
        assert result.rows[0]["placed"] == "2024-01-01"
        assert json.loads(result.rows[0]["meta"]) == {"a": 1, "tags": ["x"]}

    @pytest.mark.asyncio
    async def test_undefined_returning_column_sqlstate(self, endpoint, executor, scratch_table):
        statement = build_insert(scratch_table, {"label": "x"}, returning="missing")

        async with TenantConnectionFactory(TenantConfig()).connect(endpoint) as conn:
            with pytest.raises(QueryExecutionError) as exc_info:
                await executor.insert_returning_id(conn, statement.sql, statement.params)

        assert exc_info.value.details["sqlstate"] == "42703"

    @pytest.mark.asyncio
    async def test_statement_timeout(self, endpoint, executor):
        factory = TenantConnectionFactory(TenantConfig(statement_timeout_seconds=1))

        async with factory.connect(endpoint) as conn:
            with pytest.raises(QueryExecutionError):
                await executor.run_query(conn, "SELECT pg_sleep(3)")

    @pytest.mark.asyncio
    async def test_bad_password_fails_to_connect(self, endpoint):
        wrong = endpoint.model_copy(update={"password": SecretStr("definitely-wrong")})

        with pytest.raises(QueryExecutionError, match="failed to connect"):
            async with TenantConnectionFactory(TenantConfig()).connect(wrong):
                pass
