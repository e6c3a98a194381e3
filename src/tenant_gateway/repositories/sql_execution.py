"""
SQL Execution Repository.

Runs statements on an already-open tenant connection and marshals the
results. The repository never opens or closes connections; the gateway
owns the connection for the lifetime of one call.

Execution Paths:
- SELECT-like text (starts with SELECT or EXPLAIN SELECT, comments and case
  ignored): prepared statement, column names from the statement attributes
  (so an empty result still reports its columns), rows marshalled to
  JSON-friendly values, rows_affected = row count
- Everything else: executed for its command tag, rows_affected parsed from
  the tag ("UPDATE 3" -> 3, "CREATE TABLE" -> 0)

Value Marshalling:
- bytes / bytearray / memoryview -> str (UTF-8, invalid bytes replaced)
- datetime / date / time -> ISO-8601 text
- UUID -> str; lists and dicts recursively; other driver types -> str()

Error Handling:
- Driver failures (server errors, timeouts, lost connections) raise
  QueryExecutionError carrying the SQLSTATE when there is one
- Probes (has_column, column_types, column_ordinal) never raise; failures
  read as "absent", no types and 0
"""

import asyncio
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import asyncpg

from tenant_gateway.domain.base_enums import StatementKind
from tenant_gateway.domain.errors import QueryExecutionError
from tenant_gateway.domain.responses import QueryExecutionResult
from tenant_gateway.domain.types import ResultRows, SQLParams
from tenant_gateway.infrastructure.tenant_connection import DRIVER_ERRORS
from tenant_gateway.repositories.sql_validation import normalize_sql
from tenant_gateway.utils.logging import get_module_logger, truncate_sql
from tenant_gateway.utils.tracing import current_trace_id, elapsed_ms, start_timer

logger = get_module_logger()

_HAS_COLUMN_SQL = """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.columns
        WHERE table_schema = $1
          AND LOWER(table_name) = LOWER($2)
          AND column_name = $3
    )
"""

_COLUMN_TYPES_SQL = """
    SELECT column_name, data_type FROM information_schema.columns
    WHERE table_schema = $1
      AND LOWER(table_name) = LOWER($2)
"""

_COLUMN_ORDINAL_SQL = """
    SELECT ordinal_position FROM information_schema.columns
    WHERE table_schema = $1
      AND table_name = $2
      AND column_name = $3
"""


def classify_statement(sql: str) -> StatementKind:
    normalized = normalize_sql(sql)
    if normalized.startswith("SELECT") or normalized.startswith("EXPLAIN SELECT"):
        return StatementKind.SELECT
    return StatementKind.NON_SELECT


def parse_rows_affected(status: Optional[str]) -> int:
    """Rows affected from a command tag such as 'INSERT 0 5' or 'DELETE 2'."""
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


def to_json_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str, Decimal)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_json_value(item) for key, item in value.items()}
    return str(value)


def _execution_error(exc: BaseException, sql: str) -> QueryExecutionError:
    if isinstance(exc, asyncio.TimeoutError):
        message = "query timed out"
    else:
        message = str(exc) or type(exc).__name__
    details = {"sql": truncate_sql(sql)}
    sqlstate = getattr(exc, "sqlstate", None)
    if sqlstate:
        details["sqlstate"] = sqlstate
    return QueryExecutionError(message, details=details)


class SQLExecutionRepository:
    """
    Repository for tenant SQL execution.

    Stateless; every method takes the connection to run on.
    """

    @staticmethod
    def is_select(sql: str) -> bool:
        return classify_statement(sql) is StatementKind.SELECT

    async def run_query(
        self,
        conn: asyncpg.Connection,
        sql: str,
        params: SQLParams = (),
        kind: Optional[StatementKind] = None,
    ) -> QueryExecutionResult:
        """
        Execute one statement and return its marshalled result.

        Args:
            conn: Open tenant connection
            sql: Statement text
            params: Positional bind parameters
            kind: Force a path; classified from the text when omitted

        Returns:
            QueryExecutionResult with error=None

        Raises:
            QueryExecutionError: If the driver reports a failure
        """
        trace_id = current_trace_id()
        kind = kind or classify_statement(sql)
        started = start_timer()

        logger.info(
            "Executing tenant SQL",
            kind=kind.value,
            sql_length=len(sql),
            param_count=len(params),
            trace_id=trace_id,
        )
        logger.debug("Tenant SQL text", sql=truncate_sql(sql), trace_id=trace_id)

        if kind is StatementKind.SELECT:
            columns, rows = await self.fetch(conn, sql, params)
            result = QueryExecutionResult(
                columns=columns,
                rows=rows,
                row_count=len(rows),
                rows_affected=len(rows),
                execution_time_ms=elapsed_ms(started),
            )
        else:
            status = await self.execute(conn, sql, params)
            result = QueryExecutionResult(
                rows_affected=parse_rows_affected(status),
                execution_time_ms=elapsed_ms(started),
            )

        logger.info(
            "Tenant SQL execution successful",
            row_count=result.row_count,
            rows_affected=result.rows_affected,
            execution_time_ms=result.execution_time_ms,
            trace_id=trace_id,
        )
        return result

    async def fetch(
        self,
        conn: asyncpg.Connection,
        sql: str,
        params: SQLParams = (),
    ) -> Tuple[List[str], ResultRows]:
        """Run a row-returning statement; returns (column names, rows)."""
        try:
            statement = await conn.prepare(sql)
            columns = [attribute.name for attribute in statement.get_attributes()]
            records = await statement.fetch(*params)
        except DRIVER_ERRORS as e:
            raise _execution_error(e, sql) from e

        rows = [
            {column: to_json_value(record[index]) for index, column in enumerate(columns)}
            for record in records
        ]
        return columns, rows

    async def execute(
        self,
        conn: asyncpg.Connection,
        sql: str,
        params: SQLParams = (),
    ) -> str:
        """Run a statement for its command tag."""
        try:
            return await conn.execute(sql, *params)
        except DRIVER_ERRORS as e:
            raise _execution_error(e, sql) from e

    async def insert_returning_id(
        self,
        conn: asyncpg.Connection,
        sql: str,
        params: SQLParams = (),
    ) -> Optional[Any]:
        """
        Run an INSERT ... RETURNING statement and return the first value.

        Returns None when no row came back.

        Raises:
            QueryExecutionError: details["sqlstate"] is "42703" when the
                returned column does not exist
        """
        try:
            return await conn.fetchval(sql, *params)
        except DRIVER_ERRORS as e:
            raise _execution_error(e, sql) from e

    async def has_column(
        self,
        conn: asyncpg.Connection,
        schema: str,
        table: str,
        column: str,
    ) -> bool:
        """True if information_schema lists the column (table name matched case-insensitively)."""
        try:
            return bool(await conn.fetchval(_HAS_COLUMN_SQL, schema, table, column))
        except DRIVER_ERRORS as e:
            logger.warning(
                "Column probe failed, treating column as absent",
                table=table,
                column=column,
                error=str(e),
                trace_id=current_trace_id(),
            )
            return False

    async def column_ordinal(
        self,
        conn: asyncpg.Connection,
        schema: str,
        table: str,
        column: str,
    ) -> int:
        """Ordinal position of a column, or 0 if it cannot be looked up."""
        try:
            position = await conn.fetchval(_COLUMN_ORDINAL_SQL, schema, table, column)
        except DRIVER_ERRORS as e:
            logger.warning(
                "Column ordinal lookup failed",
                table=table,
                column=column,
                error=str(e),
                trace_id=current_trace_id(),
            )
            return 0
        return int(position) if position is not None else 0

    async def column_types(
        self,
        conn: asyncpg.Connection,
        schema: str,
        table: str,
    ) -> Dict[str, str]:
        """Column name -> information_schema data_type, or {} if the lookup fails."""
        try:
            records = await conn.fetch(_COLUMN_TYPES_SQL, schema, table)
        except DRIVER_ERRORS as e:
            logger.warning(
                "Column type lookup failed, binding values natively",
                table=table,
                error=str(e),
                trace_id=current_trace_id(),
            )
            return {}
        return {record["column_name"]: record["data_type"] for record in records}
