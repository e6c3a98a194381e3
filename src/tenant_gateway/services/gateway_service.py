"""
Gateway Service - the single path from application code to a tenant database.

This service is a THIN ORCHESTRATOR over:
1. IdentifierValidator / statement builders - request shape and SQL text
2. TenantLocator - ownership, routing, credentials
3. TenantConnectionFactory - one ephemeral connection per call
4. SQLSafetyValidator - heuristic guard for free-form SQL
5. SQLExecutionRepository - statement execution and marshalling
6. AuditLogger - one history row per call past the ownership check

Error and audit policy (identical for every operation):
- Request-shape problems raise ValidationError before any lookup; no audit.
- Ownership failure raises AuthorizationError; no audit.
- Routing and credential failures are audited (success=false) and re-raised.
- Statement outcomes are soft: safety-guard rejections and driver failures
  (connect, SQL error, timeout) land in the result's `error` field and are
  audited with success=false.
"""

from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar
from uuid import UUID, uuid4

import asyncpg

from tenant_gateway.config import GatewayConfig, TenantConfig
from tenant_gateway.config_constants import UNDEFINED_COLUMN_SQLSTATE
from tenant_gateway.domain.base_enums import GatewayOperation
from tenant_gateway.domain.errors import GatewayException, QueryExecutionError, ValidationError
from tenant_gateway.domain.models import QueryHistoryRecord, TenantEndpoint
from tenant_gateway.domain.requests import (
    AddColumnRequest,
    CreateTableRequest,
    DeleteColumnRequest,
    DeleteRowRequest,
    DeleteTableRequest,
    ExecuteQueryRequest,
    InsertRowRequest,
)
from tenant_gateway.domain.responses import (
    AddColumnResponse,
    ExecuteQueryResponse,
    InsertRowResponse,
    MutationResponse,
    QueryExecutionResult,
    QueryHistoryItem,
    QueryHistoryResponse,
    TableOperationResponse,
)
from tenant_gateway.infrastructure.tenant_connection import DRIVER_ERRORS, TenantConnectionFactory
from tenant_gateway.repositories.identifier_validation import (
    IdentifierValidator,
    validate_column_type,
    validate_default_expression,
)
from tenant_gateway.repositories.sql_execution import SQLExecutionRepository, parse_rows_affected
from tenant_gateway.repositories.sql_validation import SQLSafetyValidator
from tenant_gateway.repositories.statement_builders import (
    Statement,
    build_add_column,
    build_create_table,
    build_delete_row,
    build_drop_column,
    build_drop_table,
    build_insert,
    text_input_casts,
)
from tenant_gateway.services.audit_logger import AuditLogger
from tenant_gateway.services.tenant_locator import TenantLocator
from tenant_gateway.utils.logging import get_module_logger, truncate_sql
from tenant_gateway.utils.tracing import current_trace_id, elapsed_ms, start_timer

logger = get_module_logger()

R = TypeVar("R")


class GatewayService:
    """
    Composition root for tenant database operations.

    Usage:
        gateway = GatewayService(locator, connections, executor, audit, config, tenant_config)
        response = await gateway.execute_query(user_id, project_id, ExecuteQueryRequest(query="SELECT 1"))
    """

    def __init__(
        self,
        locator: TenantLocator,
        connection_factory: TenantConnectionFactory,
        executor: SQLExecutionRepository,
        audit_logger: AuditLogger,
        config: GatewayConfig,
        tenant_config: TenantConfig,
        safety_validator: Optional[SQLSafetyValidator] = None,
    ):
        self.locator = locator
        self.connections = connection_factory
        self.executor = executor
        self.audit = audit_logger
        self.config = config
        self.tenant_config = tenant_config
        self.safety = safety_validator or SQLSafetyValidator()
        self.identifiers = IdentifierValidator(allow_hyphens=config.allow_hyphenated_identifiers)

        logger.info(
            "GatewayService initialized",
            allow_hyphenated_identifiers=config.allow_hyphenated_identifiers,
            row_id_column=config.row_id_column,
            statement_timeout_seconds=tenant_config.statement_timeout_seconds,
        )

    # =========================================================================
    # Operations
    # =========================================================================

    async def execute_query(
        self,
        user_id: UUID,
        project_id: UUID,
        request: ExecuteQueryRequest,
    ) -> ExecuteQueryResponse:
        """
        Run free-form SQL after the safety guard.

        Returns:
            ExecuteQueryResponse; result.error is set when the guard rejected
            the text or the tenant reported a failure
        """
        started = start_timer()

        def guard() -> Optional[str]:
            step = self.safety.validate(request.query)
            return None if step.passed else step.message

        async def work(conn: asyncpg.Connection) -> QueryExecutionResult:
            return await self.executor.run_query(conn, request.query)

        result, record = await self._run(
            GatewayOperation.EXECUTE_QUERY,
            user_id,
            project_id,
            audit_text=request.query,
            work=work,
            on_error=QueryExecutionResult.failed,
            guard=guard,
        )

        total_ms = elapsed_ms(started)
        if result.error is not None and not result.execution_time_ms:
            result.execution_time_ms = total_ms

        return ExecuteQueryResponse(
            result=result,
            execution_id=record.id if record is not None and record.id else uuid4(),
            execution_time_ms=total_ms,
        )

    async def insert_row(
        self,
        user_id: UUID,
        project_id: UUID,
        request: InsertRowRequest,
    ) -> InsertRowResponse:
        """
        Insert one row with bound values.

        If the table has the configured id column the insert uses RETURNING
        and reports the generated id; otherwise (or if RETURNING hits an
        undefined column) a plain INSERT runs and row_id is 0 with a note.

        Values for date/time, interval, json and bytea columns are bound as
        text and cast by the server, so JSON strings and objects are accepted.
        """
        table = self.identifiers.validate(request.table, "table name")
        if not request.values:
            raise ValidationError("values cannot be empty")
        self.identifiers.validate_all(request.values.keys(), "column name")

        id_column = self.config.row_id_column
        audit_sql = build_insert(table, request.values).sql
        schema = self.tenant_config.default_schema

        async def work(conn: asyncpg.Connection) -> InsertRowResponse:
            column_types = await self.executor.column_types(conn, schema, table)
            casts = text_input_casts(column_types, request.values.keys())
            plain = build_insert(table, request.values, casts=casts)

            if not await self.executor.has_column(conn, schema, table, id_column):
                return await self._plain_insert(conn, plain, id_column)

            returning = build_insert(table, request.values, returning=id_column, casts=casts)
            try:
                value = await self.executor.insert_returning_id(conn, returning.sql, returning.params)
            except QueryExecutionError as e:
                if e.details.get("sqlstate") != UNDEFINED_COLUMN_SQLSTATE:
                    raise
                logger.info(
                    "RETURNING column undefined, retrying without it",
                    table=table,
                    id_column=id_column,
                    trace_id=current_trace_id(),
                )
                return await self._plain_insert(conn, plain, id_column)

            if value is None:
                return InsertRowResponse(error="no rows were inserted")

            row_id = _as_row_id(value)
            if row_id is None:
                return InsertRowResponse(
                    row_id=0,
                    note=f"row inserted; generated {id_column} {value!s} is not an integer",
                )
            return InsertRowResponse(row_id=row_id)

        result, _ = await self._run(
            GatewayOperation.INSERT_ROW,
            user_id,
            project_id,
            audit_text=audit_sql,
            work=work,
            on_error=lambda message: InsertRowResponse(error=message),
        )
        return result

    async def delete_row(
        self,
        user_id: UUID,
        project_id: UUID,
        row_id: Any,
        request: DeleteRowRequest,
    ) -> MutationResponse:
        """Delete one row by its id column; zero rows affected is reported as 'row not found'."""
        table = self.identifiers.validate(request.table_name, "table name")
        id_column = self.identifiers.validate(request.id_column or self.config.row_id_column, "column name")
        parsed_id = _parse_row_id(row_id)

        statement = build_delete_row(table, id_column, parsed_id)

        async def work(conn: asyncpg.Connection) -> MutationResponse:
            status = await self.executor.execute(conn, statement.sql, statement.params)
            affected = parse_rows_affected(status)
            if affected == 0:
                return MutationResponse(error="row not found")
            return MutationResponse(rows_affected=affected)

        result, _ = await self._run(
            GatewayOperation.DELETE_ROW,
            user_id,
            project_id,
            audit_text=statement.sql,
            work=work,
            on_error=lambda message: MutationResponse(error=message),
        )
        return result

    async def add_column(
        self,
        user_id: UUID,
        project_id: UUID,
        request: AddColumnRequest,
    ) -> AddColumnResponse:
        """Add a column; column_id is its ordinal position (0 if the lookup fails)."""
        table = self.identifiers.validate(request.table_name, "table name")
        column = self.identifiers.validate(request.name, "column name")
        column_type = validate_column_type(request.type, column)

        statement = build_add_column(table, column, column_type, request.default)

        async def work(conn: asyncpg.Connection) -> AddColumnResponse:
            await self.executor.execute(conn, statement.sql)
            ordinal = await self.executor.column_ordinal(
                conn, self.tenant_config.default_schema, table, column
            )
            return AddColumnResponse(column_id=ordinal)

        result, _ = await self._run(
            GatewayOperation.ADD_COLUMN,
            user_id,
            project_id,
            audit_text=statement.sql,
            work=work,
            on_error=lambda message: AddColumnResponse(error=message),
        )
        return result

    async def delete_column(
        self,
        user_id: UUID,
        project_id: UUID,
        column_name: str,
        request: DeleteColumnRequest,
    ) -> MutationResponse:
        table = self.identifiers.validate(request.table_name, "table name")
        column = self.identifiers.validate(column_name, "column name")

        statement = build_drop_column(table, column)

        async def work(conn: asyncpg.Connection) -> MutationResponse:
            await self.executor.execute(conn, statement.sql)
            return MutationResponse()

        result, _ = await self._run(
            GatewayOperation.DELETE_COLUMN,
            user_id,
            project_id,
            audit_text=statement.sql,
            work=work,
            on_error=lambda message: MutationResponse(error=message),
        )
        return result

    async def create_table(
        self,
        user_id: UUID,
        project_id: UUID,
        request: CreateTableRequest,
    ) -> TableOperationResponse:
        """Create a table inside a transaction."""
        schema = self.identifiers.validate(request.schema_name or "public", "schema name")
        table = self.identifiers.validate(request.table, "table name")
        if not request.columns:
            raise ValidationError("at least one column is required")

        for index, column in enumerate(request.columns):
            self.identifiers.validate(column.name, f"column name at index {index}")
            validate_column_type(column.type, column.name)
            validate_default_expression(column.default, column.name)

        foreign_keys = request.foreign_keys
        if foreign_keys is not None:
            foreign_keys = foreign_keys.model_copy(
                update={"schema_name": foreign_keys.schema_name or "public"}
            )
            self.identifiers.validate(foreign_keys.schema_name, "foreign key schema name")
            self.identifiers.validate(foreign_keys.table, "foreign key table name")
            for reference in foreign_keys.references:
                self.identifiers.validate(reference.local_column, "foreign key column name")
                self.identifiers.validate(reference.foreign_column, "foreign key column name")

        statement = build_create_table(schema, table, request.columns, foreign_keys)
        return await self._run_table_statement(GatewayOperation.CREATE_TABLE, user_id, project_id, statement)

    async def delete_table(
        self,
        user_id: UUID,
        project_id: UUID,
        request: DeleteTableRequest,
    ) -> TableOperationResponse:
        """Drop a table (CASCADE) inside a transaction."""
        schema = self.identifiers.validate(request.schema_name or "public", "schema name")
        table = self.identifiers.validate(request.table, "table name")

        statement = build_drop_table(schema, table)
        return await self._run_table_statement(GatewayOperation.DELETE_TABLE, user_id, project_id, statement)

    async def get_query_history(
        self,
        user_id: UUID,
        project_id: UUID,
        limit: Optional[int] = None,
    ) -> QueryHistoryResponse:
        """Newest-first audit entries for the caller within one project."""
        await self.locator.authorize(user_id, project_id)

        effective_limit = limit if limit is not None else self.config.history_default_limit
        effective_limit = max(1, min(effective_limit, self.config.history_max_limit))

        records = await self.audit.history(user_id, effective_limit, project_id=project_id)
        items = [
            QueryHistoryItem(
                id=record.id,
                instance_id=record.instance_id,
                query_text=record.query_text,
                executed_at=record.executed_at,
                success=record.success,
                execution_time_ms=record.execution_time_ms,
            )
            for record in records
        ]
        return QueryHistoryResponse(items=items, count=len(items))

    # =========================================================================
    # Shared flow
    # =========================================================================

    async def _run_table_statement(
        self,
        operation: GatewayOperation,
        user_id: UUID,
        project_id: UUID,
        statement: Statement,
    ) -> TableOperationResponse:
        async def work(conn: asyncpg.Connection) -> TableOperationResponse:
            async with conn.transaction():
                status = await self.executor.execute(conn, statement.sql)
            return TableOperationResponse(
                sql=statement.sql,
                status=status,
                rows_affected=parse_rows_affected(status),
            )

        result, _ = await self._run(
            operation,
            user_id,
            project_id,
            audit_text=statement.sql,
            work=work,
            on_error=lambda message: TableOperationResponse(sql=statement.sql, error=message),
        )
        return result

    async def _plain_insert(
        self,
        conn: asyncpg.Connection,
        statement: Statement,
        id_column: str,
    ) -> InsertRowResponse:
        status = await self.executor.execute(conn, statement.sql, statement.params)
        if parse_rows_affected(status) == 0:
            return InsertRowResponse(error="no rows were inserted")
        return InsertRowResponse(
            row_id=0,
            note=f"row inserted; table has no '{id_column}' column to return, "
                 "look the row up by its values",
        )

    async def _run(
        self,
        operation: GatewayOperation,
        user_id: UUID,
        project_id: UUID,
        audit_text: str,
        work: Callable[[asyncpg.Connection], Awaitable[R]],
        on_error: Callable[[str], R],
        guard: Optional[Callable[[], Optional[str]]] = None,
    ) -> Tuple[R, Optional[QueryHistoryRecord]]:
        """
        Authorize, route, execute and audit one call.

        Returns:
            (result, stored audit record or None if the audit write failed)
        """
        trace_id = current_trace_id()
        started = start_timer()

        logger.info(
            "Gateway operation started",
            operation=operation.value,
            project_id=str(project_id),
            user_id=str(user_id),
            trace_id=trace_id,
        )

        await self.locator.authorize(user_id, project_id)

        try:
            endpoint = await self.locator.resolve(project_id)
        except GatewayException as e:
            logger.warning(
                "Tenant routing failed",
                operation=operation.value,
                error_code=e.error_code,
                error=e.message,
                trace_id=trace_id,
            )
            await self.audit.record(
                instance_id=getattr(e, "instance_id", None),
                user_id=user_id,
                query_text=audit_text,
                success=False,
                latency_ms=elapsed_ms(started),
                project_id=project_id,
            )
            raise

        try:
            result = await self._execute_on_tenant(endpoint, work, on_error, guard)
        except BaseException:
            await self.audit.record(
                instance_id=endpoint.instance_id,
                user_id=user_id,
                query_text=audit_text,
                success=False,
                latency_ms=elapsed_ms(started),
                project_id=project_id,
            )
            raise

        error = getattr(result, "error", None)
        record = await self.audit.record(
            instance_id=endpoint.instance_id,
            user_id=user_id,
            query_text=audit_text,
            success=error is None,
            latency_ms=elapsed_ms(started),
            project_id=project_id,
        )

        logger.info(
            "Gateway operation finished",
            operation=operation.value,
            instance_id=str(endpoint.instance_id),
            success=error is None,
            error=error,
            query=truncate_sql(audit_text),
            duration_ms=elapsed_ms(started),
            trace_id=trace_id,
        )
        return result, record

    async def _execute_on_tenant(
        self,
        endpoint: TenantEndpoint,
        work: Callable[[asyncpg.Connection], Awaitable[R]],
        on_error: Callable[[str], R],
        guard: Optional[Callable[[], Optional[str]]],
    ) -> R:
        if guard is not None:
            rejection = guard()
            if rejection is not None:
                return on_error(rejection)

        try:
            async with self.connections.connect(endpoint) as conn:
                return await work(conn)
        except QueryExecutionError as e:
            return on_error(e.message)
        except DRIVER_ERRORS as e:
            # Raised outside an executor call, e.g. by a transaction ROLLBACK/COMMIT
            return on_error(str(e) or type(e).__name__)


def _parse_row_id(row_id: Any) -> int:
    if isinstance(row_id, bool):
        raise ValidationError("invalid row id", details={"row_id": str(row_id)})
    if isinstance(row_id, int):
        return row_id
    try:
        return int(str(row_id).strip())
    except ValueError:
        raise ValidationError(
            f"invalid row id '{row_id}': must be an integer",
            details={"row_id": str(row_id)},
        ) from None


def _as_row_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    return None
