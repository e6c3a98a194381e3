"""
Main FastAPI application for the Tenant Database Gateway.

The lifespan builds every client and the GatewayService once and stores
them on app.state; routes only translate HTTP into gateway calls.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional, Union
from uuid import UUID

from fastapi import FastAPI, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import (
    CurrentUserDep,
    GatewayServiceDep,
    OptionalDatabaseClientDep,
    OptionalIPStoreDep,
    SettingsDep,
)
from .api.middleware import (
    ERROR_RESPONSES,
    logging_middleware,
    register_exception_handlers,
    trace_id_middleware,
)
from .config import get_settings
from .domain.requests import (
    AddColumnRequest,
    CreateTableRequest,
    DeleteColumnRequest,
    DeleteRowRequest,
    DeleteTableRequest,
    ExecuteQueryRequest,
    InsertRowRequest,
)
from .domain.responses import (
    AddColumnResponse,
    ExecuteQueryResponse,
    HealthResponse,
    InsertRowResponse,
    MutationResponse,
    QueryHistoryResponse,
    TableOperationResponse,
)
from .infrastructure.container_registry import ContainerRegistry
from .infrastructure.database_client import DatabaseClient
from .infrastructure.redis_client import RedisIPStore
from .infrastructure.secret_cipher import SecretCipher
from .infrastructure.tenant_connection import TenantConnectionFactory
from .repositories.project_repository import (
    DatabaseCredentialRepository,
    DatabaseInstanceRepository,
    ProjectRepository,
)
from .repositories.query_history_repository import QueryHistoryRepository
from .repositories.sql_execution import SQLExecutionRepository
from .services.audit_logger import AuditLogger
from .services.gateway_service import GatewayService
from .services.tenant_locator import TenantLocator
from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id

APP_VERSION = "0.1.0"

# Configure logging on module import
configure_logging()
logger = get_module_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build clients and the gateway on startup; close clients on shutdown."""
    logger.info("Starting Tenant Database Gateway", version=APP_VERSION)

    settings = get_settings()
    app.state.settings = settings

    # Fail fast: without a usable key no tenant can be reached
    cipher = SecretCipher.from_config(settings.security)

    db_client = DatabaseClient(settings.database)
    try:
        await db_client.connect()
    except Exception as e:
        logger.error("Failed to connect control-plane database", error=str(e))
        # Continue without database - health check will report status

    ip_store = RedisIPStore.from_config(settings.redis)
    # An in-process orchestrator registers and forgets containers through
    # app.state.container_registry; the gateway only reads it
    registry = ContainerRegistry(settings.tenant.container_ips)
    logger.info("Container registry seeded", containers=len(registry))

    locator = TenantLocator(
        project_repository=ProjectRepository(db_client),
        instance_repository=DatabaseInstanceRepository(db_client),
        credential_repository=DatabaseCredentialRepository(db_client),
        container_registry=registry,
        ip_store=ip_store,
        cipher=cipher,
        config=settings.tenant,
    )

    gateway = GatewayService(
        locator=locator,
        connection_factory=TenantConnectionFactory(settings.tenant),
        executor=SQLExecutionRepository(),
        audit_logger=AuditLogger(QueryHistoryRepository(db_client)),
        config=settings.gateway,
        tenant_config=settings.tenant,
    )

    app.state.db_client = db_client
    app.state.ip_store = ip_store
    app.state.container_registry = registry
    app.state.gateway = gateway

    yield

    logger.info("Shutting down Tenant Database Gateway")

    await db_client.close()
    await ip_store.close()
    logger.info("Clients closed")


app = FastAPI(
    title="Tenant Database Gateway",
    description="Authorized, audited access to per-project PostgreSQL databases",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last registered = first executed: trace id must be set before logging runs
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

register_exception_handlers(app)


def _errors(*codes: int) -> Dict:
    return {code: ERROR_RESPONSES[code] for code in codes if code in ERROR_RESPONSES}


# -------------------------
# Service Endpoints
# -------------------------

@app.get("/", tags=["Root"])
async def root(settings: SettingsDep) -> Dict[str, Union[str, None]]:
    """Basic API information."""
    trace_id = get_trace_id()
    logger.info("Root endpoint accessed", trace_id=trace_id)

    return {
        "message": "Tenant Database Gateway",
        "version": APP_VERSION,
        "trace_id": trace_id,
        "log_level": settings.app.log_level.value,
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    db_client: OptionalDatabaseClientDep,
    ip_store: OptionalIPStoreDep,
) -> HealthResponse:
    """
    Control-plane database and Redis status.

    Overall status is "healthy" only when both are healthy.
    """
    database_status = "not_configured"
    if db_client:
        database_status = (await db_client.health_check()).get("status", "unknown")

    redis_status = "not_configured"
    if ip_store:
        redis_status = (await ip_store.health_check()).get("status", "unknown")

    overall_status = "healthy" if (
        database_status == "healthy" and redis_status == "healthy"
    ) else "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        database_status=database_status,
        redis_status=redis_status,
    )


# -------------------------
# Query Endpoints
# -------------------------

@app.post(
    "/projects/{project_id}/query/execute",
    response_model=ExecuteQueryResponse,
    tags=["Query"],
    responses=_errors(401, 404, 422, 500, 503),
)
async def execute_query(
    project_id: UUID,
    request: ExecuteQueryRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> ExecuteQueryResponse:
    """
    Run free-form SQL against the project's database.

    Statements rejected by the safety guard, SQL errors and timeouts are
    returned in `result.error` with HTTP 200.
    """
    return await gateway.execute_query(user_id, project_id, request)


@app.get(
    "/projects/{project_id}/query/history",
    response_model=QueryHistoryResponse,
    tags=["Query"],
    responses=_errors(401, 404),
)
async def query_history(
    project_id: UUID,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
    limit: Optional[int] = Query(default=None, description="Entries to return, clamped to [1, 30]"),
) -> QueryHistoryResponse:
    """Newest-first audit entries written by the caller for this project."""
    return await gateway.get_query_history(user_id, project_id, limit)


# -------------------------
# Row Endpoints
# -------------------------

@app.post(
    "/projects/{project_id}/rows",
    response_model=InsertRowResponse,
    tags=["Rows"],
    responses=_errors(401, 404, 422, 500, 503),
)
async def insert_row(
    project_id: UUID,
    request: InsertRowRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> InsertRowResponse:
    return await gateway.insert_row(user_id, project_id, request)


def _no_content_or_result(result: MutationResponse) -> Response:
    if result.succeeded:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.model_dump(mode="json"))


@app.delete(
    "/projects/{project_id}/rows/{row_id}",
    response_model=None,
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Rows"],
    responses={200: {"model": MutationResponse, "description": "Statement failed"}, **_errors(401, 404, 422, 500, 503)},
)
async def delete_row(
    project_id: UUID,
    row_id: str,
    request: DeleteRowRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> Response:
    """204 when the row was deleted; 200 with the failure otherwise."""
    result = await gateway.delete_row(user_id, project_id, row_id, request)
    return _no_content_or_result(result)


# -------------------------
# Column Endpoints
# -------------------------

@app.post(
    "/projects/{project_id}/columns",
    response_model=AddColumnResponse,
    tags=["Columns"],
    responses=_errors(401, 404, 422, 500, 503),
)
async def add_column(
    project_id: UUID,
    request: AddColumnRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> AddColumnResponse:
    return await gateway.add_column(user_id, project_id, request)


@app.delete(
    "/projects/{project_id}/columns/{column_name}",
    response_model=None,
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Columns"],
    responses={200: {"model": MutationResponse, "description": "Statement failed"}, **_errors(401, 404, 422, 500, 503)},
)
async def delete_column(
    project_id: UUID,
    column_name: str,
    request: DeleteColumnRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> Response:
    result = await gateway.delete_column(user_id, project_id, column_name, request)
    return _no_content_or_result(result)


# -------------------------
# Table Endpoints
# -------------------------

@app.post(
    "/projects/{project_id}/tables",
    response_model=TableOperationResponse,
    tags=["Tables"],
    responses=_errors(401, 404, 422, 500, 503),
)
async def create_table(
    project_id: UUID,
    request: CreateTableRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> TableOperationResponse:
    return await gateway.create_table(user_id, project_id, request)


@app.delete(
    "/projects/{project_id}/tables",
    response_model=TableOperationResponse,
    tags=["Tables"],
    responses=_errors(401, 404, 422, 500, 503),
)
async def delete_table(
    project_id: UUID,
    request: DeleteTableRequest,
    user_id: CurrentUserDep,
    gateway: GatewayServiceDep,
) -> TableOperationResponse:
    return await gateway.delete_table(user_id, project_id, request)
