"""
HTTP surface tests.

Route tests do not run the lifespan (TestClient is used without a context
manager), so no control-plane database or Redis is needed; the gateway and
settings are replaced through dependency overrides.
"""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from tenant_gateway.api.dependencies import get_gateway_service, get_settings
from tenant_gateway.config import TenantConfig
from tenant_gateway.config import get_settings as load_settings
from tenant_gateway.domain.errors import (
    AuthorizationError,
    DatabaseConnectionError,
    NoRunningInstanceError,
    ValidationError,
)
from tenant_gateway.domain.responses import (
    AddColumnResponse,
    ExecuteQueryResponse,
    InsertRowResponse,
    MutationResponse,
    QueryExecutionResult,
    QueryHistoryResponse,
    TableOperationResponse,
)
from tenant_gateway.main import app

USER_ID = uuid4()
PROJECT_ID = uuid4()
HEADERS = {"X-User-ID": str(USER_ID)}


class StubGateway:
    """Records every call; raises `error` if set, otherwise returns canned results."""

    def __init__(self):
        self.calls = []
        self.error = None
        self.mutation = MutationResponse(rows_affected=1)

    def _enter(self, name, *args):
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error

    async def execute_query(self, user_id, project_id, request):
        self._enter("execute_query", user_id, project_id, request)
        return ExecuteQueryResponse(
            result=QueryExecutionResult(columns=["one"], rows=[{"one": 1}], row_count=1, rows_affected=1),
            execution_id=uuid4(),
            execution_time_ms=3,
        )

    async def get_query_history(self, user_id, project_id, limit=None):
        self._enter("get_query_history", user_id, project_id, limit)
        return QueryHistoryResponse(items=[], count=0)

    async def insert_row(self, user_id, project_id, request):
        self._enter("insert_row", user_id, project_id, request)
        return InsertRowResponse(row_id=7)

    async def delete_row(self, user_id, project_id, row_id, request):
        self._enter("delete_row", user_id, project_id, row_id, request)
        return self.mutation

    async def add_column(self, user_id, project_id, request):
        self._enter("add_column", user_id, project_id, request)
        return AddColumnResponse(column_id=4)

    async def delete_column(self, user_id, project_id, column_name, request):
        self._enter("delete_column", user_id, project_id, column_name, request)
        return self.mutation

    async def create_table(self, user_id, project_id, request):
        self._enter("create_table", user_id, project_id, request)
        return TableOperationResponse(sql="CREATE TABLE ...", status="CREATE TABLE")

    async def delete_table(self, user_id, project_id, request):
        self._enter("delete_table", user_id, project_id, request)
        return TableOperationResponse(sql="DROP TABLE ...", status="DROP TABLE")


@pytest.fixture
def gateway():
    stub = StubGateway()
    app.dependency_overrides[get_gateway_service] = lambda: stub
    app.dependency_overrides[get_settings] = lambda: load_settings()
    yield stub
    app.dependency_overrides.clear()


@pytest.fixture
def client(gateway):
    return TestClient(app)


def url(path: str) -> str:
    return f"/projects/{PROJECT_ID}{path}"


# =============================================================================
# Identity and tracing
# =============================================================================


def test_missing_user_header_is_unauthorized(client, gateway):
    response = client.post(url("/query/execute"), json={"query": "SELECT 1"})

    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "unauthorized"
    assert body["message"] == "missing X-User-ID header"
    assert gateway.calls == []


def test_malformed_user_header_is_unauthorized(client, gateway):
    response = client.post(
        url("/query/execute"), json={"query": "SELECT 1"}, headers={"X-User-ID": "not-a-uuid"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "X-User-ID header is not a valid UUID"


def test_trace_id_is_echoed(client):
    response = client.post(
        url("/query/execute"),
        json={"query": "SELECT 1"},
        headers={**HEADERS, "X-Trace-ID": "trace-123"},
    )

    assert response.headers["X-Trace-ID"] == "trace-123"
    assert "X-Process-Time" in response.headers


def test_trace_id_is_generated_and_reported_in_errors(client):
    response = client.post(url("/query/execute"), json={"query": "SELECT 1"})

    trace_id = response.headers["X-Trace-ID"]
    assert UUID(trace_id)
    assert response.json()["trace_id"] == trace_id


# =============================================================================
# Error mapping
# =============================================================================


@pytest.mark.parametrize(
    "error, status_code, code",
    [
        (AuthorizationError("project not found or not accessible"), 404, "not_found"),
        (NoRunningInstanceError("no running database instance for this project"), 503, "no_running_instance"),
        (ValidationError("invalid column name '1bad'", details={"identifier": "1bad"}), 422, "validation_error"),
    ],
)
def test_gateway_errors_map_to_status(client, gateway, error, status_code, code):
    gateway.error = error

    response = client.post(url("/rows"), json={"table": "orders", "values": {"a": 1}}, headers=HEADERS)

    assert response.status_code == status_code
    body = response.json()
    assert body["error"] == code
    assert body["message"] == error.message
    assert "timestamp" in body


def test_validation_error_details_are_returned(client, gateway):
    gateway.error = ValidationError("invalid column name '1bad'", details={"identifier": "1bad"})

    response = client.post(url("/rows"), json={"table": "orders", "values": {"1bad": 1}}, headers=HEADERS)

    assert response.json()["details"] == {"identifier": "1bad"}


def test_malformed_body_is_rejected_before_the_gateway(client, gateway):
    response = client.post(url("/tables"), json={"table": "t", "columns": []}, headers=HEADERS)

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"]["errors"]
    assert gateway.calls == []


def test_malformed_project_id(client, gateway):
    response = client.post("/projects/abc/query/execute", json={"query": "SELECT 1"}, headers=HEADERS)

    assert response.status_code == 422
    assert gateway.calls == []


# =============================================================================
# Routes
# =============================================================================


def test_execute_query(client, gateway):
    response = client.post(url("/query/execute"), json={"query": "SELECT 1 AS one"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["result"]["rows"] == [{"one": 1}]
    name, (user_id, project_id, request) = gateway.calls[0]
    assert name == "execute_query"
    assert user_id == USER_ID
    assert project_id == PROJECT_ID
    assert request.query == "SELECT 1 AS one"


def test_query_history_passes_limit(client, gateway):
    response = client.get(url("/query/history"), params={"limit": 50}, headers=HEADERS)

    assert response.status_code == 200
    assert gateway.calls[0] == ("get_query_history", (USER_ID, PROJECT_ID, 50))


def test_insert_row(client, gateway):
    response = client.post(url("/rows"), json={"table": "orders", "values": {"qty": 2}}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["row_id"] == 7


def test_delete_row_no_content(client, gateway):
    response = client.request("DELETE", url("/rows/42"), json={"table_name": "orders"}, headers=HEADERS)

    assert response.status_code == 204
    assert response.content == b""
    name, (_, _, row_id, request) = gateway.calls[0]
    assert row_id == "42"
    assert request.table_name == "orders"


def test_delete_row_failure_is_reported_in_body(client, gateway):
    gateway.mutation = MutationResponse(error="row not found")

    response = client.request("DELETE", url("/rows/42"), json={"table_name": "orders"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["error"] == "row not found"


def test_add_and_delete_column(client, gateway):
    added = client.post(
        url("/columns"),
        json={"table_name": "orders", "name": "status", "type": "TEXT", "default": "new"},
        headers=HEADERS,
    )
    deleted = client.request("DELETE", url("/columns/status"), json={"table_name": "orders"}, headers=HEADERS)

    assert added.json()["column_id"] == 4
    assert deleted.status_code == 204
    assert gateway.calls[1][1][2] == "status"


def test_create_and_delete_table(client, gateway):
    created = client.post(
        url("/tables"),
        json={"schema": "public", "table": "users", "columns": [{"name": "id", "type": "INT", "primary": True}]},
        headers=HEADERS,
    )
    deleted = client.request("DELETE", url("/tables"), json={"table": "users"}, headers=HEADERS)

    assert created.json()["status"] == "CREATE TABLE"
    assert deleted.json()["status"] == "DROP TABLE"
    assert gateway.calls[0][1][2].schema_name == "public"


# =============================================================================
# Service endpoints
# =============================================================================


def test_health_without_clients_is_degraded(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["database_status"] == "not_configured"
    assert body["redis_status"] == "not_configured"


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "Tenant Database Gateway"


# =============================================================================
# Lifespan
# =============================================================================


def test_lifespan_seeds_the_container_registry_the_locator_reads(monkeypatch):
    async def refuse_connect(self):
        raise DatabaseConnectionError("control plane unavailable")

    settings = load_settings().model_copy(
        update={"tenant": TenantConfig(container_ips={"ctr-1": "10.0.0.7"})}
    )
    monkeypatch.setattr("tenant_gateway.main.DatabaseClient.connect", refuse_connect)
    monkeypatch.setattr("tenant_gateway.main.get_settings", lambda: settings)

    with TestClient(app):
        registry = app.state.container_registry
        assert app.state.gateway.locator.registry is registry
        assert registry.get_container_ip("ctr-1") == "10.0.0.7"

        registry.register("ctr-2", "10.0.0.8")
        assert app.state.gateway.locator.registry.get_container_ip("ctr-2") == "10.0.0.8"

    for name in ("settings", "db_client", "ip_store", "container_registry", "gateway"):
        delattr(app.state, name)
