"""
In-memory stand-ins for the control-plane repositories, Redis and asyncpg
connections, plus a builder that wires a GatewayService around them.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import pytest
from cryptography.fernet import Fernet

from tenant_gateway.config import GatewayConfig, SecurityConfig, TenantConfig
from tenant_gateway.domain.base_enums import InstanceStatus
from tenant_gateway.domain.models import DatabaseCredential, DatabaseInstance, Project, QueryHistoryRecord
from tenant_gateway.infrastructure.container_registry import ContainerRegistry
from tenant_gateway.infrastructure.secret_cipher import SecretCipher
from tenant_gateway.infrastructure.tenant_connection import TenantConnectionFactory
from tenant_gateway.repositories.sql_execution import SQLExecutionRepository
from tenant_gateway.services.audit_logger import AuditLogger
from tenant_gateway.services.gateway_service import GatewayService
from tenant_gateway.services.tenant_locator import TenantLocator

TENANT_PASSWORD = "s3cret-tenant-pw"


# =============================================================================
# asyncpg stand-ins
# =============================================================================


class FakePreparedStatement:
    def __init__(self, columns: List[str], records: List[tuple], error: Optional[BaseException] = None):
        self._columns = columns
        self._records = records
        self._error = error

    def get_attributes(self):
        return [SimpleNamespace(name=column) for column in self._columns]

    async def fetch(self, *args):
        if self._error is not None:
            raise self._error
        return self._records


class FakeConnection:
    """
    Scripted tenant connection.

    Attributes set by tests:
        columns / records: what a prepared SELECT returns
        status: command tag returned by execute()
        has_id_column: answer to the information_schema EXISTS probe
        returning_value: value returned by INSERT ... RETURNING
        ordinal: ordinal_position lookup result
        column_types: column name -> data_type rows for the type lookup
        errors: {"prepare" | "execute" | "returning" | "column_types" | "close": exception}
    """

    def __init__(self):
        self.columns: List[str] = []
        self.records: List[tuple] = []
        self.status = "SELECT 0"
        self.has_id_column = True
        self.returning_value: Any = 1
        self.ordinal: Optional[int] = 1
        self.column_types: Dict[str, str] = {}
        self.errors: Dict[str, BaseException] = {}
        self.calls: List[tuple] = []
        self.transactions = 0
        self.closed = False
        self.terminated = False

    async def prepare(self, sql: str):
        self.calls.append(("prepare", sql, ()))
        if "prepare" in self.errors:
            raise self.errors["prepare"]
        return FakePreparedStatement(self.columns, self.records, self.errors.get("fetch"))

    async def execute(self, sql: str, *args):
        self.calls.append(("execute", sql, args))
        if "execute" in self.errors:
            raise self.errors["execute"]
        return self.status

    async def fetchval(self, sql: str, *args):
        self.calls.append(("fetchval", sql, args))
        if "information_schema" in sql and "EXISTS" in sql:
            if "probe" in self.errors:
                raise self.errors["probe"]
            return self.has_id_column
        if "ordinal_position" in sql:
            if "ordinal" in self.errors:
                raise self.errors["ordinal"]
            return self.ordinal
        if "returning" in self.errors:
            raise self.errors["returning"]
        return self.returning_value

    async def fetch(self, sql: str, *args):
        self.calls.append(("fetch", sql, args))
        if "column_types" in self.errors:
            raise self.errors["column_types"]
        return [{"column_name": name, "data_type": data_type} for name, data_type in self.column_types.items()]

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield

    async def close(self, timeout=None):
        if "close" in self.errors:
            raise self.errors["close"]
        self.closed = True

    def terminate(self):
        self.terminated = True

    def statements(self, method: Optional[str] = None) -> List[str]:
        return [sql for kind, sql, _ in self.calls if method is None or kind == method]


class FakeConnector:
    """connect_fn for TenantConnectionFactory: records kwargs, returns one FakeConnection."""

    def __init__(self, connection: Optional[FakeConnection] = None, error: Optional[BaseException] = None):
        self.connection = connection or FakeConnection()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.connection


# =============================================================================
# Control-plane stand-ins
# =============================================================================


class FakeProjectRepository:
    def __init__(self, projects: Optional[List[Project]] = None):
        self.projects = {project.id: project for project in projects or []}

    async def get_by_id_and_user(self, project_id: UUID, user_id: UUID) -> Optional[Project]:
        project = self.projects.get(project_id)
        if project is None or project.user_id != user_id:
            return None
        return project


class FakeInstanceRepository:
    def __init__(self, instances: Optional[List[DatabaseInstance]] = None):
        self.instances = list(instances or [])

    async def get_running_by_project(self, project_id: UUID) -> Optional[DatabaseInstance]:
        running = [
            instance for instance in self.instances
            if instance.project_id == project_id and instance.status == InstanceStatus.RUNNING
        ]
        running.sort(key=lambda instance: instance.created_at, reverse=True)
        return running[0] if running else None


class FakeCredentialRepository:
    def __init__(self, credentials: Optional[List[DatabaseCredential]] = None):
        self.credentials = list(credentials or [])

    async def get_latest_by_instance(self, instance_id: UUID) -> Optional[DatabaseCredential]:
        matching = [credential for credential in self.credentials if credential.instance_id == instance_id]
        matching.sort(key=lambda credential: credential.created_at, reverse=True)
        return matching[0] if matching else None


class FakeIPStore:
    def __init__(self, ips: Optional[Dict[str, str]] = None):
        self.ips = dict(ips or {})
        self.lookups: List[str] = []

    async def get_container_ip(self, container_id: str) -> Optional[str]:
        self.lookups.append(container_id)
        return self.ips.get(container_id)


class FakeHistoryRepository:
    def __init__(self, fail: bool = False):
        self.records: List[QueryHistoryRecord] = []
        self.fail = fail

    async def create(self, record: QueryHistoryRecord) -> QueryHistoryRecord:
        if self.fail:
            raise RuntimeError("query_history unavailable")
        stored = record.model_copy(update={"id": uuid4()})
        self.records.append(stored)
        return stored

    async def list_by_user(self, user_id: UUID, limit: int, project_id: Optional[UUID] = None):
        matching = [
            record for record in self.records
            if record.user_id == user_id and (project_id is None or record.project_id == project_id)
        ]
        matching.sort(key=lambda record: record.executed_at, reverse=True)
        return matching[:limit]


# =============================================================================
# Wiring
# =============================================================================


class TenantWorld:
    """One user owning one project with one running, reachable instance."""

    def __init__(self):
        self.cipher = SecretCipher(Fernet(Fernet.generate_key()))
        self.user_id = uuid4()
        self.project_id = uuid4()
        self.instance_id = uuid4()
        now = datetime.now(timezone.utc)

        self.project = Project(id=self.project_id, user_id=self.user_id, name="shop")
        self.instance = DatabaseInstance(
            id=self.instance_id,
            project_id=self.project_id,
            status=InstanceStatus.RUNNING,
            container_id="ctr-1",
            port=5432,
            created_at=now,
        )
        self.credential = DatabaseCredential(
            id=uuid4(),
            instance_id=self.instance_id,
            username="tenant_owner",
            password_encrypted=self.cipher.encrypt(TENANT_PASSWORD),
            created_at=now,
        )

        self.projects = FakeProjectRepository([self.project])
        self.instances = FakeInstanceRepository([self.instance])
        self.credentials = FakeCredentialRepository([self.credential])
        self.registry = ContainerRegistry({"ctr-1": "10.0.0.7"})
        self.ip_store = FakeIPStore()
        self.history = FakeHistoryRepository()
        self.connection = FakeConnection()
        self.connector = FakeConnector(self.connection)

    def locator(self, tenant_config: Optional[TenantConfig] = None) -> TenantLocator:
        return TenantLocator(
            project_repository=self.projects,
            instance_repository=self.instances,
            credential_repository=self.credentials,
            container_registry=self.registry,
            ip_store=self.ip_store,
            cipher=self.cipher,
            config=tenant_config or TenantConfig(),
        )

    def gateway(self, gateway_config: Optional[GatewayConfig] = None) -> GatewayService:
        tenant_config = TenantConfig()
        return GatewayService(
            locator=self.locator(tenant_config),
            connection_factory=TenantConnectionFactory(tenant_config, connect_fn=self.connector),
            executor=SQLExecutionRepository(),
            audit_logger=AuditLogger(self.history),
            config=gateway_config or GatewayConfig(),
            tenant_config=tenant_config,
        )


@pytest.fixture
def world() -> TenantWorld:
    return TenantWorld()


@pytest.fixture
def fernet_security_config() -> SecurityConfig:
    return SecurityConfig(encryption_key=Fernet.generate_key().decode("utf-8"))


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def make_connector():
    return FakeConnector
