"""
Control-plane entities and the resolved tenant endpoint.

Entities mirror rows of the control-plane tables (projects,
database_instances, database_credentials, query_history). They are built
by the repositories and are otherwise read-only for the gateway.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from .base_enums import InstanceStatus


class Project(BaseModel):
    """Tenant unit owned by exactly one user."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    db_type: str = Field(default="postgres", description="Database engine kind")
    created_at: Optional[datetime] = None


class DatabaseInstance(BaseModel):
    """
    One provisioned database backend for a project.

    Only the most recently created instance with status=running is used for
    routing; container_id and port must both be set before it is reachable.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    project_id: UUID
    status: InstanceStatus
    container_id: Optional[str] = None
    port: Optional[int] = None
    endpoint: Optional[str] = None
    cpu_cores: Optional[int] = None
    ram_mb: Optional[int] = None
    storage_gb: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.container_id) and bool(self.port)


class DatabaseCredential(BaseModel):
    """Username plus encrypted secret; the newest row per instance wins."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    instance_id: UUID
    username: str
    password_encrypted: str = Field(..., repr=False)
    created_at: Optional[datetime] = None


class QueryHistoryRecord(BaseModel):
    """
    One audit row per gateway call that passed the ownership check.

    instance_id is None when routing failed before an instance was resolved.
    """

    id: Optional[UUID] = None
    instance_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    user_id: UUID
    query_text: str
    executed_at: datetime
    success: bool
    execution_time_ms: int = Field(..., ge=0)


class TenantEndpoint(BaseModel):
    """
    Everything needed to open one connection to a tenant database.

    The password is held as a SecretStr so it never shows up in reprs or
    log lines; callers unwrap it only at connect time.
    """

    model_config = ConfigDict(frozen=True)

    instance_id: UUID
    host: str
    port: int
    username: str
    password: SecretStr
    database: str
