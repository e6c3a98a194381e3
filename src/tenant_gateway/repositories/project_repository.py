"""
Project, database instance and credential lookups.

Read-only access to the control-plane tables the Tenant Locator needs.
Each lookup returns a domain model or None ("not found"); database
failures surface as DatabaseQueryError / DatabaseConnectionError from the
client.
"""

from typing import Optional
from uuid import UUID

from tenant_gateway.domain.base_enums import InstanceStatus
from tenant_gateway.domain.models import DatabaseCredential, DatabaseInstance, Project
from tenant_gateway.infrastructure.database_client import DatabaseClient
from tenant_gateway.utils.logging import get_module_logger
from tenant_gateway.utils.tracing import current_trace_id

logger = get_module_logger()


class ProjectRepository:
    """Repository for the projects table."""

    def __init__(self, db_client: DatabaseClient):
        self.db_client = db_client

    async def get_by_id_and_user(self, project_id: UUID, user_id: UUID) -> Optional[Project]:
        """
        Fetch a project only if it is owned by the given user.

        A project owned by someone else is indistinguishable from an
        absent one.
        """
        row = await self.db_client.fetch_one(
            """
            SELECT id, user_id, name, description, db_type::text AS db_type, created_at
            FROM projects
            WHERE id = $1 AND user_id = $2
            """,
            [project_id, user_id],
        )
        if row is None:
            logger.info(
                "Project not found for user",
                project_id=str(project_id),
                user_id=str(user_id),
                trace_id=current_trace_id(),
            )
            return None
        return Project(**row)


class DatabaseInstanceRepository:
    """Repository for the database_instances table."""

    def __init__(self, db_client: DatabaseClient):
        self.db_client = db_client

    async def get_running_by_project(self, project_id: UUID) -> Optional[DatabaseInstance]:
        """Most recently created instance of the project with status 'running'."""
        row = await self.db_client.fetch_one(
            """
            SELECT id, project_id, status::text AS status, container_id, port, endpoint,
                   cpu_cores, ram_mb, storage_gb, created_at, updated_at
            FROM database_instances
            WHERE project_id = $1 AND status = $2
            ORDER BY created_at DESC
            LIMIT 1
            """,
            [project_id, InstanceStatus.RUNNING.value],
        )
        return DatabaseInstance(**row) if row is not None else None


class DatabaseCredentialRepository:
    """Repository for the database_credentials table."""

    def __init__(self, db_client: DatabaseClient):
        self.db_client = db_client

    async def get_latest_by_instance(self, instance_id: UUID) -> Optional[DatabaseCredential]:
        """Most recently created credential for the instance (rotations supersede older rows)."""
        row = await self.db_client.fetch_one(
            """
            SELECT id, db_instance_id AS instance_id, username, password_encrypted, created_at
            FROM database_credentials
            WHERE db_instance_id = $1
            ORDER BY created_at DESC
            LIMIT 1
            """,
            [instance_id],
        )
        return DatabaseCredential(**row) if row is not None else None
