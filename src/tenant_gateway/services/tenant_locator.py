"""
Tenant Locator - resolves (user, project) to a reachable tenant endpoint.

Steps, each with its own failure:
1. Project owned by the user                 -> AuthorizationError
2. Newest running instance of the project    -> NoRunningInstanceError
3. Newest credential of that instance        -> NoCredentialsError
4. Instance has a container id and a port    -> InstanceNotConfiguredError
5. Container IP: in-memory registry, then
   the Redis-persisted mapping               -> IPResolutionFailedError
6. Decrypt the credential secret             -> DecryptionFailedError

Step 1 is exposed separately (authorize) because the gateway treats an
ownership failure differently from the routing failures that follow it.

Nothing is cached: every call re-resolves from the backing stores, so two
calls against unchanged state return equal endpoints.
"""

from typing import Optional, Protocol
from uuid import UUID

from tenant_gateway.config import TenantConfig
from tenant_gateway.domain.errors import (
    AuthorizationError,
    DecryptionFailedError,
    InstanceNotConfiguredError,
    IPResolutionFailedError,
    NoCredentialsError,
    NoRunningInstanceError,
)
from tenant_gateway.domain.models import DatabaseInstance, Project, TenantEndpoint
from tenant_gateway.infrastructure.container_registry import ContainerRegistry
from tenant_gateway.infrastructure.secret_cipher import SecretCipher
from tenant_gateway.repositories.project_repository import (
    DatabaseCredentialRepository,
    DatabaseInstanceRepository,
    ProjectRepository,
)
from tenant_gateway.utils.logging import get_module_logger
from tenant_gateway.utils.tracing import current_trace_id

logger = get_module_logger()


class PersistentIPStore(Protocol):
    async def get_container_ip(self, container_id: str) -> Optional[str]:
        ...


class TenantLocator:
    """
    Resolves tenant endpoints and decrypted credentials.

    Usage:
        project = await locator.authorize(user_id, project_id)
        endpoint = await locator.resolve(project_id)
    """

    def __init__(
        self,
        project_repository: ProjectRepository,
        instance_repository: DatabaseInstanceRepository,
        credential_repository: DatabaseCredentialRepository,
        container_registry: ContainerRegistry,
        ip_store: Optional[PersistentIPStore],
        cipher: SecretCipher,
        config: TenantConfig,
    ):
        self.project_repo = project_repository
        self.instance_repo = instance_repository
        self.credential_repo = credential_repository
        self.registry = container_registry
        self.ip_store = ip_store
        self.cipher = cipher
        self.config = config

    async def authorize(self, user_id: UUID, project_id: UUID) -> Project:
        """
        Raises:
            AuthorizationError: If the project is absent or owned by someone else
        """
        project = await self.project_repo.get_by_id_and_user(project_id, user_id)
        if project is None:
            raise AuthorizationError(
                "project not found or not accessible",
                details={"project_id": str(project_id)},
            )
        return project

    async def resolve(self, project_id: UUID) -> TenantEndpoint:
        """
        Resolve the project's running instance to an endpoint.

        Raises:
            RoutingError subclasses and DecryptionFailedError, each carrying
            the instance id once an instance has been found
        """
        trace_id = current_trace_id()

        instance = await self.instance_repo.get_running_by_project(project_id)
        if instance is None:
            raise NoRunningInstanceError(
                "no running database instance for this project",
                details={"project_id": str(project_id)},
            )

        credential = await self.credential_repo.get_latest_by_instance(instance.id)
        if credential is None:
            raise NoCredentialsError(
                "no credentials configured for this database instance",
                instance_id=instance.id,
            )

        if not instance.container_id:
            raise InstanceNotConfiguredError(
                "database instance container ID not configured",
                instance_id=instance.id,
            )
        if not instance.port:
            raise InstanceNotConfiguredError(
                "database instance port not configured",
                instance_id=instance.id,
            )

        host = await self._resolve_ip(instance)

        try:
            password = self.cipher.decrypt(credential.password_encrypted)
        except DecryptionFailedError as e:
            e.instance_id = instance.id
            raise

        logger.info(
            "Tenant endpoint resolved",
            project_id=str(project_id),
            instance_id=str(instance.id),
            host=host,
            port=instance.port,
            trace_id=trace_id,
        )

        return TenantEndpoint(
            instance_id=instance.id,
            host=host,
            port=instance.port,
            username=credential.username,
            password=password,
            database=self.config.database_name,
        )

    async def locate(self, user_id: UUID, project_id: UUID) -> TenantEndpoint:
        """authorize() followed by resolve()."""
        await self.authorize(user_id, project_id)
        return await self.resolve(project_id)

    async def _resolve_ip(self, instance: DatabaseInstance) -> str:
        trace_id = current_trace_id()
        container_id = instance.container_id or ""

        ip = self.registry.get_container_ip(container_id)
        if ip:
            return ip

        logger.info(
            "Container IP not in registry, trying persistent store",
            container_id=container_id,
            trace_id=trace_id,
        )

        if self.ip_store is not None:
            ip = await self.ip_store.get_container_ip(container_id)
            if ip:
                return ip

        raise IPResolutionFailedError(
            "failed to get container IP from orchestrator",
            details={"container_id": container_id},
            instance_id=instance.id,
        )
