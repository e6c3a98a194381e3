"""
FastAPI dependencies for dependency injection.

Everything here is a lookup: the clients and the GatewayService are built
once in the application lifespan and stored on app.state. Routes depend on
the gateway, never on infrastructure clients directly; the optional client
getters exist for the health check only.

The caller's identity comes from the upstream authentication layer in the
X-User-ID header.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, Request

from ..config import Settings
from ..domain.errors import UnauthenticatedError
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.redis_client import RedisIPStore
from ..services.gateway_service import GatewayService


def get_settings(request: Request) -> Settings:
    """
    Settings loaded at startup.

    Raises:
        RuntimeError: If settings are not initialized
    """
    if not hasattr(request.app.state, "settings"):
        raise RuntimeError("Settings not initialized")
    return request.app.state.settings


def get_gateway_service(request: Request) -> GatewayService:
    """
    The GatewayService built in the application lifespan.

    Raises:
        RuntimeError: If the gateway is not initialized
    """
    if not hasattr(request.app.state, "gateway"):
        raise RuntimeError("Gateway service not initialized")
    return request.app.state.gateway


def get_current_user_id(x_user_id: Annotated[Optional[str], Header()] = None) -> UUID:
    """
    Parse the authenticated user id from X-User-ID.

    Raises:
        UnauthenticatedError: If the header is missing or not a UUID
    """
    if not x_user_id:
        raise UnauthenticatedError("missing X-User-ID header")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise UnauthenticatedError("X-User-ID header is not a valid UUID")


def get_db_client_optional(request: Request) -> DatabaseClient | None:
    """Get database client if available, None otherwise."""
    return getattr(request.app.state, "db_client", None)


def get_ip_store_optional(request: Request) -> RedisIPStore | None:
    """Get the Redis IP store if available, None otherwise."""
    return getattr(request.app.state, "ip_store", None)


# Type aliases for cleaner dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
GatewayServiceDep = Annotated[GatewayService, Depends(get_gateway_service)]
CurrentUserDep = Annotated[UUID, Depends(get_current_user_id)]

# Optional client dependencies (used in health checks)
OptionalDatabaseClientDep = Annotated[DatabaseClient | None, Depends(get_db_client_optional)]
OptionalIPStoreDep = Annotated[RedisIPStore | None, Depends(get_ip_store_optional)]
