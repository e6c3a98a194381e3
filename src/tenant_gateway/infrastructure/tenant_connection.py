"""
Ephemeral connections to tenant databases.

Every gateway call opens exactly one connection and closes it before
returning: no pool, no reuse, no keep-alive. Decrypted credentials live
only in the TenantEndpoint for the duration of the call.

Each connection is bounded on both sides:
- connect timeout (TenantConfig.connect_timeout_seconds)
- server-side statement_timeout and client-side command_timeout
  (TenantConfig.statement_timeout_seconds)

Cancelling the calling task cancels the in-flight asyncpg call, which
asyncpg turns into a server-side cancel request.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

import asyncpg

from ..config import TenantConfig
from ..domain.errors import QueryExecutionError
from ..domain.models import TenantEndpoint
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

# Exceptions that mean "the tenant database failed us", as opposed to a bug
DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    asyncio.TimeoutError,
    OSError,
)

ConnectFn = Callable[..., Awaitable[asyncpg.Connection]]


class TenantConnectionFactory:
    """
    Opens one asyncpg connection per call.

    Usage:
        factory = TenantConnectionFactory(settings.tenant)
        async with factory.connect(endpoint) as conn:
            await conn.fetch("SELECT 1")
    """

    def __init__(self, config: TenantConfig, connect_fn: ConnectFn = asyncpg.connect):
        self.config = config
        self._connect_fn = connect_fn

    @asynccontextmanager
    async def connect(self, endpoint: TenantEndpoint) -> AsyncIterator[asyncpg.Connection]:
        """
        Open a connection to the tenant and close it on exit.

        Raises:
            QueryExecutionError: If the connection cannot be established
        """
        trace_id = current_trace_id()
        statement_timeout_ms = self.config.statement_timeout_seconds * 1000

        try:
            conn = await self._connect_fn(
                host=endpoint.host,
                port=endpoint.port,
                user=endpoint.username,
                password=endpoint.password.get_secret_value(),
                database=endpoint.database,
                timeout=self.config.connect_timeout_seconds,
                command_timeout=self.config.statement_timeout_seconds,
                ssl=False,
                server_settings={
                    "statement_timeout": str(statement_timeout_ms),
                    "application_name": self.config.application_name,
                },
            )
        except DRIVER_ERRORS as e:
            message = "timed out connecting to tenant database" if isinstance(e, asyncio.TimeoutError) \
                else f"failed to connect to tenant database: {e}"
            logger.error(
                "Tenant connection failed",
                instance_id=str(endpoint.instance_id),
                host=endpoint.host,
                port=endpoint.port,
                error_type=type(e).__name__,
                trace_id=trace_id,
            )
            raise QueryExecutionError(message, details={"instance_id": str(endpoint.instance_id)}) from e

        logger.debug(
            "Tenant connection opened",
            instance_id=str(endpoint.instance_id),
            host=endpoint.host,
            port=endpoint.port,
            trace_id=trace_id,
        )

        try:
            yield conn
        finally:
            await self._close(conn, endpoint)

    async def _close(self, conn: asyncpg.Connection, endpoint: TenantEndpoint) -> None:
        try:
            await conn.close(timeout=self.config.connect_timeout_seconds)
        except DRIVER_ERRORS as e:
            logger.warning(
                "Graceful tenant connection close failed, terminating",
                instance_id=str(endpoint.instance_id),
                error_type=type(e).__name__,
                trace_id=current_trace_id(),
            )
            conn.terminate()
