"""
Control-plane database client using asyncpg.

The control-plane database holds projects, database instances, credentials
and the query history. This client owns a connection pool to it; tenant
databases are never reached through this client (see tenant_connection).
"""

from typing import Any, Dict, List, Optional
from contextlib import asynccontextmanager
import asyncpg

from ..config import DatabaseConfig
from ..utils.logging import get_module_logger, truncate_sql
from ..utils.tracing import current_trace_id
from ..domain.errors import DatabaseConnectionError, DatabaseQueryError


logger = get_module_logger()


class DatabaseClient:
    """
    Low-level async client for the control-plane PostgreSQL database.

    This is a thin infrastructure layer. Table-specific queries live in the
    repositories (ProjectRepository, QueryHistoryRepository, ...).

    Features:
    - Connection pooling with asyncpg
    - Row fetch helpers returning dictionaries
    - Structured logging with trace IDs
    - asyncpg errors mapped to DatabaseQueryError

    Usage:
        client = DatabaseClient(config)
        await client.connect()

        row = await client.fetch_one(
            "SELECT * FROM projects WHERE id = $1",
            [project_id]
        )

        await client.close()
    """

    def __init__(self, config: DatabaseConfig):
        """
        Initialize database client with configuration.

        Args:
            config: Control-plane database configuration
        """
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_connected = False

        logger.info(
            "DatabaseClient initialized",
            default_schema=config.default_schema,
            connection_pool_size=config.connection_pool_max_size,
            query_timeout_seconds=config.query_timeout_seconds,
            application_name=config.application_name
        )

    async def connect(self) -> None:
        """
        Establish connection pool to the database.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self._is_connected:
            logger.warning("Database client already connected")
            return

        trace_id = current_trace_id()
        logger.info("Establishing control-plane database connection", trace_id=trace_id)

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.database_url,
                min_size=self.config.connection_pool_min_size,
                max_size=self.config.connection_pool_max_size,
                command_timeout=self.config.query_timeout_seconds,
                timeout=self.config.connection_timeout_seconds,
                server_settings={
                    'application_name': self.config.application_name,
                    'search_path': self.config.default_schema,
                }
            )

            await self._test_connection(self._pool)

            self._is_connected = True
            logger.info(
                "Control-plane database connection established",
                pool_size=self.config.connection_pool_max_size,
                default_schema=self.config.default_schema,
                trace_id=trace_id
            )

        except asyncpg.InvalidCatalogNameError as e:
            error_msg = f"Database does not exist: {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

        except asyncpg.InvalidPasswordError as e:
            error_msg = f"Authentication failed: {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

        except DatabaseConnectionError:
            raise

        except Exception as e:
            error_msg = f"Failed to connect to database: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

    async def _test_connection(self, pool: asyncpg.Pool) -> None:
        """Test database connection."""
        trace_id = current_trace_id()
        try:
            async with pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise DatabaseConnectionError("Connection test failed")
                current_schema = await conn.fetchval("SELECT current_schema()")
                logger.info(
                    "Connection test successful",
                    current_schema=current_schema,
                    trace_id=trace_id
                )
        except DatabaseConnectionError:
            raise
        except Exception as e:
            error_msg = f"Connection test failed: {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

    async def close(self) -> None:
        """Close database connection pool."""
        trace_id = current_trace_id()

        if self._pool:
            await self._pool.close()
            logger.info("Connection pool closed", trace_id=trace_id)

        self._is_connected = False
        self._pool = None

    def is_connected(self) -> bool:
        """Check if database client is connected."""
        return self._is_connected and self._pool is not None

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on database connection.

        Returns:
            Dictionary with status and connection details

        Example:
            {
                "status": "healthy",
                "connected": True,
                "pool_size": 10
            }
        """
        trace_id = current_trace_id()

        if not self.is_connected():
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "Database client not connected"
            }

        try:
            async with self.acquire_connection() as conn:
                result = await conn.fetchval("SELECT 1")

            if result != 1:
                return {
                    "status": "unhealthy",
                    "connected": True,
                    "error": "Connection test query failed"
                }

            return {
                "status": "healthy",
                "connected": True,
                "pool_size": self.config.connection_pool_max_size,
            }

        except Exception as e:
            logger.error(
                "Database health check failed",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id
            )
            return {
                "status": "unhealthy",
                "connected": True,
                "error": str(e)
            }

    @asynccontextmanager
    async def acquire_connection(self):
        """
        Context manager to acquire a connection from the pool.

        Yields:
            asyncpg.Connection: Database connection

        Raises:
            DatabaseConnectionError: If the pool is not available
        """
        if not self.is_connected() or self._pool is None:
            raise DatabaseConnectionError("Database client is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    async def fetch_one(
        self,
        query: str,
        params: Optional[List[Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Execute a query and return the first row as a dictionary.

        Returns:
            Row dictionary, or None if the query returned no rows
        """
        trace_id = current_trace_id()
        try:
            async with self.acquire_connection() as conn:
                row = await conn.fetchrow(query, *(params or []))
        except DatabaseConnectionError:
            raise
        except Exception as e:
            error_msg = f"Query execution failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, query=truncate_sql(query), trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        return dict(row) if row is not None else None

    async def fetch_all(
        self,
        query: str,
        params: Optional[List[Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Execute a query and return all rows as dictionaries."""
        trace_id = current_trace_id()
        try:
            async with self.acquire_connection() as conn:
                rows = await conn.fetch(query, *(params or []))
        except DatabaseConnectionError:
            raise
        except Exception as e:
            error_msg = f"Query execution failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, query=truncate_sql(query), trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        logger.debug("Query executed successfully", row_count=len(rows), trace_id=trace_id)
        return [dict(row) for row in rows]
