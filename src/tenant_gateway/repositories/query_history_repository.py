"""
Query history (audit trail) repository.

Rows are append-only: created by the audit logger, listed newest first,
never updated or deleted.
"""

from typing import List, Optional
from uuid import UUID

from tenant_gateway.domain.models import QueryHistoryRecord
from tenant_gateway.infrastructure.database_client import DatabaseClient

_SELECT_COLUMNS = """
    SELECT id, db_instance_id AS instance_id, project_id, user_id, query_text,
           executed_at, COALESCE(success, false) AS success,
           COALESCE(execution_time_ms, 0) AS execution_time_ms
    FROM query_history
"""


class QueryHistoryRepository:
    """Repository for the query_history table."""

    def __init__(self, db_client: DatabaseClient):
        self.db_client = db_client

    async def create(self, record: QueryHistoryRecord) -> QueryHistoryRecord:
        """
        Insert one audit row.

        Returns:
            The record with its generated id
        """
        row = await self.db_client.fetch_one(
            """
            INSERT INTO query_history
                (db_instance_id, project_id, user_id, query_text, executed_at, success, execution_time_ms)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING id
            """,
            [
                record.instance_id,
                record.project_id,
                record.user_id,
                record.query_text,
                record.executed_at,
                record.success,
                record.execution_time_ms,
            ],
        )
        return record.model_copy(update={"id": row["id"]}) if row else record

    async def list_by_user(
        self,
        user_id: UUID,
        limit: int,
        project_id: Optional[UUID] = None,
    ) -> List[QueryHistoryRecord]:
        """Newest-first audit rows for a user, optionally limited to one project."""
        if project_id is None:
            rows = await self.db_client.fetch_all(
                _SELECT_COLUMNS + " WHERE user_id = $1 ORDER BY executed_at DESC LIMIT $2",
                [user_id, limit],
            )
        else:
            rows = await self.db_client.fetch_all(
                _SELECT_COLUMNS + " WHERE user_id = $1 AND project_id = $2 ORDER BY executed_at DESC LIMIT $3",
                [user_id, project_id, limit],
            )
        return [QueryHistoryRecord(**row) for row in rows]
