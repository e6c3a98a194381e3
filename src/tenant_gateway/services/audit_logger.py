"""
Audit Logger - one query history row per gateway call.

Writes are best-effort: a failure to persist the row is logged and
swallowed, never retried and never surfaced to the caller.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from tenant_gateway.domain.models import QueryHistoryRecord
from tenant_gateway.repositories.query_history_repository import QueryHistoryRepository
from tenant_gateway.utils.logging import get_module_logger, truncate_sql
from tenant_gateway.utils.tracing import current_trace_id

logger = get_module_logger()


class AuditLogger:
    """Records and lists execution attempts."""

    def __init__(self, history_repository: QueryHistoryRepository):
        self.history_repo = history_repository

    async def record(
        self,
        instance_id: Optional[UUID],
        user_id: UUID,
        query_text: str,
        success: bool,
        latency_ms: int,
        project_id: Optional[UUID] = None,
    ) -> Optional[QueryHistoryRecord]:
        """
        Persist one audit row.

        Returns:
            The stored record (with id), or None if the write failed
        """
        trace_id = current_trace_id()
        record = QueryHistoryRecord(
            instance_id=instance_id,
            project_id=project_id,
            user_id=user_id,
            query_text=query_text,
            executed_at=datetime.now(timezone.utc),
            success=success,
            execution_time_ms=max(latency_ms, 0),
        )

        try:
            stored = await self.history_repo.create(record)
        except Exception as e:
            logger.error(
                "Failed to write query history",
                error=str(e),
                error_type=type(e).__name__,
                instance_id=str(instance_id) if instance_id else None,
                query=truncate_sql(query_text),
                trace_id=trace_id,
            )
            return None

        logger.info(
            "Query history recorded",
            history_id=str(stored.id) if stored.id else None,
            instance_id=str(instance_id) if instance_id else None,
            success=success,
            execution_time_ms=record.execution_time_ms,
            trace_id=trace_id,
        )
        return stored

    async def history(
        self,
        user_id: UUID,
        limit: int,
        project_id: Optional[UUID] = None,
    ) -> List[QueryHistoryRecord]:
        return await self.history_repo.list_by_user(user_id, limit, project_id=project_id)
