"""
API response models for the Tenant Database Gateway.

These models define the structure for all outgoing API responses. Every
operation result carries an `error` field: statement failures against a
routed tenant are reported there instead of as HTTP errors.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Health status", examples=["healthy", "degraded", "unhealthy"])
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    database_status: str = Field(..., description="Control-plane database status")
    redis_status: str = Field(..., description="Container IP store status")


class ErrorResponse(BaseModel):
    """Response model for error responses."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
    trace_id: Optional[str] = Field(
        default=None,
        description="Trace ID for debugging"
    )
    timestamp: datetime = Field(..., description="Error timestamp")


class ValidationStep(BaseModel):
    """A single validation step result."""

    step_name: str = Field(..., description="Name of validation step")
    passed: bool = Field(..., description="Whether validation passed")
    message: Optional[str] = Field(None, description="Validation message or error")


class QueryExecutionResult(BaseModel):
    """
    Outcome of one statement against a tenant database.

    For SELECT-like statements `rows_affected` equals `row_count`. When
    `error` is set the other fields describe whatever was produced before
    the failure (usually nothing).
    """

    columns: List[str] = Field(default_factory=list, description="Column names in result order")
    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Result rows as column->value maps")
    row_count: int = Field(default=0, description="Number of rows returned")
    rows_affected: int = Field(default=0, description="Rows affected (SELECT: rows returned)")
    execution_time_ms: int = Field(default=0, description="Wall time spent in the tenant database")
    error: Optional[str] = Field(default=None, description="Failure message, if the statement failed")

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, message: str, execution_time_ms: int = 0) -> "QueryExecutionResult":
        return cls(error=message, execution_time_ms=execution_time_ms)


class ExecuteQueryResponse(BaseModel):
    """Response model for free-form query execution."""

    result: QueryExecutionResult
    execution_id: UUID = Field(..., description="Identifier of this execution")
    execution_time_ms: int = Field(..., description="Total gateway time including routing")


class InsertRowResponse(BaseModel):
    """Response model for InsertRow."""

    row_id: int = Field(default=0, description="Generated id, or 0 if none came back")
    note: Optional[str] = Field(default=None, description="Explanation when row_id is 0")
    error: Optional[str] = None


class AddColumnResponse(BaseModel):
    """Response model for AddColumn."""

    column_id: int = Field(default=0, description="Ordinal position of the new column, 0 if unknown")
    error: Optional[str] = None


class MutationResponse(BaseModel):
    """Response model for DeleteRow and DeleteColumn."""

    rows_affected: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class TableOperationResponse(BaseModel):
    """Driver execution result for CreateTable and DeleteTable."""

    sql: str = Field(..., description="Statement that was executed")
    status: Optional[str] = Field(default=None, description="Server command tag, e.g. 'CREATE TABLE'")
    rows_affected: int = 0
    error: Optional[str] = None


class QueryHistoryItem(BaseModel):
    """One audit entry as returned to the caller."""

    id: Optional[UUID] = None
    instance_id: Optional[UUID] = None
    query_text: str
    executed_at: datetime
    success: bool
    execution_time_ms: int


class QueryHistoryResponse(BaseModel):
    """Response model for the query history listing."""

    items: List[QueryHistoryItem]
    count: int
