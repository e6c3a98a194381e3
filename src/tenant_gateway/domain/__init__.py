"""
Domain package for the Tenant Database Gateway.

This package contains all domain models, entities, and value objects
used throughout the application for type safety and validation.
"""

from .base_enums import (
    InstanceStatus,
    StatementKind,
    ReferentialAction,
    GatewayOperation,
)
from .models import (
    Project,
    DatabaseInstance,
    DatabaseCredential,
    QueryHistoryRecord,
    TenantEndpoint,
)
from .requests import (
    ExecuteQueryRequest,
    InsertRowRequest,
    DeleteRowRequest,
    AddColumnRequest,
    DeleteColumnRequest,
    ColumnDefinition,
    ForeignKeyReference,
    ForeignKeyBlock,
    CreateTableRequest,
    DeleteTableRequest,
)
from .responses import (
    HealthResponse,
    ErrorResponse,
    ValidationStep,
    QueryExecutionResult,
    ExecuteQueryResponse,
    InsertRowResponse,
    AddColumnResponse,
    MutationResponse,
    TableOperationResponse,
    QueryHistoryItem,
    QueryHistoryResponse,
)

__all__ = [
    # Enums
    "InstanceStatus",
    "StatementKind",
    "ReferentialAction",
    "GatewayOperation",

    # Entities
    "Project",
    "DatabaseInstance",
    "DatabaseCredential",
    "QueryHistoryRecord",
    "TenantEndpoint",

    # Requests
    "ExecuteQueryRequest",
    "InsertRowRequest",
    "DeleteRowRequest",
    "AddColumnRequest",
    "DeleteColumnRequest",
    "ColumnDefinition",
    "ForeignKeyReference",
    "ForeignKeyBlock",
    "CreateTableRequest",
    "DeleteTableRequest",

    # Responses
    "HealthResponse",
    "ErrorResponse",
    "ValidationStep",
    "QueryExecutionResult",
    "ExecuteQueryResponse",
    "InsertRowResponse",
    "AddColumnResponse",
    "MutationResponse",
    "TableOperationResponse",
    "QueryHistoryItem",
    "QueryHistoryResponse",
]
