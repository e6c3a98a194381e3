"""
API request models for the Tenant Database Gateway.

These models define the structure for all incoming API requests. They check
shape only (required fields, non-empty lists, FK actions); identifier
grammar and column types are checked by the gateway so the same rules apply
whether a call arrives over HTTP or from Python code.

All fields include descriptions that appear in Swagger/OpenAPI documentation.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base_enums import ReferentialAction


class ExecuteQueryRequest(BaseModel):
    """Request model for free-form SQL execution against a tenant database."""

    query: str = Field(
        ...,
        description="SQL text to execute. A single statement; comments are ignored "
                    "by the safety guard. Example: 'SELECT * FROM orders WHERE id = 5'",
    )


class InsertRowRequest(BaseModel):
    """Request model for inserting one row."""

    table: str = Field(..., description="Target table name")
    values: Dict[str, Any] = Field(
        ...,
        description="Column values to insert, bound as parameters. "
                    "Example: {'name': 'Ada', 'age': 36}",
    )


class DeleteRowRequest(BaseModel):
    """Request body for deleting one row; the row id comes from the path."""

    table_name: str = Field(..., description="Table holding the row")
    id_column: Optional[str] = Field(
        default=None,
        description="Column identifying the row. Defaults to the configured row id column ('id').",
    )


class AddColumnRequest(BaseModel):
    """Request model for adding a column to an existing table."""

    table_name: str = Field(..., description="Table to alter")
    name: str = Field(..., description="New column name")
    type: str = Field(..., description="Column type, e.g. 'VARCHAR(50)' or 'INTEGER'")
    default: Optional[Any] = Field(
        default=None,
        description="Default value. Strings are quoted and escaped, booleans become "
                    "TRUE/FALSE, numbers are used as-is; other types are rejected.",
    )


class DeleteColumnRequest(BaseModel):
    """Request body for dropping a column; the column name comes from the path."""

    table_name: str = Field(..., description="Table to alter")


class ColumnDefinition(BaseModel):
    """One column of a CREATE TABLE request."""

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Column type, e.g. 'INT' or 'VARCHAR(50)'")
    default: Optional[str] = Field(
        default=None,
        description="Default expression emitted verbatim after DEFAULT. "
                    "Must be a valid SQL literal, e.g. \"'pending'\" or 'now()'.",
    )
    primary: bool = Field(default=False, description="Emit PRIMARY KEY")
    is_unique: bool = Field(default=False, description="Emit UNIQUE")
    is_identity: bool = Field(default=False, description="Emit GENERATED ALWAYS AS IDENTITY")
    nullable: bool = Field(default=False, description="If false, emit NOT NULL")


class ForeignKeyReference(BaseModel):
    """A local column referencing a column of the foreign table."""

    local_column: str
    foreign_column: str
    on_update: Optional[ReferentialAction] = None
    on_delete: Optional[ReferentialAction] = None


class ForeignKeyBlock(BaseModel):
    """Foreign-key target table plus its column pairs."""

    schema_name: str = Field(default="public", alias="schema")
    table: str
    references: List[ForeignKeyReference] = Field(..., min_length=1)

    model_config = {"populate_by_name": True}


class CreateTableRequest(BaseModel):
    """Request model for creating a table."""

    schema_name: str = Field(
        default="public",
        alias="schema",
        description="Schema to create the table in",
    )
    table: str = Field(..., description="Table name")
    columns: List[ColumnDefinition] = Field(
        ...,
        min_length=1,
        description="Columns in declaration order",
    )
    foreign_keys: Optional[ForeignKeyBlock] = Field(
        default=None,
        description="Optional foreign-key block",
    )

    model_config = {"populate_by_name": True}


class DeleteTableRequest(BaseModel):
    """Request model for dropping a table (always CASCADE)."""

    schema_name: str = Field(default="public", alias="schema")
    table: str

    model_config = {"populate_by_name": True}
