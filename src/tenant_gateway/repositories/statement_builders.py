"""
Statement builders for structured gateway operations.

Builders assemble SQL text plus positional parameters. Values are always
bound ($1, $2, ...); identifiers are double-quoted. Identifiers and column
types must already have passed identifier_validation: builders do not
validate names themselves.

DDL cannot bind parameters, so ADD COLUMN defaults go through
format_default_literal(), which only accepts types it can render safely.
CREATE TABLE column defaults are caller-supplied SQL emitted verbatim.
"""

import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from tenant_gateway.config_constants import TEXT_BOUND_COLUMN_TYPES
from tenant_gateway.domain.errors import ValidationError
from tenant_gateway.domain.requests import ColumnDefinition, ForeignKeyBlock
from tenant_gateway.domain.types import ColumnValues


@dataclass(frozen=True)
class Statement:
    """SQL text with its positional bind parameters."""

    sql: str
    params: List[Any] = field(default_factory=list)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def qualified_name(schema: str, table: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def format_default_literal(value: Any) -> str:
    """
    Render a DDL DEFAULT value as a SQL literal.

    - str: single-quoted, embedded quotes doubled
    - bool: TRUE / FALSE
    - int, finite float, finite Decimal: textual form

    Raises:
        ValidationError: For any other type or a non-finite number
    """
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        if "\x00" in value:
            raise ValidationError("default value cannot contain NUL characters")
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"default value {value!r} is not a finite number")
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValidationError(f"default value {value!r} is not a finite number")
        return str(value)
    raise ValidationError(
        f"default value of type {type(value).__name__} cannot be used as a column default",
        details={"type": type(value).__name__},
    )


# =============================================================================
# DML
# =============================================================================


def text_input_casts(column_types: Mapping[str, str], columns: Iterable[str]) -> Dict[str, str]:
    """
    Pick the cast target for each of `columns` whose data type is bound as text.

    `column_types` maps column name to information_schema data_type.
    """
    casts = {}
    for column in columns:
        target = TEXT_BOUND_COLUMN_TYPES.get(column_types.get(column, "").lower())
        if target:
            casts[column] = target
    return casts


def to_text_param(value: Any, target: str) -> Optional[str]:
    """Render a request value as the text input form of a `target` column."""
    if value is None:
        return None
    if target in ("json", "jsonb"):
        # A string is taken as already-encoded document text
        return value if isinstance(value, str) else json.dumps(value)
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return "\\x" + bytes(value).hex()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def build_insert(
    table: str,
    values: ColumnValues,
    returning: Optional[str] = None,
    casts: Optional[Mapping[str, str]] = None,
) -> Statement:
    """
    INSERT INTO "table" ("c1", "c2") VALUES ($1, $2::text::date) [RETURNING "id"]

    Column order follows the mapping's insertion order. Columns named in
    `casts` are bound as text and cast to the mapped type by the server.
    """
    casts = casts or {}
    columns = list(values.keys())
    column_list = ", ".join(quote_identifier(column) for column in columns)

    placeholders = []
    params = []
    for position, column in enumerate(columns, start=1):
        target = casts.get(column)
        if target:
            placeholders.append(f"${position}::text::{target}")
            params.append(to_text_param(values[column], target))
        else:
            placeholders.append(f"${position}")
            params.append(values[column])

    sql = f"INSERT INTO {quote_identifier(table)} ({column_list}) VALUES ({', '.join(placeholders)})"
    if returning:
        sql += f" RETURNING {quote_identifier(returning)}"

    return Statement(sql=sql, params=params)


def build_delete_row(table: str, id_column: str, row_id: Any) -> Statement:
    sql = f"DELETE FROM {quote_identifier(table)} WHERE {quote_identifier(id_column)} = $1"
    return Statement(sql=sql, params=[row_id])


# =============================================================================
# DDL
# =============================================================================


def build_add_column(table: str, column: str, column_type: str, default: Any = None) -> Statement:
    sql = f"ALTER TABLE {quote_identifier(table)} ADD COLUMN {quote_identifier(column)} {column_type}"
    if default is not None:
        sql += f" DEFAULT {format_default_literal(default)}"
    return Statement(sql=sql)


def build_drop_column(table: str, column: str) -> Statement:
    return Statement(sql=f"ALTER TABLE {quote_identifier(table)} DROP COLUMN {quote_identifier(column)}")


def _column_clause(column: ColumnDefinition) -> str:
    clause = f"  {quote_identifier(column.name)} {column.type.strip()}"
    if column.is_identity:
        clause += " GENERATED ALWAYS AS IDENTITY"
    if column.primary:
        clause += " PRIMARY KEY"
    if column.is_unique:
        clause += " UNIQUE"
    if not column.nullable:
        clause += " NOT NULL"
    if column.default:
        clause += f" DEFAULT {column.default}"
    return clause


def _foreign_key_clauses(block: ForeignKeyBlock) -> List[str]:
    target = qualified_name(block.schema_name, block.table)
    clauses = []
    for reference in block.references:
        clause = (
            f"  FOREIGN KEY ({quote_identifier(reference.local_column)}) "
            f"REFERENCES {target}({quote_identifier(reference.foreign_column)})"
        )
        if reference.on_delete:
            clause += f" ON DELETE {reference.on_delete.value}"
        if reference.on_update:
            clause += f" ON UPDATE {reference.on_update.value}"
        clauses.append(clause)
    return clauses


def build_create_table(
    schema: str,
    table: str,
    columns: List[ColumnDefinition],
    foreign_keys: Optional[ForeignKeyBlock] = None,
) -> Statement:
    """
    CREATE TABLE "schema"."table" (
      "col" TYPE [GENERATED ALWAYS AS IDENTITY] [PRIMARY KEY] [UNIQUE] [NOT NULL] [DEFAULT x],
      FOREIGN KEY ("local") REFERENCES "fs"."ft"("foreign") [ON DELETE a] [ON UPDATE b]
    );
    """
    clauses = [_column_clause(column) for column in columns]
    if foreign_keys is not None:
        clauses.extend(_foreign_key_clauses(foreign_keys))

    body = ",\n".join(clauses)
    return Statement(sql=f"CREATE TABLE {qualified_name(schema, table)} (\n{body}\n);")


def build_drop_table(schema: str, table: str) -> Statement:
    return Statement(sql=f"DROP TABLE {qualified_name(schema, table)} CASCADE")
