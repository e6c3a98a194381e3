from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"


# Well-known database inside every tenant container
TENANT_DATABASE_NAME = "postgres"

# -------------------------
# Identifier / Type Constants
# -------------------------

# PostgreSQL truncates identifiers longer than NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_BYTES = 63

STRICT_IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_$]*$"
HYPHENATED_IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_\-]*$"

# Column type declarations are accepted when their upper-cased form starts
# with one of these prefixes (so VARCHAR(50), NUMERIC(10,2) etc. pass)
ALLOWED_COLUMN_TYPES = (
    "INT",
    "INTEGER",
    "BIGINT",
    "SMALLINT",
    "SERIAL",
    "BIGSERIAL",
    "DECIMAL",
    "NUMERIC",
    "REAL",
    "DOUBLE PRECISION",
    "BOOLEAN",
    "BOOL",
    "CHAR",
    "VARCHAR",
    "TEXT",
    "DATE",
    "TIME",
    "TIMESTAMP",
    "TIMESTAMPTZ",
    "INTERVAL",
    "UUID",
    "JSON",
    "JSONB",
    "BYTEA",
)

# -------------------------
# SQL Safety Constants
# -------------------------

BLOCKED_SQL_OPERATIONS = (
    "DROP DATABASE",
    "DROP SCHEMA",
    "TRUNCATE",
    "ALTER DATABASE",
    "CREATE DATABASE",
    "CREATE SCHEMA",
)

# SQLSTATE raised by PostgreSQL for a reference to a missing column
UNDEFINED_COLUMN_SQLSTATE = "42703"

# The only text allowed after an allow-listed base type (matched against the
# uppercased, whitespace-collapsed declaration)
COLUMN_TYPE_MODIFIER_PATTERN = (
    r"(?: ?\(\d+(?:, ?\d+)?\))?"
    r"(?: WITH(?:OUT)? TIME ZONE)?"
    r"(?:\[\])*"
)

# information_schema.columns.data_type -> cast target for InsertRow values
# that are bound as text and cast server-side
TEXT_BOUND_COLUMN_TYPES = {
    "date": "date",
    "time without time zone": "time",
    "time with time zone": "timetz",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "interval": "interval",
    "json": "json",
    "jsonb": "jsonb",
    "bytea": "bytea",
}
