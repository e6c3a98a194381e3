from enum import Enum


class InstanceStatus(str, Enum):
    CREATING = "creating"
    RUNNING = "running"
    FAILED = "failed"
    PAUSED = "paused"
    DELETED = "deleted"


class StatementKind(str, Enum):
    """How the executor treats a statement's outcome."""
    SELECT = "select"
    NON_SELECT = "non_select"


class ReferentialAction(str, Enum):
    """Actions permitted in ON DELETE / ON UPDATE clauses."""
    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"


class GatewayOperation(str, Enum):
    """Gateway entry points, used for logging."""
    EXECUTE_QUERY = "execute_query"
    INSERT_ROW = "insert_row"
    DELETE_ROW = "delete_row"
    ADD_COLUMN = "add_column"
    DELETE_COLUMN = "delete_column"
    CREATE_TABLE = "create_table"
    DELETE_TABLE = "delete_table"
