"""
Type aliases for the Tenant Database Gateway.

Provides reusable, descriptive type aliases for common patterns
to improve code readability and type safety.
"""

from typing import Any, Dict, List, Sequence


# One marshalled result row: {column_name: value}
ResultRow = Dict[str, Any]

# Marshalled result set in column order
ResultRows = List[ResultRow]

# Positional bind parameters for $1, $2, ... placeholders
SQLParams = Sequence[Any]

# Column values supplied for an INSERT: {column_name: value}
ColumnValues = Dict[str, Any]
