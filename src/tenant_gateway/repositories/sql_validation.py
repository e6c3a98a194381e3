"""
SQL Safety Validation Repository.

Heuristic guard for free-form SQL submitted through ExecuteQuery. It is NOT
a SQL parser and not a complete injection defense; builder-generated
statements never pass through here because they are assembled from
validated identifiers and bound parameters.

Validation Checks (in order, on upper-cased text with comments removed):
1. Empty Check: nothing left after stripping comments
2. Blocked Operations Check: DROP DATABASE, DROP SCHEMA, TRUNCATE,
   ALTER DATABASE, CREATE DATABASE, CREATE SCHEMA
3. Unbounded Delete Check: DELETE FROM requires a WHERE clause
4. Multiple Statements Check: more than one non-empty ';' segment

Usage:
    validator = SQLSafetyValidator()
    step = validator.validate("SELECT * FROM orders")
    if not step.passed:
        # step.message goes into the result's error field

Error Handling:
- ValidationStep.passed=False does NOT raise exceptions
- Messages are returned to the caller verbatim
"""

import re

from tenant_gateway.config_constants import BLOCKED_SQL_OPERATIONS
from tenant_gateway.domain.responses import ValidationStep
from tenant_gateway.utils.logging import get_module_logger, truncate_sql
from tenant_gateway.utils.tracing import get_trace_id

logger = get_module_logger()

_COMMENT_RE = re.compile(r"--.*|/\*[\s\S]*?\*/")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_sql(sql: str) -> str:
    """Upper-case, strip comments and collapse whitespace."""
    normalized = _COMMENT_RE.sub(" ", sql.upper())
    return _WHITESPACE_RE.sub(" ", normalized).strip()


class SQLSafetyValidator:
    """
    Validator for free-form tenant SQL.

    Stateless; one instance can be shared across requests.
    """

    def validate(self, sql: str) -> ValidationStep:
        """
        Run all checks; the first failing check is returned.

        Args:
            sql: Raw SQL text from the caller

        Returns:
            ValidationStep with pass/fail status and message
        """
        normalized = normalize_sql(sql or "")

        for check in (
            self._check_not_empty,
            self._check_blocked_operations,
            self._check_delete_has_where,
            self._check_single_statement,
        ):
            step = check(normalized)
            if not step.passed:
                logger.info(
                    "SQL rejected by safety check",
                    step=step.step_name,
                    reason=step.message,
                    sql=truncate_sql(sql or ""),
                    trace_id=get_trace_id(),
                )
                return step

        return ValidationStep(
            step_name="sql_safety",
            passed=True,
            message="SQL safety checks passed",
        )

    def _check_not_empty(self, normalized: str) -> ValidationStep:
        if not normalized:
            return ValidationStep(
                step_name="empty_check",
                passed=False,
                message="query cannot be empty",
            )
        return ValidationStep(step_name="empty_check", passed=True)

    def _check_blocked_operations(self, normalized: str) -> ValidationStep:
        for operation in BLOCKED_SQL_OPERATIONS:
            if operation in normalized:
                return ValidationStep(
                    step_name="blocked_operation_check",
                    passed=False,
                    message=f"operation '{operation}' is not allowed for security reasons",
                )
        return ValidationStep(step_name="blocked_operation_check", passed=True)

    def _check_delete_has_where(self, normalized: str) -> ValidationStep:
        if "DELETE FROM" in normalized and "WHERE" not in normalized:
            return ValidationStep(
                step_name="delete_where_check",
                passed=False,
                message="DELETE statements must include a WHERE clause for safety",
            )
        return ValidationStep(step_name="delete_where_check", passed=True)

    def _check_single_statement(self, normalized: str) -> ValidationStep:
        # A single trailing semicolon is fine
        segments = [part for part in normalized.split(";") if part.strip()]
        if len(segments) > 1:
            return ValidationStep(
                step_name="single_statement_check",
                passed=False,
                message="multiple statements are not allowed for security reasons",
            )
        return ValidationStep(step_name="single_statement_check", passed=True)
