"""
Identifier and column-type validation.

Identifiers (schema, table, column names) cannot be bound as parameters, so
every name that reaches a statement builder must first pass through this
module. Quoting alone is not enough: a name containing a double quote would
break out of the quoted identifier.

Grammar:
- strict (default):  ^[A-Za-z_][A-Za-z0-9_$]*$
- hyphenated:        ^[A-Za-z_][A-Za-z0-9_-]*$  (gateway.allow_hyphenated_identifiers)

Both forms are limited to 63 bytes (PostgreSQL would silently truncate
longer names). One grammar applies to every gateway operation.

Column types are accepted when the upper-cased declaration starts with an
allow-listed type name, so parameterized forms like VARCHAR(50) pass. The
declaration is interpolated into DDL, so it is also limited to letters,
digits, spaces, underscores, commas, parentheses and brackets.
"""

import re
from typing import Iterable, Optional

from tenant_gateway.config_constants import (
    ALLOWED_COLUMN_TYPES,
    COLUMN_TYPE_MODIFIER_PATTERN,
    HYPHENATED_IDENTIFIER_PATTERN,
    MAX_IDENTIFIER_BYTES,
    STRICT_IDENTIFIER_PATTERN,
)
from tenant_gateway.domain.errors import ValidationError

_STRICT_RE = re.compile(STRICT_IDENTIFIER_PATTERN)
_HYPHENATED_RE = re.compile(HYPHENATED_IDENTIFIER_PATTERN)
_BASE_TYPES = "|".join(re.escape(name) for name in sorted(ALLOWED_COLUMN_TYPES, key=len, reverse=True))
_COLUMN_TYPE_RE = re.compile(rf"(?:{_BASE_TYPES}){COLUMN_TYPE_MODIFIER_PATTERN}")


class IdentifierValidator:
    """
    Validates identifiers and column types, raising ValidationError.

    Args:
        allow_hyphens: Accept hyphens instead of '$' after the first character
    """

    def __init__(self, allow_hyphens: bool = False):
        self.allow_hyphens = allow_hyphens
        self._pattern = _HYPHENATED_RE if allow_hyphens else _STRICT_RE

    def is_valid(self, name: Optional[str]) -> bool:
        if not name:
            return False
        if len(name.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
            return False
        return self._pattern.fullmatch(name) is not None

    def validate(self, name: Optional[str], kind: str = "identifier") -> str:
        """
        Return the name unchanged if valid.

        Args:
            name: Candidate identifier
            kind: What the name is, used in the error message ("table name", ...)

        Raises:
            ValidationError: If the name is empty, too long, or outside the grammar
        """
        if not name:
            raise ValidationError(f"{kind} cannot be empty", details={"kind": kind})

        if len(name.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
            raise ValidationError(
                f"invalid {kind} '{name}': longer than {MAX_IDENTIFIER_BYTES} bytes",
                details={"kind": kind, "identifier": name},
            )

        if self._pattern.fullmatch(name) is None:
            allowed = "letters, digits, underscores and hyphens" if self.allow_hyphens \
                else "letters, digits, underscores and dollar signs"
            raise ValidationError(
                f"invalid {kind} '{name}': must start with a letter or underscore "
                f"and contain only {allowed}",
                details={"kind": kind, "identifier": name},
            )

        return name

    def validate_all(self, names: Iterable[str], kind: str = "column name") -> None:
        for name in names:
            self.validate(name, kind)


def is_allowed_column_type(column_type: Optional[str]) -> bool:
    if not column_type or not column_type.strip():
        return False
    normalized = " ".join(column_type.split()).upper()
    return _COLUMN_TYPE_RE.fullmatch(normalized) is not None


def validate_column_type(column_type: Optional[str], column_name: str = "") -> str:
    """
    Return the type declaration stripped of surrounding whitespace.

    Raises:
        ValidationError: If the type is empty or not in the allow-list
    """
    if not column_type or not column_type.strip():
        raise ValidationError(
            f"column type is required for column '{column_name}'",
            details={"column": column_name},
        )
    if not is_allowed_column_type(column_type):
        raise ValidationError(
            f"invalid column type for '{column_name}': {column_type}",
            details={"column": column_name, "type": column_type},
        )
    return column_type.strip()


def validate_default_expression(expression: Optional[str], column_name: str = "") -> Optional[str]:
    """
    Check a CREATE TABLE default expression, which is emitted verbatim.

    Statement separators and comment markers are refused so the expression
    cannot end the CREATE TABLE statement early.

    Raises:
        ValidationError: If the expression contains ';', '--' or '/*'
    """
    if not expression:
        return expression
    if any(marker in expression for marker in (";", "--", "/*")):
        raise ValidationError(
            f"invalid default for column '{column_name}': "
            "must not contain statement separators or comments",
            details={"column": column_name},
        )
    return expression
