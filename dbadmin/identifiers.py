"""
Identifier allow-listing and quoting.

Table, column and database names cannot be bound as query parameters, so
every name that ends up inside a statement goes through `quote()` first.
Values are never interpolated; they are always passed as bound parameters.
"""

from __future__ import annotations

import re
from typing import Optional

from dbadmin.errors.exceptions import InvalidIdentifierError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")

# MySQL caps identifiers at 64 characters.
MAX_IDENTIFIER_LENGTH = 64

SYSTEM_SCHEMAS = frozenset({"information_schema", "mysql", "performance_schema", "sys"})


def is_valid_identifier(name: Optional[str]) -> bool:
    if not name or not isinstance(name, str):
        return False
    if len(name) > MAX_IDENTIFIER_LENGTH:
        return False
    return bool(_IDENTIFIER_RE.match(name))


def validate_identifier(name: Optional[str], kind: str = "identifier") -> str:
    if not is_valid_identifier(name):
        raise InvalidIdentifierError(
            f"Invalid {kind} name {name!r}. "
            "Only letters, numbers, and underscores are allowed."
        )
    return name  # type: ignore[return-value]


def quote(name: str, kind: str = "identifier") -> str:
    """Validate and backtick-quote a single identifier."""
    return f"`{validate_identifier(name, kind)}`"


def is_system_schema(name: str) -> bool:
    return name.lower() in SYSTEM_SCHEMAS
