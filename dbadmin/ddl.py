"""
CREATE TABLE generation from column-builder specs.

Validation runs in a fixed order and the first violated rule is raised:

1. table name present, allow-listed, not already in the catalog
2. at least one column; every column named, allow-listed, unique, typed
3. a primary key (a lone integer `id` column is promoted if none is flagged)
4. foreign keys complete and type-compatible with their target column
5. AUTO_INCREMENT only on an integer primary-key column
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Callable, Collection, List, Optional, Sequence

from dbadmin.errors.exceptions import (
    AlreadyExistsError,
    IncompleteForeignKeyError,
    InvalidInputError,
    MissingPrimaryKeyError,
    TypeMismatchError,
)
from dbadmin.identifiers import MAX_IDENTIFIER_LENGTH, quote, validate_identifier
from dbadmin.types import ColumnBuilderSpec

log = logging.getLogger(__name__)

TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"

INTEGER_TYPES = frozenset({"TINYINT", "SMALLINT", "MEDIUMINT", "INT", "INTEGER", "BIGINT"})
STRING_TYPES = frozenset(
    {"CHAR", "VARCHAR", "TINYTEXT", "TEXT", "MEDIUMTEXT", "LONGTEXT"}
)
NUMERIC_TYPES = frozenset({"DECIMAL", "NUMERIC", "FLOAT", "DOUBLE"})

# Base name, optional "(…)" argument list of integers or quoted literals,
# optional trailing attributes. Anything else never reaches the statement.
_TYPE_RE = re.compile(
    r"""^\s*
    [A-Za-z]+
    (\s*\(\s*(\d+|'[^'\\]*')(\s*,\s*(\d+|'[^'\\]*'))*\s*\))?
    (\s+(UNSIGNED|SIGNED|ZEROFILL|BINARY))*
    \s*$""",
    re.VERBOSE | re.IGNORECASE,
)
_BASE_TYPE_RE = re.compile(r"^\s*([A-Za-z]+)")

ColumnTypeLookup = Callable[[str, str], Optional[str]]


def base_type(declared: str) -> str:
    m = _BASE_TYPE_RE.match(declared or "")
    return m.group(1).upper() if m else ""


def type_family(declared: str) -> Optional[str]:
    base = base_type(declared)
    if base in INTEGER_TYPES:
        return "integer"
    if base in STRING_TYPES:
        return "string"
    if base in NUMERIC_TYPES:
        return "numeric"
    return None


def is_integer_type(declared: str) -> bool:
    return type_family(declared) == "integer"


def types_compatible(column_type: str, referenced_type: str) -> bool:
    """Same family (integer, string, numeric), or identical ignoring case."""
    family = type_family(column_type)
    if family is not None and family == type_family(referenced_type):
        return True
    return column_type.strip().upper() == referenced_type.strip().upper()


def is_valid_type(declared: str) -> bool:
    return bool(declared) and bool(_TYPE_RE.match(declared))


class DDLBuilder:
    """
    Turns a table name plus ColumnBuilderSpec list into one CREATE TABLE.

    `existing_tables` is the current catalog; `column_type_lookup(table,
    column)` returns the declared type of a referenced column, or None when
    it cannot be resolved (the compatibility check is then skipped).
    """

    def __init__(
        self,
        existing_tables: Collection[str] = (),
        column_type_lookup: Optional[ColumnTypeLookup] = None,
        table_options: str = TABLE_OPTIONS,
    ):
        self.existing_tables = set(existing_tables)
        self.column_type_lookup = column_type_lookup
        self.table_options = table_options

    def _resolve_type(self, table: str, column: str) -> Optional[str]:
        if self.column_type_lookup is None:
            return None
        return self.column_type_lookup(table, column)

    def validate(
        self, table_name: str, columns: Sequence[ColumnBuilderSpec]
    ) -> List[ColumnBuilderSpec]:
        """Return the normalised column list, or raise the first violated rule."""
        # 1. table name
        name = (table_name or "").strip()
        if not name:
            raise InvalidInputError("Table name is required")
        validate_identifier(name, "table")
        if name in self.existing_tables:
            raise AlreadyExistsError(f"Table {name!r} already exists")

        # 2. columns
        if not columns:
            raise InvalidInputError("At least one column is required")
        cols = [
            replace(c, name=(c.name or "").strip(), type=(c.type or "").strip())
            for c in columns
        ]
        seen: set[str] = set()
        for c in cols:
            if not c.name:
                raise InvalidInputError("All columns must have a name")
            validate_identifier(c.name, "column")
            if c.name.lower() in seen:
                raise InvalidInputError(f"Duplicate column name {c.name!r}")
            seen.add(c.name.lower())
            if not is_valid_type(c.type):
                raise InvalidInputError(f"Column {c.name!r} has an invalid type {c.type!r}")

        # 3. primary key
        if not any(c.primary_key for c in cols):
            idx = next(
                (
                    i
                    for i, c in enumerate(cols)
                    if c.name == "id" and is_integer_type(c.type)
                ),
                None,
            )
            if idx is None:
                raise MissingPrimaryKeyError("At least one column must be a primary key")
            log.debug("Promoting column to primary key", extra={"column": cols[idx].name})
            cols[idx] = replace(cols[idx], primary_key=True)

        # 4. foreign keys
        for c in cols:
            if not c.foreign_key:
                continue
            if not c.referenced_table:
                raise IncompleteForeignKeyError(
                    f'Column "{c.name}" is marked as a foreign key but has no referenced table selected'
                )
            if not c.referenced_column:
                raise IncompleteForeignKeyError(
                    f'Column "{c.name}" is marked as a foreign key but has no referenced column selected'
                )
            validate_identifier(c.referenced_table, "table")
            validate_identifier(c.referenced_column, "column")

            if c.referenced_table == name:
                # Self-reference: the target column is part of this statement.
                referenced_type = next(
                    (x.type for x in cols if x.name == c.referenced_column), None
                )
            else:
                referenced_type = self._resolve_type(c.referenced_table, c.referenced_column)
            if referenced_type and not types_compatible(c.type, referenced_type):
                raise TypeMismatchError(
                    f'Column "{c.name}" type ({c.type}) is not compatible with '
                    f"referenced column type ({referenced_type})",
                    extra={"columnType": c.type, "referencedType": referenced_type},
                )

        # 5. auto increment
        for c in cols:
            if c.auto_increment and not (c.primary_key and is_integer_type(c.type)):
                raise InvalidInputError(
                    f'Column "{c.name}" can only auto-increment as an integer primary key'
                )

        return cols

    def build_create_table(
        self, table_name: str, columns: Sequence[ColumnBuilderSpec]
    ) -> str:
        cols = self.validate(table_name, columns)
        table = table_name.strip()

        lines: List[str] = []
        for c in cols:
            definition = f"{quote(c.name, 'column')} {c.type}"
            if c.not_null:
                definition += " NOT NULL"
            if c.auto_increment:
                definition += " AUTO_INCREMENT"
            lines.append(definition)

        primary = [quote(c.name, "column") for c in cols if c.primary_key]
        lines.append(f"PRIMARY KEY ({', '.join(primary)})")

        fks = [c for c in cols if c.foreign_key]
        for ordinal, c in enumerate(fks):
            suffix = f"_{ordinal}"
            stem = f"fk_{table}_{c.name}"[: MAX_IDENTIFIER_LENGTH - len(suffix)]
            constraint = quote(stem + suffix, "constraint")
            lines.append(
                f"CONSTRAINT {constraint} FOREIGN KEY ({quote(c.name, 'column')}) "
                f"REFERENCES {quote(c.referenced_table or '', 'table')}"
                f"({quote(c.referenced_column or '', 'column')})"
            )

        body = ",\n  ".join(lines)
        sql = f"CREATE TABLE {quote(table, 'table')} (\n  {body}\n) {self.table_options}"
        log.debug("Built CREATE TABLE", extra={"table": table, "sql": sql})
        return sql
