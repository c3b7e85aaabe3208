from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from adapters.db.base import DbSession
from dbadmin.identifiers import quote, validate_identifier
from dbadmin.types import (
    ColumnDescriptor,
    ConstraintRef,
    ForeignKeyRef,
    KeyRole,
    ReferencingColumn,
    TableSchema,
)

log = logging.getLogger(__name__)

_OUTGOING_FKS_SQL = """
    SELECT
        COLUMN_NAME AS `column`,
        REFERENCED_TABLE_NAME AS referencedTable,
        REFERENCED_COLUMN_NAME AS referencedColumn
    FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
    WHERE TABLE_SCHEMA = DATABASE()
      AND TABLE_NAME = :table
      AND REFERENCED_TABLE_NAME IS NOT NULL
"""

_INCOMING_FKS_SQL = """
    SELECT
        TABLE_NAME AS referencingTable,
        COLUMN_NAME AS referencingColumn,
        REFERENCED_TABLE_NAME AS referencedTable,
        REFERENCED_COLUMN_NAME AS referencedColumn
    FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
    WHERE REFERENCED_TABLE_SCHEMA = DATABASE()
      AND REFERENCED_TABLE_NAME = :table
"""


def _text(value: Any) -> str:
    # MySQL 8 reports some DESCRIBE cells (Type) as binary strings.
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return "" if value is None else str(value)


def _parse_describe_row(row: Mapping[str, Any]) -> ColumnDescriptor:
    extra = _text(row.get("Extra"))
    default = row.get("Default")
    if isinstance(default, (bytes, bytearray)):
        default = _text(default)
    return ColumnDescriptor(
        name=_text(row.get("Field")),
        declared_type=_text(row.get("Type")),
        nullable=_text(row.get("Null")).upper() == "YES",
        default_value=default,
        is_auto_increment="auto_increment" in extra.lower(),
        key_role=KeyRole.PRIMARY if _text(row.get("Key")).upper() == "PRI" else KeyRole.NONE,
        extra=extra,
    )


class MetadataInspector:
    """
    Reads table structure and the foreign-key graph around a table.

    All lookups are scoped to the database the borrowed connection is
    using (`DATABASE()`); nothing here mutates the catalog.
    """

    name = "inspector"

    def __init__(self, session: DbSession):
        self.session = session

    def columns(self, table: str) -> List[ColumnDescriptor]:
        rows = self.session.fetch_all(f"DESCRIBE {quote(table, 'table')}")
        return [_parse_describe_row(r) for r in rows]

    def foreign_keys(self, table: str, column: Optional[str] = None) -> List[ForeignKeyRef]:
        validate_identifier(table, "table")
        sql = _OUTGOING_FKS_SQL
        params: Dict[str, Any] = {"table": table}
        if column is not None:
            validate_identifier(column, "column")
            sql += "      AND COLUMN_NAME = :column\n"
            params["column"] = column
        rows = self.session.fetch_all(sql, params)
        return [
            ForeignKeyRef(
                column=_text(r["column"]),
                referenced_table=_text(r["referencedTable"]),
                referenced_column=_text(r["referencedColumn"]),
            )
            for r in rows
        ]

    def referencing(self, table: str, column: Optional[str] = None) -> List[ConstraintRef]:
        """Foreign keys in other tables (or this one) that point at `table`."""
        validate_identifier(table, "table")
        sql = _INCOMING_FKS_SQL
        params: Dict[str, Any] = {"table": table}
        if column is not None:
            validate_identifier(column, "column")
            sql += "      AND REFERENCED_COLUMN_NAME = :column\n"
            params["column"] = column
        rows = self.session.fetch_all(sql, params)
        return [
            ConstraintRef(
                referencing_table=_text(r["referencingTable"]),
                referencing_column=_text(r["referencingColumn"]),
                referenced_table=_text(r.get("referencedTable") or table),
                referenced_column=_text(r["referencedColumn"]),
            )
            for r in rows
        ]

    def column_type(self, table: str, column: str) -> Optional[str]:
        for c in self.columns(table):
            if c.name == column:
                return c.declared_type
        return None

    def describe(self, table: str) -> TableSchema:
        base_columns = self.columns(table)
        outgoing = self.foreign_keys(table)
        incoming = self.referencing(table)

        primary_key = next((c.name for c in base_columns if c.is_primary), None)

        fk_by_column: Dict[str, ForeignKeyRef] = {}
        for fk in outgoing:
            # First constraint wins when a column carries several.
            fk_by_column.setdefault(fk.column, fk)

        columns: List[ColumnDescriptor] = []
        for c in base_columns:
            fk = fk_by_column.get(c.name)
            if fk is None:
                columns.append(c)
                continue
            columns.append(
                replace(
                    c,
                    is_foreign_key=True,
                    referenced_table=fk.referenced_table,
                    referenced_column=fk.referenced_column,
                )
            )

        grouped: Dict[str, List[ReferencingColumn]] = {}
        for ref in incoming:
            grouped.setdefault(ref.referencing_table, []).append(
                ReferencingColumn(
                    column=ref.referencing_column,
                    referenced_column=ref.referenced_column,
                )
            )

        log.debug(
            "Described table",
            extra={
                "table": table,
                "columns": len(columns),
                "foreign_keys": len(fk_by_column),
                "referencing_tables": len(grouped),
            },
        )
        return TableSchema(
            table=table,
            columns=columns,
            primary_key_column=primary_key,
            referencing_tables=grouped,
        )
