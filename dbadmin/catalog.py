from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from adapters.db.base import DbSession
from dbadmin.ddl import DDLBuilder
from dbadmin.errors.exceptions import AlreadyExistsError, InvalidInputError, NotFoundError
from dbadmin.identifiers import is_system_schema, quote, validate_identifier
from dbadmin.inspector import MetadataInspector
from dbadmin.types import ColumnBuilderSpec

log = logging.getLogger(__name__)


def _first_value(row: Mapping[str, Any]) -> str:
    value = next(iter(row.values()))
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)


class Catalog:
    """Databases and tables: list, create, drop."""

    def __init__(self, session: DbSession, inspector: Optional[MetadataInspector] = None):
        self.session = session
        self.inspector = inspector or MetadataInspector(session)

    # --- databases ---

    def list_databases(self) -> List[str]:
        rows = self.session.fetch_all("SHOW DATABASES")
        return [n for n in (_first_value(r) for r in rows) if not is_system_schema(n)]

    def database_exists(self, name: str) -> bool:
        rows = self.session.fetch_all(
            "SELECT SCHEMA_NAME FROM INFORMATION_SCHEMA.SCHEMATA WHERE SCHEMA_NAME = :name",
            {"name": name},
        )
        return bool(rows)

    def create_database(self, name: Optional[str]) -> str:
        if not name:
            raise InvalidInputError("Database name is required")
        validate_identifier(name, "database")
        if self.database_exists(name):
            raise AlreadyExistsError("Database already exists")

        self.session.execute(f"CREATE DATABASE {quote(name, 'database')}")
        log.info("Created database", extra={"database": name})
        return name

    def drop_database(self, name: str) -> str:
        validate_identifier(name, "database")
        if is_system_schema(name):
            raise InvalidInputError(f"Refusing to drop system schema {name!r}")

        self.session.execute(f"DROP DATABASE {quote(name, 'database')}")
        log.info("Dropped database", extra={"database": name})
        return name

    # --- tables ---

    def list_tables(self) -> List[str]:
        rows = self.session.fetch_all("SHOW TABLES")
        return [_first_value(r) for r in rows]

    def _referenced_column_type(self, table: str, column: str) -> Optional[str]:
        try:
            return self.inspector.column_type(table, column)
        except NotFoundError:
            return None

    def create_table(
        self,
        table_name: str,
        columns: Sequence[ColumnBuilderSpec],
        dry_run: bool = False,
    ) -> str:
        """Validate, build and (unless dry_run) execute a CREATE TABLE."""
        builder = DDLBuilder(
            existing_tables=self.list_tables(),
            column_type_lookup=self._referenced_column_type,
        )
        sql = builder.build_create_table(table_name, columns)
        if dry_run:
            return sql

        self.session.execute(sql)
        log.info("Created table", extra={"table": table_name.strip()})
        return sql

    def drop_table(self, table_name: str) -> str:
        self.session.execute(f"DROP TABLE {quote(table_name, 'table')}")
        log.info("Dropped table", extra={"table": table_name})
        return table_name
