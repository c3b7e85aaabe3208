from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from adapters.db.base import DbSession, ExecResult
from adapters.metrics.base import Metrics
from adapters.metrics.noop import NoOpMetrics
from dbadmin.errors.exceptions import (
    ConstraintConflictError,
    InvalidInputError,
    NotFoundError,
    SchemaError,
)
from dbadmin.identifiers import quote, validate_identifier
from dbadmin.inspector import MetadataInspector
from dbadmin.integrity import foreign_key_checks_suspended
from dbadmin.types import (
    ColumnDescriptor,
    InsertResult,
    MutationResult,
    RelatedInsert,
    RelatedRecord,
)

log = logging.getLogger(__name__)


def _bind(values: Mapping[str, Any], prefix: str = "v") -> Dict[str, Any]:
    # Positional bind names keep column names out of the parameter namespace.
    return {f"{prefix}{i}": v for i, v in enumerate(values.values())}


class MutationEngine:
    """
    Insert/update/delete against a single table with foreign-key awareness.

    Column names in payloads are checked against the live table structure;
    unknown keys are dropped, never interpolated. Updates of a referenced
    primary key and deletes of a referenced row are refused with a
    ConstraintConflictError unless the caller passes force=True, in which
    case FOREIGN_KEY_CHECKS is suspended for that one statement.
    """

    name = "mutations"

    def __init__(
        self,
        session: DbSession,
        inspector: Optional[MetadataInspector] = None,
        metrics: Optional[Metrics] = None,
    ):
        self.session = session
        self.inspector = inspector or MetadataInspector(session)
        self.metrics = metrics or NoOpMetrics()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _known_only(
        table: str, values: Mapping[str, Any], columns: Sequence[ColumnDescriptor]
    ) -> Dict[str, Any]:
        known = {c.name for c in columns}
        filtered: Dict[str, Any] = {}
        for key, value in values.items():
            if key in known:
                filtered[key] = value
            else:
                log.debug("Skipping unknown column", extra={"table": table, "column": key})
        return filtered

    @staticmethod
    def _primary_key(table: str, columns: Iterable[ColumnDescriptor]) -> str:
        for c in columns:
            if c.is_primary:
                return c.name
        raise SchemaError(f"Table {table!r} has no primary key")

    def _insert_row(self, table: str, values: Mapping[str, Any]) -> Optional[int]:
        params = _bind(values)
        cols = ", ".join(quote(c, "column") for c in values)
        placeholders = ", ".join(f":{k}" for k in params)
        sql = f"INSERT INTO {quote(table, 'table')} ({cols}) VALUES ({placeholders})"
        return self.session.execute(sql, params).lastrowid

    def _execute_mutation(
        self, sql: str, params: Mapping[str, Any], *, force: bool, operation: str
    ) -> ExecResult:
        try:
            if force:
                with foreign_key_checks_suspended(
                    self.session, operation=operation, metrics=self.metrics
                ):
                    return self.session.execute(sql, params)
            return self.session.execute(sql, params)
        except ConstraintConflictError:
            # Reported by the engine itself; no structured constraint list here.
            self.metrics.inc_constraint_conflict(operation=operation)
            raise

    def _blocked(self, operation: str, message: str, constraints) -> ConstraintConflictError:
        self.metrics.inc_constraint_conflict(operation=operation)
        log.info(
            "Mutation blocked by foreign keys",
            extra={
                "operation": operation,
                "constraints": [c.to_dict() for c in constraints],
            },
        )
        return ConstraintConflictError(message, constraints=list(constraints))

    # ------------------------------------------------------------------
    # insert
    # ------------------------------------------------------------------

    def _link_value(
        self,
        record: RelatedRecord,
        primary_values: Mapping[str, Any],
        inserted_id: Optional[int],
        primary_key: Optional[str],
    ) -> Any:
        links_to_key = record.link_to_field == "id" or record.link_to_field == primary_key
        if links_to_key and inserted_id is not None:
            return inserted_id
        return primary_values.get(record.link_to_field or "")

    def _insert_related(
        self,
        record: RelatedRecord,
        primary_values: Mapping[str, Any],
        inserted_id: Optional[int],
        primary_key: Optional[str],
    ) -> Optional[RelatedInsert]:
        if not record.table or not record.data:
            return None

        columns = self.inspector.columns(record.table)
        data = self._known_only(record.table, record.data, columns)

        if record.link_field and record.link_to_field:
            if record.link_field in {c.name for c in columns}:
                data[record.link_field] = self._link_value(
                    record, primary_values, inserted_id, primary_key
                )

        if not data:
            return None

        related_id = self._insert_row(record.table, data)
        log.debug(
            "Inserted related record",
            extra={"table": record.table, "id": related_id},
        )
        return RelatedInsert(table=record.table, id=related_id, success=True)

    def insert(
        self,
        table: str,
        values: Mapping[str, Any],
        related_records: Optional[Sequence[RelatedRecord]] = None,
    ) -> InsertResult:
        validate_identifier(table, "table")
        if not values:
            raise InvalidInputError("Data is required")

        columns = self.inspector.columns(table)
        filtered = self._known_only(table, values, columns)
        if not filtered:
            raise InvalidInputError("No valid columns provided for insert")

        related = list(related_records or [])
        if not related:
            inserted_id = self._insert_row(table, filtered)
            log.debug("Inserted record", extra={"table": table, "id": inserted_id})
            return InsertResult(id=inserted_id)

        primary_key = next((c.name for c in columns if c.is_primary), None)
        results: List[RelatedInsert] = []

        # Primary and related rows commit together or not at all.
        with self.session.transaction():
            inserted_id = self._insert_row(table, filtered)
            for record in related:
                res = self._insert_related(record, filtered, inserted_id, primary_key)
                if res is not None:
                    results.append(res)

        log.debug(
            "Inserted record with related records",
            extra={"table": table, "id": inserted_id, "related": len(results)},
        )
        return InsertResult(id=inserted_id, related_records=results)

    # ------------------------------------------------------------------
    # update
    # ------------------------------------------------------------------

    def update(
        self,
        table: str,
        primary_key_value: Any,
        changes: Mapping[str, Any],
        force: bool = False,
    ) -> MutationResult:
        validate_identifier(table, "table")
        if not changes:
            raise InvalidInputError("Update data is required")

        columns = self.inspector.columns(table)
        primary_key = self._primary_key(table, columns)

        filtered = self._known_only(table, changes, columns)
        if not filtered:
            raise InvalidInputError("No valid columns provided for update")

        if primary_key in filtered:
            constraints = self.inspector.referencing(table, primary_key)
            if constraints and not force:
                raise self._blocked(
                    "update",
                    "Cannot update primary key due to foreign key constraints",
                    constraints,
                )

        params = _bind(filtered)
        set_clause = ", ".join(
            f"{quote(col, 'column')} = :{name}" for col, name in zip(filtered, params)
        )
        params["pk"] = primary_key_value
        sql = (
            f"UPDATE {quote(table, 'table')} SET {set_clause} "
            f"WHERE {quote(primary_key, 'column')} = :pk"
        )

        result = self._execute_mutation(sql, params, force=force, operation="update")
        if result.rowcount == 0:
            raise NotFoundError("Record not found")

        log.debug(
            "Updated record",
            extra={"table": table, "columns": list(filtered), "forced": force},
        )
        return MutationResult(table=table, affected_rows=result.rowcount, forced=force)

    # ------------------------------------------------------------------
    # delete
    # ------------------------------------------------------------------

    def delete(
        self, table: str, primary_key_value: Any, force: bool = False
    ) -> MutationResult:
        validate_identifier(table, "table")
        columns = self.inspector.columns(table)
        primary_key = self._primary_key(table, columns)

        constraints = self.inspector.referencing(table, primary_key)
        if constraints and not force:
            raise self._blocked(
                "delete",
                "Cannot delete record due to foreign key constraints",
                constraints,
            )

        sql = (
            f"DELETE FROM {quote(table, 'table')} "
            f"WHERE {quote(primary_key, 'column')} = :pk"
        )
        result = self._execute_mutation(
            sql, {"pk": primary_key_value}, force=force, operation="delete"
        )
        if result.rowcount == 0:
            raise NotFoundError("Record not found")

        log.debug("Deleted record", extra={"table": table, "forced": force})
        return MutationResult(table=table, affected_rows=result.rowcount, forced=force)
