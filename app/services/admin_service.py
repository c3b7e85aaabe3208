from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from adapters.db.base import DbSession
from adapters.metrics.base import Metrics
from adapters.metrics.noop import NoOpMetrics
from app.settings import Settings
from app.state import ActiveDatabase
from dbadmin.catalog import Catalog
from dbadmin.errors.exceptions import ConstraintConflictError, DbAdminError, EngineError
from dbadmin.inspector import MetadataInspector
from dbadmin.mutations import MutationEngine
from dbadmin.query import QueryOutcome, QueryRunner
from dbadmin.reader import PaginatedReader
from dbadmin.types import (
    ColumnBuilderSpec,
    InsertResult,
    MutationResult,
    Page,
    ReferencedData,
    RelatedRecord,
    TableSchema,
)

logger = logging.getLogger(__name__)


@dataclass
class AdminService:
    """
    Application-level service for the admin API.

    Responsibilities:
        - Borrow exactly one pooled connection per operation and release it.
        - Wire the core components (inspector, mutations, reader, catalog,
          query runner) onto that connection.
        - Record per-operation timing and outcome metrics.
        - Turn anything unexpected into an EngineError after logging it.
    """

    active: ActiveDatabase
    settings: Settings
    metrics: Metrics = field(default_factory=NoOpMetrics)

    @contextmanager
    def _session(self, operation: str) -> Iterator[DbSession]:
        # Take the adapter reference once; a concurrent switch does not
        # affect a request that already started.
        adapter = self.active.adapter
        t0 = time.perf_counter()
        outcome = "ok"
        try:
            with adapter.session() as session:
                yield session
        except ConstraintConflictError:
            outcome = "conflict"
            raise
        except DbAdminError:
            outcome = "error"
            raise
        except Exception as exc:
            outcome = "error"
            logger.exception("Unexpected error in %s", operation)
            raise EngineError(str(exc) or exc.__class__.__name__) from exc
        finally:
            dt_ms = (time.perf_counter() - t0) * 1000
            self.metrics.observe_operation_ms(operation=operation, dt_ms=dt_ms)
            self.metrics.inc_operation(operation=operation, outcome=outcome)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # databases
    # ------------------------------------------------------------------

    def list_databases(self) -> List[str]:
        with self._session("list_databases") as s:
            return Catalog(s).list_databases()

    def create_database(self, name: Optional[str]) -> str:
        with self._session("create_database") as s:
            return Catalog(s).create_database(name)

    def drop_database(self, name: str) -> str:
        with self._session("drop_database") as s:
            dropped = Catalog(s).drop_database(name)
        if self.active.database == dropped:
            self.active.reset()
        return dropped

    def use_database(self, name: Optional[str]) -> str:
        t0 = time.perf_counter()
        try:
            adapter = self.active.switch(name)
        except DbAdminError:
            self.metrics.inc_operation(operation="use_database", outcome="error")
            raise
        finally:
            self.metrics.observe_operation_ms(
                operation="use_database", dt_ms=(time.perf_counter() - t0) * 1000
            )
        self.metrics.inc_operation(operation="use_database", outcome="ok")
        return adapter.database or ""

    def ping(self) -> None:
        self.active.adapter.ping()

    # ------------------------------------------------------------------
    # tables
    # ------------------------------------------------------------------

    def list_tables(self) -> List[str]:
        with self._session("list_tables") as s:
            return Catalog(s).list_tables()

    def create_table(
        self, table_name: str, columns: Sequence[ColumnBuilderSpec], dry_run: bool = False
    ) -> str:
        with self._session("create_table") as s:
            return Catalog(s).create_table(table_name, columns, dry_run=dry_run)

    def drop_table(self, table_name: str) -> str:
        with self._session("drop_table") as s:
            return Catalog(s).drop_table(table_name)

    def describe_table(self, table: str) -> TableSchema:
        with self._session("describe") as s:
            return MetadataInspector(s).describe(table)

    def referenced_data(self, table: str, column: str) -> ReferencedData:
        with self._session("referenced_data") as s:
            return PaginatedReader(s).referenced_data(
                table, column, limit=self.settings.referenced_data_limit
            )

    # ------------------------------------------------------------------
    # rows
    # ------------------------------------------------------------------

    def read_page(
        self,
        table: str,
        page: int = 1,
        limit: int = 100,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Page:
        with self._session("read") as s:
            reader = PaginatedReader(s, max_limit=self.settings.max_page_size)
            return reader.read_page(
                table, page=page, limit=limit, sort=sort, order=order, filters=filters
            )

    def insert(
        self,
        table: str,
        values: Mapping[str, Any],
        related_records: Optional[Sequence[RelatedRecord]] = None,
    ) -> InsertResult:
        with self._session("insert") as s:
            return MutationEngine(s, metrics=self.metrics).insert(
                table, values, related_records
            )

    def update(
        self, table: str, primary_key_value: Any, changes: Mapping[str, Any], force: bool = False
    ) -> MutationResult:
        with self._session("update") as s:
            return MutationEngine(s, metrics=self.metrics).update(
                table, primary_key_value, changes, force=force
            )

    def delete(self, table: str, primary_key_value: Any, force: bool = False) -> MutationResult:
        with self._session("delete") as s:
            return MutationEngine(s, metrics=self.metrics).delete(
                table, primary_key_value, force=force
            )

    # ------------------------------------------------------------------
    # free-form SQL
    # ------------------------------------------------------------------

    def run_query(self, sql: Optional[str]) -> QueryOutcome:
        with self._session("query") as s:
            return QueryRunner(s, metrics=self.metrics).run(sql)
