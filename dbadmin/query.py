from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from adapters.db.base import DbSession, StatementResult
from adapters.metrics.base import Metrics
from adapters.metrics.noop import NoOpMetrics
from dbadmin.errors.exceptions import (
    ConnectionFailureError,
    DbAdminError,
    EngineError,
    InvalidInputError,
)

log = logging.getLogger(__name__)

_SELECT_KEYS = {"select", "union", "intersect", "except"}
_DML_KEYS = {"insert", "update", "delete", "merge"}
_DDL_KEYS = {"create", "drop", "alter", "altertable", "truncatetable"}

# Anything else (USE, SET, LOCK TABLES, BEGIN, ...) may change connection state.
_STATEFUL_KINDS = {"other", "unknown"}


def _kind_of(expression: exp.Expression) -> str:
    key = expression.key
    if key in _SELECT_KEYS:
        return "select"
    if key in _DML_KEYS:
        return "dml"
    if key in _DDL_KEYS:
        return "ddl"
    return "other"


def classify(sql: str) -> Tuple[str, int]:
    """
    Return (statement kind, statement count) using the MySQL dialect.

    Parsing is best-effort: when sqlglot cannot parse the text the kind is
    "unknown" and the count is reported as 1, leaving the verdict to the engine.
    """
    try:
        statements: List[Optional[exp.Expression]] = sqlglot.parse(sql, read="mysql")
    except SqlglotError:
        return "unknown", 1
    parsed = [s for s in statements if s is not None]
    if not parsed:
        return "unknown", 1
    return _kind_of(parsed[0]), len(parsed)


@dataclass(frozen=True)
class QueryOutcome:
    kind: str
    result: StatementResult
    duration_ms: float


class QueryRunner:
    """Runs one caller-supplied statement verbatim against the active database."""

    name = "query"

    def __init__(self, session: DbSession, metrics: Optional[Metrics] = None):
        self.session = session
        self.metrics = metrics or NoOpMetrics()

    def run(self, sql: Optional[str]) -> QueryOutcome:
        statement = (sql or "").strip()
        if not statement:
            raise InvalidInputError("SQL query is required")

        kind, count = classify(statement)
        if count > 1:
            raise InvalidInputError(
                "Only one statement can be executed at a time",
                details=[f"statements: {count}"],
            )

        t0 = time.perf_counter()
        try:
            result = self.session.run(statement)
        except ConnectionFailureError:
            self.metrics.inc_query(kind=kind, ok=False)
            raise
        except DbAdminError as exc:
            self.metrics.inc_query(kind=kind, ok=False)
            # Free-form SQL reports every engine refusal uniformly.
            raise EngineError(exc.message, details=exc.details, extra=exc.extra) from exc
        finally:
            if kind in _STATEFUL_KINDS:
                # Never hand a connection with altered session state back to the pool.
                self.session.invalidate()

        dt_ms = (time.perf_counter() - t0) * 1000
        self.metrics.inc_query(kind=kind, ok=True)
        log.debug(
            "Executed statement",
            extra={"kind": kind, "returns_rows": result.returns_rows, "duration_ms": dt_ms},
        )
        return QueryOutcome(kind=kind, result=result, duration_ms=dt_ms)
