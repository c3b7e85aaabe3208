from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pytest

from adapters.db.base import ExecResult, StatementResult
from app.main import app

# Fragments that identify the inspector's INFORMATION_SCHEMA lookups.
OUTGOING_FKS = "REFERENCED_TABLE_NAME IS NOT NULL"
INCOMING_FKS = "REFERENCED_TABLE_SCHEMA"


@dataclass
class Rule:
    fragment: str
    rows: Optional[List[Dict[str, Any]]] = None
    rowcount: int = 1
    lastrowid: Optional[int] = None
    error: Optional[BaseException] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def matches(self, sql: str, params: Mapping[str, Any]) -> bool:
        if self.fragment not in sql:
            return False
        return all(params.get(k) == v for k, v in self.params.items())


@dataclass
class Statement:
    sql: str
    params: Dict[str, Any]
    fk_checks: bool


class FakeSession:
    """
    Scripted stand-in for a borrowed MySQL connection.

    Responses are matched by SQL fragment (and optionally bound params), in
    registration order. Every statement is recorded together with the
    FOREIGN_KEY_CHECKS state it ran under.
    """

    def __init__(self) -> None:
        self.rules: List[Rule] = []
        self.statements: List[Statement] = []
        self.events: List[str] = []
        self.fk_checks = True
        self.invalidated = False

    # --- scripting ---

    def on(self, fragment: str, **kwargs: Any) -> "FakeSession":
        self.rules.append(Rule(fragment=fragment, **kwargs))
        return self

    @staticmethod
    def col(
        name: str,
        type_: str = "int",
        key: str = "",
        extra: str = "",
        null: str = "YES",
        default: Any = None,
    ) -> Dict[str, Any]:
        return {
            "Field": name,
            "Type": type_,
            "Null": null,
            "Key": key,
            "Default": default,
            "Extra": extra,
        }

    def add_table(
        self,
        table: str,
        columns: Sequence[Dict[str, Any]],
        outgoing: Sequence[Tuple[str, str, str]] = (),
        incoming: Sequence[Tuple[str, str, str]] = (),
    ) -> "FakeSession":
        """
        outgoing: (column, referenced_table, referenced_column)
        incoming: (referencing_table, referencing_column, referenced_column)
        """
        self.on(f"DESCRIBE `{table}`", rows=list(columns))
        self.on(
            OUTGOING_FKS,
            params={"table": table},
            rows=[
                {"column": c, "referencedTable": t, "referencedColumn": rc}
                for c, t, rc in outgoing
            ],
        )
        self.on(
            INCOMING_FKS,
            params={"table": table},
            rows=[
                {
                    "referencingTable": t,
                    "referencingColumn": c,
                    "referencedTable": table,
                    "referencedColumn": rc,
                }
                for t, c, rc in incoming
            ],
        )
        return self

    # --- introspection helpers for assertions ---

    def executed(self, fragment: str) -> List[Statement]:
        return [s for s in self.statements if fragment in s.sql]

    # --- DbSession ---

    def _rule(self, sql: str, params: Mapping[str, Any]) -> Optional[Rule]:
        for rule in self.rules:
            if rule.matches(sql, params):
                if rule.error is not None:
                    raise rule.error
                return rule
        return None

    def fetch_all(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        p = dict(params or {})
        self.statements.append(Statement(sql, p, self.fk_checks))
        rule = self._rule(sql, p)
        if rule is None or rule.rows is None:
            return []
        return [dict(r) for r in rule.rows]

    def execute(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> ExecResult:
        p = dict(params or {})
        if sql.startswith("SET FOREIGN_KEY_CHECKS"):
            self.fk_checks = sql.rstrip().endswith("1")
            self.events.append(sql)
        self.statements.append(Statement(sql, p, self.fk_checks))
        rule = self._rule(sql, p)
        if rule is None:
            return ExecResult(rowcount=1, lastrowid=None)
        return ExecResult(rowcount=rule.rowcount, lastrowid=rule.lastrowid)

    def run(self, sql: str) -> StatementResult:
        self.statements.append(Statement(sql, {}, self.fk_checks))
        rule = self._rule(sql, {})
        if rule is not None and rule.rows is not None:
            rows = [dict(r) for r in rule.rows]
            columns = list(rows[0]) if rows else []
            return StatementResult(returns_rows=True, columns=columns, rows=rows)
        rowcount = rule.rowcount if rule is not None else 0
        lastrowid = rule.lastrowid if rule is not None else None
        return StatementResult(
            returns_rows=False, affected_rows=rowcount, last_insert_id=lastrowid
        )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self.events.append("begin")
        try:
            yield
        except BaseException:
            self.events.append("rollback")
            raise
        else:
            self.events.append("commit")

    def invalidate(self) -> None:
        self.invalidated = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def orders_schema(fake_session: FakeSession) -> FakeSession:
    """customers(id PK) <- orders(customer_id FK)."""
    col = fake_session.col
    fake_session.add_table(
        "customers",
        [
            col("id", "int", key="PRI", extra="auto_increment", null="NO"),
            col("name", "varchar(255)"),
        ],
        incoming=[("orders", "customer_id", "id")],
    )
    fake_session.add_table(
        "orders",
        [
            col("id", "int", key="PRI", extra="auto_increment", null="NO"),
            col("customer_id", "int", key="MUL"),
            col("note", "varchar(100)"),
        ],
        outgoing=[("customer_id", "customers", "id")],
    )
    return fake_session


@pytest.fixture
def clean_overrides():
    """Restore app.dependency_overrides after a router test."""
    saved = dict(app.dependency_overrides)
    try:
        yield app.dependency_overrides
    finally:
        app.dependency_overrides.clear()
        app.dependency_overrides.update(saved)
