from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a non-row-returning statement."""

    rowcount: int
    lastrowid: Optional[int] = None


@dataclass(frozen=True)
class StatementResult:
    """Outcome of a free-form statement: either rows or an affected-row count."""

    returns_rows: bool
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    affected_rows: int = 0
    last_insert_id: Optional[int] = None


class DbSession(Protocol):
    """One borrowed connection, used for a single logical operation."""

    def fetch_all(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Run a row-returning statement with bound `:name` parameters."""

    def execute(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> ExecResult:
        """Run a mutating statement with bound `:name` parameters."""

    def run(self, sql: str) -> StatementResult:
        """Run caller-supplied SQL verbatim (no parameter processing)."""

    def transaction(self) -> AbstractContextManager[None]:
        """Group statements; commit on success, roll back on any exception."""

    def invalidate(self) -> None:
        """Discard the underlying connection instead of returning it to the pool."""


class DBAdapter(Protocol):
    """Abstract pooled database adapter."""

    name: str
    dialect: str

    @property
    def database(self) -> Optional[str]:
        """Name of the database the pool connects to (None = server level)."""

    def session(self) -> AbstractContextManager[DbSession]:
        """Borrow one connection; it is released when the block exits."""

    def ping(self) -> None:
        """Raise if the pool cannot hand out a working connection."""

    def dispose(self) -> None:
        """Drop idle pooled connections; checked-out ones finish normally."""
