from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Tuple

import pymysql
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from adapters.db.base import DBAdapter, ExecResult, StatementResult
from dbadmin.errors.exceptions import (
    AlreadyExistsError,
    ConnectionFailureError,
    ConstraintConflictError,
    DbAdminError,
    EngineError,
    NotFoundError,
)

if TYPE_CHECKING:
    from app.settings import Settings

log = logging.getLogger(__name__)

# MySQL server error numbers we translate into domain errors.
ER_DB_CREATE_EXISTS = 1007
ER_DB_DROP_EXISTS = 1008
ER_ACCESS_DENIED_ERROR = 1045
ER_BAD_DB_ERROR = 1049
ER_TABLE_EXISTS_ERROR = 1050
ER_BAD_TABLE_ERROR = 1051
ER_NO_SUCH_TABLE = 1146
ER_NO_REFERENCED_ROW = 1216
ER_ROW_IS_REFERENCED = 1217
ER_ROW_IS_REFERENCED_2 = 1451
ER_NO_REFERENCED_ROW_2 = 1452
ER_FK_CANNOT_DROP_PARENT = 3730

_FK_ERRNOS = frozenset(
    {
        ER_NO_REFERENCED_ROW,
        ER_ROW_IS_REFERENCED,
        ER_ROW_IS_REFERENCED_2,
        ER_NO_REFERENCED_ROW_2,
        ER_FK_CANNOT_DROP_PARENT,
    }
)
_NOT_FOUND_ERRNOS = frozenset(
    {ER_DB_DROP_EXISTS, ER_BAD_DB_ERROR, ER_BAD_TABLE_ERROR, ER_NO_SUCH_TABLE}
)
_EXISTS_ERRNOS = frozenset({ER_DB_CREATE_EXISTS, ER_TABLE_EXISTS_ERROR})


def _errno_and_message(orig: BaseException) -> Tuple[Optional[int], str]:
    args = getattr(orig, "args", ()) or ()
    if len(args) >= 2 and isinstance(args[0], int):
        return args[0], str(args[1])
    return None, str(orig)


def translate_error(exc: BaseException) -> DbAdminError:
    """
    Map a driver/SQLAlchemy exception onto the domain error taxonomy.

    PyMySQL errors carry `(errno, message)` in `args`; SQLAlchemy wraps them
    in `DBAPIError.orig`.
    """
    if isinstance(exc, DbAdminError):
        return exc

    if isinstance(exc, PoolTimeoutError):
        return ConnectionFailureError(
            "Timed out waiting for a pooled database connection",
            details=[str(exc)],
        )

    orig = getattr(exc, "orig", None) or exc
    errno, message = _errno_and_message(orig)
    extra: Dict[str, Any] = {"errno": errno} if errno is not None else {}

    if errno in _FK_ERRNOS:
        return ConstraintConflictError(
            "Operation violates a foreign key constraint",
            details=[message],
            extra=extra,
        )
    if errno in _NOT_FOUND_ERRNOS:
        return NotFoundError(message, extra=extra)
    if errno in _EXISTS_ERRNOS:
        return AlreadyExistsError(message, extra=extra)

    invalidated = bool(getattr(exc, "connection_invalidated", False))
    client_side = errno is not None and 2000 <= errno < 3000
    if (
        invalidated
        or client_side
        or errno == ER_ACCESS_DENIED_ERROR
        or isinstance(orig, pymysql.err.InterfaceError)
    ):
        return ConnectionFailureError(message, extra=extra)

    return EngineError(message, extra=extra)


class MySQLSession:
    """
    A single borrowed pooled connection.

    Outside of `transaction()` every statement is committed as soon as it
    completes, so a failed statement never leaves work pending on the
    connection.
    """

    def __init__(self, conn: Connection):
        self._conn = conn
        self._in_transaction = False

    def _run(self, sql: str, params: Optional[Mapping[str, Any]]):
        log.debug("Executing SQL: %s", " ".join(sql.split()))
        try:
            return self._conn.execute(text(sql), dict(params or {}))
        except DBAPIError as exc:
            if not self._in_transaction:
                self._conn.rollback()
            raise translate_error(exc) from exc

    def _settle(self) -> None:
        if not self._in_transaction:
            self._conn.commit()

    def fetch_all(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        result = self._run(sql, params)
        rows = [dict(m) for m in result.mappings().all()]
        self._settle()
        return rows

    def execute(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> ExecResult:
        result = self._run(sql, params)
        out = ExecResult(rowcount=result.rowcount, lastrowid=result.lastrowid or None)
        self._settle()
        return out

    def run(self, sql: str) -> StatementResult:
        log.debug("Executing raw SQL: %s", " ".join(sql.split()))
        try:
            # no_parameters keeps literal % signs intact for the driver.
            result = self._conn.exec_driver_sql(
                sql, execution_options={"no_parameters": True}
            )
            if result.returns_rows:
                columns = list(result.keys())
                rows = [dict(m) for m in result.mappings().all()]
                out = StatementResult(returns_rows=True, columns=columns, rows=rows)
            else:
                out = StatementResult(
                    returns_rows=False,
                    affected_rows=max(result.rowcount, 0),
                    last_insert_id=result.lastrowid or None,
                )
        except DBAPIError as exc:
            if not self._in_transaction:
                self._conn.rollback()
            raise translate_error(exc) from exc
        self._settle()
        return out

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            # Nested use joins the outer transaction.
            yield
            return
        # Close whatever the driver autobegun for earlier reads.
        self._conn.commit()
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._conn.rollback()
            log.debug("Transaction rolled back")
            raise
        else:
            try:
                self._conn.commit()
            except DBAPIError as exc:
                self._conn.rollback()
                raise translate_error(exc) from exc
        finally:
            self._in_transaction = False

    def invalidate(self) -> None:
        log.warning("Invalidating pooled connection")
        self._conn.invalidate()


class MySQLAdapter(DBAdapter):
    name = "mysql"
    dialect = "mysql"

    def __init__(self, engine: Engine, database: Optional[str] = None):
        self.engine = engine
        self._database = database
        log.info(
            "MySQLAdapter initialized",
            extra={"database": database, "url": engine.url.render_as_string()},
        )

    @classmethod
    def from_settings(
        cls, settings: "Settings", database: Optional[str] = None
    ) -> "MySQLAdapter":
        """
        Build a pooled adapter from Settings.

        `database` overrides settings.db_name; passing neither connects at
        server level (no default schema).
        """
        db_name = database if database is not None else (settings.db_name or None)
        url = URL.create(
            "mysql+pymysql",
            username=settings.db_user,
            password=settings.db_password or None,
            host=settings.db_host,
            port=settings.db_port,
            database=db_name,
            query={"charset": "utf8mb4"},
        )
        engine = create_engine(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=0,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
        )
        return cls(engine, database=db_name)

    @property
    def database(self) -> Optional[str]:
        return self._database

    @contextmanager
    def session(self) -> Iterator[MySQLSession]:
        try:
            conn = self.engine.connect()
        except (DBAPIError, SQLAlchemyError) as exc:
            raise translate_error(exc) from exc
        try:
            yield MySQLSession(conn)
        finally:
            conn.close()

    def ping(self) -> None:
        with self.session() as s:
            s.fetch_all("SELECT 1 AS ok")

    def dispose(self) -> None:
        self.engine.dispose()
        log.debug("Disposed pool", extra={"database": self._database})
