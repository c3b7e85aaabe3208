from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from adapters.db.base import DBAdapter
from adapters.db.mysql_adapter import MySQLAdapter
from app.settings import Settings
from dbadmin.errors.exceptions import DbAdminError, InvalidInputError
from dbadmin.identifiers import validate_identifier

log = logging.getLogger(__name__)

AdapterFactory = Callable[[Optional[str]], DBAdapter]


class ActiveDatabase:
    """
    Process-wide holder of the pool for the currently selected database.

    Responsibilities:
    - Lazily build the initial pool from Settings (DB_NAME may be empty).
    - Switch to another database: the new pool is pinged before it replaces
      the old one, so a failed switch leaves the previous pool active.
    - Dispose the replaced pool; connections already checked out by
      in-flight requests are closed when those requests release them.
    """

    def __init__(
        self,
        settings: Settings,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> None:
        self.settings = settings
        self._factory: AdapterFactory = adapter_factory or (
            lambda database: MySQLAdapter.from_settings(settings, database=database)
        )
        self._lock = threading.Lock()
        self._adapter: Optional[DBAdapter] = None

    @property
    def adapter(self) -> DBAdapter:
        with self._lock:
            if self._adapter is None:
                self._adapter = self._factory(self.settings.db_name)
            return self._adapter

    @property
    def database(self) -> Optional[str]:
        with self._lock:
            if self._adapter is None:
                return self.settings.db_name
            return self._adapter.database

    def _swap(self, candidate: DBAdapter) -> None:
        with self._lock:
            old, self._adapter = self._adapter, candidate
        if old is not None and old is not candidate:
            old.dispose()

    def switch(self, database: Optional[str]) -> DBAdapter:
        if not database:
            raise InvalidInputError("Database name is required")
        validate_identifier(database, "database")

        log.info("Switching active database", extra={"database": database})
        candidate = self._factory(database)
        try:
            candidate.ping()
        except DbAdminError:
            candidate.dispose()
            log.warning(
                "Could not connect to database; keeping previous pool",
                extra={"database": database},
            )
            raise

        self._swap(candidate)
        log.info("Switched active database", extra={"database": database})
        return candidate

    def reset(self) -> None:
        """Fall back to a server-level pool (no default schema)."""
        self._swap(self._factory(None))
        log.info("Active database cleared")

    def close(self) -> None:
        with self._lock:
            old, self._adapter = self._adapter, None
        if old is not None:
            old.dispose()
