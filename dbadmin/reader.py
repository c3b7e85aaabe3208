from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from adapters.db.base import DbSession
from dbadmin.errors.exceptions import InvalidInputError, NotFoundError
from dbadmin.identifiers import quote, validate_identifier
from dbadmin.inspector import MetadataInspector
from dbadmin.types import Page, ReferencedData

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
REFERENCED_DATA_LIMIT = 1000


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PaginatedReader:
    """Filtered, sorted, paginated SELECT plus a matching COUNT(*)."""

    def __init__(
        self,
        session: DbSession,
        inspector: Optional[MetadataInspector] = None,
        max_limit: int = MAX_PAGE_SIZE,
    ):
        self.session = session
        self.inspector = inspector or MetadataInspector(session)
        self.max_limit = max_limit

    @staticmethod
    def _where(
        table: str, filters: Optional[Mapping[str, Any]], known: List[str]
    ) -> Tuple[str, Dict[str, Any]]:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        for column, value in (filters or {}).items():
            if value is None or value == "":
                continue
            if column not in known:
                log.debug("Skipping unknown filter column", extra={"table": table, "column": column})
                continue
            name = f"f{len(params)}"
            clauses.append(f"{quote(column, 'column')} LIKE :{name}")
            params[name] = f"%{_escape_like(str(value))}%"
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def read_page(
        self,
        table: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Page:
        validate_identifier(table, "table")
        if page < 1:
            raise InvalidInputError("page must be a positive integer")
        if limit < 1:
            raise InvalidInputError("limit must be a positive integer")
        limit = min(limit, self.max_limit)

        known = [c.name for c in self.inspector.columns(table)]
        where, params = self._where(table, filters, known)

        order_clause = ""
        if sort:
            if sort not in known:
                raise InvalidInputError(f"Unknown sort column {sort!r}")
            direction = "DESC" if (order or "").lower() == "desc" else "ASC"
            order_clause = f" ORDER BY {quote(sort, 'column')} {direction}"

        qt = quote(table, "table")
        count_rows = self.session.fetch_all(f"SELECT COUNT(*) AS total FROM {qt}{where}", params)
        total = int(count_rows[0]["total"]) if count_rows else 0

        offset = (page - 1) * limit
        rows = self.session.fetch_all(
            f"SELECT * FROM {qt}{where}{order_clause} LIMIT :limit OFFSET :offset",
            {**params, "limit": limit, "offset": offset},
        )

        return Page(
            rows=rows,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    def referenced_data(
        self, table: str, column: str, limit: int = REFERENCED_DATA_LIMIT
    ) -> ReferencedData:
        """Rows of the table an FK column points at, for pick-lists."""
        fks = self.inspector.foreign_keys(table, column)
        if not fks:
            raise NotFoundError("No foreign key relationship found for this column")

        fk = fks[0]
        rows = self.session.fetch_all(
            f"SELECT * FROM {quote(fk.referenced_table, 'table')} "
            f"ORDER BY {quote(fk.referenced_column, 'column')} LIMIT :limit",
            {"limit": limit},
        )
        return ReferencedData(
            referenced_table=fk.referenced_table,
            referenced_column=fk.referenced_column,
            rows=rows,
        )
