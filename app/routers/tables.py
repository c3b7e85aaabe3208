from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError

from app.dependencies import get_admin_service
from app.errors import InvalidFilterError, InvalidPayloadError
from app.schemas import (
    CreateTableRequest,
    CreateTableResponse,
    InsertResponse,
    MessageResponse,
    MutationResponse,
    PageResponse,
    PaginationModel,
    ReferencedDataResponse,
    RelatedInsertModel,
    RelatedRecordModel,
)
from app.services.admin_service import AdminService
from dbadmin.types import ColumnDescriptor, RelatedRecord, TableSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tables", tags=["tables"])


# -------------------------------
# Helpers
# -------------------------------


def _column_payload(c: ColumnDescriptor) -> Dict[str, Any]:
    """DESCRIBE-shaped column, enriched with its outgoing foreign key."""
    out: Dict[str, Any] = {
        "Field": c.name,
        "Type": c.declared_type,
        "Null": "YES" if c.nullable else "NO",
        "Key": "PRI" if c.is_primary else "",
        "Default": c.default_value,
        "Extra": c.extra,
    }
    if c.is_foreign_key:
        out["isForeignKey"] = True
        out["referencedTable"] = c.referenced_table
        out["referencedColumn"] = c.referenced_column
    return out


def _structure_payload(schema: TableSchema) -> Dict[str, Any]:
    return {
        "columns": [_column_payload(c) for c in schema.columns],
        "primaryKey": schema.primary_key_column,
        "referencingTables": {
            table: [
                {"column": r.column, "referencedColumn": r.referenced_column}
                for r in refs
            ]
            for table, refs in schema.referencing_tables.items()
        },
    }


def _parse_filter(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidFilterError(
            "Invalid filter parameter", details=[f"not valid JSON: {exc.msg}"]
        ) from exc
    if not isinstance(parsed, dict):
        raise InvalidFilterError(
            "Invalid filter parameter", details=["expected a JSON object"]
        )
    return parsed


def _split_insert_body(body: Dict[str, Any]) -> Tuple[Dict[str, Any], List[RelatedRecord]]:
    """
    Accept either {"data": {...}, "relatedRecords": [...]} or a flat row.
    """
    if isinstance(body.get("data"), dict):
        values = body["data"]
        raw_related = body.get("relatedRecords") or []
        if not isinstance(raw_related, list):
            raise InvalidPayloadError("relatedRecords must be a list")
        try:
            related = [RelatedRecordModel.model_validate(r).to_record() for r in raw_related]
        except ValidationError as exc:
            raise InvalidPayloadError(
                "Invalid relatedRecords entry",
                details=[e.get("msg", "") for e in exc.errors()],
            ) from exc
        return values, related
    return body, []


# -------------------------------
# Catalog
# -------------------------------


@router.get("", response_model=List[str], name="list_tables")
def list_tables(svc: AdminService = Depends(get_admin_service)) -> List[str]:
    return svc.list_tables()


@router.post(
    "",
    status_code=201,
    response_model=CreateTableResponse,
    name="create_table",
)
def create_table(
    request: CreateTableRequest,
    svc: AdminService = Depends(get_admin_service),
) -> CreateTableResponse:
    columns = [c.to_spec() for c in request.columns]
    sql = svc.create_table(request.table_name, columns, dry_run=request.dry_run)
    if request.dry_run:
        message = "Table definition is valid"
    else:
        message = f"Table {request.table_name.strip()} created successfully"
    return CreateTableResponse(message=message, sql=sql, created=not request.dry_run)


@router.delete("/{table}", response_model=MessageResponse, name="drop_table")
def drop_table(
    table: str,
    svc: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    svc.drop_table(table)
    return MessageResponse(message=f"Table {table} dropped successfully")


# -------------------------------
# Metadata
# -------------------------------


@router.get("/{table}/structure", name="table_structure")
def table_structure(
    table: str,
    svc: AdminService = Depends(get_admin_service),
) -> Dict[str, Any]:
    return _structure_payload(svc.describe_table(table))


@router.get(
    "/{table}/referenced-data/{column}",
    response_model=ReferencedDataResponse,
    name="referenced_data",
)
def referenced_data(
    table: str,
    column: str,
    svc: AdminService = Depends(get_admin_service),
) -> ReferencedDataResponse:
    ref = svc.referenced_data(table, column)
    return ReferencedDataResponse(
        referenced_table=ref.referenced_table,
        referenced_column=ref.referenced_column,
        data=ref.rows,
    )


# -------------------------------
# Rows
# -------------------------------


@router.get("/{table}/data", response_model=PageResponse, name="read_rows")
def read_rows(
    table: str,
    page: int = Query(1),
    limit: int = Query(100),
    sort: Optional[str] = Query(None),
    order: Optional[str] = Query(None),
    filter_: Optional[str] = Query(
        None, alias="filter", description="JSON object of column -> substring"
    ),
    svc: AdminService = Depends(get_admin_service),
) -> PageResponse:
    result = svc.read_page(
        table,
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        filters=_parse_filter(filter_),
    )
    return PageResponse(
        data=result.rows,
        pagination=PaginationModel(
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        ),
    )


@router.post(
    "/{table}/data",
    status_code=201,
    response_model=InsertResponse,
    response_model_exclude_none=True,
    name="insert_row",
)
def insert_row(
    table: str,
    body: Dict[str, Any] = Body(...),
    svc: AdminService = Depends(get_admin_service),
) -> InsertResponse:
    values, related = _split_insert_body(body)
    result = svc.insert(table, values, related)
    return InsertResponse(
        id=result.id,
        related_records=[
            RelatedInsertModel(table=r.table, id=r.id, success=r.success)
            for r in result.related_records
        ]
        or None,
    )


@router.put("/{table}/data/{row_id}", response_model=MutationResponse, name="update_row")
def update_row(
    table: str,
    row_id: str,
    changes: Dict[str, Any] = Body(...),
    force: bool = Query(False),
    svc: AdminService = Depends(get_admin_service),
) -> MutationResponse:
    result = svc.update(table, row_id, changes, force=force)
    return MutationResponse(
        message="Record updated successfully",
        affected_rows=result.affected_rows,
        forced=result.forced,
    )


@router.delete("/{table}/data/{row_id}", response_model=MutationResponse, name="delete_row")
def delete_row(
    table: str,
    row_id: str,
    force: bool = Query(False),
    svc: AdminService = Depends(get_admin_service),
) -> MutationResponse:
    result = svc.delete(table, row_id, force=force)
    return MutationResponse(
        message="Record deleted successfully",
        affected_rows=result.affected_rows,
        forced=result.forced,
    )
