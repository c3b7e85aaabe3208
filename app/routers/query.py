from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_admin_service
from app.schemas import QueryRequest, QueryResponse
from app.services.admin_service import AdminService
from dbadmin.query import QueryOutcome

router = APIRouter(tags=["query"])


def _result_payload(outcome: QueryOutcome) -> Any:
    """Rows for row-returning statements, an affected-rows summary otherwise."""
    result = outcome.result
    if result.returns_rows:
        return result.rows
    return {"affectedRows": result.affected_rows, "insertId": result.last_insert_id}


@router.post("/query", response_model=QueryResponse, name="run_query")
def run_query(
    request: QueryRequest,
    svc: AdminService = Depends(get_admin_service),
) -> QueryResponse:
    outcome = svc.run_query(request.query)
    return QueryResponse(result=_result_payload(outcome), statement_type=outcome.kind)
