from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from app.dependencies import get_admin_service
from app.schemas import CreateDatabaseRequest, MessageResponse, UseDatabaseRequest
from app.services.admin_service import AdminService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["databases"])


@router.get("/databases", response_model=List[str], name="list_databases")
def list_databases(svc: AdminService = Depends(get_admin_service)) -> List[str]:
    return svc.list_databases()


@router.post(
    "/databases",
    status_code=201,
    response_model=MessageResponse,
    name="create_database",
)
def create_database(
    request: CreateDatabaseRequest,
    svc: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    name = svc.create_database(request.database_name)
    return MessageResponse(message=f"Database {name} created successfully")


@router.delete("/databases/{name}", response_model=MessageResponse, name="drop_database")
def drop_database(
    name: str,
    svc: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    svc.drop_database(name)
    return MessageResponse(message=f"Database {name} dropped successfully")


@router.post("/use-database", response_model=MessageResponse, name="use_database")
def use_database(
    request: UseDatabaseRequest,
    svc: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    database = svc.use_database(request.database)
    return MessageResponse(message=f"Using database: {database}")
