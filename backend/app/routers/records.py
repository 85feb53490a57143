"""Operational record routes — category-agnostic edit/delete entry points."""
import logging
from typing import Any, Optional
from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_session_context
from app.schemas.approval import MutationResult
from app.services import entry_points, record_service
from app.services.entry_points import SessionContext
from app.routers.approvals import mutation_result

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{table_name}", response_model=list[dict[str, Any]])
def list_records(
    table_name: str,
    department_id: Optional[int] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """List records of a table, newest first."""
    records = record_service.list_records(db, table_name, department_id, offset, limit)
    return [record_service.snapshot(r) for r in records]


@router.get("/{table_name}/{record_id}", response_model=dict[str, Any])
def get_record(
    table_name: str,
    record_id: int,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Fetch a single record."""
    return record_service.snapshot(record_service.get_record(db, table_name, record_id))


@router.post("/{table_name}", response_model=MutationResult, status_code=status.HTTP_201_CREATED)
def create_record(
    table_name: str,
    response: Response,
    data: dict[str, Any] = Body(...),
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Create a record, or queue its creation for approval (202)."""
    outcome = entry_points.create_record(db, session, table_name, data)
    return mutation_result(outcome, response)


@router.patch("/{table_name}/{record_id}", response_model=MutationResult)
def edit_record(
    table_name: str,
    record_id: int,
    response: Response,
    data: dict[str, Any] = Body(...),
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Partially update a record, or queue the change for approval (202)."""
    outcome = entry_points.edit_record(db, session, table_name, record_id, data)
    return mutation_result(outcome, response)


@router.delete("/{table_name}/{record_id}", response_model=MutationResult)
def delete_record(
    table_name: str,
    record_id: int,
    response: Response,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Delete a record (ADMIN), or queue the deletion for approval (202)."""
    outcome = entry_points.delete_record(db, session, table_name, record_id)
    return mutation_result(outcome, response)
