"""Approval API routes — submission, reviewer queue and decisions."""
import logging
from itertools import islice
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.dependencies import get_session_context
from app.models.approval_request import ApprovalStatus, RequestType
from app.schemas.approval import (
    ApprovalPage,
    ApprovalRequestOut,
    ApprovalStats,
    MutationResult,
    MutationSubmit,
    ReviewDecision,
    ReviewResult,
)
from app.services import approval_store, entry_points
from app.services.entry_points import SessionContext
from app.services.workflow import Outcome

logger = logging.getLogger(__name__)
router = APIRouter()


def mutation_result(outcome: Outcome, response: Response) -> MutationResult:
    """Applied changes answer 200, queued ones 202."""
    if not outcome.applied:
        response.status_code = status.HTTP_202_ACCEPTED
    return MutationResult(
        applied=outcome.applied,
        outcome=outcome.kind.value,
        request=ApprovalRequestOut.model_validate(outcome.request) if outcome.request is not None else None,
        record=outcome.record,
    )


@router.post("/", response_model=MutationResult)
def submit_mutation(
    payload: MutationSubmit,
    response: Response,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Submit a create/update/delete. Applied directly or queued depending on role."""
    outcome = entry_points.submit_mutation(
        db,
        session,
        request_type=payload.request_type,
        table_name=payload.table_name,
        record_id=payload.record_id,
        old_data=payload.old_data,
        new_data=payload.new_data,
    )
    return mutation_result(outcome, response)


@router.get("/", response_model=ApprovalPage)
def list_approval_requests(
    table_name: Optional[str] = None,
    requester_id: Optional[int] = None,
    department: Optional[str] = None,
    request_type: Optional[RequestType] = None,
    status_filter: Optional[ApprovalStatus] = Query(ApprovalStatus.pending, alias="status"),
    all_statuses: bool = False,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Reviewer queue. Pending requests oldest first; other statuses newest first."""
    entry_points.require_reviewer_role(session)
    limit = min(limit or settings.APPROVAL_PAGE_SIZE, settings.APPROVAL_PAGE_SIZE_MAX)
    filters = entry_points.reviewer_filter(session, approval_store.RequestFilter(
        table_name=table_name,
        requester_id=requester_id,
        department=department.upper() if department else None,
        request_type=request_type,
    ))

    if all_statuses:
        requests = approval_store.list_requests(db, filters)
    elif status_filter == ApprovalStatus.pending:
        requests = approval_store.list_pending(db, filters)
    else:
        requests = approval_store.list_requests(db, filters, status=status_filter)

    start = (page - 1) * limit
    window = list(islice(iter(requests), start, start + limit + 1))
    return ApprovalPage(
        data=[ApprovalRequestOut.model_validate(r) for r in window[:limit]],
        page=page,
        limit=limit,
        has_more=len(window) > limit,
    )


@router.get("/stats", response_model=ApprovalStats)
def approval_stats(
    table_name: Optional[str] = None,
    department: Optional[str] = None,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Counts of requests per status."""
    entry_points.require_reviewer_role(session)
    filters = entry_points.reviewer_filter(session, approval_store.RequestFilter(
        table_name=table_name,
        department=department.upper() if department else None,
    ))
    return approval_store.stats(db, filters)


@router.get("/{request_id}", response_model=ApprovalRequestOut)
def get_approval_request(
    request_id: int,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Requesters may read their own requests; reviewers those in their scope."""
    return entry_points.read_request(db, session, request_id)


@router.post("/{request_id}/review", response_model=ReviewResult)
def review_approval_request(
    request_id: int,
    payload: ReviewDecision,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Approve or reject. An approval that cannot be applied reports apply_error."""
    report = entry_points.review_request(db, session, request_id, payload.decision)
    return ReviewResult(
        status=report.status,
        request=ApprovalRequestOut.model_validate(report.outcome.request),
        record=report.outcome.record,
        apply_error=report.apply_error,
    )


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_approval_request(
    request_id: int,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Remove a request record (ADMIN only)."""
    entry_points.purge_request(db, session, request_id)
