"""Approval request store — persistence and state guard for ApprovalRequests.

``decide`` is a compare-and-set on status: it only matches rows still PENDING,
so concurrent reviewers cannot both win. It records the decision and nothing
else; applying an approved change belongs to the workflow engine.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.approval_request import ApprovalRequest, ApprovalStatus, RequestType
from app.services import record_service
from app.services.errors import InvalidStateError, NotFound, ValidationError
from app.services.table_registry import resolve

logger = logging.getLogger(__name__)

BATCH_SIZE = 100


@dataclass
class NewApprovalRequest:
    request_type: RequestType
    table_name: str
    requester_id: int
    record_id: Optional[int] = None
    old_data: dict[str, Any] = field(default_factory=dict)
    new_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class RequestFilter:
    table_name: Optional[str] = None
    requester_id: Optional[int] = None
    department: Optional[str] = None
    request_type: Optional[RequestType] = None
    # With a department filter, also keep requests whose department is None.
    include_global: bool = False
    # Drop requests that also touch a department other than ``department``.
    only_department: bool = False
    # Keep only requests that touch no department at all.
    global_only: bool = False

    @property
    def scoped(self) -> bool:
        return bool(self.department) or self.global_only


def create(db: Session, new: NewApprovalRequest) -> ApprovalRequest:
    """Persist a PENDING request after structural validation."""
    spec = resolve(new.table_name)
    request_type = RequestType(new.request_type)
    old_data = dict(new.old_data or {})
    new_data = dict(new.new_data or {})

    if not old_data and not new_data:
        raise ValidationError("Approval request has neither old_data nor new_data")
    if request_type in (RequestType.data_change, RequestType.data_creation) and not new_data:
        raise ValidationError(f"{request_type.value} requires new_data")
    if request_type != RequestType.data_creation and new.record_id is None:
        raise ValidationError(f"{request_type.value} requires record_id")
    record_service.check_fields(spec, old_data)
    record_service.check_fields(spec, new_data)

    request = ApprovalRequest(
        request_type=request_type,
        table_name=spec.name.value,
        record_id=None if request_type == RequestType.data_creation else new.record_id,
        old_data=old_data,
        new_data=new_data,
        requester_id=new.requester_id,
        status=ApprovalStatus.pending,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("ApprovalRequest %s (%s on %s/%s) submitted by user %s",
                request.id, request_type.value, request.table_name, request.record_id, new.requester_id)
    return request


def get(db: Session, request_id: int) -> ApprovalRequest:
    request = db.get(ApprovalRequest, request_id)
    if request is None:
        raise NotFound(f"ApprovalRequest {request_id} not found")
    return request


def decide(db: Session, request_id: int, reviewer_id: int, decision: ApprovalStatus) -> ApprovalRequest:
    """Move a PENDING request to APPROVED or REJECTED exactly once."""
    decision = ApprovalStatus(decision)
    if decision == ApprovalStatus.pending:
        raise ValidationError("Decision must be APPROVED or REJECTED")

    matched = (
        db.query(ApprovalRequest)
        .filter(ApprovalRequest.id == request_id, ApprovalRequest.status == ApprovalStatus.pending)
        .update(
            {
                ApprovalRequest.status: decision,
                ApprovalRequest.reviewer_id: reviewer_id,
                ApprovalRequest.reviewed_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
    )
    db.commit()

    request = get(db, request_id)
    if matched == 0:
        db.refresh(request)
        raise InvalidStateError(f"ApprovalRequest {request_id} is already {request.status.value}")

    db.refresh(request)
    logger.info("ApprovalRequest %s %s by reviewer %s", request_id, decision.value, reviewer_id)
    return request


def mark_applied(db: Session, request: ApprovalRequest) -> ApprovalRequest:
    request.applied_at = datetime.now(timezone.utc)
    request.apply_error = None
    db.commit()
    db.refresh(request)
    return request


def mark_apply_failed(db: Session, request: ApprovalRequest, message: str) -> ApprovalRequest:
    """Record why an approved change could not be applied. Status stays APPROVED."""
    request.apply_error = message[:500]
    db.commit()
    db.refresh(request)
    logger.warning("ApprovalRequest %s approved but not applied: %s", request.id, message)
    return request


def request_departments(db: Session, request: ApprovalRequest) -> set[Optional[str]]:
    """Every department a request touches; ``{None}`` for global categories.

    A change moving a record between departments touches both the record's
    current department and the destination in ``new_data``.
    """
    spec = resolve(request.table_name)
    if spec.department_scope:
        return {spec.department_scope}
    if not spec.has_department:
        return {None}

    department_ids = set()
    if request.record_id is not None:
        record = db.get(spec.model, request.record_id)
        if record is not None:
            department_ids.add(record.department_id)
        elif (request.old_data or {}).get("department_id") is not None:
            department_ids.add(request.old_data["department_id"])
    if (request.new_data or {}).get("department_id") is not None:
        department_ids.add(request.new_data["department_id"])

    departments = {record_service.department_code(db, d) for d in department_ids} - {None}
    return departments or {None}


class RequestQuery:
    """Lazy, restartable view over approval requests.

    Rows are fetched in keyset batches each time the query is iterated, so a
    second iteration reflects the current state of the store.
    """

    def __init__(
        self,
        db: Session,
        filters: Optional[RequestFilter] = None,
        status: Optional[ApprovalStatus] = None,
        newest_first: bool = False,
    ):
        self.db = db
        self.filters = filters or RequestFilter()
        self.status = status
        self.newest_first = newest_first
        if self.filters.table_name:
            resolve(self.filters.table_name)

    def _base_query(self):
        query = self.db.query(ApprovalRequest)
        if self.status is not None:
            query = query.filter(ApprovalRequest.status == self.status)
        if self.filters.table_name:
            query = query.filter(ApprovalRequest.table_name == resolve(self.filters.table_name).name.value)
        if self.filters.requester_id is not None:
            query = query.filter(ApprovalRequest.requester_id == self.filters.requester_id)
        if self.filters.request_type is not None:
            query = query.filter(ApprovalRequest.request_type == RequestType(self.filters.request_type))
        return query

    def _matches_department(self, request: ApprovalRequest) -> bool:
        filters = self.filters
        if not filters.scoped:
            return True
        departments = request_departments(self.db, request) - {None}
        if not departments:
            return filters.include_global or filters.global_only
        if filters.global_only:
            return False
        if filters.only_department:
            return departments == {filters.department}
        return filters.department in departments

    def __iter__(self) -> Iterator[ApprovalRequest]:
        last_id = None
        while True:
            query = self._base_query()
            if self.newest_first:
                if last_id is not None:
                    query = query.filter(ApprovalRequest.id < last_id)
                query = query.order_by(ApprovalRequest.id.desc())
            else:
                if last_id is not None:
                    query = query.filter(ApprovalRequest.id > last_id)
                query = query.order_by(ApprovalRequest.id.asc())
            batch = query.limit(BATCH_SIZE).all()
            if not batch:
                return
            for request in batch:
                if self._matches_department(request):
                    yield request
            last_id = batch[-1].id


def list_pending(db: Session, filters: Optional[RequestFilter] = None) -> RequestQuery:
    """Pending requests, oldest first."""
    return RequestQuery(db, filters, status=ApprovalStatus.pending)


def list_requests(
    db: Session,
    filters: Optional[RequestFilter] = None,
    status: Optional[ApprovalStatus] = None,
) -> RequestQuery:
    """Requests of any (or one) status, newest first."""
    return RequestQuery(db, filters, status=status, newest_first=True)


def stats(db: Session, filters: Optional[RequestFilter] = None) -> dict[str, int]:
    filters = filters or RequestFilter()
    if filters.scoped:
        counts = {s: 0 for s in ApprovalStatus}
        for request in RequestQuery(db, filters):
            counts[request.status] += 1
    else:
        rows = (
            RequestQuery(db, filters)._base_query()
            .with_entities(ApprovalRequest.status, func.count(ApprovalRequest.id))
            .group_by(ApprovalRequest.status)
            .all()
        )
        counts = {s: 0 for s in ApprovalStatus}
        counts.update({status: count for status, count in rows})
    return {
        "total": sum(counts.values()),
        "pending": counts[ApprovalStatus.pending],
        "approved": counts[ApprovalStatus.approved],
        "rejected": counts[ApprovalStatus.rejected],
    }


def purge(db: Session, request_id: int) -> None:
    """Hard-delete a request record."""
    request = get(db, request_id)
    db.delete(request)
    db.commit()
    logger.info("ApprovalRequest %s purged", request_id)
