"""Edit/delete entry points — authorization in front of the workflow engine.

Every caller-facing mutation goes through here: the role/department policy is
checked first (Forbidden is raised, never a silent no-op), then the engine
decides between the direct path and the approval queue.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.approval_request import ApprovalStatus, RequestType
from app.services import approval_store, record_service, workflow
from app.services.errors import Forbidden, StaleRecordError, ValidationError
from app.services.role_policy import (
    can_delete,
    can_edit_category,
    can_mutate,
    can_purge_requests,
    can_review,
    parse_role,
    requires_approval,
    Role,
)
from app.services.table_registry import REGISTRY, TableSpec, resolve

logger = logging.getLogger(__name__)


def _forbid(message: str) -> Forbidden:
    logger.info("Denied: %s", message)
    return Forbidden(message)


@dataclass(frozen=True)
class SessionContext:
    """Caller identity, passed explicitly into every operation."""

    user_id: int
    role: str
    department: Optional[str] = None


@dataclass
class ReviewReport:
    outcome: workflow.Outcome
    apply_error: Optional[str] = None

    @property
    def status(self) -> ApprovalStatus:
        return self.outcome.request.status


def _authorize(
    db: Session,
    session: SessionContext,
    spec: TableSpec,
    request_type: RequestType,
    record=None,
    data: Optional[dict[str, Any]] = None,
) -> None:
    if not can_mutate(session.role):
        raise _forbid(f"Role {session.role} cannot modify data")

    scopes = set()
    if record is not None:
        scopes.add(record_service.category_scope(db, spec, record=record))
    if record is None or (data and data.get("department_id") is not None):
        scopes.add(record_service.category_scope(db, spec, record=record, data=data))
    for scope in scopes:
        if not can_edit_category(session.role, session.department, scope):
            raise _forbid(f"Role {session.role} cannot edit {spec.name.value} for department {scope}")

    if (
        request_type == RequestType.data_deletion
        and not requires_approval(session.role)
        and not can_delete(session.role)
    ):
        raise _forbid(f"Role {session.role} cannot delete {spec.name.value} records")


def create_record(db: Session, session: SessionContext, table_name: str, data: dict[str, Any]) -> workflow.Outcome:
    spec = resolve(table_name)
    record_service.validate_create(spec, data)
    _authorize(db, session, spec, RequestType.data_creation, data=data)
    return workflow.submit(
        db, session.role, RequestType.data_creation, spec.name, None, {}, data, session.user_id,
    )


def edit_record(
    db: Session, session: SessionContext, table_name: str, record_id: int, data: dict[str, Any],
) -> workflow.Outcome:
    """Update a record, snapshotting the fields being changed as old_data."""
    spec = resolve(table_name)
    updates = record_service.validate_update(spec, data)
    record = record_service.get_record(db, spec.name, record_id)
    _authorize(db, session, spec, RequestType.data_change, record=record, data=updates)

    current = record_service.snapshot(record)
    old_data = {field: current[field] for field in data if field in current}
    return workflow.submit(
        db, session.role, RequestType.data_change, spec.name, record_id, old_data, data, session.user_id,
    )


def delete_record(db: Session, session: SessionContext, table_name: str, record_id: int) -> workflow.Outcome:
    spec = resolve(table_name)
    record = record_service.get_record(db, spec.name, record_id)
    _authorize(db, session, spec, RequestType.data_deletion, record=record)

    old_data = record_service.data_fields(record_service.snapshot(record))
    return workflow.submit(
        db, session.role, RequestType.data_deletion, spec.name, record_id, old_data, {}, session.user_id,
    )


def submit_mutation(
    db: Session,
    session: SessionContext,
    request_type: RequestType,
    table_name: str,
    record_id: Optional[int],
    old_data: Optional[dict[str, Any]],
    new_data: Optional[dict[str, Any]],
) -> workflow.Outcome:
    """Generic submission.

    Update and deletion targets are checked for existence here, since their
    department scope comes from the record. The stored ``old_data`` is always
    read from the record; a caller-supplied ``old_data`` that no longer matches
    it means the caller edited a stale copy.
    """
    spec = resolve(table_name)
    request_type = RequestType(request_type)
    new_data = new_data or {}
    old_data = old_data or {}

    record = None
    if request_type == RequestType.data_creation:
        record_service.validate_create(spec, new_data)
    else:
        if record_id is None:
            raise ValidationError(f"{request_type.value} requires record_id")
        if request_type == RequestType.data_change:
            record_service.validate_update(spec, new_data)
        record = record_service.get_record(db, spec.name, record_id)
    record_service.check_fields(spec, old_data)

    _authorize(db, session, spec, request_type, record=record, data=new_data)

    current_data = {}
    if record is not None:
        current = record_service.snapshot(record)
        drifted = sorted(name for name in old_data if name in current and current[name] != old_data[name])
        if drifted:
            raise StaleRecordError(
                f"{spec.name.value} record {record_id} changed since it was read ({', '.join(drifted)})"
            )
        if request_type == RequestType.data_change:
            current_data = {field: current[field] for field in new_data if field in current}
        else:
            current_data = record_service.data_fields(current)
    return workflow.submit(
        db, session.role, request_type, spec.name, record_id, current_data, new_data, session.user_id,
    )


def _require_reviewer(db: Session, session: SessionContext, request) -> None:
    if not can_review(session.role):
        raise _forbid(f"Role {session.role} cannot review approval requests")
    for department in approval_store.request_departments(db, request):
        if not can_edit_category(session.role, session.department, department):
            raise _forbid(f"Approval request {request.id} touches department {department}")


def read_request(db: Session, session: SessionContext, request_id: int):
    """Requesters may read their own requests; reviewers those they could decide."""
    request = approval_store.get(db, request_id)
    if request.requester_id != session.user_id:
        _require_reviewer(db, session, request)
    return request


def review_request(
    db: Session, session: SessionContext, request_id: int, decision: ApprovalStatus,
) -> ReviewReport:
    """Decide a request. An application failure is reported, not raised."""
    request = approval_store.get(db, request_id)
    _require_reviewer(db, session, request)
    try:
        outcome = workflow.review(db, request_id, session.user_id, decision)
    except StaleRecordError as exc:
        request = approval_store.get(db, request_id)
        return ReviewReport(workflow.Outcome(workflow.OutcomeKind.approved, request=request), apply_error=exc.detail)
    return ReviewReport(outcome)


def require_reviewer_role(session: SessionContext) -> None:
    if not can_review(session.role):
        raise _forbid(f"Role {session.role} cannot view approval requests")


def reviewer_filter(session: SessionContext, filters: approval_store.RequestFilter) -> approval_store.RequestFilter:
    """Planners only see requests they could decide.

    That is their own department's queue plus global categories, or global
    categories alone for a planner with no department.
    """
    if parse_role(session.role) != Role.planner:
        return filters
    if filters.department and filters.department != session.department:
        raise _forbid(f"Planner of {session.department} cannot view department {filters.department}")
    if session.department:
        filters.department = session.department
        filters.include_global = True
        filters.only_department = True
    else:
        filters.global_only = True
    return filters


def purge_request(db: Session, session: SessionContext, request_id: int) -> None:
    if not can_purge_requests(session.role):
        raise _forbid("Only ADMIN can delete approval requests")
    approval_store.purge(db, request_id)


def editable_tables(session: SessionContext) -> list[str]:
    """Tables the session may propose or apply changes to, by static scope."""
    if not can_mutate(session.role):
        return []
    return [
        name.value for name, spec in REGISTRY.items()
        if can_edit_category(session.role, session.department, spec.department_scope)
    ]
