"""Approval workflow engine.

State machine: PENDING -> APPROVED | REJECTED, both terminal.

- submit: roles exempt from approval mutate directly; everyone else gets a
  PENDING request and the target record is left alone.
- review: the decision is committed first, then an approved change is
  applied. If application fails the decision is kept and the failure is
  reported separately (StaleRecordError).
- every successful write notifies the change bus once, from ``_notify``:
  the table category plus a ``<table>:<DEPARTMENT>`` feed per department.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.approval_request import ApprovalRequest, ApprovalStatus, RequestType
from app.services import approval_store, record_service
from app.services.errors import NotFound, StaleRecordError, ValidationError
from app.services.notifications import bus
from app.services.role_policy import RoleLike, requires_approval
from app.services.table_registry import TableSpec, resolve

logger = logging.getLogger(__name__)


class OutcomeKind(str, enum.Enum):
    applied = "applied"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


@dataclass
class Outcome:
    kind: OutcomeKind
    request: Optional[ApprovalRequest] = None
    record: Optional[dict[str, Any]] = None

    @property
    def applied(self) -> bool:
        return self.kind in (OutcomeKind.applied, OutcomeKind.approved)


def _notify(db: Session, spec: TableSpec, *snapshots: Optional[dict[str, Any]]) -> None:
    """Publish the table category, then each department feed the write touched."""
    bus.notify(spec.category)
    if spec.department_scope:
        departments = {spec.department_scope}
    else:
        departments = {
            record_service.department_code(db, snapshot.get("department_id"))
            for snapshot in snapshots if snapshot
        }
    for department in sorted(d for d in departments if d):
        bus.notify(f"{spec.category}:{department}")


def submit(
    db: Session,
    role: RoleLike,
    request_type: RequestType,
    table_name: str,
    record_id: Optional[int],
    old_data: Optional[dict[str, Any]],
    new_data: Optional[dict[str, Any]],
    requester_id: int,
) -> Outcome:
    spec = resolve(table_name)
    request_type = RequestType(request_type)

    if not requires_approval(role):
        data = {} if request_type == RequestType.data_deletion else (new_data or {})
        record = record_service.apply_direct(db, spec.name, request_type, record_id, data, requester_id)
        _notify(db, spec, record, old_data)
        return Outcome(OutcomeKind.applied, record=record)

    request = approval_store.create(db, approval_store.NewApprovalRequest(
        request_type=request_type,
        table_name=spec.name.value,
        requester_id=requester_id,
        record_id=record_id,
        old_data=old_data or {},
        new_data=new_data or {},
    ))
    return Outcome(OutcomeKind.pending, request=request)


def _apply(db: Session, spec: TableSpec, request: ApprovalRequest) -> dict[str, Any]:
    request_type = RequestType(request.request_type)
    try:
        if request_type == RequestType.data_change:
            record = record_service.get_record(db, spec.name, request.record_id)
            current = record_service.snapshot(record)
            old_data = request.old_data or {}
            drifted = sorted(
                name for name in request.new_data
                if name in old_data and name in current and current[name] != old_data[name]
            )
            if drifted:
                raise StaleRecordError(
                    f"{spec.name.value} record {request.record_id} changed since the request "
                    f"was made ({', '.join(drifted)})"
                )
        return record_service.apply_direct(
            db,
            spec.name,
            request_type,
            request.record_id,
            {} if request_type == RequestType.data_deletion else request.new_data,
            request.requester_id,
            approval_request_id=request.id,
        )
    except NotFound:
        db.rollback()
        raise StaleRecordError(f"{spec.name.value} record {request.record_id} no longer exists")
    except ValidationError as exc:
        db.rollback()
        raise StaleRecordError(f"Approved data no longer applies: {exc.detail}")


def review(db: Session, request_id: int, reviewer_id: int, decision: ApprovalStatus) -> Outcome:
    """Decide a request and, when approved, apply it.

    Raises StaleRecordError after the decision is committed if the change cannot
    be applied; the request stays APPROVED with ``apply_error`` set.
    """
    request = approval_store.decide(db, request_id, reviewer_id, decision)
    if request.status == ApprovalStatus.rejected:
        return Outcome(OutcomeKind.rejected, request=request)

    spec = resolve(request.table_name)
    try:
        record = _apply(db, spec, request)
    except StaleRecordError as exc:
        approval_store.mark_apply_failed(db, request, exc.detail)
        raise

    request = approval_store.mark_applied(db, request)
    logger.info("ApprovalRequest %s applied to %s", request.id, spec.name.value)
    _notify(db, spec, record, request.old_data)
    return Outcome(OutcomeKind.approved, request=request, record=record)
