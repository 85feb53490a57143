"""Operational record persistence and the direct-mutation path.

Responsibilities:
- get/create/update/delete for every registered table
- payload validation against the table's schemas
- JSON-safe snapshots for approval requests and the mutation ledger
- one DataMutation row per applied write, committed with the write
"""
import enum
import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from app.database import Base
from app.models.approval_request import RequestType
from app.models.data_mutation import DataMutation, ActionType
from app.models.department import Department
from app.services.errors import NotFound, ValidationError
from app.services.table_registry import TableSpec, resolve

logger = logging.getLogger(__name__)

_READ_ONLY_FIELDS = ("id", "created_at", "updated_at")


def _json_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(record: Base) -> dict[str, Any]:
    """Serialize a record's columns to a JSON-safe dict."""
    return {
        column.name: _json_value(getattr(record, column.name))
        for column in record.__table__.columns
    }


def data_fields(record_snapshot: dict[str, Any]) -> dict[str, Any]:
    """Drop identity and timestamp columns from a snapshot."""
    return {k: v for k, v in record_snapshot.items() if k not in _READ_ONLY_FIELDS}


def _format_errors(exc: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'data'}: {err['msg']}"
        for err in exc.errors()
    )


def validate_create(spec: TableSpec, data: dict[str, Any]) -> dict[str, Any]:
    """Validate a full record payload. Missing required fields raise ValidationError."""
    try:
        return spec.create_schema.model_validate(data).model_dump()
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {spec.name.value} data: {_format_errors(exc)}")


def validate_update(spec: TableSpec, data: dict[str, Any]) -> dict[str, Any]:
    """Validate a partial payload; only the fields present are returned."""
    try:
        updates = spec.update_schema.model_validate(data).model_dump(exclude_unset=True)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {spec.name.value} data: {_format_errors(exc)}")

    columns = spec.model.__table__.columns
    for field, value in updates.items():
        if value is None and not columns[field].nullable:
            raise ValidationError(f"Field '{field}' of {spec.name.value} cannot be null")
    return updates


def check_fields(spec: TableSpec, data: dict[str, Any]) -> None:
    """Reject snapshots that name fields the table does not have."""
    unknown = set(data) - spec.fields - set(_READ_ONLY_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown fields for {spec.name.value}: {', '.join(sorted(unknown))}"
        )


def get_record(db: Session, table_name: str, record_id: int) -> Base:
    spec = resolve(table_name)
    record = db.get(spec.model, record_id)
    if record is None:
        raise NotFound(f"{spec.name.value} record {record_id} not found")
    return record


def list_records(
    db: Session,
    table_name: str,
    department_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50,
) -> list[Base]:
    spec = resolve(table_name)
    query = db.query(spec.model)
    if department_id is not None and spec.has_department:
        query = query.filter(spec.model.department_id == department_id)
    return query.order_by(spec.model.id.desc()).offset(offset).limit(limit).all()


def department_code(db: Session, department_id: Optional[int]) -> Optional[str]:
    if department_id is None:
        return None
    department = db.get(Department, department_id)
    return department.code if department else None


def category_scope(
    db: Session,
    spec: TableSpec,
    record: Optional[Base] = None,
    data: Optional[dict[str, Any]] = None,
) -> Optional[str]:
    """Department code a change falls under; None for global categories.

    ``data`` wins over ``record`` when it carries a department_id, so a change
    moving a record between departments is scoped to its destination.
    """
    if spec.department_scope:
        return spec.department_scope
    if not spec.has_department:
        return None
    if data and data.get("department_id") is not None:
        department_id = data["department_id"]
    elif record is not None:
        department_id = record.department_id
    else:
        return None
    code = department_code(db, department_id)
    if code is None:
        raise ValidationError(f"Unknown department {department_id}")
    return code


def _write_ledger(
    db: Session,
    spec: TableSpec,
    record_id: int,
    actor_id: int,
    action: ActionType,
    before: Optional[dict[str, Any]],
    after: Optional[dict[str, Any]],
    approval_request_id: Optional[int],
) -> None:
    db.add(DataMutation(
        table_name=spec.name.value,
        record_id=record_id,
        actor_id=actor_id,
        action_type=action,
        before_snapshot=before,
        after_snapshot=after,
        approval_request_id=approval_request_id,
    ))


@contextmanager
def _database_checks(db: Session, spec: TableSpec) -> Iterator[None]:
    """Turn constraint and data errors raised on flush or commit into ValidationError."""
    try:
        yield
    except (IntegrityError, DataError) as exc:
        db.rollback()
        raise ValidationError(f"Rejected by {spec.name.value} constraints: {exc.orig}")


def create_record(
    db: Session,
    table_name: str,
    data: dict[str, Any],
    actor_id: int,
    approval_request_id: Optional[int] = None,
) -> dict[str, Any]:
    spec = resolve(table_name)
    values = validate_create(spec, data)
    record = spec.model(**values)
    db.add(record)
    with _database_checks(db, spec):
        db.flush()
        after = snapshot(record)
        _write_ledger(db, spec, record.id, actor_id, ActionType.create, None, after, approval_request_id)
        db.commit()
    db.refresh(record)
    logger.info("Created %s record %s by user %s", spec.name.value, record.id, actor_id)
    return snapshot(record)


def update_record(
    db: Session,
    table_name: str,
    record_id: int,
    data: dict[str, Any],
    actor_id: int,
    approval_request_id: Optional[int] = None,
) -> dict[str, Any]:
    """Partial update: fields absent from ``data`` keep their current value."""
    spec = resolve(table_name)
    updates = validate_update(spec, data)
    record = get_record(db, table_name, record_id)
    before = snapshot(record)

    for field, value in updates.items():
        setattr(record, field, value)
    with _database_checks(db, spec):
        db.flush()
        _write_ledger(db, spec, record_id, actor_id, ActionType.update, before, snapshot(record), approval_request_id)
        db.commit()
    db.refresh(record)
    logger.info("Updated %s record %s (%s) by user %s",
                spec.name.value, record_id, ", ".join(updates) or "no fields", actor_id)
    return snapshot(record)


def delete_record(
    db: Session,
    table_name: str,
    record_id: int,
    actor_id: int,
    approval_request_id: Optional[int] = None,
) -> dict[str, Any]:
    """Hard delete. Returns the snapshot of the removed record."""
    spec = resolve(table_name)
    record = get_record(db, table_name, record_id)
    before = snapshot(record)
    db.delete(record)
    _write_ledger(db, spec, record_id, actor_id, ActionType.delete, before, None, approval_request_id)
    with _database_checks(db, spec):
        db.commit()
    logger.info("Deleted %s record %s by user %s", spec.name.value, record_id, actor_id)
    return before


def apply_direct(
    db: Session,
    table_name: str,
    request_type: RequestType,
    record_id: Optional[int],
    data: dict[str, Any],
    actor_id: int,
    approval_request_id: Optional[int] = None,
) -> dict[str, Any]:
    """Persist one mutation now and return the record snapshot."""
    request_type = RequestType(request_type)
    if request_type == RequestType.data_creation:
        return create_record(db, table_name, data, actor_id, approval_request_id)

    if record_id is None:
        raise ValidationError(f"record_id is required for {request_type.value}")
    if request_type == RequestType.data_change:
        return update_record(db, table_name, record_id, data, actor_id, approval_request_id)
    return delete_record(db, table_name, record_id, actor_id, approval_request_id)
