"""Session policy and change-version routes used by dashboard views."""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.dependencies import get_session_context
from app.schemas.approval import PolicyOut
from app.services import entry_points
from app.services.entry_points import SessionContext
from app.services.notifications import bus
from app.services.role_policy import can_delete, can_review, requires_approval

router = APIRouter()


@router.get("/policy", response_model=PolicyOut)
def session_policy(session: SessionContext = Depends(get_session_context)):
    """What the current session may do, so the UI can pick "save" vs "submit"."""
    return PolicyOut(
        role=session.role,
        department=session.department,
        requires_approval=requires_approval(session.role),
        can_delete=can_delete(session.role),
        can_review=can_review(session.role),
        editable_tables=entry_points.editable_tables(session),
    )


@router.get("/changes", response_model=dict[str, int])
def change_versions(category: Optional[list[str]] = Query(None)):
    """Per-category change versions; a view refetches when its version moves."""
    return bus.versions(category)
