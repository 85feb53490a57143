"""Request dependencies — the caller's session, taken from headers set by the auth proxy."""
from typing import Optional
from fastapi import Header

from app.services.entry_points import SessionContext
from app.services.errors import Unauthenticated


def get_session_context(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_department: Optional[str] = Header(None),
) -> SessionContext:
    """Build the SessionContext; the role string is passed through unvalidated."""
    if x_user_id is None or not x_user_role:
        raise Unauthenticated("Missing session headers")
    return SessionContext(
        user_id=x_user_id,
        role=x_user_role.strip().upper(),
        department=x_user_department.strip().upper() if x_user_department else None,
    )
