"""Role policy — pure decisions over session roles.

Every function is total: an unrecognized role string is treated as having no
privilege rather than raising.
"""
import enum
from typing import Optional, Union


class Role(str, enum.Enum):
    admin = "ADMIN"
    planner = "PLANNER"
    inputter = "INPUTTER"
    viewer = "VIEWER"


RoleLike = Union[Role, str, None]

_MUTATING_ROLES = {Role.admin, Role.planner, Role.inputter}
_REVIEWER_ROLES = {Role.admin, Role.planner}


def parse_role(role: RoleLike) -> Optional[Role]:
    """Return the Role for a raw value, or None if it is not recognized."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except (ValueError, TypeError):
        return None


def requires_approval(role: RoleLike) -> bool:
    """INPUTTER changes go through review. VIEWER and unknown roles fail closed."""
    return parse_role(role) not in (Role.admin, Role.planner)


def can_mutate(role: RoleLike) -> bool:
    return parse_role(role) in _MUTATING_ROLES


def can_edit_category(
    role: RoleLike,
    user_department: Optional[str],
    category_department_scope: Optional[str],
) -> bool:
    """Whether ``role`` may edit a category scoped to a department.

    A scope of None means a global category. Planners are bound to their own
    department; inputters enter data for every department.
    """
    parsed = parse_role(role)
    if parsed in (Role.admin, Role.inputter):
        return True
    if parsed == Role.planner:
        return not category_department_scope or category_department_scope == user_department
    return False


def can_delete(role: RoleLike) -> bool:
    return parse_role(role) == Role.admin


def can_review(role: RoleLike) -> bool:
    return parse_role(role) in _REVIEWER_ROLES


def can_purge_requests(role: RoleLike) -> bool:
    return parse_role(role) == Role.admin
