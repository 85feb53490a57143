"""Tests for the role policy — pure functions, no database."""
import pytest

from app.services.role_policy import (
    Role,
    can_delete,
    can_edit_category,
    can_mutate,
    can_purge_requests,
    can_review,
    parse_role,
    requires_approval,
)


class TestRequiresApproval:
    def test_inputter_requires_approval(self):
        assert requires_approval("INPUTTER") is True

    @pytest.mark.parametrize("role", ["ADMIN", "PLANNER", Role.admin, Role.planner])
    def test_privileged_roles_apply_directly(self, role):
        assert requires_approval(role) is False

    @pytest.mark.parametrize("role", ["VIEWER", "SUPERUSER", "", None, "admin"])
    def test_viewer_and_unknown_fail_closed(self, role):
        assert requires_approval(role) is True


class TestCanEditCategory:
    def test_planner_other_department(self):
        assert can_edit_category("PLANNER", "MMTC", "MTCENG") is False

    def test_planner_own_department(self):
        assert can_edit_category("PLANNER", "MMTC", "MMTC") is True

    def test_planner_global_category(self):
        assert can_edit_category("PLANNER", "MMTC", None) is True

    def test_planner_without_department_only_global(self):
        assert can_edit_category("PLANNER", None, "MMTC") is False
        assert can_edit_category("PLANNER", None, None) is True

    @pytest.mark.parametrize("scope", [None, "MMTC", "MTCENG"])
    def test_admin_and_inputter_edit_everything(self, scope):
        assert can_edit_category("ADMIN", None, scope) is True
        assert can_edit_category("INPUTTER", "PMTC", scope) is True

    @pytest.mark.parametrize("role", ["VIEWER", "GUEST", None])
    def test_viewer_and_unknown_never_edit(self, role):
        assert can_edit_category(role, "MMTC", None) is False
        assert can_edit_category(role, "MMTC", "MMTC") is False


class TestOtherPermissions:
    def test_can_delete(self):
        assert can_delete("ADMIN") is True
        assert can_delete("PLANNER") is False
        assert can_delete("INPUTTER") is False
        assert can_delete("VIEWER") is False
        assert can_delete("ROOT") is False

    def test_can_mutate(self):
        assert [can_mutate(r) for r in ("ADMIN", "PLANNER", "INPUTTER", "VIEWER", "X")] == [
            True, True, True, False, False,
        ]

    def test_can_review(self):
        assert can_review("ADMIN") and can_review("PLANNER")
        assert not can_review("INPUTTER")
        assert not can_review("VIEWER")

    def test_only_admin_purges(self):
        assert can_purge_requests("ADMIN")
        assert not can_purge_requests("PLANNER")

    def test_parse_role(self):
        assert parse_role("PLANNER") is Role.planner
        assert parse_role(Role.viewer) is Role.viewer
        assert parse_role("planner") is None
        assert parse_role(42) is None
