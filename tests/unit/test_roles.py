"""
Tests for Role Hierarchy and Privileges
=======================================

Tests the four-role ordering and the fixed role-privilege table.
"""

import pytest

from shared.warden_core.exceptions import InvalidRoleError
from shared.warden_core.roles import (
    Privilege,
    PrivilegeSet,
    Role,
    can_manage,
    has_privilege,
    manageable_roles,
    outranks,
    parse_role,
    privileges_of,
    rank,
)


class TestHierarchy:
    """Tests for the role comparator."""

    def test_ranks_are_strictly_ordered(self):
        assert rank(Role.TOP) > rank(Role.ADMIN) > rank(Role.MANAGER) > rank(Role.BASE)

    @pytest.mark.parametrize("a", list(Role))
    @pytest.mark.parametrize("b", list(Role))
    def test_comparison_is_total(self, a, b):
        """Exactly one of a>b, b>a, a==b holds for every pair."""
        outcomes = [outranks(a, b), outranks(b, a), a == b]
        assert outcomes.count(True) == 1

    def test_no_role_manages_itself(self):
        for role in Role:
            assert not can_manage(role, role)

    def test_manageable_roles(self):
        assert manageable_roles(Role.TOP) == [Role.ADMIN, Role.MANAGER, Role.BASE]
        assert manageable_roles(Role.ADMIN) == [Role.MANAGER, Role.BASE]
        assert manageable_roles(Role.MANAGER) == [Role.BASE]
        assert manageable_roles(Role.BASE) == []

    def test_parse_role_accepts_lowercase(self):
        assert parse_role("manager") == Role.MANAGER
        assert parse_role(Role.TOP) is Role.TOP

    def test_parse_role_rejects_unknown(self):
        with pytest.raises(InvalidRoleError) as exc_info:
            parse_role("OWNER")
        assert exc_info.value.code == "invalid_role"
        assert "TOP" in exc_info.value.details["allowed"]


class TestPrivileges:
    """Tests for the role-privilege table."""

    def test_top_holds_every_privilege(self):
        privileges = privileges_of(Role.TOP)
        assert privileges.granted() == frozenset(Privilege)

    def test_admin_privileges(self):
        privileges = privileges_of(Role.ADMIN)
        assert privileges.granted() == {
            Privilege.COMPANY_CONFIGURATION,
            Privilege.USER_MANAGEMENT,
            Privilege.BACKUP_RESTORE,
            Privilege.ADVANCED_REPORTS,
        }

    def test_manager_privileges(self):
        assert privileges_of(Role.MANAGER).granted() == {
            Privilege.USER_MANAGEMENT,
            Privilege.ADVANCED_REPORTS,
        }

    def test_base_has_nothing(self):
        assert privileges_of(Role.BASE) == PrivilegeSet()

    def test_full_audit_is_top_only(self):
        holders = [r for r in Role if has_privilege(r, Privilege.FULL_AUDIT)]
        assert holders == [Role.TOP]

    def test_to_dict_lists_all_eight_flags(self):
        flags = privileges_of(Role.MANAGER).to_dict()
        assert len(flags) == 8
        assert flags["user_management"] is True
        assert flags["security_configuration"] is False
