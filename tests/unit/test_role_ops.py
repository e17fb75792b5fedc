"""
Tests for Role-Management Authorization
=======================================

Tests which role may view, create, edit and delete principals of which role.
"""

import pytest

from shared.warden_core.role_ops import (
    RoleOpReason,
    RoleOperation,
    can_perform_role_op,
)
from shared.warden_core.roles import Role


class TestView:
    def test_view_own_rank_and_below(self):
        assert can_perform_role_op(Role.MANAGER, Role.MANAGER, RoleOperation.VIEW).allowed
        assert can_perform_role_op(Role.MANAGER, Role.BASE, RoleOperation.VIEW).allowed

    def test_view_above_denied(self):
        decision = can_perform_role_op(Role.MANAGER, Role.ADMIN, RoleOperation.VIEW)
        assert not decision.allowed
        assert decision.reason == RoleOpReason.INSUFFICIENT_RANK


class TestCreate:
    def test_manager_cannot_create_admin(self):
        decision = can_perform_role_op(Role.MANAGER, Role.ADMIN, RoleOperation.CREATE)
        assert not decision.allowed
        assert decision.reason == RoleOpReason.INSUFFICIENT_RANK

    def test_manager_cannot_create_peer(self):
        assert not can_perform_role_op(Role.MANAGER, Role.MANAGER, RoleOperation.CREATE)

    def test_admin_creates_below(self):
        assert can_perform_role_op(Role.ADMIN, Role.MANAGER, RoleOperation.CREATE)
        assert can_perform_role_op(Role.ADMIN, Role.BASE, RoleOperation.CREATE)

    def test_top_cannot_create_top(self):
        decision = can_perform_role_op(Role.TOP, Role.TOP, RoleOperation.CREATE)
        assert not decision.allowed
        assert decision.reason == RoleOpReason.PROTECTED_TARGET


class TestEdit:
    def test_strictly_above(self):
        assert can_perform_role_op(Role.ADMIN, Role.MANAGER, RoleOperation.EDIT)
        assert not can_perform_role_op(Role.ADMIN, Role.ADMIN, RoleOperation.EDIT)

    def test_top_edits_top(self):
        assert can_perform_role_op(Role.TOP, Role.TOP, RoleOperation.EDIT).allowed

    def test_base_edits_nobody(self):
        for target in Role:
            assert not can_perform_role_op(Role.BASE, target, RoleOperation.EDIT)


class TestDelete:
    @pytest.mark.parametrize("actor", list(Role))
    def test_top_is_never_deletable(self, actor):
        decision = can_perform_role_op(actor, Role.TOP, RoleOperation.DELETE)
        assert not decision.allowed
        assert decision.reason == RoleOpReason.PROTECTED_TARGET

    def test_top_deletes_admin(self):
        assert can_perform_role_op(Role.TOP, Role.ADMIN, RoleOperation.DELETE).allowed

    def test_peer_delete_denied(self):
        decision = can_perform_role_op(Role.ADMIN, Role.ADMIN, RoleOperation.DELETE)
        assert decision.reason == RoleOpReason.INSUFFICIENT_RANK


def test_decision_to_dict():
    decision = can_perform_role_op(Role.MANAGER, Role.ADMIN, RoleOperation.CREATE)
    assert decision.to_dict() == {
        "allowed": False,
        "operation": "create",
        "actor_role": "MANAGER",
        "target_role": "ADMIN",
        "reason": "insufficient_rank",
    }
