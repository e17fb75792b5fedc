"""
WARDEN - Role-Management Authorization
======================================

Decides whether a principal holding one role may view, create, edit or delete
a principal holding another role. Denials carry a machine-readable reason so
user-management screens can tell "insufficient rank" from "protected target".

Rules:
    view    rank(actor) >= rank(target)
    create  strict descent; a TOP target is only provisioned by bootstrap
    edit    strict descent, or TOP editing TOP
    delete  strict descent; a TOP target is never deletable
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .roles import Role, can_manage, outranks, rank


class RoleOperation(str, Enum):
    """Role-management operations."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class RoleOpReason(str, Enum):
    """Why a role operation was refused."""

    INSUFFICIENT_RANK = "insufficient_rank"
    PROTECTED_TARGET = "protected_target"
    ALREADY_BOOTSTRAPPED = "already_bootstrapped"


@dataclass(frozen=True)
class RoleOpDecision:
    """Outcome of a role-operation check."""

    allowed: bool
    operation: RoleOperation
    actor_role: Role
    target_role: Role
    reason: Optional[RoleOpReason] = None

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "operation": self.operation.value,
            "actor_role": self.actor_role.value,
            "target_role": self.target_role.value,
            "reason": self.reason.value if self.reason else None,
        }


def _allow(op: RoleOperation, actor: Role, target: Role) -> RoleOpDecision:
    return RoleOpDecision(True, op, actor, target)


def _deny(op: RoleOperation, actor: Role, target: Role, reason: RoleOpReason) -> RoleOpDecision:
    return RoleOpDecision(False, op, actor, target, reason)


def can_perform_role_op(
    actor_role: Role,
    target_role: Role,
    op: RoleOperation,
) -> RoleOpDecision:
    """Check a role-management operation against the hierarchy."""
    if op == RoleOperation.VIEW:
        if rank(actor_role) >= rank(target_role):
            return _allow(op, actor_role, target_role)
        return _deny(op, actor_role, target_role, RoleOpReason.INSUFFICIENT_RANK)

    if op == RoleOperation.CREATE:
        if can_manage(actor_role, target_role):
            return _allow(op, actor_role, target_role)
        if actor_role == Role.TOP and target_role == Role.TOP:
            return _deny(op, actor_role, target_role, RoleOpReason.PROTECTED_TARGET)
        return _deny(op, actor_role, target_role, RoleOpReason.INSUFFICIENT_RANK)

    if op == RoleOperation.EDIT:
        if outranks(actor_role, target_role):
            return _allow(op, actor_role, target_role)
        if actor_role == Role.TOP and target_role == Role.TOP:
            return _allow(op, actor_role, target_role)
        return _deny(op, actor_role, target_role, RoleOpReason.INSUFFICIENT_RANK)

    if op == RoleOperation.DELETE:
        if target_role == Role.TOP:
            return _deny(op, actor_role, target_role, RoleOpReason.PROTECTED_TARGET)
        if outranks(actor_role, target_role):
            return _allow(op, actor_role, target_role)
        return _deny(op, actor_role, target_role, RoleOpReason.INSUFFICIENT_RANK)

    raise ValueError(f"Unsupported role operation: {op!r}")


__all__ = [
    "RoleOperation",
    "RoleOpReason",
    "RoleOpDecision",
    "can_perform_role_op",
]
