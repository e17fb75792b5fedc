"""
WARDEN - Role Hierarchy and Privileges
======================================

Defines the four ordered roles, the eight administrative privileges each role
carries, and the hierarchy comparisons used by role management.

This is the authoritative source for role-derived privileges. Privileges are
never stored per principal; they are always computed from the role.

Author: WARDEN Development Team
Version: 1.0.0
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, FrozenSet, List, Union

from .exceptions import InvalidRoleError


# ============================================================
# Roles
# ============================================================


class Role(str, Enum):
    """Principal roles, highest first."""

    TOP = "TOP"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    BASE = "BASE"


ROLE_RANK: Dict[Role, int] = {
    Role.TOP: 4,
    Role.ADMIN: 3,
    Role.MANAGER: 2,
    Role.BASE: 1,
}


def parse_role(value: Union[str, Role]) -> Role:
    """
    Convert a boundary value to a Role.

    Raises:
        InvalidRoleError: If the value is not one of the four roles
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).upper())
    except ValueError:
        raise InvalidRoleError(
            f"Unknown role: {value!r}",
            details={"value": str(value), "allowed": [r.value for r in Role]},
        ) from None


def rank(role: Role) -> int:
    """Numeric rank of a role (TOP=4 ... BASE=1)."""
    return ROLE_RANK[role]


def outranks(a: Role, b: Role) -> bool:
    """True if role a sits strictly above role b."""
    return ROLE_RANK[a] > ROLE_RANK[b]


def can_manage(a: Role, b: Role) -> bool:
    """
    True if role a may manage principals holding role b.

    Strict descent only. The TOP-edits-TOP exception belongs to
    role-operation checks, not to this comparison.
    """
    return ROLE_RANK[a] > ROLE_RANK[b]


def manageable_roles(role: Role) -> List[Role]:
    """Roles strictly below the given role, highest first."""
    return [r for r in Role if can_manage(role, r)]


# ============================================================
# Privileges
# ============================================================


class Privilege(str, Enum):
    """Coarse administrative capabilities derived from role."""

    COMPANY_CONFIGURATION = "company_configuration"
    USER_MANAGEMENT = "user_management"
    SECURITY_CONFIGURATION = "security_configuration"
    EXTERNAL_INTEGRATION = "external_integration"
    BACKUP_RESTORE = "backup_restore"
    ADVANCED_REPORTS = "advanced_reports"
    FULL_AUDIT = "full_audit"
    SYSTEM_CONFIGURATION = "system_configuration"


@dataclass(frozen=True)
class PrivilegeSet:
    """Eight independent privilege flags."""

    company_configuration: bool = False
    user_management: bool = False
    security_configuration: bool = False
    external_integration: bool = False
    backup_restore: bool = False
    advanced_reports: bool = False
    full_audit: bool = False
    system_configuration: bool = False

    @classmethod
    def from_privileges(cls, granted: FrozenSet[Privilege]) -> "PrivilegeSet":
        return cls(**{p.value: True for p in granted})

    def has(self, privilege: Privilege) -> bool:
        """Check a single privilege."""
        return getattr(self, privilege.value)

    def granted(self) -> FrozenSet[Privilege]:
        """Privileges that are set."""
        return frozenset(p for p in Privilege if self.has(p))

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ============================================================
# Role Privilege Mappings
# ============================================================


ROLE_PRIVILEGES: Dict[Role, PrivilegeSet] = {
    Role.TOP: PrivilegeSet.from_privileges(frozenset(Privilege)),

    Role.ADMIN: PrivilegeSet(
        company_configuration=True,
        user_management=True,
        backup_restore=True,
        advanced_reports=True,
    ),

    Role.MANAGER: PrivilegeSet(
        user_management=True,
        advanced_reports=True,
    ),

    Role.BASE: PrivilegeSet(),
}


def privileges_of(role: Role) -> PrivilegeSet:
    """Privilege set for a role. Pure lookup over the fixed table."""
    return ROLE_PRIVILEGES[role]


def has_privilege(role: Role, privilege: Privilege) -> bool:
    """Check if a role carries a privilege."""
    return ROLE_PRIVILEGES[role].has(privilege)


__all__ = [
    "Role",
    "ROLE_RANK",
    "parse_role",
    "rank",
    "outranks",
    "can_manage",
    "manageable_roles",
    "Privilege",
    "PrivilegeSet",
    "ROLE_PRIVILEGES",
    "privileges_of",
    "has_privilege",
]
