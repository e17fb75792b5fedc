"""
WARDEN - Module Permission Matrix
=================================

Modules, module actions, and the five-flag permission record granted to a
principal on a module.

Every write of a permission record must pass through normalize_permission()
or apply_toggle(), which enforce the implication invariant:

    administer  =>  view, create, edit, delete
    create | edit | delete | administer  =>  view

Readers never re-derive flags; they trust the stored record.

Author: WARDEN Development Team
Version: 1.0.0
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Mapping, Optional, Union

from .exceptions import InvalidModuleError


class Module(str, Enum):
    """Functional areas gated by module permissions."""

    DASHBOARD = "dashboard"
    BAR_MONITOR = "bar_monitor"
    BAR_SERVICE = "bar_service"
    KITCHEN_MONITOR = "kitchen_monitor"
    CASH_MANAGEMENT = "cash_management"
    CUSTOMERS = "customers"
    STAFF = "staff"
    PARTNERS = "partners"
    CONFIGURATION = "configuration"
    REPORTS = "reports"


class ModuleAction(str, Enum):
    """Actions a module permission can grant."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    ADMINISTER = "administer"


# Actions that imply VIEW when granted
WRITE_ACTIONS = frozenset({
    ModuleAction.CREATE,
    ModuleAction.EDIT,
    ModuleAction.DELETE,
    ModuleAction.ADMINISTER,
})


def parse_module(value: Union[str, Module]) -> Module:
    """Convert a boundary value to a Module."""
    if isinstance(value, Module):
        return value
    try:
        return Module(str(value).lower())
    except ValueError:
        raise InvalidModuleError(
            f"Unknown module: {value!r}",
            details={"value": str(value), "allowed": [m.value for m in Module]},
        ) from None


def parse_action(value: Union[str, ModuleAction]) -> ModuleAction:
    """Convert a boundary value to a ModuleAction."""
    if isinstance(value, ModuleAction):
        return value
    try:
        return ModuleAction(str(value).lower())
    except ValueError:
        raise InvalidModuleError(
            f"Unknown module action: {value!r}",
            details={"value": str(value), "allowed": [a.value for a in ModuleAction]},
        ) from None


@dataclass(frozen=True)
class ModulePermission:
    """Five action flags for one principal on one module."""

    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    administer: bool = False

    def allows(self, action: ModuleAction) -> bool:
        """Stored flag for an action, without implication."""
        return getattr(self, action.value)

    def is_consistent(self) -> bool:
        """True if the record satisfies the implication invariant."""
        if self.administer and not (self.view and self.create and self.edit and self.delete):
            return False
        if (self.create or self.edit or self.delete or self.administer) and not self.view:
            return False
        return True

    def is_empty(self) -> bool:
        return not any(self.to_dict().values())

    def to_dict(self) -> Dict[str, bool]:
        return {a.value: getattr(self, a.value) for a in ModuleAction}

    @classmethod
    def from_mapping(cls, flags: Mapping[str, bool]) -> "ModulePermission":
        """Build from a mapping, rejecting unknown keys."""
        unknown = set(flags) - {a.value for a in ModuleAction}
        if unknown:
            raise InvalidModuleError(
                f"Unknown permission flags: {sorted(unknown)}",
                details={"unknown": sorted(unknown)},
            )
        return cls(**{k: bool(v) for k, v in flags.items()})


# ============================================================
# Presets
# ============================================================


EMPTY_PERMISSION = ModulePermission()

READ_ONLY_PERMISSION = ModulePermission(view=True)

READ_WRITE_PERMISSION = ModulePermission(view=True, create=True, edit=True)

OPERATIONAL_PERMISSION = ModulePermission(
    view=True, create=True, edit=True, delete=True,
)

FULL_PERMISSION = ModulePermission(
    view=True, create=True, edit=True, delete=True, administer=True,
)


class PermissionPreset(str, Enum):
    """Named permission templates offered to user-management screens."""

    NONE = "none"
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"
    OPERATIONAL = "operational"
    FULL = "full"


PRESET_PERMISSIONS: Dict[PermissionPreset, ModulePermission] = {
    PermissionPreset.NONE: EMPTY_PERMISSION,
    PermissionPreset.READ_ONLY: READ_ONLY_PERMISSION,
    PermissionPreset.READ_WRITE: READ_WRITE_PERMISSION,
    PermissionPreset.OPERATIONAL: OPERATIONAL_PERMISSION,
    PermissionPreset.FULL: FULL_PERMISSION,
}


def full_permission_matrix() -> Dict[Module, ModulePermission]:
    """Full grant on every module."""
    return {module: FULL_PERMISSION for module in Module}


# ============================================================
# Write-side normalization
# ============================================================


def normalize_permission(permission: ModulePermission) -> ModulePermission:
    """
    Escalate a requested record until it satisfies the implication invariant.

    Granting administer grants everything; granting any write action
    grants view. Nothing is ever revoked here.
    """
    if permission.administer:
        return FULL_PERMISSION
    if permission.create or permission.edit or permission.delete:
        return replace(permission, view=True)
    return permission


def apply_toggle(
    current: Optional[ModulePermission],
    action: ModuleAction,
    value: bool,
) -> ModulePermission:
    """
    Set or clear one flag on a record and return the normalized result.

    Clearing view or administer clears the whole record, since every other
    flag depends on view and administer depends on all of them.
    Clearing create, edit or delete also drops administer.
    """
    current = current or EMPTY_PERMISSION

    if value:
        return normalize_permission(replace(current, **{action.value: True}))

    if action in (ModuleAction.VIEW, ModuleAction.ADMINISTER):
        return EMPTY_PERMISSION

    return normalize_permission(replace(current, **{action.value: False, "administer": False}))


__all__ = [
    "Module",
    "ModuleAction",
    "WRITE_ACTIONS",
    "parse_module",
    "parse_action",
    "ModulePermission",
    "EMPTY_PERMISSION",
    "READ_ONLY_PERMISSION",
    "READ_WRITE_PERMISSION",
    "OPERATIONAL_PERMISSION",
    "FULL_PERMISSION",
    "PermissionPreset",
    "PRESET_PERMISSIONS",
    "full_permission_matrix",
    "normalize_permission",
    "apply_toggle",
]
