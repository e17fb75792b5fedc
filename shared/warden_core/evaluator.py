"""
WARDEN - Permission Evaluator
=============================

Pure decision logic for module access.

Algorithm:
    1. Legacy full-admin flag or TOP role -> allow (full bypass)
    2. Otherwise use the stored ModulePermission; absent means all false
    3. Return the stored flag for the action

The evaluator does not derive view from other flags. That invariant is
upheld when records are written (see modules.normalize_permission).

Author: WARDEN Development Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from .categories import ConfigCategory, can_access_category
from .modules import Module, ModuleAction, ModulePermission
from .roles import Role


class PrincipalLike(Protocol):
    """Attributes the evaluator reads from a principal."""

    role: Role
    is_full_admin: bool


class DecisionCode(str, Enum):
    """Distinguishable authorization outcomes."""

    ALLOWED = "allowed"
    TENANT_MISMATCH = "tenant_mismatch"
    PRINCIPAL_NOT_FOUND = "principal_not_found"
    PRINCIPAL_INACTIVE = "principal_inactive"
    CREDENTIAL_CHANGE_REQUIRED = "credential_change_required"
    PERMISSION_DENIED = "permission_denied"
    CATEGORY_DENIED = "category_denied"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class AuthorizationResult:
    """Typed authorization outcome returned to callers."""

    allowed: bool
    code: DecisionCode
    module: Optional[Module] = None
    action: Optional[ModuleAction] = None
    category: Optional[ConfigCategory] = None
    bypass: bool = False
    redirect_hint: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "code": self.code.value,
            "module": self.module.value if self.module else None,
            "action": self.action.value if self.action else None,
            "category": self.category.value if self.category else None,
            "bypass": self.bypass,
            "redirect_hint": self.redirect_hint,
            "details": self.details,
        }

    @classmethod
    def deny(cls, code: DecisionCode, **kwargs) -> "AuthorizationResult":
        return cls(allowed=False, code=code, **kwargs)


def has_full_access(principal: PrincipalLike) -> bool:
    """Either the legacy full-admin flag or the TOP role grants full bypass."""
    return bool(principal.is_full_admin) or principal.role == Role.TOP


def evaluate_module_access(
    principal: PrincipalLike,
    permission: Optional[ModulePermission],
    module: Module,
    action: ModuleAction,
) -> AuthorizationResult:
    """Decide module access from the principal and its stored record."""
    if has_full_access(principal):
        return AuthorizationResult(
            allowed=True,
            code=DecisionCode.ALLOWED,
            module=module,
            action=action,
            bypass=True,
        )

    record = permission or ModulePermission()
    if record.allows(action):
        return AuthorizationResult(
            allowed=True,
            code=DecisionCode.ALLOWED,
            module=module,
            action=action,
        )

    return AuthorizationResult.deny(
        DecisionCode.PERMISSION_DENIED,
        module=module,
        action=action,
        details={"record_present": permission is not None},
    )


def evaluate_category_access(role: Role, category: ConfigCategory) -> AuthorizationResult:
    """Decide configuration category access from role alone."""
    if can_access_category(role, category):
        return AuthorizationResult(
            allowed=True,
            code=DecisionCode.ALLOWED,
            category=category,
        )
    return AuthorizationResult.deny(
        DecisionCode.CATEGORY_DENIED,
        category=category,
        details={"role": role.value},
    )


__all__ = [
    "PrincipalLike",
    "DecisionCode",
    "AuthorizationResult",
    "has_full_access",
    "evaluate_module_access",
    "evaluate_category_access",
]
