"""
WARDEN - Centralized Exception Hierarchy
========================================

Structured exception types for the authorization engine.

Exception Categories:
    - TenantIsolationError: Cross-tenant references and tenant mismatches
    - CredentialError: Credential lifecycle and password policy failures
    - AccessDeniedError: Permission and role-operation denials
    - BootstrapError: First-principal provisioning failures
    - ConfigurationError: Invalid tenant configuration payloads
    - PersistenceError: Storage lookups and write conflicts

Decision paths (authorize, category gate, role checks) return typed results
rather than raising; these exceptions are raised by the mutating services.

Author: WARDEN Development Team
Version: 1.0.0
"""

from typing import Any, Dict, List, Optional


class WardenError(Exception):
    """
    Base exception for all WARDEN errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable code for programmatic handling
        details: Optional dict with additional context
        recoverable: Whether the operation can be retried unchanged
    """

    recoverable: bool = False
    default_code: str = "warden_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API error payloads."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# BOUNDARY ERRORS
# =============================================================================


class InvalidRoleError(WardenError):
    """Role value outside the fixed enumeration."""

    default_code = "invalid_role"


class InvalidModuleError(WardenError):
    """Module or action value outside the fixed enumeration."""

    default_code = "invalid_module"


class InvalidCategoryError(WardenError):
    """Configuration category outside the fixed enumeration."""

    default_code = "invalid_category"


# =============================================================================
# TENANT ISOLATION ERRORS
# =============================================================================


class TenantIsolationError(WardenError):
    """Base exception for tenant isolation violations."""

    default_code = "tenant_isolation"


class TenantMismatchError(TenantIsolationError):
    """Claimed tenant does not match the principal's tenant."""

    default_code = "tenant_mismatch"

    def __init__(
        self,
        message: str,
        claimed_tenant_id: Optional[str] = None,
        actual_tenant_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.claimed_tenant_id = claimed_tenant_id
        self.actual_tenant_id = actual_tenant_id


class CrossTenantReferenceError(TenantIsolationError):
    """An entity from another tenant was passed to a tenant-scoped operation."""

    default_code = "cross_tenant_reference"


# =============================================================================
# CREDENTIAL ERRORS
# =============================================================================


class CredentialError(WardenError):
    """Base exception for credential lifecycle errors."""

    default_code = "credential_error"


class CredentialChangeRequiredError(CredentialError):
    """Principal holds a provisional credential and must replace it first."""

    default_code = "credential_change_required"
    redirect_hint = "change_credential"


class PasswordPolicyError(CredentialError):
    """New credential violates the tenant password policy."""

    default_code = "password_policy_violation"
    recoverable = True

    def __init__(self, message: str, violations: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []
        self.details.setdefault("violations", self.violations)


class InvalidCredentialError(CredentialError):
    """Current credential did not verify."""

    default_code = "invalid_credential"
    recoverable = True


# =============================================================================
# ACCESS ERRORS
# =============================================================================


class AccessDeniedError(WardenError):
    """Base exception for authorization denials raised by services."""

    default_code = "permission_denied"


class PermissionDeniedError(AccessDeniedError):
    """Principal lacks a module permission, privilege or category access."""

    def __init__(
        self,
        message: str,
        module: Optional[str] = None,
        action: Optional[str] = None,
        category: Optional[str] = None,
        privilege: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.module = module
        self.action = action
        self.category = category
        self.privilege = privilege
        for key, value in (
            ("module", module),
            ("action", action),
            ("category", category),
            ("privilege", privilege),
        ):
            if value is not None:
                self.details.setdefault(key, value)


class RoleOperationDeniedError(AccessDeniedError):
    """Role-management operation refused by the hierarchy rules."""

    default_code = "role_operation_denied"

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason
        if reason is not None:
            self.details.setdefault("reason", reason)


class PrincipalInactiveError(AccessDeniedError):
    """Principal status is not active."""

    default_code = "principal_inactive"


class PrincipalNotFoundError(AccessDeniedError):
    """No principal exists for the asserted identity within the tenant."""

    default_code = "principal_not_found"


# =============================================================================
# BOOTSTRAP ERRORS
# =============================================================================


class BootstrapError(WardenError):
    """Base exception for first-principal provisioning."""

    default_code = "bootstrap_failed"


class AlreadyBootstrappedError(BootstrapError):
    """Tenant already has a first principal."""

    default_code = "already_bootstrapped"


class TenantNotFoundError(BootstrapError):
    """Tenant to bootstrap does not exist."""

    default_code = "tenant_not_found"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(WardenError):
    """Base exception for tenant configuration errors."""

    default_code = "configuration_error"


class InvalidConfigError(ConfigurationError):
    """Configuration payload failed validation."""

    default_code = "invalid_configuration"
    recoverable = True


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================


class PersistenceError(WardenError):
    """Storage lookup or write failed; decisions degrade to deny."""

    default_code = "lookup_failed"
    recoverable = True


class WriteConflictError(PersistenceError):
    """Concurrent write conflict."""

    default_code = "write_conflict"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def is_recoverable(error: Exception) -> bool:
    """
    Determine if an error is potentially recoverable.

    Recoverable errors can be retried after a delay or corrected input.
    """
    if hasattr(error, "recoverable"):
        return error.recoverable

    return not isinstance(error, (SystemExit, KeyboardInterrupt, MemoryError))


def is_security_relevant(error: Exception) -> bool:
    """
    Determine if an error should be surfaced to security monitoring.

    Tenant isolation violations indicate a programming error or an attack.
    """
    return isinstance(error, TenantIsolationError)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    # Base
    "WardenError",
    # Boundary
    "InvalidRoleError",
    "InvalidModuleError",
    "InvalidCategoryError",
    # Tenant
    "TenantIsolationError",
    "TenantMismatchError",
    "CrossTenantReferenceError",
    # Credential
    "CredentialError",
    "CredentialChangeRequiredError",
    "PasswordPolicyError",
    "InvalidCredentialError",
    # Access
    "AccessDeniedError",
    "PermissionDeniedError",
    "RoleOperationDeniedError",
    "PrincipalInactiveError",
    "PrincipalNotFoundError",
    # Bootstrap
    "BootstrapError",
    "AlreadyBootstrappedError",
    "TenantNotFoundError",
    # Config
    "ConfigurationError",
    "InvalidConfigError",
    # Persistence
    "PersistenceError",
    "WriteConflictError",
    # Helpers
    "is_recoverable",
    "is_security_relevant",
]
