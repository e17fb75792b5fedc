# WARDEN Core - Authorization Logic
"""
Core authorization logic for the WARDEN engine. No I/O happens here.

Modules:
    constants: Fixed policy values (TTL, anomaly thresholds, password defaults)
    exceptions: Centralized exception hierarchy
    roles: Role hierarchy and role-derived privileges
    modules: Module permission matrix and write-side normalization
    categories: Configuration category gate
    role_ops: Role-management authorization
    evaluator: Module and category decisions
    credentials: Credential lifecycle and password policy
    privilege_cache: Sharded TTL cache of role-derived privileges
    audit_events: Audit action codes and severities
    anomaly_scanner: Heuristics over recent audit entries
"""

from .constants import (
    VERSION,
    SYSTEM_NAME,
    PRIVILEGE_CACHE_TTL_SEC,
)

from .exceptions import (
    WardenError,
    InvalidRoleError,
    TenantMismatchError,
    CrossTenantReferenceError,
    CredentialChangeRequiredError,
    PasswordPolicyError,
    PermissionDeniedError,
    RoleOperationDeniedError,
    AlreadyBootstrappedError,
    PersistenceError,
    is_recoverable,
)

from .roles import (
    Role,
    Privilege,
    PrivilegeSet,
    ROLE_PRIVILEGES,
    parse_role,
    privileges_of,
    outranks,
    can_manage,
    manageable_roles,
)

from .modules import (
    Module,
    ModuleAction,
    ModulePermission,
    PermissionPreset,
    FULL_PERMISSION,
    normalize_permission,
    apply_toggle,
)

from .categories import (
    ConfigCategory,
    can_access_category,
    accessible_categories,
)

from .role_ops import (
    RoleOperation,
    RoleOpReason,
    RoleOpDecision,
    can_perform_role_op,
)

from .evaluator import (
    DecisionCode,
    AuthorizationResult,
    has_full_access,
    evaluate_module_access,
    evaluate_category_access,
)

from .credentials import (
    CredentialState,
    SessionAction,
    PasswordPolicy,
    credential_state,
    is_blocked_by_credential,
)

from .privilege_cache import (
    CachedPrivileges,
    PrivilegeCache,
)

from .audit_events import (
    AuditAction,
    AuditSeverity,
    get_event_severity,
)

from .anomaly_scanner import (
    FindingCategory,
    Finding,
    AnomalyScanner,
)
