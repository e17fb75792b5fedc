"""
WARDEN - Audit Action Codes
===========================

Action codes recorded in the audit log and their severity. Codes are plain
strings in storage so that external collaborators can record business-domain
events (e.g. "DELETE" from an inventory screen) without extending this enum.
"""

from enum import Enum
from typing import Dict, Union


class AuditAction(str, Enum):
    """Authorization-relevant audit action codes."""

    # Authentication
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    FAILED_LOGIN = "FAILED_LOGIN"

    # Authorization decisions
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_DENIED = "ACCESS_DENIED"
    CATEGORY_DENIED = "CATEGORY_DENIED"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    PRINCIPAL_INACTIVE = "PRINCIPAL_INACTIVE"
    PROVISIONAL_CREDENTIAL_BLOCKED = "PROVISIONAL_CREDENTIAL_BLOCKED"
    ROLE_OPERATION_DENIED = "ROLE_OPERATION_DENIED"

    # Credential lifecycle
    CREDENTIAL_CHANGED = "CREDENTIAL_CHANGED"
    PROVISIONAL_CREDENTIAL_RESOLVED = "PROVISIONAL_CREDENTIAL_RESOLVED"
    CREDENTIAL_RESET = "CREDENTIAL_RESET"

    # Principal management
    PRINCIPAL_CREATED = "PRINCIPAL_CREATED"
    PRINCIPAL_UPDATED = "PRINCIPAL_UPDATED"
    PRINCIPAL_DELETED = "PRINCIPAL_DELETED"
    ROLE_CHANGED = "ROLE_CHANGED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PERMISSION_CHANGED = "PERMISSION_CHANGED"

    # Generic deletion reported by business modules
    DELETE = "DELETE"

    # Configuration
    CONFIG_CHANGED = "CONFIG_CHANGED"
    CONFIG_SECURITY_CHANGED = "CONFIG_SECURITY_CHANGED"

    # Tenant lifecycle
    TENANT_INITIALIZED = "TENANT_INITIALIZED"

    # Audit log access
    AUDIT_LOG_ACCESSED = "AUDIT_LOG_ACCESSED"
    AUDIT_EXPORTED = "AUDIT_EXPORTED"
    AUDIT_PURGED = "AUDIT_PURGED"


class AuditSeverity(str, Enum):
    """Severity level of audit event."""

    LOW = "low"           # Routine operations
    MEDIUM = "medium"     # Notable actions
    HIGH = "high"         # Sensitive actions
    CRITICAL = "critical" # Isolation breaches


# Actions counted by the mass-deletion rule
DELETE_ACTIONS = frozenset({
    AuditAction.DELETE.value,
    AuditAction.PRINCIPAL_DELETED.value,
})

# Actions ignored by the off-hours rule
SESSION_ACTIONS = frozenset({
    AuditAction.LOGIN.value,
    AuditAction.LOGOUT.value,
})

CONFIG_ACTION_PREFIX = "CONFIG_"


EVENT_SEVERITY: Dict[AuditAction, AuditSeverity] = {
    # Low severity - routine operations
    AuditAction.LOGIN: AuditSeverity.LOW,
    AuditAction.LOGOUT: AuditSeverity.LOW,
    AuditAction.ACCESS_GRANTED: AuditSeverity.LOW,
    AuditAction.AUDIT_LOG_ACCESSED: AuditSeverity.LOW,

    # Medium severity - notable actions
    AuditAction.FAILED_LOGIN: AuditSeverity.MEDIUM,
    AuditAction.ACCESS_DENIED: AuditSeverity.MEDIUM,
    AuditAction.CATEGORY_DENIED: AuditSeverity.MEDIUM,
    AuditAction.PRINCIPAL_INACTIVE: AuditSeverity.MEDIUM,
    AuditAction.PROVISIONAL_CREDENTIAL_BLOCKED: AuditSeverity.MEDIUM,
    AuditAction.ROLE_OPERATION_DENIED: AuditSeverity.MEDIUM,
    AuditAction.PRINCIPAL_CREATED: AuditSeverity.MEDIUM,
    AuditAction.PRINCIPAL_UPDATED: AuditSeverity.MEDIUM,
    AuditAction.CONFIG_CHANGED: AuditSeverity.MEDIUM,
    AuditAction.DELETE: AuditSeverity.MEDIUM,
    AuditAction.TENANT_INITIALIZED: AuditSeverity.MEDIUM,

    # High severity - sensitive actions
    AuditAction.CREDENTIAL_CHANGED: AuditSeverity.HIGH,
    AuditAction.PROVISIONAL_CREDENTIAL_RESOLVED: AuditSeverity.HIGH,
    AuditAction.CREDENTIAL_RESET: AuditSeverity.HIGH,
    AuditAction.PRINCIPAL_DELETED: AuditSeverity.HIGH,
    AuditAction.ROLE_CHANGED: AuditSeverity.HIGH,
    AuditAction.STATUS_CHANGED: AuditSeverity.HIGH,
    AuditAction.PERMISSION_CHANGED: AuditSeverity.HIGH,
    AuditAction.CONFIG_SECURITY_CHANGED: AuditSeverity.HIGH,
    AuditAction.AUDIT_EXPORTED: AuditSeverity.HIGH,
    AuditAction.AUDIT_PURGED: AuditSeverity.HIGH,

    # Critical severity - isolation breaches
    AuditAction.TENANT_MISMATCH: AuditSeverity.CRITICAL,
}


def action_code(action: Union[str, AuditAction]) -> str:
    """Storage form of an action code."""
    if isinstance(action, AuditAction):
        return action.value
    return str(action)


def get_event_severity(action: Union[str, AuditAction]) -> AuditSeverity:
    """Severity for an action code; unknown codes are MEDIUM."""
    try:
        return EVENT_SEVERITY.get(AuditAction(action_code(action)), AuditSeverity.MEDIUM)
    except ValueError:
        return AuditSeverity.MEDIUM


def is_delete_action(action: str) -> bool:
    return action in DELETE_ACTIONS


def is_config_action(action: str) -> bool:
    return action.startswith(CONFIG_ACTION_PREFIX)


__all__ = [
    "AuditAction",
    "AuditSeverity",
    "DELETE_ACTIONS",
    "SESSION_ACTIONS",
    "CONFIG_ACTION_PREFIX",
    "EVENT_SEVERITY",
    "action_code",
    "get_event_severity",
    "is_delete_action",
    "is_config_action",
]
