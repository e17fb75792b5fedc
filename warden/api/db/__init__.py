"""Database module."""

from warden.api.db.session import get_db, init_db, close_db, get_session_maker
from warden.api.db.models import (
    Base,
    Tenant,
    Principal,
    ModulePermissionRecord,
    TenantConfiguration,
    AuditLogRecord,
)

__all__ = [
    "get_db",
    "init_db",
    "close_db",
    "get_session_maker",
    "Base",
    "Tenant",
    "Principal",
    "ModulePermissionRecord",
    "TenantConfiguration",
    "AuditLogRecord",
]
