"""
WARDEN - Tenant Isolation Guard

Every tenant-scoped service works through a TenantScope. Claimed tenants are
compared against the principal's stored tenant before anything else, and
entities from another tenant passed into a scope are rejected outright.
"""

import logging
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Any, Optional, TypeVar
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.warden_core.exceptions import CrossTenantReferenceError, TenantMismatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def tenant_zone(name: Optional[str]) -> tzinfo:
    """Resolve a tenant time zone name; unknown names fall back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using UTC", name)
        return timezone.utc


def tenant_matches(principal: Any, claimed_tenant_id: UUID) -> bool:
    """True if the claimed tenant is the principal's stored tenant."""
    return principal.tenant_id == claimed_tenant_id


def ensure_tenant_claim(principal: Any, claimed_tenant_id: UUID) -> None:
    """
    Raise if the claimed tenant differs from the principal's.

    Raises:
        TenantMismatchError: On mismatch
    """
    if not tenant_matches(principal, claimed_tenant_id):
        logger.warning(
            "Tenant mismatch for principal %s: claimed %s, actual %s",
            principal.id, claimed_tenant_id, principal.tenant_id,
        )
        raise TenantMismatchError(
            "Principal does not belong to the claimed tenant",
            claimed_tenant_id=str(claimed_tenant_id),
            actual_tenant_id=str(principal.tenant_id),
        )


@dataclass(frozen=True)
class TenantScope:
    """The single tenant a service call operates on."""

    tenant_id: UUID

    def ensure(self, entity: T, kind: Optional[str] = None) -> T:
        """
        Return the entity if it belongs to this tenant.

        Raises:
            CrossTenantReferenceError: If it belongs to another tenant
        """
        entity_tenant = getattr(entity, "tenant_id", None)
        if entity_tenant != self.tenant_id:
            kind = kind or type(entity).__name__
            logger.error(
                "Cross-tenant reference: %s from tenant %s used in tenant %s",
                kind, entity_tenant, self.tenant_id,
            )
            raise CrossTenantReferenceError(
                f"{kind} belongs to another tenant",
                details={"scope_tenant_id": str(self.tenant_id), "kind": kind},
            )
        return entity

    @classmethod
    def of(cls, principal: Any) -> "TenantScope":
        return cls(tenant_id=principal.tenant_id)
