"""
WARDEN - Anomaly Monitoring

Loads a tenant's recent audit entries and runs the anomaly scanner over them
in the tenant's local time zone.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.anomaly_scanner import AnomalyScanner, Finding
from shared.warden_core.constants import DEFAULT_SCAN_WINDOW
from shared.warden_core.exceptions import TenantNotFoundError
from warden.api.access.audit import AuditTrail
from warden.api.access.tenancy import tenant_zone
from warden.api.db.models import Tenant, utcnow

logger = logging.getLogger(__name__)


async def scan_for_anomalies(
    db: AsyncSession,
    tenant_id: UUID,
    window: timedelta = DEFAULT_SCAN_WINDOW,
    now: Optional[datetime] = None,
    scanner: Optional[AnomalyScanner] = None,
) -> List[Finding]:
    """
    Scan a tenant's audit log for suspicious patterns. Read-only.

    Raises:
        TenantNotFoundError: If the tenant does not exist
    """
    result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
    tenant = result.scalar_one_or_none()
    if tenant is None:
        raise TenantNotFoundError(
            "Tenant not found",
            details={"tenant_id": str(tenant_id)},
        )

    scanner = scanner or AnomalyScanner()
    now = now or utcnow()

    entries = await AuditTrail(db, tenant_id).since(now - scanner.lookback(window))
    findings = scanner.scan(entries, now=now, tz=tenant_zone(tenant.timezone), window=window)

    logger.debug(
        "Scanned %d audit entries for tenant %s: %d finding(s)",
        len(entries), tenant_id, len(findings),
    )
    return findings
