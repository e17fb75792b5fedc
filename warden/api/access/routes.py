"""
Access Routes

Audit log endpoints (query, statistics, export, anomalies, purge) and
decision-check endpoints. Audit endpoints require the full_audit privilege.
"""

from datetime import datetime, timedelta
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.audit_events import AuditAction
from shared.warden_core.roles import Privilege
from warden.api.access.audit import AuditLogger, AuditQuery, AuditTrail
from warden.api.access.engine import AuthorizationEngine, Identity
from warden.api.access.monitoring import scan_for_anomalies
from warden.api.access.schemas import (
    AccessCheckRequest,
    AnomalyReportResponse,
    AuditLogEntryResponse,
    AuditLogListResponse,
    AuditStatisticsResponse,
    CategoryCheckRequest,
    DecisionResponse,
    FindingResponse,
    PurgeResponse,
    RoleCheckRequest,
    RoleCheckResponse,
)
from warden.api.config import settings
from warden.api.db.models import Principal, utcnow
from warden.api.db.session import get_db
from warden.api.dependencies import (
    get_audit_logger,
    get_authorization_engine,
    get_current_principal,
    get_identity,
    require_privilege,
)


router = APIRouter()
checks_router = APIRouter()

require_full_audit = require_privilege(Privilege.FULL_AUDIT)


# ==================== Audit Log ====================


@router.get(
    "/logs",
    response_model=AuditLogListResponse,
    summary="Query audit log",
)
async def list_audit_logs(
    principal: Principal = Depends(require_full_audit),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    principal_id: Optional[UUID] = Query(None),
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    origin_address: Optional[str] = Query(None),
    start_time: Optional[datetime] = Query(None),
    end_time: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None, description="Search action and resource"),
    limit: int = Query(settings.AUDIT_PAGE_SIZE, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> AuditLogListResponse:
    """Paginated audit entries of the caller's tenant, newest first."""
    query = AuditQuery(
        principal_id=principal_id,
        action=action,
        resource=resource,
        origin_address=origin_address,
        start_time=start_time,
        end_time=end_time,
        search=search,
        limit=limit,
        offset=offset,
    )
    page = await AuditTrail(db, principal.tenant_id).query(query)

    audit.log_event(
        principal.tenant_id,
        AuditAction.AUDIT_LOG_ACCESSED,
        principal_id=principal.id,
        resource="audit_logs",
        details={"returned": len(page.entries), "offset": page.offset},
        origin_address=identity.origin_address,
        user_agent=identity.user_agent,
    )

    return AuditLogListResponse(
        entries=[AuditLogEntryResponse.model_validate(e) for e in page.entries],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get(
    "/statistics",
    response_model=AuditStatisticsResponse,
    summary="Audit log statistics",
)
async def get_audit_statistics(
    principal: Principal = Depends(require_full_audit),
    db: AsyncSession = Depends(get_db),
    top: int = Query(5, ge=1, le=50),
) -> AuditStatisticsResponse:
    stats = await AuditTrail(db, principal.tenant_id).statistics(top=top)
    return AuditStatisticsResponse(**stats)


@router.get(
    "/export",
    summary="Export audit log",
)
async def export_audit_logs(
    start_time: datetime,
    end_time: datetime,
    principal: Principal = Depends(require_full_audit),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    format: Literal["json", "csv"] = Query("json"),
    include_hash: bool = Query(True),
) -> Response:
    """Export a period as JSON (with SHA-256 integrity hash) or CSV."""
    if end_time < start_time:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_time must not be before start_time",
        )

    content = await AuditTrail(db, principal.tenant_id).export(
        start_time,
        end_time,
        format=format,
        include_hash=include_hash,
        limit=settings.AUDIT_EXPORT_LIMIT,
    )

    audit.log_event(
        principal.tenant_id,
        AuditAction.AUDIT_EXPORTED,
        principal_id=principal.id,
        resource="audit_logs",
        details={
            "format": format,
            "period_start": start_time,
            "period_end": end_time,
        },
        origin_address=identity.origin_address,
        user_agent=identity.user_agent,
    )

    media_type = "application/json" if format == "json" else "text/csv"
    filename = f"audit_{principal.tenant_id}_{start_time:%Y%m%d}_{end_time:%Y%m%d}.{format}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/anomalies",
    response_model=AnomalyReportResponse,
    summary="Scan audit log for anomalies",
)
async def get_anomalies(
    principal: Principal = Depends(require_full_audit),
    db: AsyncSession = Depends(get_db),
    window_hours: float = Query(1.0, gt=0, le=24 * 7),
) -> AnomalyReportResponse:
    now = utcnow()
    findings = await scan_for_anomalies(
        db, principal.tenant_id, window=timedelta(hours=window_hours), now=now,
    )
    return AnomalyReportResponse(
        tenant_id=principal.tenant_id,
        scanned_at=now,
        window_hours=window_hours,
        findings=[
            FindingResponse(
                category=f.category.value,
                description=f.description,
                severity=f.severity.value,
                count=f.count,
                event_ids=[e.event_id for e in f.entries],
            )
            for f in findings
        ],
    )


@router.delete(
    "/logs",
    response_model=PurgeResponse,
    summary="Purge old audit entries",
)
async def purge_audit_logs(
    older_than_days: int = Query(..., ge=1),
    principal: Principal = Depends(require_full_audit),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> PurgeResponse:
    removed = await AuditTrail(db, principal.tenant_id, audit).purge(principal, older_than_days)
    return PurgeResponse(removed=removed, older_than_days=older_than_days)


# ==================== Decision checks ====================


@checks_router.post(
    "/roles/check",
    response_model=RoleCheckResponse,
    summary="Check a role-management operation",
)
async def check_role_operation(
    request: RoleCheckRequest,
    principal: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> RoleCheckResponse:
    decision = engine.check_role_operation(
        principal, request.target_role, request.operation, identity
    )
    return RoleCheckResponse(**decision.to_dict())


@checks_router.post(
    "/access/check",
    response_model=DecisionResponse,
    summary="Check a module permission",
)
async def check_module_access(
    request: AccessCheckRequest,
    identity: Identity = Depends(get_identity),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> DecisionResponse:
    """Decision for the caller; denials are returned, not raised."""
    result = await engine.authorize(identity, request.module, request.action, request.resource)
    return DecisionResponse(**result.to_dict())


@checks_router.post(
    "/access/category",
    response_model=DecisionResponse,
    summary="Check configuration category access",
)
async def check_category_access(
    request: CategoryCheckRequest,
    identity: Identity = Depends(get_identity),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> DecisionResponse:
    result = await engine.can_access_category(identity, request.category)
    return DecisionResponse(**result.to_dict())
