"""
Tenant Routes

Tenant registration and first-principal bootstrap. These endpoints run before
any principal exists, so they take no identity headers.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from warden.api.access.audit import AuditLogger
from warden.api.bootstrap.schemas import (
    BootstrapResponse,
    FirstPrincipalDraft,
    TenantRegistration,
    TenantResponse,
)
from warden.api.bootstrap.service import BootstrapService
from warden.api.db.models import Tenant
from warden.api.db.session import get_db
from warden.api.dependencies import get_audit_logger


router = APIRouter()


@router.post(
    "",
    response_model=BootstrapResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a tenant",
)
async def register_tenant(
    registration: TenantRegistration,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> BootstrapResponse:
    """
    Create a tenant together with its first principal.

    The first principal gets the TOP role, full permissions on every module
    and the default configuration for every category.
    """
    tenant, principal = await BootstrapService(db, audit).register_tenant(registration)
    return BootstrapResponse(
        tenant=TenantResponse.model_validate(tenant),
        principal_id=principal.id,
        role=principal.role,
    )


@router.post(
    "/{tenant_id}/bootstrap",
    response_model=BootstrapResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Bootstrap the first principal of a tenant",
)
async def bootstrap_first_principal(
    tenant_id: UUID,
    draft: FirstPrincipalDraft,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> BootstrapResponse:
    """Succeeds once per tenant; later attempts get 409 already_bootstrapped."""
    principal = await BootstrapService(db, audit).bootstrap_first_principal(tenant_id, draft)
    tenant = await db.get(Tenant, tenant_id)
    return BootstrapResponse(
        tenant=TenantResponse.model_validate(tenant),
        principal_id=principal.id,
        role=principal.role,
    )
