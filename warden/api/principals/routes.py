"""
Principal Routes

Principal management within the caller's tenant. Each route resolves the
acting principal; the service applies the privilege and role-hierarchy rules.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.evaluator import has_full_access
from shared.warden_core.modules import Module
from shared.warden_core.privilege_cache import PrivilegeCache
from warden.api.access.audit import AuditLogger
from warden.api.access.engine import Identity
from warden.api.credentials.service import CredentialService
from warden.api.db.models import Principal
from warden.api.db.session import get_db
from warden.api.dependencies import (
    get_audit_logger,
    get_current_principal,
    get_identity,
    get_privilege_cache,
)
from warden.api.principals.schemas import (
    CredentialResetResponse,
    InviteResponse,
    PermissionFlags,
    PermissionMatrixResponse,
    PermissionToggleRequest,
    PresetRequest,
    PrincipalInvite,
    PrincipalListResponse,
    PrincipalResponse,
    RoleChangeRequest,
    StatusChangeRequest,
)
from warden.api.principals.service import PrincipalService


router = APIRouter()


def get_principal_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    cache: PrivilegeCache = Depends(get_privilege_cache),
) -> PrincipalService:
    return PrincipalService(db, audit, cache)


# ==================== Principals ====================


@router.get(
    "",
    response_model=PrincipalListResponse,
    summary="List principals",
)
async def list_principals(
    actor: Principal = Depends(get_current_principal),
    service: PrincipalService = Depends(get_principal_service),
) -> PrincipalListResponse:
    """Principals in the caller's tenant at or below the caller's rank."""
    principals = await service.list_principals(actor)
    return PrincipalListResponse(
        principals=[PrincipalResponse.model_validate(p) for p in principals],
        total=len(principals),
    )


@router.post(
    "",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a principal",
)
async def invite_principal(
    invite: PrincipalInvite,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> InviteResponse:
    """
    Create a principal with a provisional credential.

    The temporary credential is returned once and must be changed on first use.
    """
    principal, temporary = await service.invite(actor, invite, identity)
    return InviteResponse(
        principal=PrincipalResponse.model_validate(principal),
        temporary_credential=temporary,
    )


@router.get(
    "/{principal_id}",
    response_model=PrincipalResponse,
    summary="Get a principal",
)
async def get_principal(
    principal_id: UUID,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PrincipalResponse:
    target = await service.get_principal(actor, principal_id, identity)
    return PrincipalResponse.model_validate(target)


@router.patch(
    "/{principal_id}/role",
    response_model=PrincipalResponse,
    summary="Change a principal's role",
)
async def change_role(
    principal_id: UUID,
    request: RoleChangeRequest,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PrincipalResponse:
    target = await service.change_role(actor, principal_id, request.role, identity)
    return PrincipalResponse.model_validate(target)


@router.patch(
    "/{principal_id}/status",
    response_model=PrincipalResponse,
    summary="Change a principal's status",
)
async def change_status(
    principal_id: UUID,
    request: StatusChangeRequest,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PrincipalResponse:
    target = await service.change_status(actor, principal_id, request.status, identity)
    return PrincipalResponse.model_validate(target)


@router.delete(
    "/{principal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a principal",
)
async def delete_principal(
    principal_id: UUID,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> None:
    await service.delete_principal(actor, principal_id, identity)


@router.post(
    "/{principal_id}/credential/reset",
    response_model=CredentialResetResponse,
    summary="Reset a principal's credential",
)
async def reset_credential(
    principal_id: UUID,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    cache: PrivilegeCache = Depends(get_privilege_cache),
) -> CredentialResetResponse:
    """Issue a temporary credential; the target returns to the provisional state."""
    target, temporary = await CredentialService(db, audit, cache).reset_credential(
        actor, principal_id, identity
    )
    return CredentialResetResponse(principal_id=target.id, temporary_credential=temporary)


# ==================== Permissions ====================


@router.get(
    "/{principal_id}/permissions",
    response_model=PermissionMatrixResponse,
    summary="Get permission matrix",
)
async def get_permission_matrix(
    principal_id: UUID,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PermissionMatrixResponse:
    matrix = await service.permission_matrix(actor, principal_id, identity)
    target = await service.get_principal(actor, principal_id, identity)
    return PermissionMatrixResponse(
        principal_id=target.id,
        role=target.role,
        full_access=has_full_access(target),
        permissions={m: PermissionFlags.from_permission(p) for m, p in matrix.items()},
    )


@router.put(
    "/{principal_id}/permissions/{module}",
    response_model=PermissionFlags,
    summary="Set module permission",
)
async def set_module_permission(
    principal_id: UUID,
    module: Module,
    flags: PermissionFlags,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PermissionFlags:
    """Replace the flags on one module. The stored value is normalized."""
    stored = await service.set_module_permission(
        actor, principal_id, module, flags.to_permission(), identity
    )
    return PermissionFlags.from_permission(stored)


@router.post(
    "/{principal_id}/permissions/{module}/toggle",
    response_model=PermissionFlags,
    summary="Toggle one permission flag",
)
async def toggle_permission(
    principal_id: UUID,
    module: Module,
    request: PermissionToggleRequest,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PermissionFlags:
    stored = await service.toggle_permission(
        actor, principal_id, module, request.action, request.value, identity
    )
    return PermissionFlags.from_permission(stored)


@router.post(
    "/{principal_id}/permissions/preset",
    response_model=PermissionMatrixResponse,
    summary="Apply a permission preset",
)
async def apply_preset(
    principal_id: UUID,
    request: PresetRequest,
    actor: Principal = Depends(get_current_principal),
    identity: Identity = Depends(get_identity),
    service: PrincipalService = Depends(get_principal_service),
) -> PermissionMatrixResponse:
    await service.apply_preset(actor, principal_id, request.preset, request.modules, identity)
    return await get_permission_matrix(principal_id, actor, identity, service)
