"""
Credential Routes

Credential change for the calling principal. Reachable while the credential
is provisional; every other route is blocked until this one succeeds.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.credentials import SessionAction, credential_state
from shared.warden_core.privilege_cache import PrivilegeCache
from warden.api.access.audit import AuditLogger
from warden.api.access.engine import Identity
from warden.api.credentials.schemas import CredentialChangeRequest, CredentialStatusResponse
from warden.api.credentials.service import CredentialService
from warden.api.db.models import Principal
from warden.api.db.session import get_db
from warden.api.dependencies import (
    get_audit_logger,
    get_identity,
    get_privilege_cache,
    require_session_action,
)


router = APIRouter()


def _status(principal: Principal) -> CredentialStatusResponse:
    return CredentialStatusResponse(
        principal_id=principal.id,
        state=credential_state(principal),
        changed_at=principal.credential_changed_at,
    )


@router.post(
    "/change",
    response_model=CredentialStatusResponse,
    summary="Change own credential",
)
async def change_credential(
    request: CredentialChangeRequest,
    principal: Principal = Depends(require_session_action(SessionAction.CHANGE_CREDENTIAL)),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    cache: PrivilegeCache = Depends(get_privilege_cache),
) -> CredentialStatusResponse:
    """Replace the caller's credential; a provisional credential becomes normal."""
    service = CredentialService(db, audit, cache)
    await service.change_credential(
        principal, request.current_credential, request.new_credential, identity
    )
    return _status(principal)


@router.get(
    "/status",
    response_model=CredentialStatusResponse,
    summary="Credential state of the caller",
)
async def credential_status(
    principal: Principal = Depends(require_session_action(SessionAction.CHANGE_CREDENTIAL)),
) -> CredentialStatusResponse:
    return _status(principal)
