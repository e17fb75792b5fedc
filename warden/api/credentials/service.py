"""
Credential Service

Credential lifecycle for principals: change (the only way out of the
provisional state), privileged reset back to provisional, and verification.
"""

import logging
import secrets
from typing import Optional, Tuple
from uuid import UUID

import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.audit_events import AuditAction
from shared.warden_core.constants import PASSWORD_MAX_LENGTH
from shared.warden_core.credentials import CredentialState, credential_state
from shared.warden_core.exceptions import (
    InvalidCredentialError,
    PasswordPolicyError,
    PermissionDeniedError,
    PrincipalNotFoundError,
)
from shared.warden_core.privilege_cache import PrivilegeCache
from shared.warden_core.role_ops import RoleOperation
from shared.warden_core.roles import Privilege
from warden.api.access.audit import AuditEntry, AuditLogger
from warden.api.access.engine import AuthorizationEngine, Identity
from warden.api.access.tenancy import TenantScope
from warden.api.configuration.service import ConfigurationService
from warden.api.db.models import Principal, utcnow


logger = logging.getLogger(__name__)


def hash_credential(credential: str) -> str:
    return bcrypt.hashpw(credential.encode(), bcrypt.gensalt()).decode()


def verify_credential(principal: Principal, credential: str) -> bool:
    if not principal.credential_hash or len(credential.encode()) > PASSWORD_MAX_LENGTH:
        return False
    return bcrypt.checkpw(credential.encode(), principal.credential_hash.encode())


def generate_temporary_credential() -> str:
    """Random credential handed to a principal that starts provisional."""
    return secrets.token_urlsafe(12)


class CredentialService:
    """Change, reset and verify principal credentials."""

    def __init__(self, db: AsyncSession, audit: AuditLogger, cache: PrivilegeCache):
        self.db = db
        self.audit = audit
        self.cache = cache

    async def change_credential(
        self,
        principal: Principal,
        current_credential: str,
        new_credential: str,
        identity: Optional[Identity] = None,
    ) -> Principal:
        """
        Replace a principal's credential.

        A provisional principal returns to NORMAL here and nowhere else.

        Raises:
            InvalidCredentialError: If the current credential does not verify
            PasswordPolicyError: If the new credential breaks the tenant policy
        """
        if not verify_credential(principal, current_credential):
            raise InvalidCredentialError("Current credential is incorrect")

        policy = await ConfigurationService(self.db, self.audit).password_policy(principal.tenant_id)
        violations = policy.violations(new_credential)
        if violations:
            raise PasswordPolicyError(
                "New credential does not satisfy the password policy",
                violations=violations,
                details={"policy": policy.to_dict()},
            )

        was_provisional = credential_state(principal) == CredentialState.PROVISIONAL

        principal.credential_hash = hash_credential(new_credential)
        principal.credential_is_provisional = False
        principal.credential_changed_at = utcnow()

        self.audit.stage(
            self.db,
            AuditEntry(
                tenant_id=principal.tenant_id,
                principal_id=principal.id,
                action=(
                    AuditAction.PROVISIONAL_CREDENTIAL_RESOLVED
                    if was_provisional
                    else AuditAction.CREDENTIAL_CHANGED
                ),
                resource=f"principal:{principal.id}",
                origin_address=identity.origin_address if identity else None,
                user_agent=identity.user_agent if identity else None,
            ),
        )
        await self.db.commit()

        logger.info(
            "Credential changed for principal %s%s",
            principal.id, " (provisional resolved)" if was_provisional else "",
        )
        return principal

    async def reset_credential(
        self,
        actor: Principal,
        target_id: UUID,
        identity: Optional[Identity] = None,
    ) -> Tuple[Principal, str]:
        """
        Issue a temporary credential and put the target back into PROVISIONAL.

        Returns:
            The target and the temporary credential to hand over

        Raises:
            PermissionDeniedError: Without the user_management privilege
            RoleOperationDeniedError: If the actor may not edit the target's role
            PrincipalNotFoundError: If the target is not in the actor's tenant
        """
        if not self.cache.privileges(actor).has(Privilege.USER_MANAGEMENT):
            raise PermissionDeniedError(
                "Resetting credentials requires the user_management privilege",
                privilege=Privilege.USER_MANAGEMENT.value,
            )

        result = await self.db.execute(
            select(Principal).where(
                Principal.tenant_id == actor.tenant_id,
                Principal.id == target_id,
            )
        )
        target = result.scalar_one_or_none()
        if target is None:
            raise PrincipalNotFoundError("Principal not found", details={"principal_id": str(target_id)})
        TenantScope.of(actor).ensure(target, "Principal")

        engine = AuthorizationEngine(self.db, self.audit, self.cache)
        engine.require_role_operation(actor, target.role, RoleOperation.EDIT, identity)

        temporary = generate_temporary_credential()
        target.credential_hash = hash_credential(temporary)
        target.credential_is_provisional = True
        target.credential_changed_at = utcnow()

        self.audit.stage(
            self.db,
            AuditEntry(
                tenant_id=actor.tenant_id,
                principal_id=actor.id,
                action=AuditAction.CREDENTIAL_RESET,
                resource=f"principal:{target.id}",
                details={"target_principal_id": target.id},
                origin_address=identity.origin_address if identity else None,
                user_agent=identity.user_agent if identity else None,
            ),
        )
        await self.db.commit()

        logger.info("Credential reset for principal %s by %s", target.id, actor.id)
        return target, temporary
