"""
First-Principal Bootstrapper

Provisions a tenant's first principal together with everything it needs:
the TOP role, full permissions on every module, default settings for every
configuration category and a TENANT_INITIALIZED audit entry, all in one
transaction.

Exactly one bootstrap may succeed per tenant. Attempts inside this process
are serialized by a per-tenant lock; attempts from other processes are
stopped by the partial unique index on principals(tenant_id) where
is_first_principal.
"""

import asyncio
import logging
import uuid
import weakref
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.audit_events import AuditAction
from shared.warden_core.credentials import PasswordPolicy
from shared.warden_core.exceptions import (
    AlreadyBootstrappedError,
    BootstrapError,
    PasswordPolicyError,
    TenantNotFoundError,
    WriteConflictError,
)
from shared.warden_core.modules import FULL_PERMISSION, Module
from shared.warden_core.role_ops import RoleOpReason
from shared.warden_core.roles import Role
from warden.api.access.audit import AuditEntry, AuditLogger
from warden.api.bootstrap.schemas import FirstPrincipalDraft, TenantRegistration
from warden.api.config import settings
from warden.api.configuration.service import build_default_configurations
from warden.api.credentials.service import hash_credential
from warden.api.db.models import (
    ModulePermissionRecord,
    Principal,
    PrincipalStatus,
    Tenant,
    TenantConfiguration,
)


logger = logging.getLogger(__name__)

# tenant_id -> lock; entries vanish once no caller holds the lock
_bootstrap_locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


def _tenant_lock(tenant_id: UUID) -> asyncio.Lock:
    lock = _bootstrap_locks.get(tenant_id)
    if lock is None:
        lock = asyncio.Lock()
        _bootstrap_locks[tenant_id] = lock
    return lock


def _already_bootstrapped(tenant_id: UUID) -> AlreadyBootstrappedError:
    return AlreadyBootstrappedError(
        "Tenant already has a first principal",
        details={
            "tenant_id": str(tenant_id),
            "reason": RoleOpReason.ALREADY_BOOTSTRAPPED.value,
        },
    )


class BootstrapService:
    """Tenant registration and first-principal provisioning."""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def _has_first_principal(self, tenant_id: UUID) -> bool:
        count = await self.db.scalar(
            select(func.count(Principal.id)).where(
                Principal.tenant_id == tenant_id,
                Principal.is_first_principal.is_(True),
            )
        )
        return bool(count)

    def _check_credential(self, draft: FirstPrincipalDraft) -> Optional[str]:
        if draft.credential is None:
            return None
        violations = PasswordPolicy().violations(draft.credential)
        if violations:
            raise PasswordPolicyError(
                "Credential does not satisfy the password policy",
                violations=violations,
            )
        return hash_credential(draft.credential)

    async def _provision(self, tenant: Tenant, draft: FirstPrincipalDraft) -> Principal:
        """Stage the first principal and its companions in the open transaction."""
        credential_hash = self._check_credential(draft)

        principal = Principal(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            user_id=draft.user_id,
            full_name=draft.full_name,
            email=str(draft.email),
            phone=draft.phone,
            job_title=draft.job_title,
            role=Role.TOP,
            is_first_principal=True,
            is_full_admin=False,
            status=PrincipalStatus.ACTIVE,
            credential_is_provisional=False,
            credential_hash=credential_hash,
        )
        self.db.add(principal)
        await self.db.flush()

        for module in Module:
            record = ModulePermissionRecord(
                tenant_id=tenant.id,
                principal_id=principal.id,
                module=module,
                updated_by=principal.id,
            )
            record.assign(FULL_PERMISSION)
            self.db.add(record)

        for category, document in build_default_configurations(tenant).items():
            self.db.add(
                TenantConfiguration(
                    tenant_id=tenant.id,
                    category=category,
                    settings=document,
                    updated_by=principal.id,
                )
            )

        self.audit.stage(
            self.db,
            AuditEntry(
                tenant_id=tenant.id,
                principal_id=principal.id,
                action=AuditAction.TENANT_INITIALIZED,
                resource="tenants",
                details={
                    "tenant_name": tenant.name,
                    "first_principal_email": principal.email,
                    "modules": len(Module),
                },
            ),
        )
        return principal

    async def _commit_bootstrap(self, tenant_id: UUID) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if await self._has_first_principal(tenant_id):
                logger.warning("Concurrent bootstrap lost for tenant %s", tenant_id)
                raise _already_bootstrapped(tenant_id) from e
            raise WriteConflictError(
                "Bootstrap conflicted with existing data",
                details={"tenant_id": str(tenant_id)},
            ) from e

    async def bootstrap_first_principal(
        self, tenant_id: UUID, draft: FirstPrincipalDraft
    ) -> Principal:
        """
        Provision the first principal of an existing tenant.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            AlreadyBootstrappedError: If the tenant already has a first principal
            PasswordPolicyError: If the supplied credential is too weak
        """
        async with _tenant_lock(tenant_id):
            try:
                result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
                tenant = result.scalar_one_or_none()
                if tenant is None:
                    raise TenantNotFoundError(
                        "Tenant not found",
                        details={"tenant_id": str(tenant_id)},
                    )
                if await self._has_first_principal(tenant_id):
                    raise _already_bootstrapped(tenant_id)

                principal = await self._provision(tenant, draft)
            except IntegrityError as e:
                await self.db.rollback()
                raise _already_bootstrapped(tenant_id) from e
            except Exception:
                await self.db.rollback()
                raise

            await self._commit_bootstrap(tenant_id)

        logger.info("Tenant %s bootstrapped with first principal %s", tenant_id, principal.id)
        return principal

    async def register_tenant(self, registration: TenantRegistration) -> Tuple[Tenant, Principal]:
        """
        Create a tenant and bootstrap its first principal in one transaction.

        Raises:
            BootstrapError: If the registration number is already in use
            PasswordPolicyError: If the supplied credential is too weak
        """
        if registration.registration_number:
            taken = await self.db.scalar(
                select(func.count(Tenant.id)).where(
                    Tenant.registration_number == registration.registration_number
                )
            )
            if taken:
                raise BootstrapError(
                    "Registration number already in use",
                    code="registration_conflict",
                )

        tenant = Tenant(
            id=uuid.uuid4(),
            name=registration.name,
            registration_number=registration.registration_number,
            contact_email=str(registration.contact_email) if registration.contact_email else None,
            phone=registration.phone,
            timezone=registration.timezone or settings.DEFAULT_TENANT_TIMEZONE,
        )

        async with _tenant_lock(tenant.id):
            try:
                self.db.add(tenant)
                await self.db.flush()
                principal = await self._provision(tenant, registration.first_principal)
            except Exception:
                await self.db.rollback()
                raise

            await self._commit_bootstrap(tenant.id)

        logger.info("Registered tenant %s (%s)", tenant.name, tenant.id)
        return tenant, principal
