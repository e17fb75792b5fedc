"""
Principal Management Service

Invite, change role/status, delete and edit the module permissions of
principals within the actor's tenant. Every mutation is checked against the
role hierarchy, written with its audit entry in one transaction, and role
changes invalidate the privilege cache as soon as they commit.
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.audit_events import AuditAction
from shared.warden_core.exceptions import (
    PermissionDeniedError,
    PrincipalNotFoundError,
    RoleOperationDeniedError,
    WriteConflictError,
)
from shared.warden_core.modules import (
    EMPTY_PERMISSION,
    PRESET_PERMISSIONS,
    Module,
    ModuleAction,
    ModulePermission,
    PermissionPreset,
    apply_toggle,
    normalize_permission,
)
from shared.warden_core.privilege_cache import PrivilegeCache
from shared.warden_core.role_ops import RoleOpReason, RoleOperation, can_perform_role_op
from shared.warden_core.roles import Privilege, Role, outranks
from warden.api.access.audit import AuditEntry, AuditLogger
from warden.api.access.engine import AuthorizationEngine, Identity
from warden.api.access.tenancy import TenantScope
from warden.api.credentials.service import generate_temporary_credential, hash_credential
from warden.api.db.models import ModulePermissionRecord, Principal, PrincipalStatus
from warden.api.principals.schemas import PrincipalInvite


logger = logging.getLogger(__name__)


class PrincipalService:
    """Tenant-scoped principal management."""

    def __init__(self, db: AsyncSession, audit: AuditLogger, cache: PrivilegeCache):
        self.db = db
        self.audit = audit
        self.cache = cache
        self.engine = AuthorizationEngine(db, audit, cache)

    # ==================== Helpers ====================

    def _entry(
        self,
        actor: Principal,
        action: AuditAction,
        target: Principal,
        details: Optional[dict] = None,
        identity: Optional[Identity] = None,
    ) -> AuditEntry:
        return AuditEntry(
            tenant_id=actor.tenant_id,
            principal_id=actor.id,
            action=action,
            resource=f"principal:{target.id}",
            details={"target_principal_id": target.id, **(details or {})},
            origin_address=identity.origin_address if identity else None,
            user_agent=identity.user_agent if identity else None,
        )

    def _require_user_management(self, actor: Principal) -> None:
        if not self.cache.privileges(actor).has(Privilege.USER_MANAGEMENT):
            raise PermissionDeniedError(
                "Managing principals requires the user_management privilege",
                privilege=Privilege.USER_MANAGEMENT.value,
            )

    def _protect_first_principal(self, actor: Principal, target: Principal, op: RoleOperation) -> None:
        if target.is_first_principal:
            raise RoleOperationDeniedError(
                "The tenant's first principal cannot be demoted, deactivated or deleted",
                reason=RoleOpReason.PROTECTED_TARGET.value,
                details={"operation": op.value, "target_role": target.role.value},
            )

    def _require_permission_editor(self, actor: Principal, target: Principal) -> None:
        """user_management plus strict rank over the target, or TOP."""
        self._require_user_management(actor)
        if actor.role == Role.TOP:
            return
        if not outranks(actor.role, target.role):
            raise RoleOperationDeniedError(
                f"{actor.role.value} may not edit permissions of a {target.role.value} principal",
                reason=RoleOpReason.INSUFFICIENT_RANK.value,
            )

    async def _get_in_tenant(self, actor: Principal, principal_id: UUID) -> Principal:
        result = await self.db.execute(
            select(Principal).where(
                Principal.tenant_id == actor.tenant_id,
                Principal.id == principal_id,
            )
        )
        target = result.scalar_one_or_none()
        if target is None:
            raise PrincipalNotFoundError(
                "Principal not found",
                details={"principal_id": str(principal_id)},
            )
        return TenantScope.of(actor).ensure(target, "Principal")

    async def _load_records(self, target: Principal) -> Dict[Module, ModulePermissionRecord]:
        result = await self.db.execute(
            select(ModulePermissionRecord).where(
                ModulePermissionRecord.tenant_id == target.tenant_id,
                ModulePermissionRecord.principal_id == target.id,
            )
        )
        return {record.module: record for record in result.scalars().all()}

    def _store(
        self,
        actor: Principal,
        target: Principal,
        records: Dict[Module, ModulePermissionRecord],
        module: Module,
        permission: ModulePermission,
    ) -> None:
        """Write an already-normalized permission into the session."""
        record = records.get(module)
        if record is None:
            record = ModulePermissionRecord(
                tenant_id=target.tenant_id,
                principal_id=target.id,
                module=module,
            )
            self.db.add(record)
            records[module] = record
        record.assign(permission)
        record.updated_by = actor.id

    # ==================== Queries ====================

    async def list_principals(self, actor: Principal) -> List[Principal]:
        """Principals of the actor's tenant whose role the actor may view."""
        result = await self.db.execute(
            select(Principal)
            .where(Principal.tenant_id == actor.tenant_id)
            .order_by(Principal.created_at)
        )
        return [
            p for p in result.scalars().all()
            if can_perform_role_op(actor.role, p.role, RoleOperation.VIEW).allowed
        ]

    async def get_principal(
        self, actor: Principal, principal_id: UUID, identity: Optional[Identity] = None
    ) -> Principal:
        target = await self._get_in_tenant(actor, principal_id)
        self.engine.require_role_operation(actor, target.role, RoleOperation.VIEW, identity)
        return target

    async def permission_matrix(
        self, actor: Principal, principal_id: UUID, identity: Optional[Identity] = None
    ) -> Dict[Module, ModulePermission]:
        """Stored permissions on every module; absent records are all-false."""
        target = await self.get_principal(actor, principal_id, identity)
        records = await self._load_records(target)
        return {
            module: records[module].to_permission() if module in records else EMPTY_PERMISSION
            for module in Module
        }

    # ==================== Lifecycle ====================

    async def invite(
        self,
        actor: Principal,
        invite: PrincipalInvite,
        identity: Optional[Identity] = None,
    ) -> Tuple[Principal, str]:
        """
        Create a principal in the actor's tenant with a provisional credential.

        Returns:
            The new principal and its temporary credential

        Raises:
            PermissionDeniedError: Without the user_management privilege
            RoleOperationDeniedError: If the actor may not create the requested role
            WriteConflictError: If the email or user id is already used in the tenant
        """
        self._require_user_management(actor)
        self.engine.require_role_operation(actor, invite.role, RoleOperation.CREATE, identity)

        temporary = generate_temporary_credential()
        principal = Principal(
            id=uuid.uuid4(),
            tenant_id=actor.tenant_id,
            user_id=invite.user_id,
            full_name=invite.full_name,
            email=str(invite.email),
            phone=invite.phone,
            job_title=invite.job_title,
            role=invite.role,
            is_first_principal=False,
            is_full_admin=False,
            status=PrincipalStatus.ACTIVE,
            credential_is_provisional=True,
            credential_hash=hash_credential(temporary),
        )

        try:
            self.db.add(principal)
            await self.db.flush()

            preset = PRESET_PERMISSIONS[invite.preset]
            records: Dict[Module, ModulePermissionRecord] = {}
            for module in Module:
                flags = invite.permissions.get(module)
                permission = normalize_permission(flags.to_permission() if flags else preset)
                if not permission.is_empty():
                    self._store(actor, principal, records, module, permission)

            self.audit.stage(
                self.db,
                self._entry(
                    actor,
                    AuditAction.PRINCIPAL_CREATED,
                    principal,
                    {"role": principal.role.value, "preset": invite.preset.value},
                    identity,
                ),
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise WriteConflictError(
                "A principal with this email or user id already exists in the tenant",
                details={"email": str(invite.email)},
            ) from e

        logger.info(
            "Principal %s (%s) invited to tenant %s by %s",
            principal.id, principal.role.value, principal.tenant_id, actor.id,
        )
        return principal, temporary

    async def change_role(
        self,
        actor: Principal,
        principal_id: UUID,
        new_role: Role,
        identity: Optional[Identity] = None,
    ) -> Principal:
        """
        Move a principal to another role.

        The actor must be allowed to edit the current role and to create the
        new one. The cache entry is dropped as soon as the change commits.
        """
        self._require_user_management(actor)
        target = await self._get_in_tenant(actor, principal_id)
        self.engine.require_role_operation(actor, target.role, RoleOperation.EDIT, identity)
        self.engine.require_role_operation(actor, new_role, RoleOperation.CREATE, identity)
        if new_role != target.role:
            self._protect_first_principal(actor, target, RoleOperation.EDIT)

        previous = target.role
        if previous == new_role:
            return target

        target.role = new_role
        self.audit.stage(
            self.db,
            self._entry(
                actor,
                AuditAction.ROLE_CHANGED,
                target,
                {"previous_role": previous.value, "new_role": new_role.value},
                identity,
            ),
        )
        await self.db.commit()
        self.cache.invalidate(target)

        logger.info(
            "Principal %s role changed %s -> %s by %s",
            target.id, previous.value, new_role.value, actor.id,
        )
        return target

    async def change_status(
        self,
        actor: Principal,
        principal_id: UUID,
        status: PrincipalStatus,
        identity: Optional[Identity] = None,
    ) -> Principal:
        """Activate, deactivate or block a principal."""
        self._require_user_management(actor)
        target = await self._get_in_tenant(actor, principal_id)
        self.engine.require_role_operation(actor, target.role, RoleOperation.EDIT, identity)
        if status != PrincipalStatus.ACTIVE:
            self._protect_first_principal(actor, target, RoleOperation.EDIT)

        previous = target.status
        if previous == status:
            return target

        target.status = status
        self.audit.stage(
            self.db,
            self._entry(
                actor,
                AuditAction.STATUS_CHANGED,
                target,
                {"previous_status": previous.value, "new_status": status.value},
                identity,
            ),
        )
        await self.db.commit()
        self.cache.invalidate(target)
        return target

    async def delete_principal(
        self,
        actor: Principal,
        principal_id: UUID,
        identity: Optional[Identity] = None,
    ) -> None:
        """Delete a principal together with all of its permission records."""
        self._require_user_management(actor)
        target = await self._get_in_tenant(actor, principal_id)
        self.engine.require_role_operation(actor, target.role, RoleOperation.DELETE, identity)
        self._protect_first_principal(actor, target, RoleOperation.DELETE)

        entry = self._entry(
            actor,
            AuditAction.PRINCIPAL_DELETED,
            target,
            {"role": target.role.value, "email": target.email},
            identity,
        )
        await self.db.delete(target)
        self.audit.stage(self.db, entry)
        await self.db.commit()
        self.cache.invalidate(principal_id)

        logger.info("Principal %s deleted by %s", principal_id, actor.id)

    # ==================== Permissions ====================

    async def set_module_permission(
        self,
        actor: Principal,
        principal_id: UUID,
        module: Module,
        permission: ModulePermission,
        identity: Optional[Identity] = None,
    ) -> ModulePermission:
        """Replace the flags on one module; the stored record is normalized."""
        target = await self._get_in_tenant(actor, principal_id)
        self._require_permission_editor(actor, target)

        records = await self._load_records(target)
        previous = records[module].to_permission() if module in records else EMPTY_PERMISSION
        stored = normalize_permission(permission)
        self._store(actor, target, records, module, stored)

        self.audit.stage(
            self.db,
            self._entry(
                actor,
                AuditAction.PERMISSION_CHANGED,
                target,
                {"module": module.value, "previous": previous.to_dict(), "new": stored.to_dict()},
                identity,
            ),
        )
        await self.db.commit()
        return stored

    async def toggle_permission(
        self,
        actor: Principal,
        principal_id: UUID,
        module: Module,
        action: ModuleAction,
        value: bool,
        identity: Optional[Identity] = None,
    ) -> ModulePermission:
        """Set or clear a single flag, keeping the implication invariant."""
        target = await self._get_in_tenant(actor, principal_id)
        self._require_permission_editor(actor, target)

        records = await self._load_records(target)
        previous = records[module].to_permission() if module in records else EMPTY_PERMISSION
        stored = apply_toggle(previous, action, value)
        self._store(actor, target, records, module, stored)

        self.audit.stage(
            self.db,
            self._entry(
                actor,
                AuditAction.PERMISSION_CHANGED,
                target,
                {
                    "module": module.value,
                    "toggled": action.value,
                    "value": value,
                    "previous": previous.to_dict(),
                    "new": stored.to_dict(),
                },
                identity,
            ),
        )
        await self.db.commit()
        return stored

    async def apply_preset(
        self,
        actor: Principal,
        principal_id: UUID,
        preset: PermissionPreset,
        modules: Optional[Iterable[Module]] = None,
        identity: Optional[Identity] = None,
    ) -> Dict[Module, ModulePermission]:
        """Apply a named template to the given modules (all when omitted)."""
        target = await self._get_in_tenant(actor, principal_id)
        self._require_permission_editor(actor, target)

        selected = list(modules) if modules else list(Module)
        permission = normalize_permission(PRESET_PERMISSIONS[preset])
        records = await self._load_records(target)
        for module in selected:
            self._store(actor, target, records, module, permission)

        self.audit.stage(
            self.db,
            self._entry(
                actor,
                AuditAction.PERMISSION_CHANGED,
                target,
                {"preset": preset.value, "modules": [m.value for m in selected]},
                identity,
            ),
        )
        await self.db.commit()
        return {module: permission for module in selected}
