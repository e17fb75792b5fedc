"""
WARDEN - Authorization Engine

Entry point for every access decision. A decision runs, in order:

    1. Principal lookup (storage failure -> lookup_failed, never allow)
    2. Tenant isolation guard (claimed tenant vs stored tenant)
    3. Principal status (only active principals pass)
    4. Credential lifecycle guard (provisional blocks all but
       change-credential and logout)
    5. Permission evaluator / category gate (via the privilege cache)

Each decision is returned as a typed AuthorizationResult (or, for route
guards, a Decision that also carries the resolved principal) and an audit
entry is enqueued without waiting for it to be written.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.audit_events import AuditAction
from shared.warden_core.categories import ConfigCategory, parse_category
from shared.warden_core.credentials import SessionAction, is_blocked_by_credential
from shared.warden_core.evaluator import (
    AuthorizationResult,
    DecisionCode,
    evaluate_module_access,
    has_full_access,
)
from shared.warden_core.exceptions import (
    CredentialChangeRequiredError,
    PermissionDeniedError,
    PersistenceError,
    PrincipalInactiveError,
    PrincipalNotFoundError,
    RoleOperationDeniedError,
    TenantMismatchError,
)
from shared.warden_core.modules import (
    Module,
    ModuleAction,
    ModulePermission,
    parse_action,
    parse_module,
)
from shared.warden_core.privilege_cache import PrivilegeCache
from shared.warden_core.role_ops import RoleOpDecision, RoleOperation, can_perform_role_op
from shared.warden_core.roles import Privilege, PrivilegeSet, Role
from warden.api.access.audit import AuditEntry, AuditLogger
from warden.api.access.tenancy import tenant_matches
from warden.api.db.models import ModulePermissionRecord, Principal


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Identity assertion from the session layer."""

    principal_id: UUID
    tenant_id: UUID
    origin_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    """A decision and the principal it was made for (None if not found)."""

    result: AuthorizationResult
    principal: Optional[Principal] = None

    @property
    def allowed(self) -> bool:
        return self.result.allowed


DECISION_AUDIT_ACTIONS: Dict[DecisionCode, AuditAction] = {
    DecisionCode.ALLOWED: AuditAction.ACCESS_GRANTED,
    DecisionCode.PERMISSION_DENIED: AuditAction.ACCESS_DENIED,
    DecisionCode.PRINCIPAL_NOT_FOUND: AuditAction.ACCESS_DENIED,
    DecisionCode.LOOKUP_FAILED: AuditAction.ACCESS_DENIED,
    DecisionCode.TENANT_MISMATCH: AuditAction.TENANT_MISMATCH,
    DecisionCode.PRINCIPAL_INACTIVE: AuditAction.PRINCIPAL_INACTIVE,
    DecisionCode.CREDENTIAL_CHANGE_REQUIRED: AuditAction.PROVISIONAL_CREDENTIAL_BLOCKED,
    DecisionCode.CATEGORY_DENIED: AuditAction.CATEGORY_DENIED,
}


def raise_for_result(result: AuthorizationResult) -> None:
    """
    Raise the typed exception matching a denied result.

    Raises:
        WardenError: A subclass chosen by result.code
    """
    if result.allowed:
        return

    code = result.code
    if code == DecisionCode.TENANT_MISMATCH:
        raise TenantMismatchError(
            "Principal does not belong to the claimed tenant",
            claimed_tenant_id=result.details.get("claimed_tenant_id"),
            actual_tenant_id=result.details.get("actual_tenant_id"),
        )
    if code == DecisionCode.PRINCIPAL_NOT_FOUND:
        raise PrincipalNotFoundError("Principal not found")
    if code == DecisionCode.PRINCIPAL_INACTIVE:
        raise PrincipalInactiveError("Principal is not active", details=dict(result.details))
    if code == DecisionCode.CREDENTIAL_CHANGE_REQUIRED:
        raise CredentialChangeRequiredError(
            "Credential must be changed before continuing",
            details={"redirect": result.redirect_hint},
        )
    if code == DecisionCode.LOOKUP_FAILED:
        raise PersistenceError("Authorization lookup failed")
    raise PermissionDeniedError(
        "Permission denied",
        code=code.value,
        module=result.module.value if result.module else None,
        action=result.action.value if result.action else None,
        category=result.category.value if result.category else None,
        privilege=result.details.get("privilege"),
    )


class AuthorizationEngine:
    """
    Tenant-aware decision service.

    Example:
        engine = AuthorizationEngine(db, audit_logger, privilege_cache)
        result = await engine.authorize(identity, Module.CUSTOMERS, ModuleAction.EDIT)
        if not result.allowed:
            ...
    """

    def __init__(self, db: AsyncSession, audit: AuditLogger, cache: PrivilegeCache):
        self.db = db
        self.audit = audit
        self.cache = cache

    # ==================== Lookups ====================

    async def _load_principal(self, principal_id: UUID) -> Optional[Principal]:
        result = await self.db.execute(
            select(Principal).where(Principal.id == principal_id)
        )
        return result.scalar_one_or_none()

    async def _load_permission(
        self, principal: Principal, module: Module
    ) -> Optional[ModulePermission]:
        result = await self.db.execute(
            select(ModulePermissionRecord).where(
                ModulePermissionRecord.tenant_id == principal.tenant_id,
                ModulePermissionRecord.principal_id == principal.id,
                ModulePermissionRecord.module == module,
            )
        )
        record = result.scalar_one_or_none()
        return record.to_permission() if record else None

    async def _gate(
        self, identity: Identity, **context: Any
    ) -> Tuple[Optional[Principal], Optional[AuthorizationResult]]:
        """Lookup, tenant and status checks shared by every decision."""
        try:
            principal = await self._load_principal(identity.principal_id)
        except SQLAlchemyError as e:
            logger.error("Principal lookup failed for %s: %s", identity.principal_id, e)
            return None, AuthorizationResult.deny(DecisionCode.LOOKUP_FAILED, **context)

        if principal is None:
            return None, AuthorizationResult.deny(DecisionCode.PRINCIPAL_NOT_FOUND, **context)

        if not tenant_matches(principal, identity.tenant_id):
            logger.warning(
                "Tenant mismatch for principal %s: claimed %s",
                principal.id, identity.tenant_id,
            )
            return principal, AuthorizationResult.deny(
                DecisionCode.TENANT_MISMATCH,
                details={
                    "claimed_tenant_id": str(identity.tenant_id),
                    "actual_tenant_id": str(principal.tenant_id),
                },
                **context,
            )

        if not principal.is_active:
            return principal, AuthorizationResult.deny(
                DecisionCode.PRINCIPAL_INACTIVE,
                details={"status": principal.status.value},
                **context,
            )

        return principal, None

    def _credential_block(self, principal: Principal, action: Optional[SessionAction] = None, **context: Any):
        if is_blocked_by_credential(principal, action):
            return AuthorizationResult.deny(
                DecisionCode.CREDENTIAL_CHANGE_REQUIRED,
                redirect_hint=SessionAction.CHANGE_CREDENTIAL.value,
                **context,
            )
        return None

    # ==================== Audit ====================

    def _audit(
        self,
        identity: Identity,
        principal: Optional[Principal],
        result: AuthorizationResult,
        resource: Optional[str] = None,
    ) -> None:
        if resource is None:
            if result.module is not None:
                resource = f"module:{result.module.value}"
            elif result.category is not None:
                resource = f"category:{result.category.value}"

        details = {"code": result.code.value, **result.details}
        if result.action is not None:
            details["action"] = result.action.value
        if result.bypass:
            details["bypass"] = True

        try:
            self.audit.enqueue(
                AuditEntry(
                    tenant_id=principal.tenant_id if principal else identity.tenant_id,
                    principal_id=identity.principal_id,
                    action=DECISION_AUDIT_ACTIONS[result.code],
                    resource=resource,
                    details=details,
                    origin_address=identity.origin_address,
                    user_agent=identity.user_agent,
                )
            )
        except Exception:
            logger.exception("Failed to enqueue audit entry for %s", identity.principal_id)

    # ==================== Decisions ====================

    async def module_decision(
        self,
        identity: Identity,
        module: Union[str, Module],
        action: Union[str, ModuleAction],
        resource: Optional[str] = None,
    ) -> Decision:
        """
        Decide whether the principal may perform an action on a module.

        Raises:
            InvalidModuleError: If module or action is not a known value
        """
        module = parse_module(module)
        action = parse_action(action)
        context = {"module": module, "action": action}

        principal, denial = await self._gate(identity, **context)
        if denial is None:
            denial = self._credential_block(principal, **context)
        if denial is not None:
            self._audit(identity, principal, denial, resource)
            return Decision(denial, principal)

        if has_full_access(principal):
            result = evaluate_module_access(principal, None, module, action)
        else:
            try:
                permission = await self._load_permission(principal, module)
            except SQLAlchemyError as e:
                logger.error("Permission lookup failed for %s: %s", principal.id, e)
                result = AuthorizationResult.deny(DecisionCode.LOOKUP_FAILED, **context)
            else:
                result = evaluate_module_access(principal, permission, module, action)

        self._audit(identity, principal, result, resource)
        return Decision(result, principal)

    async def authorize(
        self,
        identity: Identity,
        module: Union[str, Module],
        action: Union[str, ModuleAction],
        resource: Optional[str] = None,
    ) -> AuthorizationResult:
        return (await self.module_decision(identity, module, action, resource)).result

    async def category_decision(
        self,
        identity: Identity,
        category: Union[str, ConfigCategory],
    ) -> Decision:
        """
        Decide configuration category access from the principal's role.

        Raises:
            InvalidCategoryError: If category is not a known value
        """
        category = parse_category(category)

        principal, denial = await self._gate(identity, category=category)
        if denial is None:
            denial = self._credential_block(principal, category=category)
        if denial is not None:
            self._audit(identity, principal, denial)
            return Decision(denial, principal)

        snapshot = self.cache.get(principal)
        if category in snapshot.categories:
            result = AuthorizationResult(
                allowed=True, code=DecisionCode.ALLOWED, category=category,
            )
        else:
            result = AuthorizationResult.deny(
                DecisionCode.CATEGORY_DENIED,
                category=category,
                details={"role": principal.role.value},
            )

        self._audit(identity, principal, result)
        return Decision(result, principal)

    async def can_access_category(
        self,
        identity: Identity,
        category: Union[str, ConfigCategory],
    ) -> AuthorizationResult:
        return (await self.category_decision(identity, category)).result

    async def privilege_decision(self, identity: Identity, privilege: Privilege) -> Decision:
        """Decide whether the principal's role carries a privilege."""
        resource = f"privilege:{privilege.value}"
        principal, denial = await self._gate(identity)
        if denial is None:
            denial = self._credential_block(principal)
        if denial is not None:
            self._audit(identity, principal, denial, resource=resource)
            return Decision(denial, principal)

        if self.cache.privileges(principal).has(privilege):
            result = AuthorizationResult(allowed=True, code=DecisionCode.ALLOWED)
        else:
            result = AuthorizationResult.deny(
                DecisionCode.PERMISSION_DENIED,
                details={"privilege": privilege.value},
            )
        self._audit(identity, principal, result, resource=resource)
        return Decision(result, principal)

    async def check_privilege(self, identity: Identity, privilege: Privilege) -> AuthorizationResult:
        return (await self.privilege_decision(identity, privilege)).result

    async def session_decision(self, identity: Identity, action: SessionAction) -> Decision:
        """Decide a session action (change-credential, logout)."""
        principal, denial = await self._gate(identity)
        if denial is None:
            denial = self._credential_block(principal, action)
        if denial is not None:
            self._audit(identity, principal, denial, resource=f"session:{action.value}")
            return Decision(denial, principal)
        return Decision(AuthorizationResult(allowed=True, code=DecisionCode.ALLOWED), principal)

    async def check_session_action(
        self, identity: Identity, action: SessionAction
    ) -> AuthorizationResult:
        return (await self.session_decision(identity, action)).result

    async def require_principal(
        self,
        identity: Identity,
        session_action: Optional[SessionAction] = None,
    ) -> Principal:
        """
        Resolve the acting principal for a mutating call.

        Raises:
            WardenError: Typed denial (tenant mismatch, inactive,
                credential change required, lookup failure, not found)
        """
        principal, denial = await self._gate(identity)
        if denial is None:
            denial = self._credential_block(principal, session_action)
        if denial is not None:
            resource = f"session:{session_action.value}" if session_action else None
            self._audit(identity, principal, denial, resource=resource)
            raise_for_result(denial)
        return principal

    # ==================== Role management ====================

    def privileges_of(self, principal: Principal) -> PrivilegeSet:
        return self.cache.privileges(principal)

    def check_role_operation(
        self,
        actor: Principal,
        target_role: Role,
        op: RoleOperation,
        identity: Optional[Identity] = None,
    ) -> RoleOpDecision:
        """Role-operation decision for an already resolved actor; denials are audited."""
        decision = can_perform_role_op(actor.role, target_role, op)
        if not decision.allowed:
            try:
                self.audit.enqueue(
                    AuditEntry(
                        tenant_id=actor.tenant_id,
                        principal_id=actor.id,
                        action=AuditAction.ROLE_OPERATION_DENIED,
                        resource=f"role:{target_role.value}",
                        details=decision.to_dict(),
                        origin_address=identity.origin_address if identity else None,
                        user_agent=identity.user_agent if identity else None,
                    )
                )
            except Exception:
                logger.exception("Failed to enqueue audit entry for %s", actor.id)
        return decision

    def require_role_operation(
        self,
        actor: Principal,
        target_role: Role,
        op: RoleOperation,
        identity: Optional[Identity] = None,
    ) -> RoleOpDecision:
        """
        Like check_role_operation, but raises on denial.

        Raises:
            RoleOperationDeniedError: With the denial reason
        """
        decision = self.check_role_operation(actor, target_role, op, identity)
        if not decision.allowed:
            raise RoleOperationDeniedError(
                f"{actor.role.value} may not {op.value} a {target_role.value} principal",
                reason=decision.reason.value,
                details=decision.to_dict(),
            )
        return decision
