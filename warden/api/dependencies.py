"""
FastAPI Dependencies

Identity resolution and authorization guards for dependency injection.

The session layer in front of this service authenticates callers and asserts
their identity through the X-Principal-Id and X-Tenant-Id headers. Every
guard resolves that identity through the AuthorizationEngine, so tenant,
status and credential checks run on every request, with one principal
lookup per guard.
"""

from functools import lru_cache
from typing import Optional, Union
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.categories import ConfigCategory
from shared.warden_core.credentials import SessionAction
from shared.warden_core.exceptions import PrincipalNotFoundError
from shared.warden_core.modules import Module, ModuleAction
from shared.warden_core.privilege_cache import PrivilegeCache
from shared.warden_core.roles import Privilege
from warden.api.access.audit import AuditLogger
from warden.api.access.engine import AuthorizationEngine, Decision, Identity
from warden.api.config import settings
from warden.api.db.models import Principal
from warden.api.db.session import get_db, get_session_maker
from warden.api.errors import decision_http_error


def _parse_uuid(value: Optional[str], header: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {header} header",
            headers={"WWW-Authenticate": "Principal"},
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Malformed {header} header",
            headers={"WWW-Authenticate": "Principal"},
        )


async def get_identity(
    request: Request,
    x_principal_id: Optional[str] = Header(None),
    x_tenant_id: Optional[str] = Header(None),
) -> Identity:
    """
    Identity assertion for the current request.

    Raises:
        HTTPException: 401 if either header is missing or malformed
    """
    return Identity(
        principal_id=_parse_uuid(x_principal_id, "X-Principal-Id"),
        tenant_id=_parse_uuid(x_tenant_id, "X-Tenant-Id"),
        origin_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


# ==================== Shared services ====================


@lru_cache()
def get_privilege_cache() -> PrivilegeCache:
    return PrivilegeCache(
        ttl_seconds=settings.PRIVILEGE_CACHE_TTL_SECONDS,
        shards=settings.PRIVILEGE_CACHE_SHARDS,
    )


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return AuditLogger(
        get_session_maker(),
        attempts=settings.AUDIT_WRITE_ATTEMPTS,
        retry_delay=settings.AUDIT_RETRY_DELAY_SEC,
    )


def get_authorization_engine(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    cache: PrivilegeCache = Depends(get_privilege_cache),
) -> AuthorizationEngine:
    return AuthorizationEngine(db, audit, cache)


async def get_current_principal(
    identity: Identity = Depends(get_identity),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> Principal:
    """
    Resolve the acting principal.

    Raises:
        HTTPException: 401 for an unknown principal
        WardenError: Tenant mismatch, inactive principal or provisional
            credential (mapped to HTTP by the registered handler)
    """
    try:
        return await engine.require_principal(identity)
    except PrincipalNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Principal not found",
            headers={"WWW-Authenticate": "Principal"},
        )


# ==================== Guards ====================


def _allowed_principal(decision: Decision) -> Principal:
    if not decision.allowed:
        raise decision_http_error(decision.result)
    return decision.principal


def require_session_action(action: SessionAction):
    """Guard for session actions that a provisional principal may still perform."""

    async def dependency(
        identity: Identity = Depends(get_identity),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        return _allowed_principal(await engine.session_decision(identity, action))

    return dependency


def require_module_permission(
    module: Union[str, Module],
    action: Union[str, ModuleAction],
):
    """
    Guard a route with a module/action permission.

    Example:
        @router.get("/customers")
        async def list_customers(
            principal: Principal = Depends(require_module_permission("customers", "view")),
        ):
            ...
    """

    async def dependency(
        identity: Identity = Depends(get_identity),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        return _allowed_principal(await engine.module_decision(identity, module, action))

    return dependency


def require_category(category: Optional[Union[str, ConfigCategory]] = None):
    """
    Guard a route with the configuration-category gate.

    Without a fixed category the guard reads it from the `category` path
    parameter.
    """

    async def check(identity: Identity, engine: AuthorizationEngine, value) -> Principal:
        return _allowed_principal(await engine.category_decision(identity, value))

    if category is not None:
        async def fixed(
            identity: Identity = Depends(get_identity),
            engine: AuthorizationEngine = Depends(get_authorization_engine),
        ) -> Principal:
            return await check(identity, engine, category)

        return fixed

    async def from_path(
        category: ConfigCategory,
        identity: Identity = Depends(get_identity),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        return await check(identity, engine, category)

    return from_path


def require_privilege(privilege: Privilege):
    """Guard a route with a role privilege."""

    async def dependency(
        identity: Identity = Depends(get_identity),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        return _allowed_principal(await engine.privilege_decision(identity, privilege))

    return dependency
