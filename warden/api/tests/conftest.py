"""
Test Configuration and Fixtures

Shared fixtures for WARDEN API tests.
Provides an isolated SQLite database, the audit logger and privilege cache,
registered tenants and an HTTP client bound to the test app.
"""

import uuid
from typing import AsyncGenerator, Dict, Optional

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from shared.warden_core.modules import Module, ModulePermission, normalize_permission
from shared.warden_core.privilege_cache import PrivilegeCache
from shared.warden_core.roles import Role
from warden.api.access.audit import AuditLogger
from warden.api.bootstrap.schemas import FirstPrincipalDraft, TenantRegistration
from warden.api.bootstrap.service import BootstrapService
from warden.api.credentials.service import hash_credential
from warden.api.db.models import (
    AuditLogRecord,
    Base,
    ModulePermissionRecord,
    Principal,
    PrincipalStatus,
    Tenant,
)
from warden.api.db.session import get_db
from warden.api.dependencies import get_audit_logger, get_privilege_cache
from warden.api.main import create_app


ALICE_CREDENTIAL = "AlicePass123"


# ==================== Database Fixtures ====================


@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path):
    """Create a file-backed async SQLite engine for testing."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'warden.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def audit_logger(session_maker) -> AsyncGenerator[AuditLogger, None]:
    """Audit logger writing to the test database without retry delays."""
    audit = AuditLogger(session_maker, attempts=2, retry_delay=0)
    yield audit
    await audit.drain()


@pytest.fixture(scope="function")
def privilege_cache() -> PrivilegeCache:
    return PrivilegeCache(ttl_seconds=300, shards=4)


# ==================== Tenant Fixtures ====================


def registration(name: str, user_id: str, email: str, credential: Optional[str] = None) -> TenantRegistration:
    return TenantRegistration(
        name=name,
        timezone="UTC",
        first_principal=FirstPrincipalDraft(
            user_id=user_id,
            full_name=user_id.title(),
            email=email,
            credential=credential,
        ),
    )


@pytest_asyncio.fixture(scope="function")
async def tenant_one(db_session, audit_logger):
    """Tenant T1 bootstrapped by Alice (TOP)."""
    tenant, alice = await BootstrapService(db_session, audit_logger).register_tenant(
        registration("T1", "alice", "alice@t1.example.com", ALICE_CREDENTIAL)
    )
    return tenant, alice


@pytest_asyncio.fixture(scope="function")
async def tenant_two(db_session, audit_logger):
    """Tenant T2 bootstrapped by Carol (TOP)."""
    tenant, carol = await BootstrapService(db_session, audit_logger).register_tenant(
        registration("T2", "carol", "carol@t2.example.com", "CarolPass123")
    )
    return tenant, carol


@pytest.fixture(scope="function")
def alice(tenant_one) -> Principal:
    return tenant_one[1]


@pytest.fixture(scope="function")
def carol(tenant_two) -> Principal:
    return tenant_two[1]


@pytest.fixture(scope="function")
def create_principal(db_session):
    """
    Factory inserting a principal directly, bypassing role checks.

    Permissions are normalized before they are stored.
    """

    async def factory(
        tenant: Tenant,
        role: Role = Role.BASE,
        permissions: Optional[Dict[Module, ModulePermission]] = None,
        status: PrincipalStatus = PrincipalStatus.ACTIVE,
        provisional: bool = False,
        credential: Optional[str] = None,
        is_full_admin: bool = False,
    ) -> Principal:
        suffix = uuid.uuid4().hex[:8]
        principal = Principal(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            user_id=f"user_{suffix}",
            full_name=f"User {suffix}",
            email=f"{suffix}@example.com",
            role=role,
            status=status,
            is_full_admin=is_full_admin,
            credential_is_provisional=provisional,
            credential_hash=hash_credential(credential) if credential else None,
        )
        db_session.add(principal)
        await db_session.flush()

        for module, permission in (permissions or {}).items():
            record = ModulePermissionRecord(
                tenant_id=tenant.id,
                principal_id=principal.id,
                module=module,
            )
            record.assign(normalize_permission(permission))
            db_session.add(record)

        await db_session.commit()
        return principal

    return factory


@pytest.fixture(scope="function")
def audit_actions(session_maker, audit_logger):
    """Drain pending audit writes, then return the tenant's action codes oldest first."""

    async def fetch(tenant_id: uuid.UUID):
        await audit_logger.drain()
        async with session_maker() as session:
            result = await session.execute(
                select(AuditLogRecord)
                .where(AuditLogRecord.tenant_id == tenant_id)
                .order_by(AuditLogRecord.id)
            )
            return [record.action for record in result.scalars().all()]

    return fetch


# ==================== Application Fixtures ====================


@pytest.fixture(scope="function")
def app(db_session, audit_logger, privilege_cache) -> FastAPI:
    """Create FastAPI app with test database, audit logger and cache."""
    test_app = create_app()

    async def override_get_db():
        yield db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_audit_logger] = lambda: audit_logger
    test_app.dependency_overrides[get_privilege_cache] = lambda: privilege_cache
    return test_app


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def identity_headers(principal: Principal, tenant_id: Optional[uuid.UUID] = None) -> Dict[str, str]:
    """Identity headers asserted by the upstream session layer."""
    return {
        "X-Principal-Id": str(principal.id),
        "X-Tenant-Id": str(tenant_id or principal.tenant_id),
    }
