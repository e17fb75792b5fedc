"""
First-Principal Bootstrap Tests

Tests tenant registration, bootstrap completeness and the single-winner
guarantee under concurrency.
"""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from shared.warden_core.categories import ConfigCategory
from shared.warden_core.exceptions import (
    AlreadyBootstrappedError,
    BootstrapError,
    PasswordPolicyError,
    TenantNotFoundError,
)
from shared.warden_core.modules import FULL_PERMISSION, Module
from shared.warden_core.roles import Role
from warden.api.bootstrap.schemas import FirstPrincipalDraft
from warden.api.bootstrap.service import BootstrapService
from warden.api.credentials.service import verify_credential
from warden.api.db.models import (
    ModulePermissionRecord,
    Principal,
    PrincipalStatus,
    Tenant,
    TenantConfiguration,
)
from warden.api.tests.conftest import ALICE_CREDENTIAL, registration


def draft(user_id: str, credential=None) -> FirstPrincipalDraft:
    return FirstPrincipalDraft(
        user_id=user_id,
        full_name=user_id.title(),
        email=f"{user_id}@example.com",
        credential=credential,
    )


async def bare_tenant(db_session, name: str = "Bare") -> Tenant:
    tenant = Tenant(id=uuid.uuid4(), name=name, timezone="UTC")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


class TestRegistration:
    """Tests for register_tenant."""

    @pytest.mark.asyncio
    async def test_first_principal_is_top(self, tenant_one):
        tenant, alice = tenant_one
        assert alice.role == Role.TOP
        assert alice.is_first_principal
        assert alice.status == PrincipalStatus.ACTIVE
        assert not alice.credential_is_provisional
        assert alice.tenant_id == tenant.id
        assert verify_credential(alice, ALICE_CREDENTIAL)

    @pytest.mark.asyncio
    async def test_full_permission_on_every_module(self, db_session, alice):
        result = await db_session.execute(
            select(ModulePermissionRecord).where(ModulePermissionRecord.principal_id == alice.id)
        )
        records = result.scalars().all()
        assert {r.module for r in records} == set(Module)
        assert all(r.to_permission() == FULL_PERMISSION for r in records)

    @pytest.mark.asyncio
    async def test_default_configuration_for_every_category(self, db_session, tenant_one):
        tenant, _ = tenant_one
        result = await db_session.execute(
            select(TenantConfiguration).where(TenantConfiguration.tenant_id == tenant.id)
        )
        configs = {c.category: c.settings for c in result.scalars().all()}
        assert set(configs) == set(ConfigCategory)
        assert configs[ConfigCategory.GENERAL]["company_name"] == "T1"
        assert configs[ConfigCategory.SECURITY]["session_timeout_minutes"] == 480
        assert configs[ConfigCategory.SYSTEM]["log_retention_days"] == 90

    @pytest.mark.asyncio
    async def test_initialization_is_audited(self, tenant_one, audit_actions):
        tenant, _ = tenant_one
        assert await audit_actions(tenant.id) == ["TENANT_INITIALIZED"]

    @pytest.mark.asyncio
    async def test_weak_credential_leaves_nothing_behind(self, db_session, audit_logger):
        service = BootstrapService(db_session, audit_logger)
        with pytest.raises(PasswordPolicyError) as exc_info:
            await service.register_tenant(registration("Weak", "weak", "weak@example.com", "weak"))

        assert "min_length" in exc_info.value.violations
        assert await db_session.scalar(select(func.count(Tenant.id))) == 0
        assert await db_session.scalar(select(func.count(Principal.id))) == 0

    @pytest.mark.asyncio
    async def test_registration_number_conflict(self, db_session, audit_logger):
        service = BootstrapService(db_session, audit_logger)
        first = registration("A", "a", "a@example.com")
        first.registration_number = "12.345.678/0001-90"
        await service.register_tenant(first)

        second = registration("B", "b", "b@example.com")
        second.registration_number = "12.345.678/0001-90"
        with pytest.raises(BootstrapError) as exc_info:
            await service.register_tenant(second)
        assert exc_info.value.code == "registration_conflict"

    @pytest.mark.asyncio
    async def test_no_credential_leaves_hash_empty(self, db_session, audit_logger):
        tenant, principal = await BootstrapService(db_session, audit_logger).register_tenant(
            registration("NoCred", "nocred", "nocred@example.com")
        )
        assert principal.credential_hash is None


class TestBootstrapExistingTenant:
    """Tests for bootstrap_first_principal."""

    @pytest.mark.asyncio
    async def test_bootstrap_bare_tenant(self, db_session, audit_logger):
        tenant = await bare_tenant(db_session)
        principal = await BootstrapService(db_session, audit_logger).bootstrap_first_principal(
            tenant.id, draft("owner")
        )
        assert principal.role == Role.TOP
        assert principal.is_first_principal

    @pytest.mark.asyncio
    async def test_second_bootstrap_rejected(self, db_session, audit_logger, tenant_one):
        tenant, _ = tenant_one
        with pytest.raises(AlreadyBootstrappedError) as exc_info:
            await BootstrapService(db_session, audit_logger).bootstrap_first_principal(
                tenant.id, draft("intruder")
            )
        assert exc_info.value.details["reason"] == "already_bootstrapped"

        count = await db_session.scalar(
            select(func.count(Principal.id)).where(Principal.tenant_id == tenant.id)
        )
        assert count == 1

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, db_session, audit_logger):
        with pytest.raises(TenantNotFoundError):
            await BootstrapService(db_session, audit_logger).bootstrap_first_principal(
                uuid.uuid4(), draft("ghost")
            )


class TestConcurrency:
    """Exactly one bootstrap wins per tenant."""

    @pytest.mark.asyncio
    async def test_concurrent_bootstraps_single_winner(self, db_session, session_maker, audit_logger):
        tenant = await bare_tenant(db_session)

        async def attempt(user_id: str):
            async with session_maker() as session:
                return await BootstrapService(session, audit_logger).bootstrap_first_principal(
                    tenant.id, draft(user_id)
                )

        results = await asyncio.gather(
            attempt("first"), attempt("second"), attempt("third"),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Principal)]
        losers = [r for r in results if isinstance(r, AlreadyBootstrappedError)]
        assert len(winners) == 1
        assert len(losers) == 2

        async with session_maker() as session:
            count = await session.scalar(
                select(func.count(Principal.id)).where(
                    Principal.tenant_id == tenant.id,
                    Principal.is_first_principal.is_(True),
                )
            )
        assert count == 1

    @pytest.mark.asyncio
    async def test_unique_index_rejects_second_first_principal(self, db_session, tenant_one):
        tenant, _ = tenant_one
        db_session.add(
            Principal(
                id=uuid.uuid4(),
                tenant_id=tenant.id,
                user_id="sneaky",
                full_name="Sneaky",
                email="sneaky@example.com",
                role=Role.TOP,
                is_first_principal=True,
            )
        )
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()
