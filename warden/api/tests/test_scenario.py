"""
End-to-End Scenario

A tenant is bootstrapped, a manager is invited and works under the role
hierarchy and its module permissions, and repeated failed logins surface in
the anomaly scan.
"""

import pytest

from shared.warden_core.anomaly_scanner import FindingCategory
from shared.warden_core.audit_events import AuditAction
from shared.warden_core.evaluator import DecisionCode
from shared.warden_core.exceptions import RoleOperationDeniedError
from shared.warden_core.modules import Module, ModuleAction
from shared.warden_core.roles import Role
from warden.api.access.engine import AuthorizationEngine, Identity
from warden.api.access.monitoring import scan_for_anomalies
from warden.api.credentials.service import CredentialService
from warden.api.principals.schemas import PermissionFlags, PrincipalInvite
from warden.api.principals.service import PrincipalService


@pytest.mark.asyncio
async def test_tenant_lifecycle(db_session, audit_logger, privilege_cache, tenant_one, tenant_two):
    tenant, alice = tenant_one
    _, carol = tenant_two
    principals = PrincipalService(db_session, audit_logger, privilege_cache)
    engine = AuthorizationEngine(db_session, audit_logger, privilege_cache)

    # Alice invites Bob as a manager with view and create on customers
    bob, temporary = await principals.invite(
        alice,
        PrincipalInvite(
            user_id="bob",
            full_name="Bob",
            email="bob@t1.example.com",
            role=Role.MANAGER,
            permissions={Module.CUSTOMERS: PermissionFlags(view=True, create=True)},
        ),
    )
    bob_identity = Identity(principal_id=bob.id, tenant_id=tenant.id)

    # Provisional until the credential is changed
    blocked = await engine.authorize(bob_identity, Module.CUSTOMERS, ModuleAction.VIEW)
    assert blocked.code == DecisionCode.CREDENTIAL_CHANGE_REQUIRED

    await CredentialService(db_session, audit_logger, privilege_cache).change_credential(
        bob, temporary, "BobChosen123"
    )

    assert (await engine.authorize(bob_identity, Module.CUSTOMERS, ModuleAction.VIEW)).allowed
    assert (await engine.authorize(bob_identity, Module.CUSTOMERS, ModuleAction.CREATE)).allowed
    assert not (await engine.authorize(bob_identity, Module.CUSTOMERS, ModuleAction.EDIT)).allowed

    # Bob manages below his rank only
    with pytest.raises(RoleOperationDeniedError) as exc_info:
        await principals.invite(
            bob,
            PrincipalInvite(user_id="dave", full_name="Dave", email="dave@t1.example.com", role=Role.ADMIN),
        )
    assert exc_info.value.reason == "insufficient_rank"

    dave, _ = await principals.invite(
        bob,
        PrincipalInvite(user_id="dave", full_name="Dave", email="dave@t1.example.com", role=Role.BASE),
    )
    assert dave.role == Role.BASE

    # Bob cannot reach into T2
    crossed = await engine.authorize(
        Identity(principal_id=bob.id, tenant_id=carol.tenant_id), Module.CUSTOMERS, ModuleAction.VIEW
    )
    assert crossed.code == DecisionCode.TENANT_MISMATCH

    # Five failed logins against Bob's account within the hour
    for _ in range(5):
        audit_logger.log_event(
            tenant.id, AuditAction.FAILED_LOGIN, principal_id=bob.id, origin_address="203.0.113.7"
        )
    await audit_logger.drain()

    findings = await scan_for_anomalies(db_session, tenant.id)
    categories = {f.category for f in findings}
    assert FindingCategory.SUSPICIOUS_AUTHENTICATION in categories

    # T2 saw none of it
    assert FindingCategory.SUSPICIOUS_AUTHENTICATION not in {
        f.category for f in await scan_for_anomalies(db_session, carol.tenant_id)
    }
