"""
Audit Trail Tests

Tests audit writes and their fallback, tenant-scoped queries, statistics,
export, retention purge and anomaly scanning.
"""

import csv
import io
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from shared.warden_core.anomaly_scanner import FindingCategory
from shared.warden_core.audit_events import AuditAction
from shared.warden_core.exceptions import (
    CrossTenantReferenceError,
    PermissionDeniedError,
    TenantNotFoundError,
)
from shared.warden_core.roles import Role
from warden.api.access.audit import AuditEntry, AuditLogger, AuditQuery, AuditTrail
from warden.api.access.monitoring import scan_for_anomalies, tenant_zone
from warden.api.db.models import Tenant, utcnow


async def write(audit_logger, tenant_id, action, count=1, **kwargs):
    for _ in range(count):
        await audit_logger.record(AuditEntry(tenant_id=tenant_id, action=action, **kwargs))


class TestAuditLogger:
    """Tests for the writer."""

    @pytest.mark.asyncio
    async def test_record_persists(self, audit_logger, session_maker, alice):
        assert await audit_logger.record(
            AuditEntry(tenant_id=alice.tenant_id, principal_id=alice.id, action=AuditAction.LOGIN)
        )
        async with session_maker() as session:
            page = await AuditTrail(session, alice.tenant_id).query(AuditQuery(action="LOGIN"))
        assert page.total == 1
        assert page.entries[0].severity == "low"
        assert len(page.entries[0].integrity_hash) == 64

    @pytest.mark.asyncio
    async def test_failure_goes_to_fallback(self, caplog):
        def broken_session_maker():
            raise ConnectionError("database unreachable")

        audit = AuditLogger(broken_session_maker, attempts=3, retry_delay=0)
        with caplog.at_level(logging.ERROR, logger="warden.audit.fallback"):
            stored = await audit.record(AuditEntry(tenant_id=uuid.uuid4(), action="LOGIN"))

        assert stored is False
        assert audit.failed_writes == 1
        assert any("AUDIT_WRITE_FAILED" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_enqueue_and_drain(self, audit_logger, audit_actions, alice):
        audit_logger.log_event(alice.tenant_id, AuditAction.LOGOUT, principal_id=alice.id)
        assert audit_logger.pending == 1
        assert "LOGOUT" in await audit_actions(alice.tenant_id)
        assert audit_logger.pending == 0

    def test_sensitive_details_are_redacted(self):
        entry = AuditEntry(
            tenant_id=uuid.uuid4(),
            action="CREDENTIAL_CHANGED",
            details={"credential": "Secret123", "nested": {"password": "x"}, "note": "ok"},
        )
        assert entry.details["credential"] == "[REDACTED]"
        assert entry.details["nested"]["password"] == "[REDACTED]"
        assert entry.details["note"] == "ok"

    def test_unknown_action_gets_default_severity(self):
        entry = AuditEntry(tenant_id=uuid.uuid4(), action="SOMETHING_NEW")
        assert entry.severity.value == "medium"

    @pytest.mark.asyncio
    async def test_oversized_client_fields_are_clipped(self, audit_logger, session_maker, alice):
        entry = AuditEntry(
            tenant_id=alice.tenant_id,
            action=AuditAction.LOGIN,
            user_agent="Mozilla/5.0 " + "x" * 2000,
            origin_address="2001:db8::" + "f" * 100,
            resource="module:" + "r" * 400,
        )
        assert len(entry.user_agent) == 512
        assert len(entry.origin_address) == 64
        assert len(entry.resource) == 255

        assert await audit_logger.record(entry)
        async with session_maker() as session:
            page = await AuditTrail(session, alice.tenant_id).query(AuditQuery(action="LOGIN"))
        assert page.entries[0].user_agent.startswith("Mozilla/5.0 ")
        assert len(page.entries[0].user_agent) == 512


class TestAuditTrail:
    """Tests for tenant-scoped reads."""

    @pytest.mark.asyncio
    async def test_query_is_tenant_scoped(self, db_session, audit_logger, alice, carol):
        await write(audit_logger, alice.tenant_id, AuditAction.LOGIN, principal_id=alice.id)
        await write(audit_logger, carol.tenant_id, AuditAction.LOGIN, principal_id=carol.id)

        page = await AuditTrail(db_session, alice.tenant_id).query(AuditQuery(action="LOGIN"))
        assert page.total == 1
        assert page.entries[0].principal_id == alice.id

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, db_session, audit_logger, alice):
        await write(audit_logger, alice.tenant_id, AuditAction.ACCESS_DENIED, count=7,
                    resource="module:reports", origin_address="10.0.0.9")
        await write(audit_logger, alice.tenant_id, AuditAction.LOGIN, principal_id=alice.id)

        trail = AuditTrail(db_session, alice.tenant_id)
        first = await trail.query(AuditQuery(action="ACCESS_DENIED", limit=5))
        second = await trail.query(AuditQuery(action="ACCESS_DENIED", limit=5, offset=5))
        assert first.total == second.total == 7
        assert len(first.entries) == 5
        assert len(second.entries) == 2
        assert not {e.id for e in first.entries} & {e.id for e in second.entries}

        by_origin = await trail.query(AuditQuery(origin_address="10.0.0.9"))
        assert by_origin.total == 7
        by_principal = await trail.query(AuditQuery(principal_id=alice.id))
        assert {e.action for e in by_principal.entries} == {"LOGIN"}
        searched = await trail.query(AuditQuery(search="reports"))
        assert searched.total == 7

    @pytest.mark.asyncio
    async def test_page_size_is_capped(self, db_session, alice):
        page = await AuditTrail(db_session, alice.tenant_id).query(AuditQuery(limit=100000))
        assert page.limit == 500

    @pytest.mark.asyncio
    async def test_statistics(self, db_session, audit_logger, alice):
        await write(audit_logger, alice.tenant_id, AuditAction.ACCESS_GRANTED, count=3,
                    principal_id=alice.id, resource="module:dashboard")
        stats = await AuditTrail(db_session, alice.tenant_id).statistics()

        # TENANT_INITIALIZED from registration plus three grants
        assert stats["total"] == 4
        assert stats["today"] == 4
        assert stats["active_principals"] == 1
        assert stats["top_actions"][0] == {"action": "ACCESS_GRANTED", "count": 3}
        assert {"resource": "module:dashboard", "count": 3} in stats["top_resources"]

    @pytest.mark.asyncio
    async def test_today_follows_tenant_time_zone(self, db_session, audit_logger):
        tenant = Tenant(id=uuid.uuid4(), name="Recife", timezone="America/Sao_Paulo")
        db_session.add(tenant)
        await db_session.commit()

        # 23:00 on 9 March in Sao Paulo (UTC-3)
        now = datetime(2024, 3, 10, 2, 0, tzinfo=timezone.utc)
        for hour in (2, 4, 23):
            await audit_logger.record(
                AuditEntry(
                    tenant_id=tenant.id,
                    action=AuditAction.LOGIN,
                    timestamp=datetime(2024, 3, 9, hour, 0, tzinfo=timezone.utc),
                )
            )

        stats = await AuditTrail(db_session, tenant.id).statistics(now=now)
        # Local midnight is 03:00 UTC, so the 02:00 entry belongs to the day before
        assert stats["today"] == 2
        assert stats["last_7_days"] == 3


class TestExport:
    @pytest.mark.asyncio
    async def test_json_export_has_integrity_hash(self, db_session, audit_logger, alice):
        await write(audit_logger, alice.tenant_id, AuditAction.LOGIN, principal_id=alice.id)
        now = utcnow()
        exported = json.loads(
            await AuditTrail(db_session, alice.tenant_id).export(now - timedelta(hours=1), now + timedelta(minutes=1))
        )
        assert exported["event_count"] == 2
        assert len(exported["integrity_hash"]) == 64
        assert [e["action"] for e in exported["events"]] == ["TENANT_INITIALIZED", "LOGIN"]

    @pytest.mark.asyncio
    async def test_csv_export(self, db_session, audit_logger, alice):
        now = utcnow()
        exported = await AuditTrail(db_session, alice.tenant_id).export(
            now - timedelta(hours=1), now + timedelta(minutes=1), format="csv"
        )
        rows = list(csv.DictReader(io.StringIO(exported)))
        assert [r["action"] for r in rows] == ["TENANT_INITIALIZED"]

    @pytest.mark.asyncio
    async def test_unknown_format(self, db_session, alice):
        now = utcnow()
        with pytest.raises(ValueError):
            await AuditTrail(db_session, alice.tenant_id).export(now, now, format="xml")


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge_removes_old_entries(self, db_session, session_maker, audit_logger, alice):
        old = AuditEntry(tenant_id=alice.tenant_id, action="LOGIN", timestamp=utcnow() - timedelta(days=120))
        await audit_logger.record(old)

        removed = await AuditTrail(db_session, alice.tenant_id, audit_logger).purge(alice, 90)
        assert removed == 1

        page = await AuditTrail(db_session, alice.tenant_id).query()
        assert {e.action for e in page.entries} == {"TENANT_INITIALIZED", "AUDIT_PURGED"}

    @pytest.mark.asyncio
    async def test_purge_requires_full_audit(self, db_session, tenant_one, create_principal):
        tenant, _ = tenant_one
        admin = await create_principal(tenant, Role.ADMIN)
        with pytest.raises(PermissionDeniedError):
            await AuditTrail(db_session, tenant.id).purge(admin, 90)

    @pytest.mark.asyncio
    async def test_purge_rejects_other_tenant(self, db_session, alice, carol):
        with pytest.raises(CrossTenantReferenceError):
            await AuditTrail(db_session, carol.tenant_id).purge(alice, 90)


class TestAnomalyScan:
    @pytest.mark.asyncio
    async def test_failed_logins_flagged(self, db_session, audit_logger, alice):
        await write(audit_logger, alice.tenant_id, AuditAction.FAILED_LOGIN, count=5)
        findings = await scan_for_anomalies(db_session, alice.tenant_id)

        by_category = {f.category: f for f in findings}
        suspicious = by_category[FindingCategory.SUSPICIOUS_AUTHENTICATION]
        assert suspicious.count == 5
        assert suspicious.severity.value == "critical"

    @pytest.mark.asyncio
    async def test_quiet_tenant(self, db_session, audit_logger, alice):
        await write(audit_logger, alice.tenant_id, AuditAction.FAILED_LOGIN, count=4)
        findings = await scan_for_anomalies(db_session, alice.tenant_id)
        assert FindingCategory.SUSPICIOUS_AUTHENTICATION not in {f.category for f in findings}

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, db_session):
        with pytest.raises(TenantNotFoundError):
            await scan_for_anomalies(db_session, uuid.uuid4())

    def test_unknown_zone_falls_back_to_utc(self):
        assert tenant_zone("Not/AZone").utcoffset(None) == timedelta(0)
        assert tenant_zone(None).utcoffset(None) == timedelta(0)
