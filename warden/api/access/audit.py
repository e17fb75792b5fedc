"""
WARDEN - Audit Logging System

Append-only audit trail for authorization decisions and administrative
actions. Writes never block or fail the caller: entries are either staged
into the caller's transaction or written in their own session with bounded
retries, and unrecoverable failures are routed to the fallback logger.
"""

import asyncio
import csv
import hashlib
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union
from uuid import UUID, uuid4

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.warden_core.audit_events import (
    AuditAction,
    AuditSeverity,
    action_code,
    get_event_severity,
)
from shared.warden_core.constants import (
    AUDIT_DEFAULT_PAGE_SIZE,
    AUDIT_MAX_PAGE_SIZE,
    AUDIT_RETRY_DELAY_SEC,
    AUDIT_SENSITIVE_FIELDS,
    AUDIT_WRITE_ATTEMPTS,
)
from shared.warden_core.exceptions import CrossTenantReferenceError, PermissionDeniedError
from shared.warden_core.roles import Privilege, has_privilege
from warden.api.access.tenancy import tenant_zone
from warden.api.db.models import AuditLogRecord, Principal, Tenant, utcnow


logger = logging.getLogger(__name__)

# Receives entries that could not be persisted
fallback_logger = logging.getLogger("warden.audit.fallback")


# ============================================================
# Audit Entry
# ============================================================


def _new_event_id() -> str:
    return f"evt_{uuid4().hex[:16]}"


# Free-text fields are cut to their column widths
_COLUMN_LIMITS = {
    name: AuditLogRecord.__table__.c[name].type.length
    for name in ("resource", "origin_address", "user_agent")
}


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    if value is None or len(value) <= limit:
        return value
    return value[:limit]


@dataclass
class AuditEntry:
    """One audit log entry before it is persisted."""

    tenant_id: UUID
    action: Union[str, AuditAction]
    principal_id: Optional[UUID] = None
    resource: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    origin_address: Optional[str] = None
    user_agent: Optional[str] = None
    event_id: str = field(default_factory=_new_event_id)
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.action = action_code(self.action)
        self.details = _sanitize_for_audit(self.details or {})
        for name, limit in _COLUMN_LIMITS.items():
            setattr(self, name, _clip(getattr(self, name), limit))

    @property
    def severity(self) -> AuditSeverity:
        return get_event_severity(self.action)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "tenant_id": str(self.tenant_id),
            "principal_id": str(self.principal_id) if self.principal_id else None,
            "action": self.action,
            "resource": self.resource,
            "details": self.details,
            "severity": self.severity.value,
            "origin_address": self.origin_address,
            "user_agent": self.user_agent,
        }

    def compute_hash(self) -> str:
        """Compute SHA256 hash for integrity verification."""
        content = (
            f"{self.event_id}{self.timestamp.isoformat()}{self.tenant_id}"
            f"{self.principal_id or ''}{self.action}{self.resource or ''}"
        )
        return hashlib.sha256(content.encode()).hexdigest()

    def to_record(self) -> AuditLogRecord:
        return AuditLogRecord(
            event_id=self.event_id,
            tenant_id=self.tenant_id,
            principal_id=self.principal_id,
            action=self.action,
            resource=self.resource,
            details=self.details,
            severity=self.severity.value,
            origin_address=self.origin_address,
            user_agent=self.user_agent,
            integrity_hash=self.compute_hash(),
            created_at=self.timestamp,
        )


def _sanitize_for_audit(data: Any) -> Any:
    """Remove sensitive fields from data before logging."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in AUDIT_SENSITIVE_FIELDS else _sanitize_for_audit(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [_sanitize_for_audit(item) for item in data]
    elif isinstance(data, UUID):
        return str(data)
    elif isinstance(data, datetime):
        return data.isoformat()
    elif isinstance(data, Enum):
        return data.value
    else:
        return data


def record_to_dict(record: AuditLogRecord) -> Dict[str, Any]:
    """Serialize a stored entry for API responses and exports."""
    return {
        "event_id": record.event_id,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "tenant_id": str(record.tenant_id),
        "principal_id": str(record.principal_id) if record.principal_id else None,
        "action": record.action,
        "resource": record.resource,
        "details": record.details or {},
        "severity": record.severity,
        "origin_address": record.origin_address,
        "user_agent": record.user_agent,
        "integrity_hash": record.integrity_hash,
    }


# ============================================================
# Audit Logger
# ============================================================


class AuditLogger:
    """
    Central audit writer.

    Three ways in:
        stage(db, entry)  - add to the caller's transaction (atomic with it)
        record(entry)     - write now in a dedicated session, with retries
        enqueue(entry)    - schedule record() and return immediately

    None of them raise on storage failure.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        attempts: int = AUDIT_WRITE_ATTEMPTS,
        retry_delay: float = AUDIT_RETRY_DELAY_SEC,
    ):
        self._session_maker = session_maker
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self.failed_writes = 0
        self._pending: Set[asyncio.Task] = set()

    def _emit(self, entry: AuditEntry) -> None:
        logger.info(
            "AUDIT",
            extra={
                "audit_event": entry.to_dict(),
                "event_hash": entry.compute_hash(),
            },
        )

    def _fallback(self, entry: AuditEntry, reason: str) -> None:
        self.failed_writes += 1
        fallback_logger.error(
            "AUDIT_WRITE_FAILED: %s",
            reason,
            extra={
                "audit_event": entry.to_dict(),
                "event_hash": entry.compute_hash(),
            },
        )

    def stage(self, db: AsyncSession, entry: AuditEntry) -> AuditLogRecord:
        """Add the entry to an open session; it commits or rolls back with it."""
        self._emit(entry)
        record = entry.to_record()
        db.add(record)
        return record

    async def record(self, entry: AuditEntry) -> bool:
        """Persist an entry in its own session. Returns False if every attempt failed."""
        self._emit(entry)

        last_error = None
        for attempt in range(1, self.attempts + 1):
            try:
                async with self._session_maker() as session:
                    session.add(entry.to_record())
                    await session.commit()
                return True
            except Exception as e:
                last_error = e
                logger.warning(
                    "Audit write attempt %d/%d failed for %s: %s",
                    attempt, self.attempts, entry.event_id, e,
                )
                if attempt < self.attempts:
                    await asyncio.sleep(self.retry_delay)

        self._fallback(entry, f"{type(last_error).__name__}: {last_error}")
        return False

    def enqueue(self, entry: AuditEntry) -> Optional[asyncio.Task]:
        """Schedule an entry for writing without waiting for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._fallback(entry, "no running event loop")
            return None

        task = loop.create_task(self.record(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def log_event(
        self,
        tenant_id: UUID,
        action: Union[str, AuditAction],
        principal_id: Optional[UUID] = None,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        origin_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditEntry:
        """Build and enqueue an entry. Used by collaborators reporting their own events."""
        entry = AuditEntry(
            tenant_id=tenant_id,
            action=action,
            principal_id=principal_id,
            resource=resource,
            details=details or {},
            origin_address=origin_address,
            user_agent=user_agent,
        )
        self.enqueue(entry)
        return entry

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled write, including ones scheduled meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


# ============================================================
# Audit Trail (tenant-scoped reads)
# ============================================================


@dataclass
class AuditQuery:
    """Filters for an audit log page."""

    principal_id: Optional[UUID] = None
    action: Optional[str] = None
    resource: Optional[str] = None
    origin_address: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    search: Optional[str] = None
    limit: int = AUDIT_DEFAULT_PAGE_SIZE
    offset: int = 0


@dataclass
class AuditPage:
    entries: List[AuditLogRecord]
    total: int
    limit: int
    offset: int


class AuditTrail:
    """Query, statistics, export and retention purge for one tenant's log."""

    def __init__(self, db: AsyncSession, tenant_id: UUID, audit: Optional[AuditLogger] = None):
        self.db = db
        self.tenant_id = tenant_id
        self.audit = audit

    def _filtered(self, q: AuditQuery):
        stmt = select(AuditLogRecord).where(AuditLogRecord.tenant_id == self.tenant_id)

        if q.principal_id:
            stmt = stmt.where(AuditLogRecord.principal_id == q.principal_id)
        if q.action:
            stmt = stmt.where(AuditLogRecord.action == action_code(q.action))
        if q.resource:
            stmt = stmt.where(AuditLogRecord.resource == q.resource)
        if q.origin_address:
            stmt = stmt.where(AuditLogRecord.origin_address == q.origin_address)
        if q.start_time:
            stmt = stmt.where(AuditLogRecord.created_at >= q.start_time)
        if q.end_time:
            stmt = stmt.where(AuditLogRecord.created_at <= q.end_time)
        if q.search:
            stmt = stmt.where(
                or_(
                    AuditLogRecord.action.ilike(f"%{q.search}%"),
                    AuditLogRecord.resource.ilike(f"%{q.search}%"),
                )
            )
        return stmt

    async def query(self, q: Optional[AuditQuery] = None) -> AuditPage:
        """Paginated entries, newest first."""
        q = q or AuditQuery()
        limit = max(1, min(q.limit, AUDIT_MAX_PAGE_SIZE))
        offset = max(0, q.offset)

        stmt = self._filtered(q)
        total = await self.db.scalar(
            select(func.count()).select_from(stmt.subquery())
        ) or 0

        result = await self.db.execute(
            stmt.order_by(desc(AuditLogRecord.created_at), desc(AuditLogRecord.id))
            .limit(limit)
            .offset(offset)
        )
        return AuditPage(
            entries=list(result.scalars().all()),
            total=total,
            limit=limit,
            offset=offset,
        )

    async def since(self, cutoff: datetime) -> List[AuditLogRecord]:
        """Every entry at or after the cutoff, newest first."""
        result = await self.db.execute(
            select(AuditLogRecord)
            .where(
                AuditLogRecord.tenant_id == self.tenant_id,
                AuditLogRecord.created_at >= cutoff,
            )
            .order_by(desc(AuditLogRecord.created_at))
        )
        return list(result.scalars().all())

    async def statistics(self, now: Optional[datetime] = None, top: int = 5) -> Dict[str, Any]:
        """
        Totals and top actions/resources for the tenant.

        "today" starts at midnight in the tenant's own time zone.
        """
        now = now or utcnow()
        zone = tenant_zone(
            await self.db.scalar(select(Tenant.timezone).where(Tenant.id == self.tenant_id))
        )
        local_midnight = now.astimezone(zone).replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_day = local_midnight.astimezone(timezone.utc)
        week_ago = now - timedelta(days=7)
        tenant_filter = AuditLogRecord.tenant_id == self.tenant_id

        total = await self.db.scalar(
            select(func.count(AuditLogRecord.id)).where(tenant_filter)
        ) or 0
        today = await self.db.scalar(
            select(func.count(AuditLogRecord.id)).where(
                tenant_filter,
                AuditLogRecord.created_at >= start_of_day,
                AuditLogRecord.created_at <= now,
            )
        ) or 0
        last_7_days = await self.db.scalar(
            select(func.count(AuditLogRecord.id)).where(
                tenant_filter,
                AuditLogRecord.created_at >= week_ago,
                AuditLogRecord.created_at <= now,
            )
        ) or 0
        active_principals = await self.db.scalar(
            select(func.count(func.distinct(AuditLogRecord.principal_id))).where(
                tenant_filter,
                AuditLogRecord.created_at >= week_ago,
                AuditLogRecord.principal_id.is_not(None),
            )
        ) or 0

        action_count = func.count(AuditLogRecord.id).label("count")
        top_actions = await self.db.execute(
            select(AuditLogRecord.action, action_count)
            .where(tenant_filter)
            .group_by(AuditLogRecord.action)
            .order_by(desc(action_count), AuditLogRecord.action)
            .limit(top)
        )

        resource_count = func.count(AuditLogRecord.id).label("count")
        top_resources = await self.db.execute(
            select(AuditLogRecord.resource, resource_count)
            .where(tenant_filter, AuditLogRecord.resource.is_not(None))
            .group_by(AuditLogRecord.resource)
            .order_by(desc(resource_count), AuditLogRecord.resource)
            .limit(top)
        )

        return {
            "total": total,
            "today": today,
            "last_7_days": last_7_days,
            "active_principals": active_principals,
            "top_actions": [{"action": a, "count": c} for a, c in top_actions.all()],
            "top_resources": [{"resource": r, "count": c} for r, c in top_resources.all()],
        }

    async def export(
        self,
        start_time: datetime,
        end_time: datetime,
        format: str = "json",
        include_hash: bool = True,
        limit: int = 10000,
    ) -> str:
        """Export entries in a period as JSON (with integrity hash) or CSV."""
        result = await self.db.execute(
            self._filtered(AuditQuery(start_time=start_time, end_time=end_time))
            .order_by(AuditLogRecord.created_at, AuditLogRecord.id)
            .limit(limit)
        )
        events = [record_to_dict(r) for r in result.scalars().all()]

        if format == "json":
            export_data = {
                "export_timestamp": utcnow().isoformat(),
                "tenant_id": str(self.tenant_id),
                "period_start": start_time.isoformat(),
                "period_end": end_time.isoformat(),
                "event_count": len(events),
                "events": events,
            }
            if include_hash:
                content = json.dumps(export_data, sort_keys=True, default=str)
                export_data["integrity_hash"] = hashlib.sha256(content.encode()).hexdigest()

            return json.dumps(export_data, indent=2, default=str)

        if format == "csv":
            columns = [
                "event_id", "created_at", "principal_id", "action", "resource",
                "severity", "origin_address", "user_agent", "details", "integrity_hash",
            ]
            buffer = io.StringIO()
            writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
            writer.writeheader()
            for event in events:
                row = dict(event)
                row["details"] = json.dumps(event["details"], sort_keys=True, default=str)
                writer.writerow(row)
            return buffer.getvalue()

        raise ValueError(f"Unsupported format: {format}")

    async def purge(self, actor: Principal, older_than_days: int) -> int:
        """
        Delete entries older than the given age.

        Raises:
            PermissionDeniedError: If the actor lacks the full_audit privilege
            CrossTenantReferenceError: If the actor belongs to another tenant
        """
        if actor.tenant_id != self.tenant_id:
            raise CrossTenantReferenceError(
                "Actor does not belong to this tenant",
                details={"tenant_id": str(self.tenant_id)},
            )
        if not has_privilege(actor.role, Privilege.FULL_AUDIT):
            raise PermissionDeniedError(
                "Purging audit logs requires the full_audit privilege",
                privilege=Privilege.FULL_AUDIT.value,
            )
        if older_than_days < 1:
            raise ValueError("older_than_days must be at least 1")

        cutoff = utcnow() - timedelta(days=older_than_days)
        result = await self.db.execute(
            delete(AuditLogRecord).where(
                AuditLogRecord.tenant_id == self.tenant_id,
                AuditLogRecord.created_at < cutoff,
            ).execution_options(synchronize_session=False)
        )
        removed = result.rowcount or 0

        if self.audit is not None:
            self.audit.stage(
                self.db,
                AuditEntry(
                    tenant_id=self.tenant_id,
                    principal_id=actor.id,
                    action=AuditAction.AUDIT_PURGED,
                    resource="audit_logs",
                    details={"older_than_days": older_than_days, "removed": removed},
                ),
            )
        await self.db.commit()

        logger.info(
            "Purged %d audit entries older than %d days for tenant %s",
            removed, older_than_days, self.tenant_id,
        )
        return removed
