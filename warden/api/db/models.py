"""
SQLAlchemy ORM Models

Database models for the WARDEN authorization engine.

Every row except the tenant itself carries a tenant_id; services always
filter on it. The audit log has no update path.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from shared.warden_core.categories import ConfigCategory
from shared.warden_core.modules import Module, ModuleAction, ModulePermission
from shared.warden_core.roles import Role


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TenantStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class PrincipalStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"


class Tenant(Base):
    """Isolated organization namespace."""

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    registration_number: Mapped[Optional[str]] = mapped_column(String(32), unique=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus, native_enum=False, length=16, values_callable=_enum_values),
        default=TenantStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    principals: Mapped[list["Principal"]] = relationship(
        "Principal", back_populates="tenant", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.name} ({self.id})>"


class Principal(Base):
    """A user's identity within one tenant."""

    __tablename__ = "principals"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_principals_tenant_email"),
        UniqueConstraint("tenant_id", "user_id", name="uq_principals_tenant_user"),
        # At most one first principal per tenant
        Index(
            "uq_principals_first_per_tenant",
            "tenant_id",
            unique=True,
            postgresql_where=text("is_first_principal"),
            sqlite_where=text("is_first_principal = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Identity reference issued by the session layer
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    job_title: Mapped[Optional[str]] = mapped_column(String(100))

    # Legacy coarse admin flag, still honoured as a full bypass
    is_full_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=16, values_callable=_enum_values),
        default=Role.BASE,
        nullable=False,
    )
    is_first_principal: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[PrincipalStatus] = mapped_column(
        Enum(PrincipalStatus, native_enum=False, length=16, values_callable=_enum_values),
        default=PrincipalStatus.ACTIVE,
    )

    credential_is_provisional: Mapped[bool] = mapped_column(Boolean, default=False)
    credential_hash: Mapped[Optional[str]] = mapped_column(String(255))
    credential_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_authenticated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="principals")
    permissions: Mapped[list["ModulePermissionRecord"]] = relationship(
        "ModulePermissionRecord",
        back_populates="principal",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        return self.status == PrincipalStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Principal {self.email} {self.role.value}>"


class ModulePermissionRecord(Base):
    """Five action flags for one principal on one module."""

    __tablename__ = "module_permissions"
    __table_args__ = (
        UniqueConstraint("principal_id", "module", name="uq_module_permissions_principal_module"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    principal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("principals.id", ondelete="CASCADE"), nullable=False
    )
    module: Mapped[Module] = mapped_column(
        Enum(Module, native_enum=False, length=32, values_callable=_enum_values),
        nullable=False,
    )

    can_view: Mapped[bool] = mapped_column(Boolean, default=False)
    can_create: Mapped[bool] = mapped_column(Boolean, default=False)
    can_edit: Mapped[bool] = mapped_column(Boolean, default=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=False)
    can_administer: Mapped[bool] = mapped_column(Boolean, default=False)

    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    principal: Mapped["Principal"] = relationship("Principal", back_populates="permissions")

    def to_permission(self) -> ModulePermission:
        return ModulePermission(
            view=bool(self.can_view),
            create=bool(self.can_create),
            edit=bool(self.can_edit),
            delete=bool(self.can_delete),
            administer=bool(self.can_administer),
        )

    def assign(self, permission: ModulePermission) -> None:
        """Copy flags from an already-normalized permission."""
        for action in ModuleAction:
            setattr(self, f"can_{action.value}", permission.allows(action))

    def __repr__(self) -> str:
        return f"<ModulePermission {self.principal_id} {self.module.value}>"


class TenantConfiguration(Base):
    """One settings document per tenant and configuration category."""

    __tablename__ = "tenant_configurations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "category", name="uq_tenant_configurations_category"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[ConfigCategory] = mapped_column(
        Enum(ConfigCategory, native_enum=False, length=32, values_callable=_enum_values),
        nullable=False,
    )
    settings: Mapped[dict] = mapped_column(JSONType, default=dict)

    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class AuditLogRecord(Base):
    """Append-only audit log entry."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_tenant_created", "tenant_id", "created_at"),
        Index("ix_audit_logs_tenant_action", "tenant_id", "action"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    # No foreign key: entries outlive deleted principals
    principal_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)

    action: Mapped[str] = mapped_column(String(64), nullable=False)
    resource: Mapped[Optional[str]] = mapped_column(String(255))
    details: Mapped[Optional[dict]] = mapped_column(JSONType)
    severity: Mapped[str] = mapped_column(String(16), default="medium")

    origin_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(512))

    integrity_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_id} {self.action}>"
