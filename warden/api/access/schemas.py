"""
Access Schemas

Pydantic models for the audit log, anomaly report and decision-check endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.warden_core.categories import ConfigCategory
from shared.warden_core.modules import Module, ModuleAction
from shared.warden_core.role_ops import RoleOperation
from shared.warden_core.roles import Role


# ==================== Audit Log ====================


class AuditLogEntryResponse(BaseModel):
    event_id: str
    created_at: datetime
    principal_id: Optional[UUID] = None
    action: str
    resource: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    severity: str
    origin_address: Optional[str] = None
    user_agent: Optional[str] = None
    integrity_hash: str

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    entries: List[AuditLogEntryResponse]
    total: int
    limit: int
    offset: int


class ActionCount(BaseModel):
    action: str
    count: int


class ResourceCount(BaseModel):
    resource: str
    count: int


class AuditStatisticsResponse(BaseModel):
    total: int
    today: int
    last_7_days: int
    active_principals: int
    top_actions: List[ActionCount]
    top_resources: List[ResourceCount]


class PurgeResponse(BaseModel):
    removed: int
    older_than_days: int


# ==================== Anomalies ====================


class FindingResponse(BaseModel):
    category: str
    description: str
    severity: str
    count: int
    event_ids: List[str]


class AnomalyReportResponse(BaseModel):
    tenant_id: UUID
    scanned_at: datetime
    window_hours: float
    findings: List[FindingResponse]


# ==================== Decision checks ====================


class RoleCheckRequest(BaseModel):
    target_role: Role
    operation: RoleOperation


class RoleCheckResponse(BaseModel):
    allowed: bool
    operation: RoleOperation
    actor_role: Role
    target_role: Role
    reason: Optional[str] = None


class AccessCheckRequest(BaseModel):
    module: Module
    action: ModuleAction
    resource: Optional[str] = Field(None, max_length=255)


class CategoryCheckRequest(BaseModel):
    category: ConfigCategory


class DecisionResponse(BaseModel):
    allowed: bool
    code: str
    module: Optional[str] = None
    action: Optional[str] = None
    category: Optional[str] = None
    bypass: bool = False
    redirect_hint: Optional[str] = None
    details: Dict[str, Any] = {}
