"""
Principal Schemas

Pydantic models for principal management and the permission matrix.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from shared.warden_core.modules import Module, ModuleAction, ModulePermission, PermissionPreset
from shared.warden_core.roles import Role
from warden.api.db.models import PrincipalStatus


# ==================== Permissions ====================


class PermissionFlags(BaseModel):
    """Five action flags on one module."""

    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    administer: bool = False

    def to_permission(self) -> ModulePermission:
        return ModulePermission(**self.model_dump())

    @classmethod
    def from_permission(cls, permission: ModulePermission) -> "PermissionFlags":
        return cls(**permission.to_dict())


class PermissionMatrixResponse(BaseModel):
    principal_id: UUID
    role: Role
    full_access: bool
    permissions: Dict[Module, PermissionFlags]


class PermissionToggleRequest(BaseModel):
    action: ModuleAction
    value: bool


class PresetRequest(BaseModel):
    preset: PermissionPreset
    modules: Optional[List[Module]] = None


# ==================== Principals ====================


class PrincipalInvite(BaseModel):
    """New principal within the actor's tenant."""

    user_id: str = Field(..., min_length=1, max_length=255)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    job_title: Optional[str] = Field(None, max_length=100)
    role: Role = Role.BASE
    preset: PermissionPreset = PermissionPreset.NONE
    permissions: Dict[Module, PermissionFlags] = Field(default_factory=dict)


class PrincipalResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    user_id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    job_title: Optional[str] = None
    role: Role
    status: PrincipalStatus
    is_first_principal: bool
    is_full_admin: bool
    credential_is_provisional: bool
    created_at: datetime
    last_authenticated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PrincipalListResponse(BaseModel):
    principals: List[PrincipalResponse]
    total: int


class InviteResponse(BaseModel):
    principal: PrincipalResponse
    temporary_credential: str


class RoleChangeRequest(BaseModel):
    role: Role


class StatusChangeRequest(BaseModel):
    status: PrincipalStatus


class CredentialResetResponse(BaseModel):
    principal_id: UUID
    temporary_credential: str
