"""
Bootstrap Schemas

Pydantic models for tenant registration and first-principal provisioning.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from shared.warden_core.constants import PASSWORD_MAX_LENGTH
from shared.warden_core.roles import Role


class FirstPrincipalDraft(BaseModel):
    """Details of the principal that will own a new tenant."""

    user_id: str = Field(..., min_length=1, max_length=255)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    job_title: Optional[str] = Field(None, max_length=100)
    credential: Optional[str] = Field(None, max_length=PASSWORD_MAX_LENGTH)


class TenantRegistration(BaseModel):
    """Tenant registration request."""

    name: str = Field(..., min_length=1, max_length=255)
    registration_number: Optional[str] = Field(None, max_length=32)
    contact_email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    timezone: Optional[str] = Field(None, max_length=64)
    first_principal: FirstPrincipalDraft


class TenantResponse(BaseModel):
    id: UUID
    name: str
    registration_number: Optional[str] = None
    contact_email: Optional[str] = None
    timezone: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BootstrapResponse(BaseModel):
    tenant: TenantResponse
    principal_id: UUID
    role: Role
