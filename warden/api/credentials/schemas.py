"""
Credential Schemas

Pydantic models for credential change.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from shared.warden_core.constants import PASSWORD_MAX_LENGTH
from shared.warden_core.credentials import CredentialState


class CredentialChangeRequest(BaseModel):
    current_credential: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_credential: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class CredentialStatusResponse(BaseModel):
    principal_id: UUID
    state: CredentialState
    changed_at: Optional[datetime] = None
