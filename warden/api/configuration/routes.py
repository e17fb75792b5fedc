"""
Configuration Routes

Read and update tenant configuration categories. Access to each category is
decided by the caller's role.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.categories import ConfigCategory
from warden.api.access.audit import AuditLogger
from warden.api.configuration.schemas import ConfigurationResponse, ConfigurationUpdateRequest
from warden.api.configuration.service import ConfigurationService
from warden.api.db.models import Principal
from warden.api.db.session import get_db
from warden.api.dependencies import get_audit_logger, require_category


router = APIRouter()


@router.get(
    "/{category}",
    response_model=ConfigurationResponse,
    summary="Get configuration category",
)
async def get_configuration(
    category: ConfigCategory,
    principal: Principal = Depends(require_category()),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> ConfigurationResponse:
    settings = await ConfigurationService(db, audit).get(principal, category)
    return ConfigurationResponse(category=category, settings=settings)


@router.patch(
    "/{category}",
    response_model=ConfigurationResponse,
    summary="Update configuration category",
)
async def update_configuration(
    category: ConfigCategory,
    request: ConfigurationUpdateRequest,
    principal: Principal = Depends(require_category()),
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> ConfigurationResponse:
    """Merge the given keys into the stored document and validate the result."""
    settings: Dict[str, Any] = await ConfigurationService(db, audit).update(
        principal, category, request.settings
    )
    return ConfigurationResponse(category=category, settings=settings)
