"""
Tenant Configuration Service

Read and update the per-category settings documents of a tenant. Access is
gated by the principal's role through the configuration-category gate.
"""

import logging
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.warden_core.audit_events import AuditAction
from shared.warden_core.categories import ConfigCategory, parse_category
from shared.warden_core.credentials import PasswordPolicy
from shared.warden_core.evaluator import evaluate_category_access
from shared.warden_core.exceptions import InvalidConfigError, PermissionDeniedError
from warden.api.access.audit import AuditEntry, AuditLogger
from warden.api.access.tenancy import TenantScope
from warden.api.configuration.schemas import CATEGORY_MODELS, default_settings
from warden.api.db.models import Principal, Tenant, TenantConfiguration


logger = logging.getLogger(__name__)


def _merge(current: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive merge; nested documents are updated, not replaced."""
    merged = dict(current)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_settings(category: ConfigCategory, document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a full settings document for a category.

    Raises:
        InvalidConfigError: With pydantic's error list in details
    """
    model = CATEGORY_MODELS[category]
    try:
        return model.model_validate(document).model_dump(mode="json")
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidConfigError(
            f"Invalid {category.value} configuration",
            details={"category": category.value, "errors": errors},
        )


def build_default_configurations(tenant: Tenant) -> Dict[ConfigCategory, Dict[str, Any]]:
    """Default documents for all five categories of a new tenant."""
    return {
        category: default_settings(category, company_name=tenant.name, timezone=tenant.timezone)
        for category in ConfigCategory
    }


class ConfigurationService:
    """Tenant configuration reads and updates."""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def _load(self, tenant_id: UUID, category: ConfigCategory) -> Optional[TenantConfiguration]:
        result = await self.db.execute(
            select(TenantConfiguration).where(
                TenantConfiguration.tenant_id == tenant_id,
                TenantConfiguration.category == category,
            )
        )
        return result.scalar_one_or_none()

    def _require_category(self, actor: Principal, category: ConfigCategory) -> None:
        decision = evaluate_category_access(actor.role, category)
        if not decision.allowed:
            raise PermissionDeniedError(
                f"Role {actor.role.value} may not access {category.value} configuration",
                code=decision.code.value,
                category=category.value,
            )

    async def settings_for(self, tenant_id: UUID, category: ConfigCategory) -> Dict[str, Any]:
        """Stored document, or the category defaults when none is stored. Not gated."""
        record = await self._load(tenant_id, category)
        if record is None:
            return default_settings(category)
        return record.settings or default_settings(category)

    async def password_policy(self, tenant_id: UUID) -> PasswordPolicy:
        """Password policy from the tenant's security configuration."""
        security = await self.settings_for(tenant_id, ConfigCategory.SECURITY)
        return PasswordPolicy.from_settings(security.get("password_policy"))

    async def get(
        self, actor: Principal, category: Union[str, ConfigCategory]
    ) -> Dict[str, Any]:
        """
        Read a category for the actor's tenant.

        Raises:
            PermissionDeniedError: If the actor's role may not access the category
        """
        category = parse_category(category)
        self._require_category(actor, category)
        return await self.settings_for(actor.tenant_id, category)

    async def update(
        self,
        actor: Principal,
        category: Union[str, ConfigCategory],
        changes: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Merge changes into a category document, validate and store it.

        Raises:
            PermissionDeniedError: If the actor's role may not access the category
            InvalidConfigError: If the merged document fails validation
        """
        category = parse_category(category)
        self._require_category(actor, category)

        record = await self._load(actor.tenant_id, category)
        if record is not None:
            TenantScope.of(actor).ensure(record, "TenantConfiguration")
        current = (record.settings if record else None) or default_settings(category)
        document = validate_settings(category, _merge(current, changes))

        if record is None:
            record = TenantConfiguration(
                tenant_id=actor.tenant_id,
                category=category,
                settings=document,
                updated_by=actor.id,
            )
            self.db.add(record)
        else:
            record.settings = document
            record.updated_by = actor.id

        action = (
            AuditAction.CONFIG_SECURITY_CHANGED
            if category == ConfigCategory.SECURITY
            else AuditAction.CONFIG_CHANGED
        )
        self.audit.stage(
            self.db,
            AuditEntry(
                tenant_id=actor.tenant_id,
                principal_id=actor.id,
                action=action,
                resource="tenant_configurations",
                details={"category": category.value, "changed_keys": sorted(changes)},
            ),
        )
        await self.db.commit()

        logger.info(
            "Configuration %s updated for tenant %s by %s",
            category.value, actor.tenant_id, actor.id,
        )
        return document
