"""
Tenant Configuration Schemas

Pydantic models for the five configuration categories. The defaults here are
what a freshly bootstrapped tenant starts with.
"""

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field, field_validator

from shared.warden_core.categories import ConfigCategory
from shared.warden_core.constants import (
    DEFAULT_TENANT_TIMEZONE,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
)
from shared.warden_core.modules import Module


# ==================== Categories ====================


class GeneralSettings(BaseModel):
    """Company identity and display preferences."""

    company_name: str = ""
    logo_url: Optional[str] = None
    theme: Literal["light", "dark", "auto"] = "light"
    language: str = "pt-BR"
    timezone: str = DEFAULT_TENANT_TIMEZONE
    date_format: str = "DD/MM/YYYY"


class PasswordPolicySettings(BaseModel):
    min_length: int = Field(default=PASSWORD_MIN_LENGTH, ge=6, le=PASSWORD_MAX_LENGTH)
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_symbol: bool = False


class SecuritySettings(BaseModel):
    """Session, lockout and password rules."""

    session_timeout_minutes: int = Field(default=480, ge=5, le=1440)
    max_login_attempts: int = Field(default=5, ge=3, le=10)
    lockout_minutes: int = Field(default=15, ge=1, le=60)
    require_two_factor: bool = False
    ip_allowlist: List[str] = Field(default_factory=list)
    password_policy: PasswordPolicySettings = Field(default_factory=PasswordPolicySettings)


class SystemSettings(BaseModel):
    automatic_backup: bool = True
    log_retention_days: int = Field(default=90, ge=30, le=365)
    user_limit: int = Field(default=50, ge=1, le=1000)
    enabled_modules: List[Module] = Field(default_factory=lambda: list(Module))


class NotificationSettings(BaseModel):
    email_new_principals: bool = True
    email_failed_logins: bool = True
    email_config_changes: bool = True
    webhook_events: List[str] = Field(default_factory=list)


class ExternalIntegration(BaseModel):
    erp_enabled: bool = False
    api_endpoint: Optional[str] = None
    access_token: Optional[str] = None


class IntegrationSettings(BaseModel):
    webhook_url: Optional[str] = None
    api_keys: Dict[str, str] = Field(default_factory=dict)
    external: ExternalIntegration = Field(default_factory=ExternalIntegration)

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("webhook_url must be an http(s) URL")
        return v


CATEGORY_MODELS: Dict[ConfigCategory, Type[BaseModel]] = {
    ConfigCategory.GENERAL: GeneralSettings,
    ConfigCategory.SECURITY: SecuritySettings,
    ConfigCategory.SYSTEM: SystemSettings,
    ConfigCategory.NOTIFICATIONS: NotificationSettings,
    ConfigCategory.INTEGRATION: IntegrationSettings,
}


def default_settings(
    category: ConfigCategory,
    company_name: str = "",
    timezone: Optional[str] = None,
) -> Dict[str, Any]:
    """Default settings document for a category."""
    if category == ConfigCategory.GENERAL:
        model = GeneralSettings(
            company_name=company_name,
            timezone=timezone or DEFAULT_TENANT_TIMEZONE,
        )
    else:
        model = CATEGORY_MODELS[category]()
    return model.model_dump(mode="json")


# ==================== API ====================


class ConfigurationResponse(BaseModel):
    category: ConfigCategory
    settings: Dict[str, Any]


class ConfigurationUpdateRequest(BaseModel):
    settings: Dict[str, Any]
