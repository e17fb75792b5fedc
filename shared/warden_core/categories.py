"""
WARDEN - Configuration Category Gate
====================================

Coarse-grained gate for tenant configuration areas. Access depends on role
alone; module permissions play no part.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Union

from .exceptions import InvalidCategoryError
from .roles import Role


class ConfigCategory(str, Enum):
    """Tenant configuration areas."""

    GENERAL = "general"
    SECURITY = "security"
    SYSTEM = "system"
    NOTIFICATIONS = "notifications"
    INTEGRATION = "integration"


class Criticality(str, Enum):
    """How damaging a misconfiguration of the category can be."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


CATEGORY_ROLES: Dict[ConfigCategory, FrozenSet[Role]] = {
    ConfigCategory.GENERAL: frozenset({Role.TOP, Role.ADMIN}),
    ConfigCategory.SECURITY: frozenset({Role.TOP}),
    ConfigCategory.SYSTEM: frozenset({Role.TOP}),
    ConfigCategory.NOTIFICATIONS: frozenset({Role.TOP, Role.ADMIN}),
    ConfigCategory.INTEGRATION: frozenset({Role.TOP}),
}

CATEGORY_CRITICALITY: Dict[ConfigCategory, Criticality] = {
    ConfigCategory.GENERAL: Criticality.LOW,
    ConfigCategory.SECURITY: Criticality.CRITICAL,
    ConfigCategory.SYSTEM: Criticality.HIGH,
    ConfigCategory.NOTIFICATIONS: Criticality.MEDIUM,
    ConfigCategory.INTEGRATION: Criticality.HIGH,
}


def parse_category(value: Union[str, ConfigCategory]) -> ConfigCategory:
    """Convert a boundary value to a ConfigCategory."""
    if isinstance(value, ConfigCategory):
        return value
    try:
        return ConfigCategory(str(value).lower())
    except ValueError:
        raise InvalidCategoryError(
            f"Unknown configuration category: {value!r}",
            details={"value": str(value), "allowed": [c.value for c in ConfigCategory]},
        ) from None


def can_access_category(role: Role, category: ConfigCategory) -> bool:
    """Check if a role may read and change a configuration category."""
    return role in CATEGORY_ROLES[category]


def accessible_categories(role: Role) -> List[ConfigCategory]:
    """Categories a role may access, in declaration order."""
    return [c for c in ConfigCategory if role in CATEGORY_ROLES[c]]


def category_criticality(category: ConfigCategory) -> Criticality:
    return CATEGORY_CRITICALITY[category]


__all__ = [
    "ConfigCategory",
    "Criticality",
    "CATEGORY_ROLES",
    "CATEGORY_CRITICALITY",
    "parse_category",
    "can_access_category",
    "accessible_categories",
    "category_criticality",
]
