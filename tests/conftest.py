"""
WARDEN Test Configuration
=========================

Pytest fixtures for the pure authorization core.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import pytest

from shared.warden_core.roles import Role


@dataclass
class StubPrincipal:
    """Minimal principal shape accepted by the core functions."""

    role: Role = Role.BASE
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    tenant_id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_full_admin: bool = False
    credential_is_provisional: bool = False


@dataclass
class StubEntry:
    """Minimal audit entry shape accepted by the anomaly scanner."""

    action: str
    created_at: datetime
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:16]}")
    principal_id: Optional[uuid.UUID] = None


@pytest.fixture
def make_principal():
    """Factory for stub principals."""

    def factory(role: Role = Role.BASE, **kwargs) -> StubPrincipal:
        return StubPrincipal(role=role, **kwargs)

    return factory


@pytest.fixture
def make_entry():
    """Factory for stub audit entries."""

    def factory(action: str, created_at: datetime, **kwargs) -> StubEntry:
        return StubEntry(action=action, created_at=created_at, **kwargs)

    return factory


@pytest.fixture
def noon_utc() -> datetime:
    """A weekday at midday UTC, inside business hours."""
    return datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)
