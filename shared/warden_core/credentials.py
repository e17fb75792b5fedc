"""
WARDEN - Credential Lifecycle
=============================

Two states: NORMAL and PROVISIONAL. A provisional credential blocks every
action except replacing the credential and logging out. The only way back to
NORMAL is a change-credential that satisfies the tenant password policy.
"""

import string
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .constants import PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH, PASSWORD_SYMBOLS


class CredentialState(str, Enum):
    NORMAL = "NORMAL"
    PROVISIONAL = "PROVISIONAL"


class SessionAction(str, Enum):
    """Actions outside the module matrix that the lifecycle guard knows."""

    CHANGE_CREDENTIAL = "change_credential"
    LOGOUT = "logout"


# Allowed while the credential is provisional
PROVISIONAL_ALLOWED_ACTIONS = frozenset({
    SessionAction.CHANGE_CREDENTIAL,
    SessionAction.LOGOUT,
})


class CredentialHolder(Protocol):
    credential_is_provisional: bool


def credential_state(principal: CredentialHolder) -> CredentialState:
    if principal.credential_is_provisional:
        return CredentialState.PROVISIONAL
    return CredentialState.NORMAL


def is_blocked_by_credential(principal: CredentialHolder, action: Optional[SessionAction] = None) -> bool:
    """
    True if the principal's credential state blocks the action.

    Module actions are passed as None; they are always blocked while
    provisional.
    """
    if credential_state(principal) == CredentialState.NORMAL:
        return False
    return action not in PROVISIONAL_ALLOWED_ACTIONS


@dataclass(frozen=True)
class PasswordPolicy:
    """Per-tenant password rules, read from the security configuration."""

    min_length: int = PASSWORD_MIN_LENGTH
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_symbol: bool = False
    max_length: int = PASSWORD_MAX_LENGTH

    @classmethod
    def from_settings(cls, settings: Optional[Mapping[str, Any]]) -> "PasswordPolicy":
        """Build from the password_policy block of a security settings document."""
        if not settings:
            return cls()
        known = {k: v for k, v in settings.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def violations(self, password: str) -> List[str]:
        """List of rule codes the password breaks; empty when valid."""
        problems: List[str] = []
        if len(password) < self.min_length:
            problems.append("min_length")
        if len(password.encode("utf-8")) > min(self.max_length, PASSWORD_MAX_LENGTH):
            problems.append("max_length")
        if self.require_uppercase and not any(c in string.ascii_uppercase for c in password):
            problems.append("uppercase")
        if self.require_lowercase and not any(c in string.ascii_lowercase for c in password):
            problems.append("lowercase")
        if self.require_digit and not any(c in string.digits for c in password):
            problems.append("digit")
        if self.require_symbol and not any(c in PASSWORD_SYMBOLS for c in password):
            problems.append("symbol")
        return problems

    def is_satisfied_by(self, password: str) -> bool:
        return not self.violations(password)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_length": self.min_length,
            "require_uppercase": self.require_uppercase,
            "require_lowercase": self.require_lowercase,
            "require_digit": self.require_digit,
            "require_symbol": self.require_symbol,
            "max_length": self.max_length,
        }


__all__ = [
    "CredentialState",
    "SessionAction",
    "PROVISIONAL_ALLOWED_ACTIONS",
    "credential_state",
    "is_blocked_by_credential",
    "PasswordPolicy",
]
