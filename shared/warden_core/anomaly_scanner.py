"""
WARDEN - Audit Anomaly Scanner
==============================

Heuristics over recent audit entries of one tenant. The scanner is
read-only: it returns findings and never raises alerts itself.

Rules (thresholds are fixed):
    - >= 5 FAILED_LOGIN within the last hour     -> suspicious authentication
    - non-LOGIN/LOGOUT activity at 22:00-06:00
      tenant-local time within the scan window   -> off-hours activity
    - >= 10 delete actions within the last hour  -> mass deletion
    - any CONFIG_* action within the last 24h    -> configuration changed

Author: WARDEN Development Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from .audit_events import SESSION_ACTIONS, is_config_action, is_delete_action
from .constants import (
    CONFIG_CHANGE_WINDOW,
    DEFAULT_SCAN_WINDOW,
    FAILED_AUTH_THRESHOLD,
    FAILED_AUTH_WINDOW,
    MASS_DELETION_THRESHOLD,
    MASS_DELETION_WINDOW,
    OFF_HOURS_END_HOUR,
    OFF_HOURS_START_HOUR,
)

logger = logging.getLogger(__name__)


class EntryLike(Protocol):
    action: str
    created_at: datetime


class FindingCategory(str, Enum):
    SUSPICIOUS_AUTHENTICATION = "suspicious_authentication_attempts"
    OFF_HOURS_ACTIVITY = "off_hours_activity"
    MASS_DELETION = "mass_deletion"
    CONFIGURATION_CHANGED = "configuration_changed"


class FindingSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


FINDING_SEVERITY: Dict[FindingCategory, FindingSeverity] = {
    FindingCategory.SUSPICIOUS_AUTHENTICATION: FindingSeverity.CRITICAL,
    FindingCategory.OFF_HOURS_ACTIVITY: FindingSeverity.WARNING,
    FindingCategory.MASS_DELETION: FindingSeverity.CRITICAL,
    FindingCategory.CONFIGURATION_CHANGED: FindingSeverity.INFO,
}


@dataclass
class Finding:
    """One flagged pattern and the entries that triggered it."""

    category: FindingCategory
    description: str
    entries: List[Any] = field(default_factory=list)
    severity: FindingSeverity = FindingSeverity.WARNING

    @property
    def count(self) -> int:
        return len(self.entries)

    @property
    def informational(self) -> bool:
        return self.severity == FindingSeverity.INFO


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_off_hours(moment: datetime, tz: tzinfo) -> bool:
    """True if the local hour falls in [22:00, 06:00)."""
    hour = as_utc(moment).astimezone(tz).hour
    return hour >= OFF_HOURS_START_HOUR or hour < OFF_HOURS_END_HOUR


class AnomalyScanner:
    """
    Stateless rule runner over a tenant's recent audit entries.

    Example:
        scanner = AnomalyScanner()
        findings = scanner.scan(entries, now=datetime.now(timezone.utc), tz=ZoneInfo("UTC"))
    """

    def lookback(self, window: timedelta = DEFAULT_SCAN_WINDOW) -> timedelta:
        """How far back entries must be fetched to evaluate every rule."""
        return max(window, FAILED_AUTH_WINDOW, MASS_DELETION_WINDOW, CONFIG_CHANGE_WINDOW)

    def scan(
        self,
        entries: Iterable[EntryLike],
        now: Optional[datetime] = None,
        tz: tzinfo = timezone.utc,
        window: timedelta = DEFAULT_SCAN_WINDOW,
    ) -> List[Finding]:
        """Run every rule and return findings in rule order."""
        now = as_utc(now or datetime.now(timezone.utc))
        recent = sorted(entries, key=lambda e: as_utc(e.created_at), reverse=True)

        findings: List[Finding] = []
        for rule in (
            self._failed_authentication,
            self._off_hours,
            self._mass_deletion,
            self._configuration_changes,
        ):
            finding = rule(recent, now, tz, window)
            if finding is not None:
                findings.append(finding)

        if findings:
            logger.info(
                "Anomaly scan flagged %d finding(s): %s",
                len(findings),
                ", ".join(f.category.value for f in findings),
            )
        return findings

    @staticmethod
    def _since(entries: Sequence[EntryLike], cutoff: datetime) -> List[EntryLike]:
        return [e for e in entries if as_utc(e.created_at) >= cutoff]

    def _failed_authentication(self, entries, now, tz, window) -> Optional[Finding]:
        failed = [
            e for e in self._since(entries, now - FAILED_AUTH_WINDOW)
            if e.action == "FAILED_LOGIN"
        ]
        if len(failed) < FAILED_AUTH_THRESHOLD:
            return None
        return Finding(
            category=FindingCategory.SUSPICIOUS_AUTHENTICATION,
            description=f"{len(failed)} failed authentication attempts in the last hour",
            entries=failed,
            severity=FINDING_SEVERITY[FindingCategory.SUSPICIOUS_AUTHENTICATION],
        )

    def _off_hours(self, entries, now, tz, window) -> Optional[Finding]:
        nightly = [
            e for e in self._since(entries, now - window)
            if e.action not in SESSION_ACTIONS and is_off_hours(e.created_at, tz)
        ]
        if not nightly:
            return None
        return Finding(
            category=FindingCategory.OFF_HOURS_ACTIVITY,
            description=f"{len(nightly)} activities recorded outside business hours",
            entries=nightly,
            severity=FINDING_SEVERITY[FindingCategory.OFF_HOURS_ACTIVITY],
        )

    def _mass_deletion(self, entries, now, tz, window) -> Optional[Finding]:
        deletions = [
            e for e in self._since(entries, now - MASS_DELETION_WINDOW)
            if is_delete_action(e.action)
        ]
        if len(deletions) < MASS_DELETION_THRESHOLD:
            return None
        return Finding(
            category=FindingCategory.MASS_DELETION,
            description=f"{len(deletions)} deletions in the last hour",
            entries=deletions,
            severity=FINDING_SEVERITY[FindingCategory.MASS_DELETION],
        )

    def _configuration_changes(self, entries, now, tz, window) -> Optional[Finding]:
        changes = [
            e for e in self._since(entries, now - CONFIG_CHANGE_WINDOW)
            if is_config_action(e.action)
        ]
        if not changes:
            return None
        return Finding(
            category=FindingCategory.CONFIGURATION_CHANGED,
            description=f"{len(changes)} configuration changes in the last 24 hours",
            entries=changes,
            severity=FINDING_SEVERITY[FindingCategory.CONFIGURATION_CHANGED],
        )


__all__ = [
    "FindingCategory",
    "FindingSeverity",
    "Finding",
    "AnomalyScanner",
    "as_utc",
    "is_off_hours",
]
