"""
Tests for the Anomaly Scanner
=============================

Tests the four detection rules over recent audit entries.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shared.warden_core.anomaly_scanner import (
    AnomalyScanner,
    FindingCategory,
    FindingSeverity,
    as_utc,
    is_off_hours,
)


@pytest.fixture
def scanner():
    return AnomalyScanner()


def categories(findings):
    return [f.category for f in findings]


class TestFailedAuthentication:
    def test_five_failures_flagged(self, scanner, make_entry, noon_utc):
        entries = [
            make_entry("FAILED_LOGIN", noon_utc - timedelta(minutes=i * 5))
            for i in range(5)
        ]
        findings = scanner.scan(entries, now=noon_utc)
        assert categories(findings) == [FindingCategory.SUSPICIOUS_AUTHENTICATION]
        assert findings[0].count == 5
        assert findings[0].severity == FindingSeverity.CRITICAL

    def test_four_failures_not_flagged(self, scanner, make_entry, noon_utc):
        entries = [make_entry("FAILED_LOGIN", noon_utc - timedelta(minutes=i)) for i in range(4)]
        assert scanner.scan(entries, now=noon_utc) == []

    def test_failures_older_than_an_hour_ignored(self, scanner, make_entry, noon_utc):
        entries = [
            make_entry("FAILED_LOGIN", noon_utc - timedelta(hours=2, minutes=i))
            for i in range(10)
        ]
        assert scanner.scan(entries, now=noon_utc) == []


class TestOffHours:
    def test_night_activity_flagged(self, scanner, make_entry):
        now = datetime(2024, 3, 6, 23, 30, tzinfo=timezone.utc)
        findings = scanner.scan([make_entry("ACCESS_GRANTED", now - timedelta(minutes=10))], now=now)
        assert categories(findings) == [FindingCategory.OFF_HOURS_ACTIVITY]

    def test_login_at_night_ignored(self, scanner, make_entry):
        now = datetime(2024, 3, 6, 23, 30, tzinfo=timezone.utc)
        assert scanner.scan([make_entry("LOGIN", now - timedelta(minutes=10))], now=now) == []

    def test_local_time_zone_applies(self, scanner, make_entry):
        # 13:55 UTC is 22:55 at UTC+9
        tokyo = timezone(timedelta(hours=9))
        now = datetime(2024, 3, 6, 14, 0, tzinfo=timezone.utc)
        entry = make_entry("ACCESS_GRANTED", now - timedelta(minutes=5))
        assert categories(scanner.scan([entry], now=now, tz=tokyo)) == [
            FindingCategory.OFF_HOURS_ACTIVITY
        ]
        assert scanner.scan([entry], now=now, tz=timezone.utc) == []

    def test_boundaries(self):
        utc = timezone.utc
        assert is_off_hours(datetime(2024, 1, 1, 22, 0, tzinfo=utc), utc)
        assert is_off_hours(datetime(2024, 1, 1, 5, 59, tzinfo=utc), utc)
        assert not is_off_hours(datetime(2024, 1, 1, 6, 0, tzinfo=utc), utc)
        assert not is_off_hours(datetime(2024, 1, 1, 21, 59, tzinfo=utc), utc)


class TestMassDeletion:
    def test_ten_deletions_flagged(self, scanner, make_entry, noon_utc):
        entries = [make_entry("DELETE", noon_utc - timedelta(minutes=i)) for i in range(6)]
        entries += [make_entry("PRINCIPAL_DELETED", noon_utc - timedelta(minutes=i)) for i in range(4)]
        findings = scanner.scan(entries, now=noon_utc)
        assert categories(findings) == [FindingCategory.MASS_DELETION]
        assert findings[0].count == 10

    def test_nine_deletions_not_flagged(self, scanner, make_entry, noon_utc):
        entries = [make_entry("DELETE", noon_utc - timedelta(minutes=i)) for i in range(9)]
        assert scanner.scan(entries, now=noon_utc) == []


class TestConfigurationChanges:
    def test_config_change_is_informational(self, scanner, make_entry, noon_utc):
        entries = [
            make_entry("CONFIG_CHANGED", noon_utc - timedelta(hours=3)),
            make_entry("CONFIG_SECURITY_CHANGED", noon_utc - timedelta(hours=20)),
        ]
        findings = scanner.scan(entries, now=noon_utc)
        assert categories(findings) == [FindingCategory.CONFIGURATION_CHANGED]
        assert findings[0].informational
        assert findings[0].count == 2

    def test_change_older_than_a_day_ignored(self, scanner, make_entry, noon_utc):
        entries = [make_entry("CONFIG_CHANGED", noon_utc - timedelta(hours=25))]
        assert scanner.scan(entries, now=noon_utc) == []


class TestScanner:
    def test_rule_order(self, scanner, make_entry):
        now = datetime(2024, 3, 6, 23, 0, tzinfo=timezone.utc)
        entries = [make_entry("FAILED_LOGIN", now - timedelta(minutes=i)) for i in range(5)]
        entries.append(make_entry("CONFIG_CHANGED", now - timedelta(minutes=1)))
        assert categories(scanner.scan(entries, now=now)) == [
            FindingCategory.SUSPICIOUS_AUTHENTICATION,
            FindingCategory.OFF_HOURS_ACTIVITY,
            FindingCategory.CONFIGURATION_CHANGED,
        ]

    def test_naive_timestamps_are_utc(self, scanner, make_entry, noon_utc):
        naive = noon_utc.replace(tzinfo=None)
        assert as_utc(naive) == noon_utc
        entries = [make_entry("FAILED_LOGIN", naive - timedelta(minutes=i)) for i in range(5)]
        assert categories(scanner.scan(entries, now=noon_utc)) == [
            FindingCategory.SUSPICIOUS_AUTHENTICATION
        ]

    def test_lookback_covers_every_rule(self, scanner):
        assert scanner.lookback(timedelta(hours=1)) == timedelta(hours=24)
        assert scanner.lookback(timedelta(hours=48)) == timedelta(hours=48)

    def test_empty(self, scanner, noon_utc):
        assert scanner.scan([], now=noon_utc) == []
