"""
WARDEN - System Constants
=========================

Centralized constants for the WARDEN authorization engine.
Thresholds and windows that the engine treats as fixed policy live here.

Author: WARDEN Development Team
Version: 1.0.0
"""

from datetime import timedelta

# =============================================================================
# SYSTEM IDENTIFICATION
# =============================================================================

VERSION = "1.0.0"
SYSTEM_NAME = "WARDEN"

# =============================================================================
# PRIVILEGE CACHE
# =============================================================================

# Maximum age of a cached privilege entry (seconds)
PRIVILEGE_CACHE_TTL_SEC = 300  # 5 minutes

# Number of independently locked shards
PRIVILEGE_CACHE_SHARDS = 16

# =============================================================================
# ANOMALY SCANNER THRESHOLDS
# =============================================================================

# Failed authentications per tenant within the auth window
FAILED_AUTH_THRESHOLD = 5
FAILED_AUTH_WINDOW = timedelta(hours=1)

# Delete actions per tenant within the deletion window
MASS_DELETION_THRESHOLD = 10
MASS_DELETION_WINDOW = timedelta(hours=1)

# Any configuration change within this window is reported
CONFIG_CHANGE_WINDOW = timedelta(hours=24)

# Local-time business hours; activity outside [start, end) is off-hours
OFF_HOURS_START_HOUR = 22
OFF_HOURS_END_HOUR = 6

# Default lookback for a scan
DEFAULT_SCAN_WINDOW = timedelta(hours=1)

# =============================================================================
# AUDIT
# =============================================================================

# Write attempts per audit entry (first try + retries)
AUDIT_WRITE_ATTEMPTS = 3

# Delay between audit write attempts (seconds)
AUDIT_RETRY_DELAY_SEC = 0.5

AUDIT_DEFAULT_PAGE_SIZE = 50
AUDIT_MAX_PAGE_SIZE = 500

# Keys redacted from audit detail payloads
AUDIT_SENSITIVE_FIELDS = frozenset({
    "password",
    "password_hash",
    "new_password",
    "current_password",
    "temporary_password",
    "credential",
    "credential_hash",
    "secret",
    "token",
    "api_key",
    "api_keys",
    "access_token",
})

# =============================================================================
# PASSWORD POLICY DEFAULTS
# =============================================================================

PASSWORD_MIN_LENGTH = 8
# bcrypt hashes at most 72 bytes of input; measured in UTF-8 bytes
PASSWORD_MAX_LENGTH = 72
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

# =============================================================================
# TENANT DEFAULTS
# =============================================================================

DEFAULT_TENANT_TIMEZONE = "America/Sao_Paulo"
