# WARDEN Platform - Shared Libraries
"""
Shared core libraries for WARDEN.

Modules:
    warden_core: Roles, module permissions, decisions, cache, anomaly rules
"""

__version__ = "1.0.0"
