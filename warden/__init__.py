# WARDEN - Multi-tenant Authorization Engine
"""
WARDEN service packages.

Subpackages:
    api: FastAPI adapter, persistence and tenant-scoped services
"""

__version__ = "1.0.0"
