"""Per-tenant configuration categories."""
