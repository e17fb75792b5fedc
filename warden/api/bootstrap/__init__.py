"""Tenant registration and first-principal bootstrap."""
