"""WARDEN API tests."""
