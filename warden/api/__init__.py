"""WARDEN Authorization API."""
