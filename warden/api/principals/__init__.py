"""Principal management."""
