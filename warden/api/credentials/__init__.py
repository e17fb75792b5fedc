"""Principal credential lifecycle."""
