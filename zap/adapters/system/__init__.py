"""Primary system package managers."""
