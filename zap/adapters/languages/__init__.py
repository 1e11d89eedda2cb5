"""Language ecosystem package managers."""
