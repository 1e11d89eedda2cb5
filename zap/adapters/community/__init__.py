"""Community registries built from source."""
