"""Shop domain entities and repository contracts."""
