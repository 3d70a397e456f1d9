"""Read-only progress statistics."""
