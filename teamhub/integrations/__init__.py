"""External integrations: OAuth providers and error tracking."""
