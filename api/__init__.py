"""SafeQuery HTTP service."""
