"""HTTP routers for the SafeQuery service."""
