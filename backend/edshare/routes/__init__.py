"""HTTP routes: unversioned health checks plus the versioned API under ``v1``."""
