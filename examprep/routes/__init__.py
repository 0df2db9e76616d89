"""API route modules."""
from examprep.routes import attempts, auth, notifications, tests

__all__ = ["attempts", "auth", "notifications", "tests"]
