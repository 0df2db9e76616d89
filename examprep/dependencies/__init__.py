"""FastAPI dependencies."""
from examprep.dependencies.auth import get_caller, get_current_user, require_elevated
from examprep.dependencies.services import get_orchestrator

__all__ = ["get_caller", "get_current_user", "get_orchestrator", "require_elevated"]
