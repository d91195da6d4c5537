"""API routers for AppForge."""

from . import health
from . import rbac
from . import groups

__all__ = [
    "health",
    "rbac",
    "groups",
]
